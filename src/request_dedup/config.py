"""Configuração do request-dedup.

Resolve valores padrão seguindo a precedência:

1. Parâmetro explícito (maior precedência)
2. Variável de ambiente
3. Valor padrão (menor precedência)
"""

import os

from .exceptions import ConfigurationError

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class DedupConfig:
    """Resolução de configuração a partir de parâmetros e ambiente."""

    # Nomes das variáveis de ambiente
    ENV_KEY_PREFIX = "REQUEST_DEDUP_KEY_PREFIX"
    ENV_CANCEL_REDUNDANT = "REQUEST_DEDUP_CANCEL_REDUNDANT"
    ENV_TIMEOUT = "REQUEST_DEDUP_TIMEOUT"
    ENV_BASE_URL = "REQUEST_DEDUP_BASE_URL"

    # Valores padrão
    DEFAULT_KEY_PREFIX = "request"
    DEFAULT_CANCEL_REDUNDANT = True
    DEFAULT_TIMEOUT: float | None = None
    DEFAULT_BASE_URL = ""

    @classmethod
    def resolve_key_prefix(cls, explicit_value: str | None = None) -> str:
        """Resolve o prefixo das chaves de deduplicação.

        Raises:
            ConfigurationError: Se o prefixo resolvido for vazio
        """
        if explicit_value is not None:
            value = explicit_value
        else:
            value = os.getenv(cls.ENV_KEY_PREFIX) or cls.DEFAULT_KEY_PREFIX

        if not value.strip():
            raise ConfigurationError("Prefixo de chave não pode ser vazio")
        return value

    @classmethod
    def resolve_cancel_redundant(cls, explicit_value: bool | None = None) -> bool:
        """Resolve se requisições redundantes são canceladas por padrão.

        Raises:
            ConfigurationError: Se a variável de ambiente tiver valor não booleano
        """
        if explicit_value is not None:
            return explicit_value

        env_value = os.getenv(cls.ENV_CANCEL_REDUNDANT)
        if not env_value:
            return cls.DEFAULT_CANCEL_REDUNDANT

        normalized = env_value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"{cls.ENV_CANCEL_REDUNDANT} inválido: {env_value!r}")

    @classmethod
    def resolve_timeout(cls, explicit_value: float | None = None) -> float | None:
        """Resolve o timeout padrão em segundos (None = sem timeout).

        Raises:
            ConfigurationError: Se o timeout não for um número positivo
        """
        if explicit_value is not None:
            return cls.validate_timeout(explicit_value)

        env_value = os.getenv(cls.ENV_TIMEOUT)
        if not env_value:
            return cls.DEFAULT_TIMEOUT

        try:
            timeout = float(env_value)
        except ValueError as e:
            raise ConfigurationError(f"{cls.ENV_TIMEOUT} inválido: {env_value!r}") from e
        return cls.validate_timeout(timeout)

    @classmethod
    def resolve_base_url(cls, explicit_value: str | None = None) -> str:
        """Resolve a URL base do cliente HTTP."""
        if explicit_value is not None:
            return explicit_value
        return os.getenv(cls.ENV_BASE_URL) or cls.DEFAULT_BASE_URL

    @staticmethod
    def validate_timeout(timeout: float) -> float:
        """Valida que o timeout é positivo."""
        if timeout <= 0:
            raise ConfigurationError(f"Timeout deve ser positivo, recebido: {timeout}")
        return float(timeout)
