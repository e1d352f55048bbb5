"""Exceções do request-dedup.

Erros de transporte (``httpx.HTTPError`` e afins) não são encapsulados:
propagam intactos para quem chamou.
"""

from .signals import CancelReason


class RequestDedupError(Exception):
    """Erro base da biblioteca."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class RequestCancelledError(RequestDedupError):
    """Requisição cancelada pelo sinal efetivo.

    O sinal pode ter disparado porque uma requisição mais nova para a mesma
    chave a substituiu (``superseded``) ou por uma fonte externa
    (cancelamento manual, timeout, shutdown).

    Attributes:
        key: Chave de deduplicação (None quando a requisição não participa)
        reason: Motivo do cancelamento
    """

    def __init__(self, key: str | None, reason: CancelReason) -> None:
        self.reason = reason
        target = key if key is not None else "<sem chave>"
        super().__init__(f"Requisição cancelada ({reason.value}): {target}", key=key)

    @property
    def superseded(self) -> bool:
        """True quando a requisição foi substituída por outra mais nova."""
        return self.reason is CancelReason.SUPERSEDED


class RegistryInvariantError(RequestDedupError):
    """Violação de invariante do registro de pendências.

    Indica defeito de lógica no sequenciamento do coordenador, nunca uma
    falha de runtime. Não deve ser capturada silenciosamente.
    """

    pass


class ConfigurationError(RequestDedupError):
    """Valor de configuração inválido (prefixo vazio, timeout negativo, etc.)."""

    pass
