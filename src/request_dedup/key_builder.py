"""Construtor de chaves de deduplicação determinísticas."""

import hashlib
import json
import logging
from collections.abc import Iterable
from typing import Any

import httpx

from .exceptions import ConfigurationError
from .options import RequestOptions

logger = logging.getLogger(__name__)


class DefaultKeyBuilder:
    """Construtor de chaves padrão usando SHA256.

    Gera chaves determinísticas no formato:
    {prefix}:{METHOD}:{url_normalizada}:{hash_opcoes}

    A URL é normalizada pelo ``httpx.URL`` (scheme e host em minúsculas) e
    os parâmetros de query são ordenados. O hash é calculado sobre as opções
    relevantes para a chave; sinal de cancelamento, timeout e callbacks
    nunca participam.

    Quais opções são relevantes é configurável:
    - ``include=None``: todas as opções exceto as de ``exclude``
    - ``include={...}``: apenas as opções listadas

    Attributes:
        prefix: Prefixo para todas as chaves geradas
    """

    def __init__(
        self,
        prefix: str = "request",
        include: Iterable[str] | None = None,
        exclude: Iterable[str] = (),
    ) -> None:
        """Inicializa o key builder.

        Args:
            prefix: Prefixo das chaves (default: "request")
            include: Opções que participam da chave (None = todas)
            exclude: Opções ignoradas na chave

        Raises:
            ConfigurationError: Se prefix for vazio
        """
        if not prefix:
            raise ConfigurationError("Prefix não pode ser vazio")
        self._prefix = prefix
        self._include = frozenset(include) if include is not None else None
        self._exclude = frozenset(exclude)

    @property
    def prefix(self) -> str:
        """Prefixo das chaves."""
        return self._prefix

    def build_key(self, target: str | httpx.URL, options: RequestOptions) -> str:
        """Constrói chave de deduplicação.

        Nunca lança exceção: entradas que não podem ser normalizadas caem
        para a representação string.

        Args:
            target: URL alvo
            options: Opções da requisição

        Returns:
            Chave no formato prefix:METHOD:url:hash
        """
        if options.dedupe_key:
            return f"{self._prefix}:{options.dedupe_key}"

        url = self._normalize_url(target, options.params)
        try:
            options_hash = self._hash_options(self._select_fields(options))
        except Exception as e:
            logger.warning(f"Falha ao normalizar opções para a chave, usando repr: {e}")
            options_hash = hashlib.sha256(repr(options.key_fields()).encode()).hexdigest()[:16]
        return f"{self._prefix}:{options.method}:{url}:{options_hash}"

    def _select_fields(self, options: RequestOptions) -> dict[str, Any]:
        """Filtra as opções relevantes para a chave."""
        selected = {}
        for name, value in options.key_fields().items():
            if name == "params":
                # Já incorporados à URL normalizada
                continue
            if self._include is not None and name not in self._include:
                continue
            if name in self._exclude or callable(value):
                continue
            if name == "headers" and value:
                value = {str(k).lower(): v for k, v in value.items()}
            selected[name] = value
        return selected

    def _normalize_url(self, target: str | httpx.URL, params: dict[str, Any] | None) -> str:
        """Normaliza URL mesclando e ordenando os parâmetros de query."""
        try:
            url = httpx.URL(str(target))
            if params:
                url = url.copy_merge_params(params)
            if url.query:
                pairs = sorted(url.params.multi_items())
                url = url.copy_with(params=pairs)
            return str(url)
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            logger.warning(f"URL não normalizável, usando valor bruto: {target!r} ({e})")
            return str(target)

    def _hash_options(self, selected: dict[str, Any]) -> str:
        """Calcula hash SHA256 das opções relevantes."""
        normalized = self._normalize(selected)
        try:
            serialized = json.dumps(normalized, sort_keys=True, default=str)
        except (TypeError, ValueError):
            # Fallback: usa representação string
            logger.warning("Opções não serializáveis em JSON, usando repr para a chave")
            serialized = repr(normalized)

        return hashlib.sha256(serialized.encode()).hexdigest()[:16]

    def _normalize(self, obj: Any) -> Any:
        """Normaliza objeto para serialização JSON."""
        if obj is None or isinstance(obj, (bool, int, float, str)):
            return obj
        if isinstance(obj, (bytes, bytearray)):
            # Hash dos bytes brutos: sem perda e distinto de str
            return {"__bytes__": hashlib.sha256(obj).hexdigest()}
        if isinstance(obj, (list, tuple)):
            return [self._normalize(item) for item in obj]
        if isinstance(obj, dict):
            return {str(k): self._normalize(v) for k, v in obj.items() if not callable(v)}
        if isinstance(obj, (set, frozenset)):
            # Ordena por tipo e string para suportar sets com tipos mistos
            normalized_items = [self._normalize(item) for item in obj]
            return sorted(normalized_items, key=lambda x: (type(x).__name__, str(x)))
        obj_type = type(obj)
        if obj_type.__str__ is object.__str__ and obj_type.__repr__ is object.__repr__ and hasattr(obj, "__dict__"):
            # str padrão contém o endereço de memória; usa tipo e atributos
            type_name = f"{obj_type.__module__}.{obj_type.__qualname__}"
            return {"__type__": type_name, "__vars__": self._normalize(vars(obj))}
        # Para outros tipos, usa representação string
        return str(obj)
