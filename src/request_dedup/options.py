"""Opções resolvidas de uma requisição."""

from dataclasses import dataclass, field, fields, replace
from typing import Any

from .protocols import CancellationSignal

# Campos que nunca participam da chave de deduplicação
NON_KEY_FIELDS = frozenset(
    {
        "method",
        "signal",
        "timeout",
        "cancel_redundant_requests",
        "dedupe_key",
    }
)


@dataclass
class RequestOptions:
    """Opções de uma requisição após a normalização.

    Serialização de corpo, headers de autorização e query string são
    responsabilidade da camada anterior; aqui os valores já chegam prontos
    para o transporte.

    Attributes:
        method: Método HTTP (normalizado para maiúsculas)
        params: Parâmetros de query string
        headers: Headers da requisição
        json: Corpo JSON
        data: Corpo de formulário
        content: Corpo bruto
        signal: Sinal de cancelamento externo
        timeout: Timeout em segundos (aplicado pela camada do cliente)
        cancel_redundant_requests: Habilita cancelamento de requisições redundantes
        dedupe_key: Chave de deduplicação explícita (substitui a calculada)
        extensions: Valores extras repassados ao transporte
    """

    method: str = "GET"
    params: dict[str, Any] | None = None
    headers: dict[str, str] | None = None
    json: Any = None
    data: dict[str, Any] | None = None
    content: bytes | str | None = None
    signal: CancellationSignal | None = None
    timeout: float | None = None
    cancel_redundant_requests: bool = True
    dedupe_key: str | None = None
    extensions: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.method = self.method.upper()

    def key_fields(self) -> dict[str, Any]:
        """Retorna os campos candidatos a compor a chave de deduplicação."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in NON_KEY_FIELDS}

    def with_signal(self, signal: CancellationSignal | None) -> "RequestOptions":
        """Cópia das opções com outro sinal externo."""
        return replace(self, signal=signal)
