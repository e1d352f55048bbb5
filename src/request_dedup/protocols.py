"""Protocols para extensibilidade da biblioteca.

Define interfaces que permitem implementações customizadas de:
- KeyBuilder: Geração de chaves de deduplicação
- Transport: Execução da chamada HTTP
- CancellationSignal: Sinais de cancelamento externos
- DedupMetrics: Coleta de métricas
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

import httpx

if TYPE_CHECKING:
    from .options import RequestOptions


class CancellationSignal(Protocol):
    """Protocol para sinais de cancelamento.

    Qualquer objeto com estas capacidades pode ser usado como sinal externo
    em ``RequestOptions.signal``. ``CancellationHandle`` é a implementação
    padrão.

    Example:
        ```python
        class ShutdownSignal:
            def __init__(self):
                self._handle = CancellationHandle()

            @property
            def is_triggered(self) -> bool:
                return self._handle.is_triggered

            @property
            def reason(self):
                return self._handle.reason

            def add_listener(self, listener):
                return self._handle.add_listener(listener)
        ```
    """

    @property
    def is_triggered(self) -> bool:
        """True se o sinal já disparou."""
        ...

    @property
    def reason(self) -> Any:
        """Motivo do disparo (None enquanto não disparou)."""
        ...

    def add_listener(self, listener: Callable[[Any], None]) -> Callable[[], None]:
        """Registra callback de disparo.

        Args:
            listener: Função chamada com o motivo do disparo

        Returns:
            Função que remove o listener
        """
        ...


class KeyBuilder(Protocol):
    """Protocol para construtores de chaves de deduplicação.

    Implementações devem ser puras e nunca lançar exceções: duas requisições
    estruturalmente iguais devem produzir a mesma chave.

    Example:
        ```python
        class PathOnlyKeyBuilder:
            def build_key(self, target, options) -> str:
                return f"{options.method}:{httpx.URL(str(target)).path}"
        ```
    """

    def build_key(self, target: str | httpx.URL, options: "RequestOptions") -> str:
        """Constrói chave de deduplicação.

        Args:
            target: URL alvo da requisição
            options: Opções resolvidas da requisição

        Returns:
            Chave de deduplicação como string
        """
        ...


class Transport(Protocol):
    """Protocol para o transporte HTTP subjacente.

    O transporte deve observar ``signal`` e abortar prontamente quando ele
    disparar. O coordenador também cancela a task do transporte, então
    transportes baseados em asyncio não precisam fazer nada além de serem
    canceláveis.
    """

    async def send(
        self,
        target: str | httpx.URL,
        options: "RequestOptions",
        signal: CancellationSignal | None,
    ) -> httpx.Response:
        """Executa a requisição.

        Args:
            target: URL alvo
            options: Opções da requisição
            signal: Sinal efetivo de cancelamento (None sem deduplicação e sem sinal externo)

        Returns:
            Resposta HTTP

        Raises:
            Exception: Erros de transporte, propagados sem alteração
        """
        ...


class DedupMetrics(Protocol):
    """Protocol para coleta de métricas de deduplicação.

    Example:
        ```python
        class PrometheusMetrics:
            def record_superseded(self, key: str) -> None:
                superseded_total.labels(key=key).inc()
        ```
    """

    def record_started(self, key: str) -> None:
        """Registra início de uma requisição."""
        ...

    def record_superseded(self, key: str) -> None:
        """Registra requisição anterior cancelada por uma mais nova."""
        ...

    def record_completed(self, key: str, latency: float) -> None:
        """Registra requisição concluída com resposta.

        Args:
            key: Chave de deduplicação
            latency: Latência da requisição em segundos
        """
        ...

    def record_cancelled(self, key: str, reason: str) -> None:
        """Registra requisição encerrada por cancelamento."""
        ...

    def record_failed(self, key: str, error: Exception) -> None:
        """Registra requisição encerrada por erro de transporte."""
        ...
