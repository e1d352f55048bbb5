"""Coordenação de deduplicação e cancelamento de requisições em voo."""

import asyncio
import logging
import time

import httpx

from .exceptions import RequestCancelledError
from .key_builder import DefaultKeyBuilder
from .metrics import NoOpMetrics
from .options import RequestOptions
from .protocols import DedupMetrics, KeyBuilder, Transport
from .registry import PendingRegistry
from .signals import CancellationHandle, CancelReason, EffectiveSignal, any_signal, compose

logger = logging.getLogger(__name__)


class RequestCoordinator:
    """Orquestra o ciclo de vida de requisições com cancelamento de redundantes.

    Para cada chamada:
    1. Calcula a chave de deduplicação
    2. Dispara o cancelamento da requisição anterior com a mesma chave
    3. Registra o handle da nova requisição
    4. Executa a chamada observando o sinal efetivo
    5. Remove a própria entrada do registro em qualquer desfecho

    Quando várias requisições com a mesma chave são emitidas em sequência,
    apenas a última permanece viva; as anteriores terminam com
    ``RequestCancelledError`` (``superseded=True``).

    Requisições com ``cancel_redundant_requests=False`` não interagem com o
    registro: não cancelam nem podem ser canceladas por outras.

    Example:
        ```python
        coordinator = RequestCoordinator(HttpxTransport(base_url="https://api"))

        first = asyncio.create_task(coordinator.execute("/search", RequestOptions(params={"q": "a"})))
        second = asyncio.create_task(coordinator.execute("/search", RequestOptions(params={"q": "a"})))

        # first -> RequestCancelledError(superseded=True); second -> httpx.Response
        ```
    """

    def __init__(
        self,
        transport: Transport,
        registry: PendingRegistry | None = None,
        key_builder: KeyBuilder | None = None,
        metrics: DedupMetrics | None = None,
    ) -> None:
        """Inicializa o coordenador.

        Args:
            transport: Transporte que executa as chamadas HTTP
            registry: Registro de pendências (default: novo registro isolado)
            key_builder: Construtor de chaves (default: DefaultKeyBuilder)
            metrics: Coletor de métricas (default: NoOpMetrics)
        """
        self._transport = transport
        self._registry = registry if registry is not None else PendingRegistry()
        self._key_builder = key_builder or DefaultKeyBuilder()
        self._metrics = metrics or NoOpMetrics()

    @property
    def registry(self) -> PendingRegistry:
        return self._registry

    @property
    def key_builder(self) -> KeyBuilder:
        return self._key_builder

    @property
    def metrics(self) -> DedupMetrics:
        return self._metrics

    async def execute(self, target: str | httpx.URL, options: RequestOptions | None = None) -> httpx.Response:
        """Executa a requisição com deduplicação.

        Args:
            target: URL alvo
            options: Opções resolvidas da requisição

        Returns:
            Resposta do transporte

        Raises:
            RequestCancelledError: Se o sinal efetivo disparou (substituição,
                cancelamento manual, timeout ou shutdown)
            RegistryInvariantError: Se o sequenciamento do registro foi violado
            Exception: Erros do transporte, propagados sem alteração
        """
        options = options or RequestOptions()

        if not options.cancel_redundant_requests:
            return await self._execute_untracked(target, options)

        key = self._key_builder.build_key(target, options)
        handle = CancellationHandle()
        signal = compose(options.signal, handle)

        # lookup + trigger + register formam uma unidade atômica por chave
        with self._registry.locked():
            prior = self._registry.lookup(key)
            if prior is not None and prior.handle.trigger(CancelReason.SUPERSEDED):
                logger.debug(f"Cancelando requisição redundante {prior.generation}: {key}")
                self._metrics.record_superseded(key)
            entry = self._registry.register(key, handle)

        try:
            return await self._issue(target, options, key, key, signal)
        finally:
            signal.dispose()
            self._registry.remove(key, entry)

    async def _execute_untracked(self, target: str | httpx.URL, options: RequestOptions) -> httpx.Response:
        """Executa sem passar pelo registro, observando apenas o sinal externo."""
        label = f"{options.method}:{target}"
        if options.signal is None:
            return await self._issue(target, options, None, label, None)

        signal = any_signal(options.signal)
        try:
            return await self._issue(target, options, None, label, signal)
        finally:
            signal.dispose()

    async def _issue(
        self,
        target: str | httpx.URL,
        options: RequestOptions,
        key: str | None,
        label: str,
        signal: EffectiveSignal | None,
    ) -> httpx.Response:
        """Executa a chamada registrando métricas do desfecho."""
        self._metrics.record_started(label)
        start_time = time.perf_counter()

        try:
            response = await self._send(target, options, key, signal)
        except RequestCancelledError as e:
            logger.debug(f"Requisição cancelada ({e.reason.value}): {label}")
            self._metrics.record_cancelled(label, e.reason.value)
            raise
        except Exception as e:
            self._metrics.record_failed(label, e)
            raise

        self._metrics.record_completed(label, time.perf_counter() - start_time)
        return response

    async def _send(
        self,
        target: str | httpx.URL,
        options: RequestOptions,
        key: str | None,
        signal: EffectiveSignal | None,
    ) -> httpx.Response:
        """Corre a chamada do transporte contra o sinal efetivo."""
        if signal is None:
            return await self._transport.send(target, options, None)

        if signal.is_triggered:
            raise RequestCancelledError(key, signal.reason or CancelReason.EXTERNAL)

        call = asyncio.ensure_future(self._transport.send(target, options, signal))
        waiter = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # A task de quem chamou foi cancelada; o transporte termina antes da limpeza
            await self._abandon(call)
            raise
        finally:
            waiter.cancel()
            await asyncio.wait({waiter})

        if signal.is_triggered:
            await self._abandon(call)
            raise RequestCancelledError(key, signal.reason or CancelReason.EXTERNAL)

        return call.result()

    async def _abandon(self, call: "asyncio.Future[httpx.Response]") -> None:
        """Cancela a chamada do transporte e aguarda seu término."""
        call.cancel()
        await asyncio.wait({call})
        if not call.cancelled() and call.exception() is not None:
            logger.debug(f"Chamada cancelada terminou com erro: {call.exception()!r}")

    def cancel_all(self, reason: CancelReason = CancelReason.SHUTDOWN) -> int:
        """Dispara o cancelamento de todas as requisições registradas.

        Não altera o registro: cada requisição remove a própria entrada ao
        terminar.

        Returns:
            Número de handles disparados
        """
        with self._registry.locked():
            entries = list(self._registry.snapshot().values())

        triggered = sum(1 for entry in entries if entry.handle.trigger(reason))
        logger.debug(f"{triggered} requisições pendentes canceladas ({reason.value})")
        return triggered
