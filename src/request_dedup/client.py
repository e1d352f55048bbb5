"""Cliente HTTP com cancelamento automático de requisições redundantes."""

import logging
from typing import Any

import httpx

from .config import DedupConfig
from .coordinator import RequestCoordinator
from .key_builder import DefaultKeyBuilder
from .options import RequestOptions
from .protocols import CancellationSignal, DedupMetrics, KeyBuilder, Transport
from .registry import PendingRegistry
from .signals import CancelReason, any_signal, timeout_signal
from .transport import HttpxTransport

logger = logging.getLogger(__name__)


class DedupClient:
    """Cliente assíncrono que cancela requisições redundantes em voo.

    Duas requisições com a mesma chave (método, URL normalizada e opções
    relevantes) nunca ficam em voo ao mesmo tempo: a mais nova cancela a
    anterior, que termina com ``RequestCancelledError``.

    O timeout por chamada é implementado como um sinal externo composto com
    o sinal do chamador, antes de chegar ao coordenador.

    Example:
        ```python
        async with DedupClient(base_url="https://api.example.com") as client:
            response = await client.get("/search", params={"q": "python"})

            # Sem deduplicação
            await client.post("/events", json=event, cancel_redundant_requests=False)

            # Cancelamento manual
            signal = CancellationHandle()
            task = asyncio.create_task(client.get("/slow", signal=signal))
            signal.trigger()
        ```
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        transport: Transport | None = None,
        registry: PendingRegistry | None = None,
        key_builder: KeyBuilder | None = None,
        key_prefix: str | None = None,
        metrics: DedupMetrics | None = None,
        timeout: float | None = None,
        cancel_redundant_requests: bool | None = None,
    ) -> None:
        """Inicializa o cliente.

        Args:
            base_url: URL base (usa REQUEST_DEDUP_BASE_URL se não fornecida)
            client: Cliente httpx existente (não é fechado pelo DedupClient)
            transport: Transporte customizado (substitui client/base_url)
            registry: Registro de pendências (default: registro próprio)
            key_builder: Construtor de chaves customizado
            key_prefix: Prefixo das chaves (usa REQUEST_DEDUP_KEY_PREFIX se não fornecido)
            metrics: Coletor de métricas (default: NoOpMetrics)
            timeout: Timeout padrão por requisição em segundos
            cancel_redundant_requests: Default de deduplicação das requisições

        Raises:
            ConfigurationError: Se algum valor de configuração for inválido
        """
        self._timeout = DedupConfig.resolve_timeout(timeout)
        self._cancel_redundant = DedupConfig.resolve_cancel_redundant(cancel_redundant_requests)

        self._owns_transport = transport is None
        if transport is None:
            transport = HttpxTransport(client=client, base_url=DedupConfig.resolve_base_url(base_url))
        self._transport = transport

        actual_key_builder = key_builder or DefaultKeyBuilder(prefix=DedupConfig.resolve_key_prefix(key_prefix))
        self._coordinator = RequestCoordinator(
            transport=transport,
            registry=registry,
            key_builder=actual_key_builder,
            metrics=metrics,
        )

    @property
    def coordinator(self) -> RequestCoordinator:
        return self._coordinator

    @property
    def registry(self) -> PendingRegistry:
        return self._coordinator.registry

    async def request(
        self,
        method: str,
        url: str | httpx.URL,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        content: bytes | str | None = None,
        signal: CancellationSignal | None = None,
        timeout: float | None = None,
        cancel_redundant_requests: bool | None = None,
        dedupe_key: str | None = None,
        extensions: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Executa uma requisição.

        Args:
            method: Método HTTP
            url: URL alvo (relativa à base_url, se houver)
            params: Parâmetros de query string
            headers: Headers da requisição
            json: Corpo JSON
            data: Corpo de formulário
            content: Corpo bruto
            signal: Sinal de cancelamento externo
            timeout: Timeout em segundos (default: timeout do cliente)
            cancel_redundant_requests: Sobrescreve o default de deduplicação
            dedupe_key: Chave de deduplicação explícita
            extensions: Valores extras repassados ao transporte

        Returns:
            Resposta HTTP

        Raises:
            RequestCancelledError: Se a requisição foi cancelada
            httpx.HTTPError: Erros de transporte, sem alteração
        """
        if cancel_redundant_requests is None:
            cancel_redundant_requests = self._cancel_redundant

        options = RequestOptions(
            method=method,
            params=params,
            headers=headers,
            json=json,
            data=data,
            content=content,
            signal=signal,
            timeout=timeout,
            cancel_redundant_requests=cancel_redundant_requests,
            dedupe_key=dedupe_key,
            extensions=extensions or {},
        )
        return await self.execute(url, options)

    async def execute(self, url: str | httpx.URL, options: RequestOptions) -> httpx.Response:
        """Executa uma requisição com opções já resolvidas.

        O timeout (da requisição ou do cliente) é composto ao sinal externo.
        """
        timeout = options.timeout if options.timeout is not None else self._timeout
        if timeout is None:
            return await self._coordinator.execute(url, options)

        timer = timeout_signal(DedupConfig.validate_timeout(timeout))
        external = any_signal(options.signal, timer)
        try:
            return await self._coordinator.execute(url, options.with_signal(external))
        finally:
            timer.dispose()
            external.dispose()

    async def get(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def head(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    async def options(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        return await self.request("OPTIONS", url, **kwargs)

    def cancel_all(self, reason: CancelReason = CancelReason.SHUTDOWN) -> int:
        """Cancela todas as requisições deduplicadas em voo."""
        return self._coordinator.cancel_all(reason)

    # ========== Gerenciamento de Recursos ==========

    async def aclose(self) -> None:
        """Cancela requisições pendentes e fecha o transporte próprio."""
        cancelled = self.cancel_all()
        if cancelled:
            logger.debug(f"{cancelled} requisições canceladas no fechamento do cliente")
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            await self._transport.aclose()

    async def __aenter__(self) -> "DedupClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
