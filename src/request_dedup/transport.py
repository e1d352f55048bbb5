"""Transporte HTTP padrão usando httpx."""

import asyncio
import logging

import httpx

from .options import RequestOptions
from .protocols import CancellationSignal

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class HttpxTransport:
    """Transporte baseado em ``httpx.AsyncClient``.

    Converte ``RequestOptions`` em uma chamada ``client.request``. O
    cancelamento é cooperativo: o coordenador cancela a task desta chamada
    quando o sinal efetivo dispara, e o httpx aborta a conexão.

    O cliente é criado sob demanda quando não é fornecido. Clientes
    externos não são fechados por ``aclose()``.

    Attributes:
        base_url: URL base usada no cliente criado internamente
        timeout: Timeout de transporte do cliente criado internamente
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._base_url = base_url
        self._timeout = timeout
        # asyncio.Lock é criado lazy para evitar "no current event loop" em Python 3.10+
        # quando o transporte é instanciado antes de um event loop existir
        self._client_lock: asyncio.Lock | None = None

    def _get_lock(self) -> asyncio.Lock:
        """Obtém ou cria lock assíncrono (lazy init)."""
        if self._client_lock is None:
            self._client_lock = asyncio.Lock()
        return self._client_lock

    async def _get_client(self) -> httpx.AsyncClient:
        """Obtém ou cria cliente HTTP assíncrono.

        Usa double-checked locking com asyncio.Lock para não bloquear o event loop.
        """
        if self._client is None:
            async with self._get_lock():
                if self._client is None:
                    self._client = httpx.AsyncClient(
                        base_url=self._base_url,
                        timeout=self._timeout,
                    )
        return self._client

    async def send(
        self,
        target: str | httpx.URL,
        options: RequestOptions,
        signal: CancellationSignal | None,
    ) -> httpx.Response:
        """Executa a requisição.

        Args:
            target: URL alvo (relativa à base_url, se houver)
            options: Opções da requisição
            signal: Sinal efetivo (o cancelamento chega via cancelamento da task)

        Returns:
            Resposta HTTP

        Raises:
            httpx.HTTPError: Erros de transporte, sem alteração
        """
        client = await self._get_client()

        logger.debug(f"{options.method} {target}")
        return await client.request(
            options.method,
            target,
            params=options.params,
            headers=options.headers,
            json=options.json,
            data=options.data,
            content=options.content,
            extensions=options.extensions or None,
        )

    async def aclose(self) -> None:
        """Fecha o cliente HTTP se ele foi criado por este transporte."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
