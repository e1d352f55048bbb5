"""Configuração de fixtures para testes."""

import asyncio
from typing import Any

import httpx
import pytest

from request_dedup.coordinator import RequestCoordinator
from request_dedup.metrics import InMemoryMetrics
from request_dedup.registry import PendingRegistry


class FakeTransport:
    """Transporte controlável que simula latência de rede."""

    def __init__(self, delay: float = 0.05, error: Exception | None = None) -> None:
        self.delay = delay
        self.error = error
        self.calls: list[tuple[str, Any]] = []
        self.signals: list[Any] = []
        self.cancelled = 0
        self.completed = 0

    async def send(self, target: Any, options: Any, signal: Any) -> httpx.Response:
        self.calls.append((str(target), options))
        self.signals.append(signal)
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if self.error is not None:
            raise self.error
        self.completed += 1
        return httpx.Response(200, json={"target": str(target), "call": len(self.calls)})


@pytest.fixture
def transport() -> FakeTransport:
    """Transporte falso com 50ms de latência."""
    return FakeTransport()


@pytest.fixture
def registry() -> PendingRegistry:
    """Registro isolado por teste."""
    return PendingRegistry()


@pytest.fixture
def metrics() -> InMemoryMetrics:
    """Métricas em memória."""
    return InMemoryMetrics()


@pytest.fixture
def coordinator(transport: FakeTransport, registry: PendingRegistry, metrics: InMemoryMetrics) -> RequestCoordinator:
    """Coordenador com transporte falso, registro isolado e métricas em memória."""
    return RequestCoordinator(transport, registry=registry, metrics=metrics)
