"""request-dedup: cancelamento automático de requisições HTTP redundantes.

Garante no máximo uma requisição em voo por chave de deduplicação: uma
requisição nova cancela a anterior com a mesma chave, compondo o
cancelamento interno com o sinal fornecido pelo chamador.

Uso básico:
    ```python
    from request_dedup import DedupClient, RequestCancelledError

    async with DedupClient(base_url="https://api.example.com") as client:
        try:
            response = await client.get("/search", params={"q": term})
        except RequestCancelledError as e:
            if e.superseded:
                return  # uma busca mais nova assumiu
            raise
    ```

Uso avançado (coordenador com transporte e registro próprios):
    ```python
    from request_dedup import PendingRegistry, RequestCoordinator, RequestOptions

    coordinator = RequestCoordinator(my_transport, registry=PendingRegistry())
    response = await coordinator.execute("/items", RequestOptions(method="GET"))
    ```
"""

__version__ = "0.1.0"

# Cliente principal
from .client import DedupClient

# Configuração
from .config import DedupConfig

# Coordenação (uso avançado)
from .coordinator import RequestCoordinator

# Exceções
from .exceptions import (
    ConfigurationError,
    RegistryInvariantError,
    RequestCancelledError,
    RequestDedupError,
)

# Geração de chaves
from .key_builder import DefaultKeyBuilder

# Métricas
from .metrics import (
    DedupStats,
    InMemoryMetrics,
    KeyStats,
    NoOpMetrics,
    OpenTelemetryMetrics,
)
from .options import RequestOptions

# Protocols (para extensibilidade)
from .protocols import CancellationSignal, DedupMetrics, KeyBuilder, Transport
from .registry import PendingEntry, PendingRegistry

# Sinais de cancelamento
from .signals import (
    CancellationHandle,
    CancelReason,
    EffectiveSignal,
    TimeoutSignal,
    any_signal,
    compose,
    timeout_signal,
)
from .transport import HttpxTransport

__all__ = [
    # Cliente principal
    "DedupClient",
    "RequestOptions",
    # Coordenação
    "RequestCoordinator",
    "PendingRegistry",
    "PendingEntry",
    "HttpxTransport",
    # Configuração
    "DedupConfig",
    # Sinais
    "CancellationHandle",
    "CancelReason",
    "EffectiveSignal",
    "TimeoutSignal",
    "any_signal",
    "compose",
    "timeout_signal",
    # Geração de chaves
    "DefaultKeyBuilder",
    # Métricas
    "DedupStats",
    "KeyStats",
    "NoOpMetrics",
    "InMemoryMetrics",
    "OpenTelemetryMetrics",
    # Exceções
    "RequestDedupError",
    "RequestCancelledError",
    "RegistryInvariantError",
    "ConfigurationError",
    # Protocols
    "CancellationSignal",
    "DedupMetrics",
    "KeyBuilder",
    "Transport",
]
