"""Métricas de deduplicação usando OpenTelemetry."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock

from opentelemetry import metrics as otel_metrics

logger = logging.getLogger(__name__)


class NoOpMetrics:
    """Coletor de métricas que não faz nada (default)."""

    def record_started(self, key: str) -> None:
        pass

    def record_superseded(self, key: str) -> None:
        pass

    def record_completed(self, key: str, latency: float) -> None:
        pass

    def record_cancelled(self, key: str, reason: str) -> None:
        pass

    def record_failed(self, key: str, error: Exception) -> None:
        pass


@dataclass
class KeyStats:
    """Estatísticas para uma chave específica."""

    started: int = 0
    superseded: int = 0
    completed: int = 0
    cancelled: int = 0
    failed: int = 0
    total_latency: float = 0.0

    @property
    def settled(self) -> int:
        return self.completed + self.cancelled + self.failed

    @property
    def avg_latency_ms(self) -> float:
        return (self.total_latency / self.completed * 1000) if self.completed > 0 else 0.0


@dataclass
class DedupStats:
    """Estatísticas agregadas."""

    started: int = 0
    superseded: int = 0
    completed: int = 0
    cancelled: int = 0
    failed: int = 0
    cancel_reasons: dict[str, int] = field(default_factory=dict)
    latencies: list[float] = field(default_factory=list)

    @property
    def settled(self) -> int:
        return self.completed + self.cancelled + self.failed

    @property
    def in_flight(self) -> int:
        return self.started - self.settled

    @property
    def superseded_ratio(self) -> float:
        return self.superseded / self.started if self.started > 0 else 0.0

    @property
    def avg_latency_ms(self) -> float:
        if not self.latencies:
            return 0.0
        return sum(self.latencies) / len(self.latencies) * 1000


class OpenTelemetryMetrics:
    """Coletor de métricas usando OpenTelemetry.

    Métricas exportadas:
    - requests.started (counter): Requisições iniciadas
    - requests.superseded (counter): Requisições substituídas por outra mais nova
    - requests.completed (counter): Requisições concluídas com resposta
    - requests.cancelled (counter): Requisições canceladas (atributo ``reason``)
    - requests.failed (counter): Requisições com erro de transporte
    - requests.latency (histogram): Latência das requisições concluídas em segundos

    Example:
        ```python
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry import metrics

        metrics.set_meter_provider(MeterProvider())

        client = DedupClient(metrics=OpenTelemetryMetrics())
        ```
    """

    def __init__(self, meter_name: str = "request_dedup") -> None:
        """Inicializa métricas OpenTelemetry.

        Args:
            meter_name: Nome do meter para agrupar métricas
        """
        meter = otel_metrics.get_meter(meter_name)

        # Counters
        self._started_counter = meter.create_counter(
            "requests.started",
            description="Número de requisições iniciadas",
            unit="1",
        )
        self._superseded_counter = meter.create_counter(
            "requests.superseded",
            description="Número de requisições substituídas por uma mais nova",
            unit="1",
        )
        self._completed_counter = meter.create_counter(
            "requests.completed",
            description="Número de requisições concluídas",
            unit="1",
        )
        self._cancelled_counter = meter.create_counter(
            "requests.cancelled",
            description="Número de requisições canceladas",
            unit="1",
        )
        self._failed_counter = meter.create_counter(
            "requests.failed",
            description="Número de requisições com erro de transporte",
            unit="1",
        )

        # Histograms
        self._latency_histogram = meter.create_histogram(
            "requests.latency",
            description="Latência das requisições concluídas",
            unit="s",
        )

    def record_started(self, key: str) -> None:
        self._started_counter.add(1, {"key": key})

    def record_superseded(self, key: str) -> None:
        self._superseded_counter.add(1, {"key": key})

    def record_completed(self, key: str, latency: float) -> None:
        self._completed_counter.add(1, {"key": key})
        self._latency_histogram.record(latency, {"key": key})

    def record_cancelled(self, key: str, reason: str) -> None:
        self._cancelled_counter.add(1, {"key": key, "reason": reason})

    def record_failed(self, key: str, error: Exception) -> None:
        self._failed_counter.add(1, {"key": key, "error_type": type(error).__name__})


class InMemoryMetrics:
    """Coletor de métricas em memória com estatísticas por chave.

    Útil para desenvolvimento, testes e análise detalhada.

    Attributes:
        max_samples: Máximo de amostras de latência mantidas
    """

    def __init__(self, max_samples: int = 1000) -> None:
        self._max_samples = max_samples
        self._lock = Lock()
        self._overall = DedupStats()
        self._by_key: dict[str, KeyStats] = defaultdict(KeyStats)

    def record_started(self, key: str) -> None:
        with self._lock:
            self._overall.started += 1
            self._by_key[key].started += 1

    def record_superseded(self, key: str) -> None:
        with self._lock:
            self._overall.superseded += 1
            self._by_key[key].superseded += 1

    def record_completed(self, key: str, latency: float) -> None:
        with self._lock:
            self._overall.completed += 1
            self._overall.latencies.append(latency)
            if len(self._overall.latencies) > self._max_samples:
                del self._overall.latencies[: len(self._overall.latencies) - self._max_samples]

            self._by_key[key].completed += 1
            self._by_key[key].total_latency += latency

    def record_cancelled(self, key: str, reason: str) -> None:
        with self._lock:
            self._overall.cancelled += 1
            self._overall.cancel_reasons[reason] = self._overall.cancel_reasons.get(reason, 0) + 1
            self._by_key[key].cancelled += 1

    def record_failed(self, key: str, error: Exception) -> None:
        with self._lock:
            self._overall.failed += 1
            self._by_key[key].failed += 1

    def get_stats(self) -> DedupStats:
        """Retorna cópia das estatísticas agregadas."""
        with self._lock:
            return DedupStats(
                started=self._overall.started,
                superseded=self._overall.superseded,
                completed=self._overall.completed,
                cancelled=self._overall.cancelled,
                failed=self._overall.failed,
                cancel_reasons=dict(self._overall.cancel_reasons),
                latencies=self._overall.latencies.copy(),
            )

    def get_key_stats(self, key: str) -> KeyStats | None:
        """Retorna estatísticas de uma chave específica."""
        with self._lock:
            if key not in self._by_key:
                return None
            stats = self._by_key[key]
            return KeyStats(
                started=stats.started,
                superseded=stats.superseded,
                completed=stats.completed,
                cancelled=stats.cancelled,
                failed=stats.failed,
                total_latency=stats.total_latency,
            )

    def reset(self) -> None:
        """Reseta todas as estatísticas."""
        with self._lock:
            self._overall = DedupStats()
            self._by_key.clear()
