"""Testes para o sistema de métricas."""

from unittest.mock import MagicMock, patch

import pytest

from request_dedup.metrics import (
    DedupStats,
    InMemoryMetrics,
    KeyStats,
    NoOpMetrics,
    OpenTelemetryMetrics,
)


class TestNoOpMetrics:
    """Testes para NoOpMetrics."""

    def test_all_records_do_nothing(self) -> None:
        """Deve aceitar todas as chamadas sem fazer nada."""
        metrics = NoOpMetrics()
        metrics.record_started("key")
        metrics.record_superseded("key")
        metrics.record_completed("key", 0.01)
        metrics.record_cancelled("key", "superseded")
        metrics.record_failed("key", Exception("test"))


class TestDedupStats:
    """Testes para DedupStats."""

    def test_settled_and_in_flight(self) -> None:
        """Deve calcular requisições encerradas e em voo."""
        stats = DedupStats(started=10, completed=5, cancelled=3, failed=1)
        assert stats.settled == 9
        assert stats.in_flight == 1

    def test_superseded_ratio(self) -> None:
        """Deve calcular a proporção de substituições."""
        stats = DedupStats(started=4, superseded=1)
        assert stats.superseded_ratio == 0.25

    def test_superseded_ratio_no_requests(self) -> None:
        """Deve retornar 0 quando não há requisições."""
        assert DedupStats().superseded_ratio == 0.0

    def test_avg_latency(self) -> None:
        """Deve calcular latência média em ms."""
        stats = DedupStats(latencies=[0.001, 0.002, 0.003])
        assert stats.avg_latency_ms == pytest.approx(2.0)

    def test_avg_latency_empty(self) -> None:
        """Deve retornar 0 sem latências."""
        assert DedupStats().avg_latency_ms == 0.0


class TestKeyStats:
    """Testes para KeyStats."""

    def test_settled(self) -> None:
        stats = KeyStats(completed=2, cancelled=3, failed=1)
        assert stats.settled == 6

    def test_avg_latency(self) -> None:
        """Deve calcular latência média."""
        stats = KeyStats(completed=2, total_latency=0.004)
        assert stats.avg_latency_ms == pytest.approx(2.0)


class TestInMemoryMetrics:
    """Testes para InMemoryMetrics."""

    def test_records_lifecycle(self) -> None:
        """Deve contabilizar o ciclo de vida completo."""
        metrics = InMemoryMetrics()
        metrics.record_started("k")
        metrics.record_started("k")
        metrics.record_superseded("k")
        metrics.record_cancelled("k", "superseded")
        metrics.record_completed("k", 0.01)

        stats = metrics.get_stats()
        assert stats.started == 2
        assert stats.superseded == 1
        assert stats.cancelled == 1
        assert stats.completed == 1
        assert stats.cancel_reasons == {"superseded": 1}
        assert stats.latencies == [0.01]

    def test_record_failed(self) -> None:
        """Deve registrar falhas."""
        metrics = InMemoryMetrics()
        metrics.record_failed("k", ValueError("boom"))

        assert metrics.get_stats().failed == 1
        key_stats = metrics.get_key_stats("k")
        assert key_stats is not None
        assert key_stats.failed == 1

    def test_key_stats_unknown_key(self) -> None:
        """Chave desconhecida retorna None."""
        assert InMemoryMetrics().get_key_stats("missing") is None

    def test_key_stats_per_key(self) -> None:
        """Estatísticas são separadas por chave."""
        metrics = InMemoryMetrics()
        metrics.record_completed("a", 0.002)
        metrics.record_cancelled("b", "timeout")

        a_stats = metrics.get_key_stats("a")
        b_stats = metrics.get_key_stats("b")
        assert a_stats is not None and a_stats.completed == 1
        assert b_stats is not None and b_stats.cancelled == 1
        assert a_stats.avg_latency_ms == pytest.approx(2.0)

    def test_max_samples(self) -> None:
        """Deve manter no máximo max_samples latências."""
        metrics = InMemoryMetrics(max_samples=3)
        for i in range(5):
            metrics.record_completed("k", float(i))

        assert metrics.get_stats().latencies == [2.0, 3.0, 4.0]

    def test_get_stats_returns_copy(self) -> None:
        """get_stats retorna cópia independente."""
        metrics = InMemoryMetrics()
        metrics.record_completed("k", 0.1)

        stats = metrics.get_stats()
        stats.latencies.clear()

        assert metrics.get_stats().latencies == [0.1]

    def test_reset(self) -> None:
        """Deve resetar as estatísticas."""
        metrics = InMemoryMetrics()
        metrics.record_started("k")
        metrics.reset()

        assert metrics.get_stats().started == 0
        assert metrics.get_key_stats("k") is None


class TestOpenTelemetryMetrics:
    """Testes para OpenTelemetryMetrics."""

    @patch("request_dedup.metrics.otel_metrics")
    def test_creates_instruments(self, mock_otel: MagicMock) -> None:
        """Deve criar counters e histogram no meter."""
        meter = MagicMock()
        mock_otel.get_meter.return_value = meter

        OpenTelemetryMetrics(meter_name="custom")

        mock_otel.get_meter.assert_called_once_with("custom")
        counter_names = [c.args[0] for c in meter.create_counter.call_args_list]
        assert counter_names == [
            "requests.started",
            "requests.superseded",
            "requests.completed",
            "requests.cancelled",
            "requests.failed",
        ]
        meter.create_histogram.assert_called_once()

    @patch("request_dedup.metrics.otel_metrics")
    def test_record_cancelled_uses_reason_attribute(self, mock_otel: MagicMock) -> None:
        """Cancelamentos são exportados com o motivo."""
        meter = MagicMock()
        mock_otel.get_meter.return_value = meter
        counters = {}

        def create_counter(name: str, **kwargs: object) -> MagicMock:
            counters[name] = MagicMock()
            return counters[name]

        meter.create_counter.side_effect = create_counter
        metrics = OpenTelemetryMetrics()

        metrics.record_cancelled("k", "timeout")
        metrics.record_failed("k", ValueError("x"))

        counters["requests.cancelled"].add.assert_called_once_with(1, {"key": "k", "reason": "timeout"})
        counters["requests.failed"].add.assert_called_once_with(1, {"key": "k", "error_type": "ValueError"})

    @patch("request_dedup.metrics.otel_metrics")
    def test_record_completed_records_latency(self, mock_otel: MagicMock) -> None:
        """Conclusões registram latência no histogram."""
        meter = MagicMock()
        mock_otel.get_meter.return_value = meter
        histogram = meter.create_histogram.return_value
        metrics = OpenTelemetryMetrics()

        metrics.record_completed("k", 0.5)

        histogram.record.assert_called_once_with(0.5, {"key": "k"})

    def test_works_with_default_provider(self) -> None:
        """Deve funcionar com o provider no-op padrão do OpenTelemetry."""
        metrics = OpenTelemetryMetrics()
        metrics.record_started("k")
        metrics.record_superseded("k")
        metrics.record_completed("k", 0.1)
