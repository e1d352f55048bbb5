"""Testes para o registro de requisições pendentes."""

import threading

import pytest

from request_dedup.exceptions import RegistryInvariantError
from request_dedup.registry import PendingEntry, PendingRegistry
from request_dedup.signals import CancellationHandle


class TestPendingRegistry:
    """Testes para PendingRegistry."""

    def test_empty_registry(self) -> None:
        """Registro novo está vazio."""
        registry = PendingRegistry()

        assert len(registry) == 0
        assert registry.lookup("key") is None
        assert "key" not in registry
        assert registry.keys() == []

    def test_register_and_lookup(self) -> None:
        """Deve registrar e encontrar a entrada."""
        registry = PendingRegistry()
        handle = CancellationHandle()

        entry = registry.register("key", handle)

        assert isinstance(entry, PendingEntry)
        assert registry.lookup("key") is entry
        assert entry.handle is handle
        assert entry.key == "key"
        assert "key" in registry

    def test_register_overwrites_and_marks_superseded(self) -> None:
        """Nova registração sobrescreve a anterior sem dispará-la."""
        registry = PendingRegistry()
        first = registry.register("key", CancellationHandle())
        second = registry.register("key", CancellationHandle())

        assert registry.lookup("key") is second
        assert first.superseded
        assert not second.superseded
        assert not first.handle.is_triggered
        assert len(registry) == 1

    def test_generations_are_monotonic(self) -> None:
        """Gerações crescem a cada registração."""
        registry = PendingRegistry()
        entries = [registry.register(f"key{i % 2}", CancellationHandle()) for i in range(5)]

        generations = [entry.generation for entry in entries]
        assert generations == sorted(generations)
        assert len(set(generations)) == 5

    def test_remove_current_entry(self) -> None:
        """Remove a entrada quando ela é a atual."""
        registry = PendingRegistry()
        entry = registry.register("key", CancellationHandle())

        assert registry.remove("key", entry) is True
        assert registry.lookup("key") is None
        assert entry.removed

    def test_remove_superseded_entry_keeps_successor(self) -> None:
        """Limpeza tardia de entrada substituída não apaga a sucessora."""
        registry = PendingRegistry()
        old = registry.register("key", CancellationHandle())
        new = registry.register("key", CancellationHandle())

        assert registry.remove("key", old) is False
        assert registry.lookup("key") is new

    def test_remove_superseded_after_successor_removed(self) -> None:
        """Entrada substituída pode ser removida mesmo após a sucessora sair."""
        registry = PendingRegistry()
        old = registry.register("key", CancellationHandle())
        new = registry.register("key", CancellationHandle())
        registry.remove("key", new)

        assert registry.remove("key", old) is False
        assert len(registry) == 0

    def test_double_remove_raises_invariant_error(self) -> None:
        """Remover a mesma entrada duas vezes é defeito de lógica."""
        registry = PendingRegistry()
        entry = registry.register("key", CancellationHandle())
        registry.remove("key", entry)

        with pytest.raises(RegistryInvariantError) as exc_info:
            registry.remove("key", entry)

        assert exc_info.value.key == "key"

    def test_remove_unregistered_entry_raises_invariant_error(self) -> None:
        """Remover entrada que nunca esteve registrada é defeito de lógica."""
        registry = PendingRegistry()
        stray = PendingEntry("key", CancellationHandle(), generation=99)

        with pytest.raises(RegistryInvariantError):
            registry.remove("key", stray)

    def test_remove_with_wrong_key_raises_invariant_error(self) -> None:
        """Remover entrada usando outra chave é defeito de lógica."""
        registry = PendingRegistry()
        entry = registry.register("a", CancellationHandle())

        with pytest.raises(RegistryInvariantError):
            registry.remove("b", entry)
        assert registry.lookup("a") is entry

    def test_snapshot_is_a_copy(self) -> None:
        """snapshot() não expõe a tabela interna."""
        registry = PendingRegistry()
        registry.register("key", CancellationHandle())

        snapshot = registry.snapshot()
        snapshot.clear()

        assert len(registry) == 1

    def test_locked_is_reentrant(self) -> None:
        """Operações funcionam dentro da seção crítica."""
        registry = PendingRegistry()

        with registry.locked() as locked:
            assert locked is registry
            prior = registry.lookup("key")
            entry = registry.register("key", CancellationHandle())

        assert prior is None
        assert registry.lookup("key") is entry

    def test_concurrent_threads_keep_single_entry_per_key(self) -> None:
        """Registrações concorrentes em threads mantêm uma entrada por chave."""
        registry = PendingRegistry()
        entries: list[PendingEntry] = []
        entries_lock = threading.Lock()
        start = threading.Barrier(8)

        def worker() -> None:
            start.wait()
            for _ in range(50):
                handle = CancellationHandle()
                with registry.locked():
                    prior = registry.lookup("shared")
                    if prior is not None:
                        prior.handle.trigger()
                    entry = registry.register("shared", handle)
                with entries_lock:
                    entries.append(entry)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == 1
        current = registry.lookup("shared")
        assert current is not None
        assert not current.handle.is_triggered
        # Todas as outras foram disparadas antes de serem substituídas
        assert sum(1 for entry in entries if not entry.handle.is_triggered) == 1

        for entry in entries:
            registry.remove("shared", entry)
        assert len(registry) == 0
