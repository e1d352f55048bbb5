"""Registro de requisições pendentes por chave de deduplicação."""

import itertools
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from threading import RLock

from .exceptions import RegistryInvariantError
from .signals import CancellationHandle

logger = logging.getLogger(__name__)


class PendingEntry:
    """Entrada do registro: associa uma chave ao handle da requisição em voo.

    Comparada por identidade. A ``generation`` é única por registro e
    crescente, permitindo distinguir a entrada atual de entradas antigas
    para a mesma chave.

    Attributes:
        key: Chave de deduplicação
        handle: Handle de cancelamento da tentativa
        generation: Contador monotônico atribuído no registro
        superseded: True quando uma registração mais nova sobrescreveu a entrada
        removed: True quando o dono já removeu a entrada
    """

    __slots__ = ("key", "handle", "generation", "superseded", "removed")

    def __init__(self, key: str, handle: CancellationHandle, generation: int) -> None:
        self.key = key
        self.handle = handle
        self.generation = generation
        self.superseded = False
        self.removed = False

    def __repr__(self) -> str:
        return f"<PendingEntry key={self.key!r} generation={self.generation} handle={self.handle!r}>"


class PendingRegistry:
    """Tabela chave -> entrada pendente.

    Mantém no máximo uma entrada por chave. Mutado apenas pelo
    ``RequestCoordinator``; as demais operações são de leitura.

    Thread Safety:
    - Todas as operações usam um ``threading.RLock``
    - ``locked()`` expõe o lock para que lookup + trigger + register sejam
      atômicos com relação a outras registrações (threads reais ou tasks)
    - Nenhuma operação suspende, então é seguro usar dentro de corrotinas
    """

    def __init__(self) -> None:
        self._entries: dict[str, PendingEntry] = {}
        self._lock = RLock()
        self._generations = itertools.count(1)

    @contextmanager
    def locked(self) -> Iterator["PendingRegistry"]:
        """Seção crítica para sequências read-then-act sobre o registro."""
        with self._lock:
            yield self

    def lookup(self, key: str) -> PendingEntry | None:
        """Retorna a entrada atual da chave, se houver."""
        with self._lock:
            return self._entries.get(key)

    def register(self, key: str, handle: CancellationHandle) -> PendingEntry:
        """Registra handle para a chave, sobrescrevendo qualquer entrada anterior.

        Não dispara cancelamento: o coordenador deve disparar o handle
        anterior antes de chamar este método.

        Args:
            key: Chave de deduplicação
            handle: Handle da nova tentativa

        Returns:
            Nova entrada registrada
        """
        with self._lock:
            entry = PendingEntry(key, handle, next(self._generations))
            prior = self._entries.get(key)
            if prior is not None:
                prior.superseded = True
                logger.debug(f"Entrada {prior.generation} substituída por {entry.generation}: {key}")
            self._entries[key] = entry
            return entry

    def remove(self, key: str, entry: PendingEntry) -> bool:
        """Remove a entrada somente se ela ainda for a atual para a chave.

        Protege a entrada de uma requisição mais nova contra a limpeza
        tardia de uma requisição já substituída.

        Args:
            key: Chave de deduplicação
            entry: Entrada que o chamador registrou

        Returns:
            True se removida, False se a entrada já havia sido substituída

        Raises:
            RegistryInvariantError: Se a entrada não pertence à chave, já foi
                removida, ou não está registrada sem ter sido substituída
        """
        with self._lock:
            if entry.key != key:
                raise RegistryInvariantError(f"Entrada registrada para {entry.key!r}, não para {key!r}", key=key)
            if entry.removed:
                raise RegistryInvariantError(f"Entrada {entry.generation} removida duas vezes", key=key)

            current = self._entries.get(key)
            if current is entry:
                del self._entries[key]
                entry.removed = True
                logger.debug(f"Entrada {entry.generation} removida: {key}")
                return True

            if entry.superseded:
                entry.removed = True
                return False

            raise RegistryInvariantError(
                f"Entrada {entry.generation} não está registrada e não foi substituída",
                key=key,
            )

    def keys(self) -> list[str]:
        """Chaves com requisição pendente."""
        with self._lock:
            return list(self._entries)

    def snapshot(self) -> dict[str, PendingEntry]:
        """Cópia da tabela para inspeção."""
        with self._lock:
            return dict(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
