"""Sinais de cancelamento cooperativo e composição de sinais.

Um ``CancellationHandle`` representa a capacidade de cancelar exatamente uma
tentativa de requisição. O ``EffectiveSignal`` é o sinal observado pelo
transporte: dispara quando qualquer uma de suas fontes dispara, mas nunca
propaga o disparo de volta para elas.

Uso:
    ```python
    manual = CancellationHandle()
    internal = CancellationHandle()
    effective = compose(manual, internal)

    manual.trigger()
    assert effective.is_triggered
    assert effective.reason is CancelReason.EXTERNAL
    assert not internal.is_triggered
    ```
"""

import asyncio
from collections.abc import Callable
from enum import Enum
from threading import Lock

from .protocols import CancellationSignal


class CancelReason(str, Enum):
    """Motivo pelo qual um sinal disparou."""

    SUPERSEDED = "superseded"
    EXTERNAL = "external"
    TIMEOUT = "timeout"
    SHUTDOWN = "shutdown"


Listener = Callable[[CancelReason], None]


def _noop() -> None:
    pass


def _coerce_reason(reason: object) -> CancelReason:
    """Converte o motivo de uma fonte externa em ``CancelReason``.

    Fontes que seguem apenas o protocolo podem disparar com qualquer valor;
    valores desconhecidos viram ``EXTERNAL``.
    """
    if isinstance(reason, CancelReason):
        return reason
    try:
        return CancelReason(reason)
    except (ValueError, TypeError):
        return CancelReason.EXTERNAL


def _resolve(future: "asyncio.Future[CancelReason]", reason: CancelReason) -> None:
    if not future.done():
        future.set_result(reason)


class CancellationHandle:
    """Handle de cancelamento de uma única tentativa.

    Disparar é idempotente: o primeiro ``trigger`` registra o motivo e
    notifica os listeners; disparos seguintes não têm efeito observável.

    Thread-safe: o estado é protegido por ``threading.Lock`` e ``wait()``
    acorda o event loop via ``call_soon_threadsafe``.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._reason: CancelReason | None = None
        self._listeners: dict[int, Listener] = {}
        self._next_listener_id = 0

    @property
    def is_triggered(self) -> bool:
        """True se o handle já disparou."""
        return self._reason is not None

    @property
    def reason(self) -> CancelReason | None:
        """Motivo do disparo (None enquanto não disparou)."""
        return self._reason

    def trigger(self, reason: CancelReason = CancelReason.EXTERNAL) -> bool:
        """Dispara o cancelamento.

        Args:
            reason: Motivo do cancelamento (default: EXTERNAL)

        Returns:
            True se este foi o primeiro disparo, False se já havia disparado
        """
        reason = _coerce_reason(reason)
        with self._lock:
            if self._reason is not None:
                return False
            self._reason = reason
            listeners = list(self._listeners.values())
            self._listeners.clear()

        # Listeners rodam fora do lock para permitir encadeamento de sinais
        for listener in listeners:
            listener(reason)
        return True

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Registra callback chamado no disparo.

        Se o handle já disparou, o callback é chamado imediatamente.

        Args:
            listener: Função que recebe o motivo do disparo

        Returns:
            Função que remove o listener
        """
        with self._lock:
            if self._reason is None:
                listener_id = self._next_listener_id
                self._next_listener_id += 1
                self._listeners[listener_id] = listener
                return lambda: self._remove_listener(listener_id)
            reason = self._reason

        listener(reason)
        return _noop

    def _remove_listener(self, listener_id: int) -> None:
        with self._lock:
            self._listeners.pop(listener_id, None)

    @property
    def listener_count(self) -> int:
        """Número de listeners ainda registrados."""
        with self._lock:
            return len(self._listeners)

    async def wait(self) -> CancelReason:
        """Aguarda o disparo e retorna o motivo."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[CancelReason] = loop.create_future()

        def wake(reason: CancelReason) -> None:
            loop.call_soon_threadsafe(_resolve, future, reason)

        unsubscribe = self.add_listener(wake)
        try:
            return await future
        finally:
            unsubscribe()

    def __repr__(self) -> str:
        state = self._reason.value if self._reason is not None else "pending"
        return f"<{type(self).__name__} {state}>"


class EffectiveSignal(CancellationHandle):
    """Sinal composto que dispara quando qualquer fonte dispara.

    A composição é direcional: fontes -> efetivo. Disparar o sinal efetivo
    diretamente não afeta as fontes. O motivo registrado é o da primeira
    fonte a disparar.

    Vida útil de uma única tentativa; ``dispose()`` desconecta o sinal das
    fontes para não acumular listeners em sinais externos de longa duração.
    """

    def __init__(self, *sources: CancellationSignal | None) -> None:
        super().__init__()
        self._unsubscribers: list[Callable[[], None]] = []
        for source in sources:
            if source is None:
                continue
            self._unsubscribers.append(source.add_listener(self._on_source_triggered))

    def _on_source_triggered(self, reason: object) -> None:
        self.trigger(_coerce_reason(reason))

    def dispose(self) -> None:
        """Desconecta o sinal de todas as fontes."""
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()


class TimeoutSignal(CancellationHandle):
    """Handle que dispara com ``CancelReason.TIMEOUT`` após ``seconds``.

    Deve ser criado dentro de um event loop em execução. Chame ``dispose()``
    quando a requisição terminar para cancelar o timer.
    """

    def __init__(self, seconds: float) -> None:
        super().__init__()
        self._seconds = seconds
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(max(seconds, 0.0), self.trigger, CancelReason.TIMEOUT)

    @property
    def seconds(self) -> float:
        return self._seconds

    def dispose(self) -> None:
        """Cancela o timer (não afeta um disparo já ocorrido)."""
        self._timer.cancel()


def compose(external: CancellationSignal | None, internal: CancellationHandle) -> EffectiveSignal:
    """Compõe o sinal externo do chamador com o handle interno.

    Args:
        external: Sinal fornecido pelo chamador (opcional)
        internal: Handle gerado pelo coordenador

    Returns:
        Sinal efetivo a ser observado pelo transporte
    """
    return EffectiveSignal(external, internal)


def any_signal(*signals: CancellationSignal | None) -> EffectiveSignal:
    """Combina vários contribuidores externos (manual, timeout, ...) em um só."""
    return EffectiveSignal(*signals)


def timeout_signal(seconds: float) -> TimeoutSignal:
    """Cria um sinal que dispara por timeout após ``seconds`` segundos."""
    return TimeoutSignal(seconds)
