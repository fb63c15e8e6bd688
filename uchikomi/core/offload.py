"""Redundant keystroke evaluation on a worker thread.

The interactive path evaluates every keystroke itself and renders at once.
The same deterministic transition is also evaluated on a Qt worker thread,
which keeps the authoritative timing and key counts. The two sides talk only
through signals, each message tagged with ``(session_id, seq)``.
"""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from PySide6.QtCore import QObject, QThread, Signal, Slot

from uchikomi.core.romaji import SyllableUnit
from uchikomi.core.session import Transition, TypingSession

logger = logging.getLogger(__name__)

CacheKey = Tuple[int, str, str, str]


class OffloadCache:
    """Memoizes transitions by ``(cursor, lead, typed, char)`` for one phrase."""

    def __init__(self, ceiling: int = 1000, eviction_ratio: float = 0.2) -> None:
        if ceiling < 1:
            raise ValueError(f"cache ceiling must be positive, got {ceiling}")
        self._ceiling = ceiling
        self._eviction_ratio = eviction_ratio
        self._entries: "OrderedDict[CacheKey, Transition]" = OrderedDict()
        self._session_id: Optional[int] = None
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def session_id(self) -> Optional[int]:
        return self._session_id

    def invalidate(self, session_id: Optional[int] = None) -> None:
        """Drop every entry; called whenever a new phrase is loaded."""
        self._entries.clear()
        self._session_id = session_id
        self.hits = 0
        self.misses = 0

    def lookup(self, key: CacheKey) -> Optional[Transition]:
        return self._entries.get(key)

    def store(self, key: CacheKey, transition: Transition) -> None:
        self._entries[key] = transition
        if len(self._entries) > self._ceiling:
            self._evict()

    def resolve(self, session: TypingSession, char: str) -> Transition:
        """Cached transition for ``char`` in the session's current state."""
        if session.is_completed():
            return session.transition(char)
        key = (session.cursor, session.current_lead(), session.current_typed(), char.lower())
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        transition = session.transition(char)
        self.store(key, transition)
        return transition

    def _evict(self) -> None:
        count = max(1, math.ceil(len(self._entries) * self._eviction_ratio))
        for _ in range(count):
            self._entries.popitem(last=False)
        logger.debug("Evicted %d cache entries, %d left", count, len(self._entries))


@dataclass(frozen=True)
class Keystroke:
    char: str
    timestamp_ms: float


@dataclass(frozen=True)
class LoadRequest:
    session_id: int
    units: Tuple[SyllableUnit, ...]
    deadline_ms: Optional[float] = None


@dataclass(frozen=True)
class OffloadRequest:
    session_id: int
    seq: int
    keystrokes: Tuple[Keystroke, ...]
    # deadline check after the keystrokes, if set
    now_ms: Optional[float] = None


@dataclass(frozen=True)
class OffloadResult:
    """Authoritative bookkeeping after a request has been applied."""

    session_id: int
    seq: int
    cursor: int
    key_count: int
    mistake_count: int
    elapsed_ms: float
    max_combo: int
    completed: bool


@dataclass(frozen=True)
class SessionSnapshot:
    """Merged view of a session.

    Display fields come from the local evaluation, timing and score fields
    from the offloaded one.
    """

    # display
    canonical_text: str
    typed_length: int
    next_expected_char: str
    current_partial_input: str
    is_error: bool
    progress_percent: int
    combo: int
    # timing / score
    key_count: int
    mistake_count: int
    elapsed_ms: float
    max_combo: int
    completed: bool
    seq: int = 0

    @classmethod
    def from_session(cls, session: TypingSession) -> "SessionSnapshot":
        info = session.display_info()
        return cls(
            canonical_text=info.canonical_text,
            typed_length=info.typed_length,
            next_expected_char=info.next_expected_char,
            current_partial_input=info.current_partial_input,
            is_error=info.is_error,
            progress_percent=session.progress_percent(),
            combo=session.combo,
            key_count=session.key_count,
            mistake_count=session.mistake_count,
            elapsed_ms=session.elapsed_ms(),
            max_combo=session.max_combo,
            completed=session.is_completed(),
        )


def reconcile(snapshot: SessionSnapshot, result: OffloadResult) -> SessionSnapshot:
    """Take the timing/score fields from ``result``, keep display fields.

    Completion is never undone: either side finishing the phrase finishes it.
    """
    if result.seq < snapshot.seq:
        return snapshot
    return replace(
        snapshot,
        key_count=result.key_count,
        mistake_count=result.mistake_count,
        elapsed_ms=result.elapsed_ms,
        max_combo=result.max_combo,
        completed=snapshot.completed or result.completed,
        seq=result.seq,
    )


class OffloadWorker(QObject):
    """Replays keystrokes on a mirror session; lives on the worker thread."""

    finished = Signal(object)

    def __init__(self, cache: OffloadCache, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._cache = cache
        self._session: Optional[TypingSession] = None
        self._session_id: Optional[int] = None

    @property
    def cache(self) -> OffloadCache:
        return self._cache

    @Slot(object)
    def load(self, request: LoadRequest) -> None:
        self._cache.invalidate(request.session_id)
        self._session = TypingSession(request.units, deadline_ms=request.deadline_ms)
        self._session_id = request.session_id
        logger.debug("Worker loaded session %d (%d units)", request.session_id, len(request.units))

    @Slot(object)
    def process(self, request: OffloadRequest) -> None:
        session = self._session
        if session is None or request.session_id != self._session_id:
            logger.debug("Worker dropped request %d for stale session %d", request.seq, request.session_id)
            return
        for keystroke in request.keystrokes:
            transition = self._cache.resolve(session, keystroke.char)
            session.apply(transition, keystroke.timestamp_ms)
        now = request.keystrokes[-1].timestamp_ms if request.keystrokes else None
        if request.now_ms is not None:
            session.update(request.now_ms)
            now = request.now_ms
        self.finished.emit(
            OffloadResult(
                session_id=request.session_id,
                seq=request.seq,
                cursor=session.cursor,
                key_count=session.key_count,
                mistake_count=session.mistake_count,
                elapsed_ms=session.elapsed_ms(now),
                max_combo=session.max_combo,
                completed=session.is_completed(),
            )
        )


class OffloadBridge(QObject):
    """Interactive-side endpoint of the offload worker.

    Never blocks: ``submit`` only emits a signal. While ``max_in_flight``
    requests are outstanding new keystrokes are batched into the next
    request instead of being sent one by one.
    """

    requested = Signal(object)
    loading = Signal(object)
    result_ready = Signal(object)

    def __init__(
        self,
        cache: Optional[OffloadCache] = None,
        max_in_flight: int = 8,
        threaded: bool = True,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._worker = OffloadWorker(cache or OffloadCache())
        self._thread: Optional[QThread] = None
        if threaded:
            self._thread = QThread()
            self._worker.moveToThread(self._thread)
            self._thread.start()
        self.loading.connect(self._worker.load)
        self.requested.connect(self._worker.process)
        self._worker.finished.connect(self._on_finished)

        self._max_in_flight = max(1, max_in_flight)
        self._session_id: Optional[int] = None
        self._seq = 0
        self._last_applied = 0
        self._in_flight = 0
        self._pending: List[Keystroke] = []

    @property
    def worker(self) -> OffloadWorker:
        return self._worker

    @property
    def session_id(self) -> Optional[int]:
        return self._session_id

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def pending(self) -> int:
        return len(self._pending)

    def begin(self, session_id: int, units: Sequence[SyllableUnit], deadline_ms: Optional[float] = None) -> None:
        """Switch to a new phrase; anything still in flight becomes stale."""
        self._session_id = session_id
        self._seq = 0
        self._last_applied = 0
        self._in_flight = 0
        self._pending.clear()
        self.loading.emit(LoadRequest(session_id, tuple(units), deadline_ms))

    def submit(self, char: str, timestamp_ms: float) -> None:
        if self._session_id is None:
            return
        self._pending.append(Keystroke(char, timestamp_ms))
        if self._in_flight < self._max_in_flight:
            self._flush()

    def tick(self, now_ms: float) -> None:
        """Send pending keystrokes and a deadline check, regardless of load."""
        if self._session_id is None:
            return
        self._send(now_ms)

    def _flush(self) -> None:
        if not self._pending or self._session_id is None:
            return
        self._send(None)

    def _send(self, now_ms: Optional[float]) -> None:
        self._seq += 1
        request = OffloadRequest(self._session_id, self._seq, tuple(self._pending), now_ms)
        self._pending.clear()
        self._in_flight += 1
        self.requested.emit(request)

    @Slot(object)
    def _on_finished(self, result: OffloadResult) -> None:
        if result.session_id != self._session_id:
            logger.debug("Discarded late result %d for session %d", result.seq, result.session_id)
            return
        self._in_flight = max(0, self._in_flight - 1)
        if result.seq > self._last_applied:
            self._last_applied = result.seq
            self.result_ready.emit(result)
        self._flush()

    def shutdown(self) -> None:
        if self._thread is not None:
            self._thread.quit()
            self._thread.wait()
            self._thread = None
