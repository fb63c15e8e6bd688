from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, FrozenSet, List, Optional, Sequence, Tuple

from uchikomi.core.romaji import GEMINATE, SyllableUnit
from uchikomi.core.syllable import InputResult, SyllableInputState

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.monotonic() * 1000.0


class AcceptStatus(Enum):
    ACCEPTED = "accepted"
    COMPLETED_UNIT = "completed_unit"
    COMPLETED_SESSION = "completed_session"
    REJECTED = "rejected"
    ALREADY_COMPLETED = "already_completed"


_SUCCESS = frozenset({AcceptStatus.ACCEPTED, AcceptStatus.COMPLETED_UNIT, AcceptStatus.COMPLETED_SESSION})


@dataclass(frozen=True)
class Transition:
    """State change caused by one keystroke.

    A pure function of ``(cursor, lead, typed, char)`` for a given unit list:
    ``frozen`` holds the final spelling of every unit completed by the
    keystroke, ``cursor`` / ``typed`` the position afterwards.
    """

    status: AcceptStatus
    cursor: int
    typed: str
    frozen: Tuple[str, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.status in _SUCCESS


@dataclass(frozen=True)
class AcceptResult:
    """Result of a single keystroke as seen by the caller."""

    status: AcceptStatus
    success: bool
    completes_unit: bool
    completes_session: bool
    expected_char: Optional[str]


@dataclass(frozen=True)
class SegmentStat:
    """Timing and key counts for one completed phrase."""

    key_count: int
    elapsed_ms: float
    mistakes: int = 0


@dataclass(frozen=True)
class DisplayInfo:
    """What the presentation layer needs to draw the current phrase."""

    canonical_text: str
    typed_length: int
    next_expected_char: str
    current_partial_input: str
    is_error: bool


class TypingSession:
    """Keystroke matching for a single phrase.

    The timer starts on the first accepted keystroke, so idle time before
    typing begins does not count against speed. Rejected keystrokes reset
    the combo and count as mistakes but never move the cursor.
    """

    def __init__(
        self,
        units: Sequence[SyllableUnit],
        deadline_ms: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """Create a session over ``units``; ``deadline_ms`` enables time-budgeted play."""
        self._units = tuple(units)
        self._states = [SyllableInputState(unit) for unit in self._units]
        self._clock = clock or _now_ms
        self._deadline_ms = deadline_ms
        self._cursor = 0
        self._combo = 0
        self._max_combo = 0
        self._key_count = 0
        self._mistakes = 0
        self._started_at: Optional[float] = None
        self._finished_at: Optional[float] = None
        self._completed = not self._units
        self._timed_out = False
        self._leftover = 0
        self._last_error = False
        self._segment_stats: List[SegmentStat] = []

    @property
    def units(self) -> Tuple[SyllableUnit, ...]:
        return self._units

    @property
    def states(self) -> Tuple[SyllableInputState, ...]:
        return tuple(self._states)

    @property
    def cursor(self) -> int:
        """Index of the unit currently being typed."""
        return self._cursor

    @property
    def combo(self) -> int:
        return self._combo

    @property
    def max_combo(self) -> int:
        return self._max_combo

    @property
    def key_count(self) -> int:
        """Accepted keystrokes so far."""
        return self._key_count

    @property
    def mistake_count(self) -> int:
        return self._mistakes

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    @property
    def finished_at(self) -> Optional[float]:
        return self._finished_at

    @property
    def deadline_ms(self) -> Optional[float]:
        return self._deadline_ms

    @property
    def timed_out(self) -> bool:
        return self._timed_out

    @property
    def leftover(self) -> int:
        """Canonical keys left untyped when the deadline forced completion."""
        return self._leftover

    @property
    def segment_stats(self) -> Tuple[SegmentStat, ...]:
        return tuple(self._segment_stats)

    def is_completed(self) -> bool:
        return self._completed

    def current_typed(self) -> str:
        if self._cursor >= len(self._states):
            return ""
        return self._states[self._cursor].typed

    def current_lead(self) -> str:
        """Required first key of the current unit, or "" when unrestricted."""
        if self._cursor >= len(self._states):
            return ""
        return self._states[self._cursor].lead

    def elapsed_ms(self, now_ms: Optional[float] = None) -> float:
        """Milliseconds since the first accepted keystroke (frozen on completion)."""
        if self._started_at is None:
            return 0.0
        end = self._finished_at
        if end is None:
            end = self._clock() if now_ms is None else now_ms
        return max(0.0, end - self._started_at)

    # ------------------------------------------------------------------
    # Keystrokes
    # ------------------------------------------------------------------

    def accept(self, char: str, timestamp_ms: Optional[float] = None) -> AcceptResult:
        """Validate one keystroke and advance the session."""
        return self.apply(self.transition(char), timestamp_ms)

    def transition(self, char: str) -> Transition:
        """Work out what ``char`` would do, without changing anything."""
        if self._completed:
            return Transition(AcceptStatus.ALREADY_COMPLETED, self._cursor, self.current_typed())

        state = self._states[self._cursor]
        result = state.peek(char)
        if result.accepted:
            return self._advance(self._cursor, result, ())

        # "n" of "nn" followed by the next syllable's first key
        if state.completable and self._cursor + 1 < len(self._states):
            following = self._states[self._cursor + 1].peek(char)
            if following.accepted:
                return self._advance(self._cursor + 1, following, (state.typed,))

        return Transition(AcceptStatus.REJECTED, self._cursor, state.typed)

    def _advance(self, index: int, result: InputResult, frozen: Tuple[str, ...]) -> Transition:
        is_last = index == len(self._states) - 1
        settles = result.completes_unit or (is_last and result.typed in self._units[index].variants)
        if not settles:
            status = AcceptStatus.COMPLETED_UNIT if frozen else AcceptStatus.ACCEPTED
            return Transition(status, index, result.typed, frozen)
        cursor = index + 1
        status = AcceptStatus.COMPLETED_SESSION if cursor == len(self._states) else AcceptStatus.COMPLETED_UNIT
        return Transition(status, cursor, "", frozen + (result.typed,))

    def apply(self, transition: Transition, timestamp_ms: Optional[float] = None) -> AcceptResult:
        """Commit a transition produced by ``transition()`` for the current state."""
        if transition.status is AcceptStatus.ALREADY_COMPLETED:
            return self._result(transition.status)

        if transition.status is AcceptStatus.REJECTED:
            self._combo = 0
            self._mistakes += 1
            self._last_error = True
            logger.debug("Rejected keystroke at unit %d (typed %r)", self._cursor, self.current_typed())
            return self._result(transition.status)

        now = self._clock() if timestamp_ms is None else timestamp_ms
        if self._started_at is None:
            self._started_at = now

        for offset, typed in enumerate(transition.frozen):
            index = self._cursor + offset
            self._states[index].freeze(typed)
            self._carry_lead(index, typed)
        self._cursor += len(transition.frozen)
        if self._cursor < len(self._states):
            self._states[self._cursor].restore(transition.typed)

        self._key_count += 1
        self._combo += 1
        self._max_combo = max(self._max_combo, self._combo)
        self._last_error = False

        if transition.status is AcceptStatus.COMPLETED_SESSION:
            self._finish(now)
        return self._result(transition.status)

    def _carry_lead(self, index: int, typed: str) -> None:
        # っ typed as a doubled consonant fixes how the next syllable starts
        if self._units[index].grapheme == GEMINATE and len(typed) == 1 and index + 1 < len(self._states):
            self._states[index + 1].require_lead(typed)

    def _result(self, status: AcceptStatus) -> AcceptResult:
        return AcceptResult(
            status=status,
            success=status in _SUCCESS,
            completes_unit=status in (AcceptStatus.COMPLETED_UNIT, AcceptStatus.COMPLETED_SESSION),
            completes_session=status is AcceptStatus.COMPLETED_SESSION,
            expected_char=self.next_expected_char(),
        )

    def _finish(self, now: float) -> None:
        self._completed = True
        self._finished_at = now
        segment = SegmentStat(
            key_count=self._key_count,
            elapsed_ms=self.elapsed_ms(now),
            mistakes=self._mistakes,
        )
        self._segment_stats.append(segment)
        logger.info(
            "Phrase finished: %d keys, %d mistakes in %.0f ms",
            segment.key_count,
            segment.mistakes,
            segment.elapsed_ms,
        )

    def update(self, now_ms: float) -> Tuple[bool, int]:
        """Force completion once the deadline has passed.

        Returns ``(changed, leftover)`` where ``leftover`` is the number of
        canonical keys that were never typed. Idempotent once completed.
        """
        if self._completed or self._deadline_ms is None or now_ms <= self._deadline_ms:
            return False, 0
        leftover = self.remaining_key_count()
        self._leftover = leftover
        self._timed_out = True
        self._finish(now_ms)
        logger.info("Deadline reached with %d keys left", leftover)
        return True, leftover

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def next_expected_char(self) -> Optional[str]:
        if self._completed:
            return None
        return self._states[self._cursor].expected_char()

    def next_expected_chars(self) -> FrozenSet[str]:
        """Every key that would be accepted next."""
        if self._completed:
            return frozenset()
        state = self._states[self._cursor]
        keys = state.next_expected_chars()
        if state.completable and self._cursor + 1 < len(self._states):
            keys = keys | self._states[self._cursor + 1].next_expected_chars()
        return keys

    def total_canonical_length(self) -> int:
        return sum(len(unit.canonical) for unit in self._units)

    def progress_percent(self) -> int:
        """Typed share of the displayed spelling, 0-100."""
        if self._completed:
            return 100
        total = self.total_canonical_length()
        if total == 0:
            return 100
        done = sum(len(unit.canonical) for unit in self._units[:self._cursor])
        state = self._states[self._cursor]
        done += min(len(state.typed), state.canonical_length)
        return (done * 100) // total

    def remaining_key_count(self) -> int:
        if self._completed:
            return 0
        state = self._states[self._cursor]
        remaining = max(0, state.canonical_length - len(state.typed))
        remaining += sum(len(unit.canonical) for unit in self._units[self._cursor + 1:])
        return remaining

    def display_info(self) -> DisplayInfo:
        parts: List[str] = []
        typed_length = 0
        for index, state in enumerate(self._states):
            if state.is_completed:
                parts.append(state.typed)
                typed_length += len(state.typed)
            elif index == self._cursor:
                parts.append(state.preview())
                typed_length += len(state.typed)
            else:
                parts.append(state.unit.canonical)
        return DisplayInfo(
            canonical_text="".join(parts),
            typed_length=typed_length,
            next_expected_char=self.next_expected_char() or "",
            current_partial_input=self.current_typed(),
            is_error=self._last_error,
        )
