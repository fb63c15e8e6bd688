from __future__ import annotations

import itertools
import logging
import time
from typing import Any, Callable, Dict, Optional

from uchikomi.core import telemetry
from uchikomi.core.config import EngineConfig
from uchikomi.core.offload import OffloadBridge, OffloadResult, SessionSnapshot, reconcile
from uchikomi.core.phrases import Phrase
from uchikomi.core.romaji import PhoneticPatternConverter, canonical_text
from uchikomi.core.scoring import RANK_TABLES, ScoreRecord, ScoringEngine
from uchikomi.core.session import AcceptResult, AcceptStatus, TypingSession

logger = logging.getLogger(__name__)

TelemetrySink = Callable[[Dict[str, Any]], None]


def _now_ms() -> float:
    return time.monotonic() * 1000.0


class TypingController:
    """Owns the session for the phrase being typed.

    A session is created when a phrase is loaded and dropped as soon as it
    completes; its segment goes to the scoring engine. Input handlers get
    the controller, never a global session.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        converter: Optional[PhoneticPatternConverter] = None,
        scoring: Optional[ScoringEngine] = None,
        bridge: Optional[OffloadBridge] = None,
        telemetry_sink: Optional[TelemetrySink] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._converter = converter or PhoneticPatternConverter()
        self._scoring = scoring or ScoringEngine(RANK_TABLES[self._config.rank_table])
        self._bridge = bridge
        self._telemetry_sink = telemetry_sink
        self._clock = clock or _now_ms
        self._ids = itertools.count(1)

        self._session: Optional[TypingSession] = None
        self._session_id = 0
        self._phrase: Optional[Phrase] = None
        self._snapshot: Optional[SessionSnapshot] = None
        self._offload_state: Optional[OffloadResult] = None
        self._completed_phrases = 0

        if self._bridge is not None:
            self._bridge.result_ready.connect(self.reconcile)

    @property
    def session(self) -> Optional[TypingSession]:
        """The live session, or None between phrases."""
        return self._session

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def phrase(self) -> Optional[Phrase]:
        return self._phrase

    @property
    def scoring(self) -> ScoringEngine:
        return self._scoring

    @property
    def completed_phrases(self) -> int:
        return self._completed_phrases

    def load(self, phrase: Phrase) -> Dict[str, Any]:
        """Start a new phrase, superseding any previous session."""
        script = phrase.script_text.strip() or phrase.display_text.strip()
        units = self._converter.convert(script)
        now = self._clock()
        deadline = now + self._config.time_limit_ms if self._config.time_limit_ms else None

        self._session_id = next(self._ids)
        self._session = TypingSession(units, deadline_ms=deadline, clock=self._clock)
        self._phrase = phrase
        self._offload_state = None
        if self._bridge is not None:
            self._bridge.begin(self._session_id, units, deadline)
        self._snapshot = SessionSnapshot.from_session(self._session)
        logger.info("Loaded phrase %r as session %d (%d units)", phrase.phrase_id, self._session_id, len(units))

        payload = telemetry.problem_start(phrase, canonical_text(units))
        self._emit(payload)
        if self._session.is_completed():
            # nothing to type
            self._session = None
        return payload

    def handle_key(self, char: str, timestamp_ms: Optional[float] = None) -> AcceptResult:
        session = self._session
        if session is None:
            return AcceptResult(
                status=AcceptStatus.ALREADY_COMPLETED,
                success=False,
                completes_unit=False,
                completes_session=False,
                expected_char=None,
            )
        now = self._clock() if timestamp_ms is None else timestamp_ms
        result = session.accept(char, now)
        if result.status is not AcceptStatus.ALREADY_COMPLETED:
            self._scoring.record_keystroke(result.success)
        if self._bridge is not None:
            self._bridge.submit(char, now)
        self._refresh(session)
        if result.completes_session:
            self._complete(session)
        return result

    def tick(self, now_ms: Optional[float] = None) -> bool:
        """Advance time-budgeted play; True when the deadline ended the phrase."""
        session = self._session
        if session is None:
            return False
        now = self._clock() if now_ms is None else now_ms
        changed, _ = session.update(now)
        if changed:
            if self._bridge is not None:
                self._bridge.tick(now)
            self._refresh(session)
            self._complete(session)
        return changed

    def reconcile(self, result: OffloadResult) -> None:
        """Apply a worker result to the snapshot if it is for the live phrase."""
        if result.session_id != self._session_id:
            logger.debug("Ignoring offload result for superseded session %d", result.session_id)
            return
        self._offload_state = result
        if self._snapshot is not None:
            self._snapshot = reconcile(self._snapshot, result)

    def snapshot(self) -> Optional[SessionSnapshot]:
        return self._snapshot

    def finish(self) -> ScoreRecord:
        """Close the run and return its score."""
        record = self._scoring.finalize()
        logger.info("Run finished: %d KPM, %.1f%% accuracy, rank %s", record.speed, record.accuracy_percent, record.rank)
        return record

    def close(self) -> None:
        """Stop the offload worker thread, if any."""
        if self._bridge is not None:
            self._bridge.shutdown()

    def leaderboard_entry(self, record: ScoreRecord, username: Optional[str] = None) -> Dict[str, Any]:
        return record.to_leaderboard(username or self._config.username)

    def _refresh(self, session: TypingSession) -> None:
        snapshot = SessionSnapshot.from_session(session)
        if self._offload_state is not None:
            snapshot = reconcile(snapshot, self._offload_state)
        self._snapshot = snapshot

    def _complete(self, session: TypingSession) -> None:
        segment = session.segment_stats[-1]
        self._scoring.record_segment(segment.key_count, segment.elapsed_ms)
        self._scoring.record_combo(session.max_combo)
        self._completed_phrases += 1
        if self._phrase is not None:
            self._emit(telemetry.problem_complete(self._phrase, segment, timed_out=session.timed_out))
        self._session = None

    def _emit(self, payload: Dict[str, Any]) -> None:
        if self._telemetry_sink is not None:
            self._telemetry_sink(payload)
