"""Analytics payloads. Delivery belongs to whoever receives them."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from uchikomi.core.phrases import Phrase
from uchikomi.core.session import SegmentStat
from uchikomi.core.scoring import segment_speed

PROBLEM_START = "problem_start"
PROBLEM_COMPLETE = "problem_complete"


def _timestamp(timestamp: Optional[float]) -> int:
    return int(time.time() * 1000) if timestamp is None else int(timestamp)


def problem_start(phrase: Phrase, romaji: str, timestamp: Optional[float] = None) -> Dict[str, Any]:
    return {
        "type": PROBLEM_START,
        "problemId": phrase.phrase_id,
        "problemText": phrase.display_text,
        "romaji": romaji,
        "timestamp": _timestamp(timestamp),
    }


def problem_complete(
    phrase: Phrase,
    segment: SegmentStat,
    timed_out: bool = False,
    timestamp: Optional[float] = None,
) -> Dict[str, Any]:
    return {
        "type": PROBLEM_COMPLETE,
        "problemId": phrase.phrase_id,
        "stats": {
            "correctCount": segment.key_count,
            "missCount": segment.mistakes,
            "kpm": int(segment_speed(segment.key_count, segment.elapsed_ms)),
        },
        "timedOut": timed_out,
        "timestamp": _timestamp(timestamp),
    }
