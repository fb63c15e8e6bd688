from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

RankTable = Sequence[Tuple[float, str]]

STANDARD_RANKS: RankTable = (
    (400, "S"),
    (300, "A"),
    (200, "B"),
    (150, "C"),
    (100, "D"),
    (50, "E"),
)

GRADED_RANKS: RankTable = (
    (400, "S+"),
    (350, "S"),
    (300, "A+"),
    (250, "A"),
    (200, "B+"),
    (150, "B"),
    (100, "C"),
    (50, "D"),
)

RANK_TABLES: Dict[str, RankTable] = {
    "standard": STANDARD_RANKS,
    "graded": GRADED_RANKS,
}

LOWEST_RANK = "F"

# reported speed ceiling; rank and score use the raw mean
MAX_REPORTED_SPEED = 600


def segment_speed(key_count: int, elapsed_ms: float) -> float:
    """Keys per minute for one segment; 0 when no time has elapsed."""
    if elapsed_ms <= 0:
        return 0.0
    return key_count / (elapsed_ms / 60000.0)


def rank_for(speed: float, table: RankTable = STANDARD_RANKS) -> str:
    """Highest rank whose threshold ``speed`` reaches, checked top-down."""
    for threshold, rank in table:
        if speed >= threshold:
            return rank
    return LOWEST_RANK


@dataclass(frozen=True)
class ScoreRecord:
    """Final result of a run, handed to the leaderboard collaborator."""

    total_keys: int
    total_mistakes: int
    elapsed_ms: float
    per_segment_speed: Tuple[float, ...]
    speed: int
    accuracy_percent: float
    rank: str
    score: int = 0
    max_combo: int = 0
    raw_speed: float = 0.0

    @property
    def segment_count(self) -> int:
        return len(self.per_segment_speed)

    def to_leaderboard(self, username: str) -> Dict[str, object]:
        return {
            "username": username or "Anonymous",
            "score": self.score,
            "speed": self.speed,
            "accuracy": self.accuracy_percent,
            "segmentCount": self.segment_count,
        }


class ScoringEngine:
    """Aggregates speed and accuracy across the phrases of a run.

    The run speed is the arithmetic mean of the per-phrase speeds, not
    total keys over total time: one slow phrase cannot drag the whole run
    down and one short fast phrase cannot inflate it. Phrases without keys
    or without measurable time stay in the record but not in the mean.
    """

    def __init__(self, rank_table: RankTable = STANDARD_RANKS) -> None:
        self._rank_table = rank_table
        self._speeds: List[float] = []
        self._timed_speeds: List[float] = []
        self._total_keys = 0
        self._elapsed_ms = 0.0
        self._correct = 0
        self._mistakes = 0
        self._max_combo = 0

    @property
    def segment_speeds(self) -> Tuple[float, ...]:
        return tuple(self._speeds)

    @property
    def correct_count(self) -> int:
        return self._correct

    @property
    def mistake_count(self) -> int:
        return self._mistakes

    def record_segment(self, key_count: int, elapsed_ms: float) -> float:
        """Add one completed phrase and return its speed."""
        speed = segment_speed(key_count, elapsed_ms)
        self._speeds.append(speed)
        if key_count > 0 and elapsed_ms > 0:
            self._timed_speeds.append(speed)
        self._total_keys += key_count
        self._elapsed_ms += max(0.0, elapsed_ms)
        return speed

    def record_keystroke(self, accepted: bool) -> None:
        if accepted:
            self._correct += 1
        else:
            self._mistakes += 1

    def record_combo(self, combo: int) -> None:
        self._max_combo = max(self._max_combo, combo)

    def current_speed(self) -> float:
        if not self._timed_speeds:
            return 0.0
        return sum(self._timed_speeds) / len(self._timed_speeds)

    def accuracy(self) -> float:
        total = self._correct + self._mistakes
        if total == 0:
            return 100.0
        return self._correct / total * 100.0

    def rank(self) -> str:
        return rank_for(self.current_speed(), self._rank_table)

    def score(self) -> int:
        """Speed-based score, reduced by up to half for mistakes."""
        total = self._correct + self._mistakes
        miss_rate = self._mistakes / total if total else 0.0
        return max(0, math.floor(self.current_speed() * 10 * (1.0 - miss_rate * 0.5)))

    def finalize(self) -> ScoreRecord:
        return ScoreRecord(
            total_keys=self._total_keys,
            total_mistakes=self._mistakes,
            elapsed_ms=self._elapsed_ms,
            per_segment_speed=tuple(self._speeds),
            speed=min(math.floor(self.current_speed()), MAX_REPORTED_SPEED),
            accuracy_percent=round(self.accuracy(), 1),
            rank=self.rank(),
            score=self.score(),
            max_combo=self._max_combo,
            raw_speed=self.current_speed(),
        )

    def reset(self) -> None:
        self._speeds.clear()
        self._timed_speeds.clear()
        self._total_keys = 0
        self._elapsed_ms = 0.0
        self._correct = 0
        self._mistakes = 0
        self._max_combo = 0
