from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from uchikomi.core.romaji import SyllableUnit


class InputStatus(Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


@dataclass(frozen=True)
class InputResult:
    """Outcome of feeding one character to a syllable."""

    accepted: bool
    completes_unit: bool
    typed: str


class SyllableInputState:
    """Partial-input state for a single syllable unit.

    ``typed`` is always a prefix of at least one variant. A unit completes
    when ``typed`` equals a variant that no longer variant extends; when it
    equals a variant that *is* extended (``n`` of ``nn``) the unit stays
    partial but is ``completable`` and the session settles it.

    A ``lead`` restricts the unit to variants starting with it: after っ is
    typed as a doubled consonant, the next syllable must begin with that
    same consonant.
    """

    def __init__(self, unit: SyllableUnit) -> None:
        self._unit = unit
        self._typed = ""
        self._status = InputStatus.PENDING
        self._lead = ""
        self._variants: Tuple[str, ...] = unit.variants

    @property
    def unit(self) -> SyllableUnit:
        return self._unit

    @property
    def typed(self) -> str:
        return self._typed

    @property
    def status(self) -> InputStatus:
        return self._status

    @property
    def lead(self) -> str:
        return self._lead

    @property
    def variants(self) -> Tuple[str, ...]:
        """Variants still allowed under the current lead."""
        return self._variants

    @property
    def is_completed(self) -> bool:
        return self._status is InputStatus.COMPLETED

    @property
    def completable(self) -> bool:
        """True when what has been typed is already a whole variant."""
        return self._typed in self._variants

    @property
    def canonical_length(self) -> int:
        return len(self._unit.canonical)

    def require_lead(self, lead: str) -> None:
        """Restrict the unit to variants starting with ``lead``."""
        allowed = tuple(v for v in self._unit.variants if v.startswith(lead))
        if not allowed:
            raise ValueError(f"No spelling of {self._unit.grapheme!r} starts with {lead!r}")
        self._lead = lead
        self._variants = allowed

    def peek(self, char: str) -> InputResult:
        """Compute the result of ``handle_input`` without changing state."""
        if self._status is InputStatus.COMPLETED:
            return InputResult(accepted=False, completes_unit=False, typed=self._typed)
        candidate = self._typed + char.lower()
        extends = False
        matches = False
        for variant in self._variants:
            if variant == candidate:
                matches = True
            elif variant.startswith(candidate):
                extends = True
        if not (matches or extends):
            return InputResult(accepted=False, completes_unit=False, typed=self._typed)
        return InputResult(accepted=True, completes_unit=matches and not extends, typed=candidate)

    def handle_input(self, char: str) -> InputResult:
        result = self.peek(char)
        if result.accepted:
            self._typed = result.typed
            self._status = InputStatus.COMPLETED if result.completes_unit else InputStatus.PARTIAL
        return result

    def next_expected_chars(self) -> FrozenSet[str]:
        """Next character of every variant still compatible with ``typed``."""
        if self._status is InputStatus.COMPLETED:
            return frozenset()
        position = len(self._typed)
        return frozenset(
            variant[position]
            for variant in self._variants
            if len(variant) > position and variant.startswith(self._typed)
        )

    def preview(self) -> str:
        """Variant shown for this unit: the first one compatible with ``typed``."""
        for variant in self._variants:
            if variant.startswith(self._typed):
                return variant
        return self._variants[0]

    def expected_char(self) -> Optional[str]:
        """Next character in display order, or None when nothing is left."""
        if self._status is InputStatus.COMPLETED:
            return None
        position = len(self._typed)
        for variant in self._variants:
            if len(variant) > position and variant.startswith(self._typed):
                return variant[position]
        return None

    def remaining_of_canonical(self) -> str:
        """Untyped tail of the displayed spelling."""
        if self._status is InputStatus.COMPLETED:
            return ""
        return self.preview()[len(self._typed):]

    def freeze(self, typed: str) -> None:
        """Mark the unit completed with ``typed`` as its final spelling."""
        if typed not in self._variants:
            raise ValueError(f"{typed!r} is not a spelling of {self._unit.grapheme!r}")
        self._typed = typed
        self._status = InputStatus.COMPLETED

    def restore(self, typed: str) -> None:
        """Set partial input computed elsewhere (e.g. replayed from a cache)."""
        if not any(variant.startswith(typed) for variant in self._variants):
            raise ValueError(f"{typed!r} is not a prefix of {self._unit.grapheme!r}")
        self._typed = typed
        self._status = InputStatus.PARTIAL if typed else InputStatus.PENDING
