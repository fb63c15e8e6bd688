"""Tests for uchikomi.core.syllable – per-syllable input state."""

from __future__ import annotations

import pytest

from uchikomi.core.romaji import SyllableUnit
from uchikomi.core.syllable import InputResult, InputStatus, SyllableInputState

TO = SyllableUnit("と", ("to",))
SHI = SyllableUnit("し", ("si", "shi", "ci"))
NASAL_FULL = SyllableUnit("ん", ("nn", "n", "xn"))
NASAL_STRICT = SyllableUnit("ん", ("nn", "xn"))


# ---------------------------------------------------------------------------
# handle_input
# ---------------------------------------------------------------------------

class TestHandleInput:
    def test_initial_state(self):
        s = SyllableInputState(TO)
        assert s.typed == ""
        assert s.status is InputStatus.PENDING

    def test_partial_then_complete(self):
        s = SyllableInputState(TO)
        first = s.handle_input("t")
        second = s.handle_input("o")
        assert (first.accepted, first.completes_unit) == (True, False)
        assert (second.accepted, second.completes_unit) == (True, True)
        assert s.status is InputStatus.COMPLETED
        assert s.typed == "to"

    def test_partial_status(self):
        s = SyllableInputState(TO)
        s.handle_input("t")
        assert s.status is InputStatus.PARTIAL

    def test_rejected_leaves_state(self):
        s = SyllableInputState(TO)
        s.handle_input("t")
        result = s.handle_input("a")
        assert result == InputResult(accepted=False, completes_unit=False, typed="t")
        assert s.typed == "t"
        assert s.status is InputStatus.PARTIAL

    def test_uppercase_is_lowered(self):
        s = SyllableInputState(TO)
        assert s.handle_input("T").accepted
        assert s.typed == "t"

    def test_any_variant_accepted(self):
        s = SyllableInputState(SHI)
        for ch in "shi":
            assert s.handle_input(ch).accepted
        assert s.is_completed

    def test_completed_unit_rejects(self):
        s = SyllableInputState(TO)
        s.handle_input("t")
        s.handle_input("o")
        result = s.handle_input("o")
        assert not result.accepted
        assert s.typed == "to"


# ---------------------------------------------------------------------------
# Completable partial input (n of nn)
# ---------------------------------------------------------------------------

class TestCompletable:
    def test_short_form_is_completable(self):
        s = SyllableInputState(NASAL_FULL)
        result = s.handle_input("n")
        assert result.accepted
        assert not result.completes_unit
        assert s.completable

    def test_long_form_completes(self):
        s = SyllableInputState(NASAL_FULL)
        s.handle_input("n")
        assert s.handle_input("n").completes_unit

    def test_strict_nasal_single_n_not_completable(self):
        s = SyllableInputState(NASAL_STRICT)
        result = s.handle_input("n")
        assert result.accepted
        assert not s.completable

    def test_pending_not_completable(self):
        assert not SyllableInputState(TO).completable


# ---------------------------------------------------------------------------
# peek
# ---------------------------------------------------------------------------

class TestPeek:
    def test_peek_does_not_mutate(self):
        s = SyllableInputState(TO)
        result = s.peek("t")
        assert result.accepted
        assert s.typed == ""
        assert s.status is InputStatus.PENDING

    def test_peek_matches_handle_input(self):
        a = SyllableInputState(SHI)
        b = SyllableInputState(SHI)
        for ch in "sh":
            assert a.peek(ch) == b.handle_input(ch)
            a.handle_input(ch)


# ---------------------------------------------------------------------------
# Expected characters and display helpers
# ---------------------------------------------------------------------------

class TestExpected:
    def test_next_expected_chars_initial(self):
        assert SyllableInputState(SHI).next_expected_chars() == frozenset({"s", "c"})

    def test_next_expected_chars_after_prefix(self):
        s = SyllableInputState(SHI)
        s.handle_input("s")
        assert s.next_expected_chars() == frozenset({"i", "h"})

    def test_next_expected_chars_completed(self):
        s = SyllableInputState(TO)
        s.handle_input("t")
        s.handle_input("o")
        assert s.next_expected_chars() == frozenset()

    def test_expected_char_prefers_display_order(self):
        s = SyllableInputState(SHI)
        s.handle_input("s")
        assert s.expected_char() == "i"

    def test_preview_follows_typed(self):
        s = SyllableInputState(SHI)
        s.handle_input("s")
        s.handle_input("h")
        assert s.preview() == "shi"

    def test_remaining_of_canonical(self):
        s = SyllableInputState(SHI)
        assert s.remaining_of_canonical() == "si"
        s.handle_input("s")
        s.handle_input("h")
        assert s.remaining_of_canonical() == "i"

    def test_canonical_length(self):
        assert SyllableInputState(SHI).canonical_length == 2


# ---------------------------------------------------------------------------
# Lead restriction
# ---------------------------------------------------------------------------

class TestLead:
    def test_restricts_variants(self):
        s = SyllableInputState(SHI)
        s.require_lead("c")
        assert s.lead == "c"
        assert s.variants == ("ci",)
        assert s.next_expected_chars() == frozenset({"c"})
        assert not s.handle_input("s").accepted

    def test_preview_uses_allowed_variant(self):
        s = SyllableInputState(SHI)
        s.require_lead("c")
        assert s.preview() == "ci"
        assert s.remaining_of_canonical() == "ci"

    def test_unknown_lead_rejected(self):
        with pytest.raises(ValueError):
            SyllableInputState(TO).require_lead("k")

    def test_no_lead_by_default(self):
        s = SyllableInputState(SHI)
        assert s.lead == ""
        assert s.variants == SHI.variants


# ---------------------------------------------------------------------------
# freeze / restore
# ---------------------------------------------------------------------------

class TestFreezeRestore:
    def test_freeze(self):
        s = SyllableInputState(NASAL_FULL)
        s.freeze("n")
        assert s.is_completed
        assert s.typed == "n"

    def test_freeze_requires_whole_variant(self):
        with pytest.raises(ValueError):
            SyllableInputState(TO).freeze("t")

    def test_restore_partial(self):
        s = SyllableInputState(SHI)
        s.restore("sh")
        assert s.status is InputStatus.PARTIAL
        assert s.typed == "sh"

    def test_restore_empty_is_pending(self):
        s = SyllableInputState(SHI)
        s.restore("")
        assert s.status is InputStatus.PENDING

    def test_restore_rejects_non_prefix(self):
        with pytest.raises(ValueError):
            SyllableInputState(SHI).restore("x")
