"""Tests for uchikomi.core.phrases – YAML-based phrase set loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from uchikomi.core.phrases import Phrase, PhraseRepository, PhraseSet
from uchikomi.core.romaji import PhoneticPatternConverter


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def phrases_dir(tmp_path: Path) -> Path:
    d = tmp_path / "data" / "phrases"
    d.mkdir(parents=True)
    return d


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data, allow_unicode=True, default_flow_style=False), encoding="utf-8")


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

class TestPhraseDataclass:
    def test_creation(self):
        p = Phrase(display_text="猫", script_text="ねこ", phrase_id="a-1")
        assert p.display_text == "猫"
        assert p.script_text == "ねこ"
        assert p.phrase_id == "a-1"

    def test_frozen(self):
        p = Phrase(display_text="猫", script_text="ねこ")
        with pytest.raises(AttributeError):
            p.display_text = "犬"  # type: ignore[misc]

    def test_set_creation(self):
        s = PhraseSet(key="phrases1", name="Words", phrases=[Phrase("猫", "ねこ")])
        assert s.name == "Words"
        assert len(s.phrases) == 1


# ---------------------------------------------------------------------------
# PhraseRepository
# ---------------------------------------------------------------------------

class TestPhraseRepository:
    def test_mapping_entries(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {
            "title": "Words",
            "phrases": [{"display": "猫", "kana": "ねこ", "id": "cat"}],
        })
        repo = PhraseRepository(phrases_dir)
        (p,) = repo.get("phrases1").phrases
        assert p == Phrase(display_text="猫", script_text="ねこ", phrase_id="cat")

    def test_plain_string_entries(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {"title": "Kana", "phrases": ["ねこ", "  いぬ  "]})
        repo = PhraseRepository(phrases_dir)
        phrases = repo.get("phrases1").phrases
        assert [p.display_text for p in phrases] == ["ねこ", "いぬ"]
        assert [p.script_text for p in phrases] == ["ねこ", "いぬ"]

    def test_default_ids(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {"title": "Kana", "phrases": ["ねこ", "いぬ"]})
        ids = [p.phrase_id for p in PhraseRepository(phrases_dir).get("phrases1").phrases]
        assert ids == ["phrases1-0", "phrases1-1"]

    def test_display_defaults_to_kana(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {"title": "Kana", "phrases": [{"kana": "ねこ"}]})
        (p,) = PhraseRepository(phrases_dir).get("phrases1").phrases
        assert p.display_text == "ねこ"

    def test_title_stripped(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {"title": "  Words  ", "phrases": ["ねこ"]})
        assert PhraseRepository(phrases_dir).get("phrases1").name == "Words"

    def test_numeric_sort_order(self, phrases_dir):
        for n in (10, 2, 1):
            _write_yaml(phrases_dir / f"phrases{n}.yaml", {"title": f"Set {n}", "phrases": ["ねこ"]})
        keys = [s.key for s in PhraseRepository(phrases_dir).all()]
        assert keys == ["phrases1", "phrases2", "phrases10"]

    def test_unknown_key(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {"title": "Words", "phrases": ["ねこ"]})
        with pytest.raises(KeyError):
            PhraseRepository(phrases_dir).get("phrases9")

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            PhraseRepository(tmp_path / "nowhere")

    def test_no_files(self, phrases_dir):
        with pytest.raises(ValueError, match="No phrase files"):
            PhraseRepository(phrases_dir)

    def test_missing_title(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {"phrases": ["ねこ"]})
        with pytest.raises(ValueError, match="title"):
            PhraseRepository(phrases_dir)

    def test_phrases_not_a_list(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {"title": "Words", "phrases": "ねこ"})
        with pytest.raises(ValueError, match="must be a list"):
            PhraseRepository(phrases_dir)

    def test_empty_phrases(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {"title": "Words", "phrases": []})
        with pytest.raises(ValueError, match="empty"):
            PhraseRepository(phrases_dir)

    def test_missing_kana(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {"title": "Words", "phrases": [{"display": "猫"}]})
        with pytest.raises(ValueError, match="kana"):
            PhraseRepository(phrases_dir)

    def test_invalid_entry_type(self, phrases_dir):
        _write_yaml(phrases_dir / "phrases1.yaml", {"title": "Words", "phrases": [42]})
        with pytest.raises(ValueError, match="string or a mapping"):
            PhraseRepository(phrases_dir)

    def test_not_a_mapping(self, phrases_dir):
        (phrases_dir / "phrases1.yaml").write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError, match="phrases1.yaml"):
            PhraseRepository(phrases_dir)


# ---------------------------------------------------------------------------
# Bundled phrase sets
# ---------------------------------------------------------------------------

class TestBundledPhrases:
    def test_bundled_sets_load(self):
        sets = PhraseRepository().all()
        assert [s.key for s in sets] == ["phrases1", "phrases2", "phrases3"]

    def test_every_bundled_phrase_is_typeable(self):
        conv = PhoneticPatternConverter()
        for phrase_set in PhraseRepository().all():
            for phrase in phrase_set.phrases:
                units = conv.convert(phrase.script_text)
                assert units, phrase.phrase_id
                # kana-only scripts never fall back to passthrough
                assert all(u.grapheme != u.canonical for u in units if u.grapheme.strip()), phrase.phrase_id
