from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import yaml


@dataclass(frozen=True)
class Phrase:
    """A target phrase: what is shown and the kana that is typed."""

    display_text: str
    script_text: str
    phrase_id: str = ""


@dataclass(frozen=True)
class PhraseSet:
    key: str
    name: str
    phrases: List[Phrase]


DEFAULT_PHRASE_DIR = Path(__file__).resolve().parent.parent / "data" / "phrases"


class PhraseRepository:
    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = base_dir or DEFAULT_PHRASE_DIR
        self._sets = self._load_sets()

    def all(self) -> List[PhraseSet]:
        return list(self._sets.values())

    def get(self, key: str) -> PhraseSet:
        return self._sets[key]

    def _load_sets(self) -> Dict[str, PhraseSet]:
        base_dir = self._base_dir
        if not base_dir.exists():
            raise FileNotFoundError(f"Phrases directory not found: {base_dir}")

        sets: Dict[str, PhraseSet] = {}

        def _sort_key(p: Path) -> tuple[int, str]:
            m = re.match(r"^phrases(\d+)$", p.stem)
            if m:
                return (int(m.group(1)), p.stem)
            return (10**9, p.stem)

        for set_path in sorted(base_dir.glob("phrases*.yaml"), key=_sort_key):
            key = set_path.stem
            raw = yaml.safe_load(set_path.read_text(encoding="utf-8"))
            if not raw or not isinstance(raw, dict):
                raise ValueError(f"{set_path.name}: expected YAML with 'title' and 'phrases'")
            title = raw.get("title")
            content = raw.get("phrases")
            if not title or not isinstance(title, str):
                raise ValueError(f"{set_path.name}: missing or invalid 'title'")
            if not isinstance(content, list):
                raise ValueError(f"{set_path.name}: 'phrases' must be a list")
            phrases = [
                _parse_phrase(set_path.name, key, index, item)
                for index, item in enumerate(content)
            ]
            if not phrases:
                raise ValueError(f"{set_path.name}: 'phrases' is empty")
            sets[key] = PhraseSet(key=key, name=title.strip(), phrases=phrases)

        if not sets:
            raise ValueError(f"No phrase files (phrases*.yaml) found in {base_dir}")
        return sets


def _parse_phrase(file_name: str, key: str, index: int, item: object) -> Phrase:
    phrase_id = f"{key}-{index}"
    # plain kana entries display as themselves
    if isinstance(item, str):
        text = item.strip()
        if not text:
            raise ValueError(f"{file_name}: phrase {index} is empty")
        return Phrase(display_text=text, script_text=text, phrase_id=phrase_id)
    if not isinstance(item, dict):
        raise ValueError(f"{file_name}: phrase {index} must be a string or a mapping")
    kana = str(item.get("kana") or "").strip()
    display = str(item.get("display") or kana).strip()
    if not kana:
        raise ValueError(f"{file_name}: phrase {index} is missing 'kana'")
    return Phrase(display_text=display, script_text=kana, phrase_id=str(item.get("id") or phrase_id))
