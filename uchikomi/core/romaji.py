"""Kana to romaji input-pattern conversion.

A phrase written in kana is split into syllable units. Every unit carries the
romaji spellings a typist may use for it, ordered so that the first spelling
is the one shown on screen and used for length accounting.

Typing follows the usual romaji IME rules:

  * Consonant + small vowel digraphs are a single unit (e.g. きゃ = kya),
    which can also be typed as the two kana separately (e.g. kixya).
  * The geminate marker っ can be typed by doubling the next consonant
    (った = tta) or on its own (xtu / ltu).
  * The syllabic nasal ん needs nn (or xn) before a vowel, y or n,
    but a single n is enough elsewhere and at the end of a phrase.
"""

from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyllableUnit:
    """One kana syllable and the romaji spellings that type it."""

    grapheme: str
    variants: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.variants:
            raise ValueError(f"Syllable unit {self.grapheme!r} has no variants")

    @property
    def canonical(self) -> str:
        """Display spelling (the first variant)."""
        return self.variants[0]


GEMINATE = "っ"
NASAL = "ん"

VOWELS = frozenset("aiueo")
# ん must be typed as nn before these
NASAL_BLOCKERS = VOWELS | {"y", "n"}
# n is left out: "nn" already spells ん
GEMINATE_CONSONANTS = frozenset("bcdfghjklmpqrstvwxyz")

SMALL_KANA = frozenset("ぁぃぅぇぉゃゅょゎ")

GEMINATE_SPELLINGS: Tuple[str, ...] = ("xtu", "xtsu", "ltu", "ltsu")
NASAL_SPELLINGS: Tuple[str, ...] = ("nn", "n", "xn")
NASAL_STRICT_SPELLINGS: Tuple[str, ...] = ("nn", "xn")
# at the end of a phrase the single n is shown: it already finishes the phrase
NASAL_FINAL_SPELLINGS: Tuple[str, ...] = ("n", "nn", "xn")

# Most common spelling first (it is the one displayed).
ROMAJI_TABLE: Dict[str, Tuple[str, ...]] = {
    # ===== Vowels =====
    "あ": ("a",), "い": ("i", "yi"), "う": ("u", "wu", "whu"), "え": ("e",), "お": ("o",),
    # ===== Seion =====
    "か": ("ka", "ca"), "き": ("ki",), "く": ("ku", "cu", "qu"), "け": ("ke",), "こ": ("ko", "co"),
    "さ": ("sa",), "し": ("si", "shi", "ci"), "す": ("su",), "せ": ("se", "ce"), "そ": ("so",),
    "た": ("ta",), "ち": ("ti", "chi"), "つ": ("tu", "tsu"), "て": ("te",), "と": ("to",),
    "な": ("na",), "に": ("ni",), "ぬ": ("nu",), "ね": ("ne",), "の": ("no",),
    "は": ("ha",), "ひ": ("hi",), "ふ": ("fu", "hu"), "へ": ("he",), "ほ": ("ho",),
    "ま": ("ma",), "み": ("mi",), "む": ("mu",), "め": ("me",), "も": ("mo",),
    "や": ("ya",), "ゆ": ("yu",), "よ": ("yo",),
    "ら": ("ra",), "り": ("ri",), "る": ("ru",), "れ": ("re",), "ろ": ("ro",),
    "わ": ("wa",), "ゐ": ("wyi",), "ゑ": ("wye",), "を": ("wo",),
    "ん": NASAL_SPELLINGS,
    # ===== Dakuon / handakuon =====
    "が": ("ga",), "ぎ": ("gi",), "ぐ": ("gu",), "げ": ("ge",), "ご": ("go",),
    "ざ": ("za",), "じ": ("zi", "ji"), "ず": ("zu",), "ぜ": ("ze",), "ぞ": ("zo",),
    "だ": ("da",), "ぢ": ("di",), "づ": ("du",), "で": ("de",), "ど": ("do",),
    "ば": ("ba",), "び": ("bi",), "ぶ": ("bu",), "べ": ("be",), "ぼ": ("bo",),
    "ぱ": ("pa",), "ぴ": ("pi",), "ぷ": ("pu",), "ぺ": ("pe",), "ぽ": ("po",),
    "ゔ": ("vu",),
    # ===== Small kana =====
    "ぁ": ("xa", "la"), "ぃ": ("xi", "li"), "ぅ": ("xu", "lu"), "ぇ": ("xe", "le"), "ぉ": ("xo", "lo"),
    "ゃ": ("xya", "lya"), "ゅ": ("xyu", "lyu"), "ょ": ("xyo", "lyo"), "ゎ": ("xwa", "lwa"),
    "っ": GEMINATE_SPELLINGS,
    # ===== Youon (digraphs) =====
    "きゃ": ("kya",), "きぃ": ("kyi",), "きゅ": ("kyu",), "きぇ": ("kye",), "きょ": ("kyo",),
    "しゃ": ("sya", "sha"), "しぃ": ("syi",), "しゅ": ("syu", "shu"), "しぇ": ("sye", "she"), "しょ": ("syo", "sho"),
    "ちゃ": ("tya", "cha", "cya"), "ちぃ": ("tyi", "cyi"), "ちゅ": ("tyu", "chu", "cyu"),
    "ちぇ": ("tye", "che", "cye"), "ちょ": ("tyo", "cho", "cyo"),
    "にゃ": ("nya",), "にぃ": ("nyi",), "にゅ": ("nyu",), "にぇ": ("nye",), "にょ": ("nyo",),
    "ひゃ": ("hya",), "ひぃ": ("hyi",), "ひゅ": ("hyu",), "ひぇ": ("hye",), "ひょ": ("hyo",),
    "みゃ": ("mya",), "みぃ": ("myi",), "みゅ": ("myu",), "みぇ": ("mye",), "みょ": ("myo",),
    "りゃ": ("rya",), "りぃ": ("ryi",), "りゅ": ("ryu",), "りぇ": ("rye",), "りょ": ("ryo",),
    "ぎゃ": ("gya",), "ぎぃ": ("gyi",), "ぎゅ": ("gyu",), "ぎぇ": ("gye",), "ぎょ": ("gyo",),
    "じゃ": ("zya", "ja", "jya"), "じぃ": ("zyi", "jyi"), "じゅ": ("zyu", "ju", "jyu"),
    "じぇ": ("zye", "je", "jye"), "じょ": ("zyo", "jo", "jyo"),
    "ぢゃ": ("dya",), "ぢぃ": ("dyi",), "ぢゅ": ("dyu",), "ぢぇ": ("dye",), "ぢょ": ("dyo",),
    "びゃ": ("bya",), "びぃ": ("byi",), "びゅ": ("byu",), "びぇ": ("bye",), "びょ": ("byo",),
    "ぴゃ": ("pya",), "ぴぃ": ("pyi",), "ぴゅ": ("pyu",), "ぴぇ": ("pye",), "ぴょ": ("pyo",),
    # ===== Foreign-sound digraphs =====
    "ふぁ": ("fa",), "ふぃ": ("fi",), "ふぇ": ("fe",), "ふぉ": ("fo",), "ふゅ": ("fyu",),
    "てぃ": ("thi",), "てゅ": ("thu",), "でぃ": ("dhi",), "でゅ": ("dhu",),
    "とぅ": ("twu",), "どぅ": ("dwu",),
    "うぃ": ("wi", "whi"), "うぇ": ("we", "whe"), "うぉ": ("who",),
    "いぇ": ("ye",), "つぁ": ("tsa",), "つぃ": ("tsi",), "つぇ": ("tse",), "つぉ": ("tso",),
    "ゔぁ": ("va",), "ゔぃ": ("vi",), "ゔぇ": ("ve",), "ゔぉ": ("vo",),
    # ===== Symbols =====
    "ー": ("-",), "、": (",",), "。": (".",), "・": ("/",),
    "「": ("[",), "」": ("]",), "〜": ("~",), "～": ("~",),
}

_KATAKANA_START = 0x30A1
_KATAKANA_END = 0x30F6
_KANA_OFFSET = 0x60


def to_hiragana(text: str) -> str:
    """Normalise width and fold katakana into hiragana."""
    text = unicodedata.normalize("NFKC", text)
    return "".join(
        chr(ord(ch) - _KANA_OFFSET) if _KATAKANA_START <= ord(ch) <= _KATAKANA_END else ch
        for ch in text
    )


def _merge(*groups: Tuple[str, ...]) -> Tuple[str, ...]:
    merged: List[str] = []
    for group in groups:
        for variant in group:
            if variant not in merged:
                merged.append(variant)
    return tuple(merged)


def _passthrough(char: str) -> Tuple[str, ...]:
    if char.isspace():
        return (" ",)
    logger.debug("No romaji for %r, passing it through", char)
    return (char.lower(),)


class PhoneticPatternConverter:
    """Converts kana text into syllable units with ranked romaji variants.

    Conversion never fails: characters without a table entry become a
    single passthrough variant.
    """

    def __init__(self, table: Optional[Dict[str, Tuple[str, ...]]] = None) -> None:
        self._table = dict(ROMAJI_TABLE if table is None else table)
        self._last: Tuple[str, Tuple[SyllableUnit, ...]] = ("", ())

    def convert(self, text: str) -> List[SyllableUnit]:
        """Split ``text`` into syllable units, resolving っ and ん by lookahead."""
        kana = to_hiragana(text.strip())
        if self._last[0] == kana and kana:
            return list(self._last[1])

        units = self._tokenize(kana)
        # right to left so each marker sees its successor's final variants
        for index in range(len(units) - 1, -1, -1):
            following = units[index + 1] if index + 1 < len(units) else None
            grapheme = units[index].grapheme
            if grapheme == GEMINATE:
                units[index] = SyllableUnit(grapheme, self._geminate_variants(following))
            elif grapheme == NASAL:
                units[index] = SyllableUnit(grapheme, self._nasal_variants(following))

        self._last = (kana, tuple(units))
        return units

    def variants_for(self, grapheme: str) -> Tuple[str, ...]:
        """Context-free variants for a single grapheme (kana or digraph)."""
        if grapheme in self._table:
            return self._table[grapheme]
        if len(grapheme) == 2 and grapheme[0] in self._table and grapheme[1] in self._table:
            return self._split_variants(grapheme)
        return _passthrough(grapheme)

    def _tokenize(self, kana: str) -> List[SyllableUnit]:
        units: List[SyllableUnit] = []
        i = 0
        while i < len(kana):
            char = kana[i]
            pair = kana[i:i + 2]
            if len(pair) == 2 and pair[1] in SMALL_KANA and pair in self._table:
                units.append(SyllableUnit(pair, _merge(self._table[pair], self._split_variants(pair))))
                i += 2
                continue
            units.append(SyllableUnit(char, self.variants_for(char)))
            i += 1
        return units

    def _split_variants(self, pair: str) -> Tuple[str, ...]:
        """Spellings that type the two kana of a digraph one after the other."""
        base = self._table.get(pair[0], ())
        small = self._table.get(pair[1], ())
        return tuple(b + s for b in base for s in small)

    @staticmethod
    def _geminate_variants(following: Optional[SyllableUnit]) -> Tuple[str, ...]:
        if following is None or following.canonical[:1] not in GEMINATE_CONSONANTS:
            return GEMINATE_SPELLINGS
        doubled = tuple(
            variant[0] for variant in following.variants
            if variant and variant[0] in GEMINATE_CONSONANTS
        )
        return _merge(doubled, GEMINATE_SPELLINGS)

    @staticmethod
    def _nasal_variants(following: Optional[SyllableUnit]) -> Tuple[str, ...]:
        if following is None:
            return NASAL_FINAL_SPELLINGS
        if following.canonical[:1] in NASAL_BLOCKERS:
            return NASAL_STRICT_SPELLINGS
        return NASAL_SPELLINGS


def canonical_text(units: List[SyllableUnit]) -> str:
    """Join the display spelling of every unit."""
    return "".join(unit.canonical for unit in units)
