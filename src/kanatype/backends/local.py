from __future__ import annotations

import logging
import typing

import msgspec
import pygtrie

from ..fullwidth import to_halfwidth
from ..imetypes import Candidate, ComposedText
from ..util import checkpoint
from .base import CompositionBackend

logger = logging.getLogger(__name__)

ROMAJI_TO_HIRAGANA = {
    "a": "あ", "i": "い", "u": "う", "e": "え", "o": "お",
    "ka": "か", "ki": "き", "ku": "く", "ke": "け", "ko": "こ",
    "kya": "きゃ", "kyu": "きゅ", "kyo": "きょ",
    "sa": "さ", "si": "し", "shi": "し", "su": "す", "se": "せ", "so": "そ",
    "sha": "しゃ", "shu": "しゅ", "she": "しぇ", "sho": "しょ",
    "sya": "しゃ", "syu": "しゅ", "syo": "しょ",
    "ta": "た", "ti": "ち", "chi": "ち", "tu": "つ", "tsu": "つ", "te": "て", "to": "と",
    "cha": "ちゃ", "chu": "ちゅ", "che": "ちぇ", "cho": "ちょ",
    "tya": "ちゃ", "tyu": "ちゅ", "tyo": "ちょ",
    "na": "な", "ni": "に", "nu": "ぬ", "ne": "ね", "no": "の",
    "nya": "にゃ", "nyu": "にゅ", "nyo": "にょ",
    "nn": "ん", "n'": "ん", "n＇": "ん",
    "ha": "は", "hi": "ひ", "hu": "ふ", "fu": "ふ", "he": "へ", "ho": "ほ",
    "hya": "ひゃ", "hyu": "ひゅ", "hyo": "ひょ",
    "fa": "ふぁ", "fi": "ふぃ", "fe": "ふぇ", "fo": "ふぉ",
    "ma": "ま", "mi": "み", "mu": "む", "me": "め", "mo": "も",
    "mya": "みゃ", "myu": "みゅ", "myo": "みょ",
    "ya": "や", "yu": "ゆ", "yo": "よ",
    "ra": "ら", "ri": "り", "ru": "る", "re": "れ", "ro": "ろ",
    "rya": "りゃ", "ryu": "りゅ", "ryo": "りょ",
    "wa": "わ", "wi": "うぃ", "we": "うぇ", "wo": "を",
    "ga": "が", "gi": "ぎ", "gu": "ぐ", "ge": "げ", "go": "ご",
    "gya": "ぎゃ", "gyu": "ぎゅ", "gyo": "ぎょ",
    "za": "ざ", "zi": "じ", "ji": "じ", "zu": "ず", "ze": "ぜ", "zo": "ぞ",
    "ja": "じゃ", "ju": "じゅ", "je": "じぇ", "jo": "じょ",
    "zya": "じゃ", "zyu": "じゅ", "zyo": "じょ",
    "jya": "じゃ", "jyu": "じゅ", "jyo": "じょ",
    "da": "だ", "di": "ぢ", "du": "づ", "de": "で", "do": "ど",
    "dya": "ぢゃ", "dyu": "ぢゅ", "dyo": "ぢょ",
    "ba": "ば", "bi": "び", "bu": "ぶ", "be": "べ", "bo": "ぼ",
    "bya": "びゃ", "byu": "びゅ", "byo": "びょ",
    "pa": "ぱ", "pi": "ぴ", "pu": "ぷ", "pe": "ぺ", "po": "ぽ",
    "pya": "ぴゃ", "pyu": "ぴゅ", "pyo": "ぴょ",
    "vu": "ゔ",
    "xa": "ぁ", "xi": "ぃ", "xu": "ぅ", "xe": "ぇ", "xo": "ぉ",
    "la": "ぁ", "li": "ぃ", "lu": "ぅ", "le": "ぇ", "lo": "ぉ",
    "xya": "ゃ", "xyu": "ゅ", "xyo": "ょ",
    "lya": "ゃ", "lyu": "ゅ", "lyo": "ょ",
    "xtu": "っ", "ltu": "っ", "xtsu": "っ", "xwa": "ゎ",
}  # fmt: skip

# A doubled one of these becomes a small tsu ("kka" -> "っか").
SOKUON_CONSONANTS = frozenset("bcdfghjklmpqrstvwxyz")

HIRAGANA_FIRST = 0x3041
HIRAGANA_LAST = 0x3096
KATAKANA_OFFSET = 0x60


def to_katakana(text: str) -> str:
    return "".join(chr(ord(c) + KATAKANA_OFFSET) if HIRAGANA_FIRST <= ord(c) <= HIRAGANA_LAST else c for c in text)


class Unit(msgspec.Struct, frozen=True):
    """One converted piece of the composition and the keystrokes that produced it."""

    kana: str
    keys: str


class RomajiComposer:
    """Incremental romaji to hiragana transliteration.

    Input is matched greedily against a trie of romaji spellings. Whatever is still a
    prefix of some spelling stays pending (and is shown as typed); anything that can't
    become kana is kept literally.
    """

    units: list[Unit]
    pending: str

    def __init__(self, table: typing.Optional[dict[str, str]] = None):
        self.table = pygtrie.CharTrie(ROMAJI_TO_HIRAGANA if table is None else table)
        self.units = []
        self.pending = ""

    @property
    def reading(self):
        return "".join(unit.kana for unit in self.units)

    @property
    def spell(self):
        return self.reading + self.pending

    @property
    def keystrokes(self):
        return "".join(unit.keys for unit in self.units) + self.pending

    def feed(self, text: str):
        for character in to_halfwidth(text):
            self.pending += character.lower() if character.isascii() else character
            self._resolve()

    def _resolve(self):
        while self.pending:
            pending = self.pending
            if self.table.has_subtrie(pending):
                return
            if self.table.has_key(pending):
                self.units.append(Unit(kana=self.table[pending], keys=pending))
                self.pending = ""
                return
            head, rest = pending[0], pending[1:]
            if rest and head == rest[0] and head in SOKUON_CONSONANTS:
                self.units.append(Unit(kana="っ", keys=head))
            elif head == "n" and rest:
                self.units.append(Unit(kana="ん", keys=head))
            else:
                self.units.append(Unit(kana=head, keys=head))
            self.pending = rest

    def backspace(self):
        if self.pending:
            self.pending = self.pending[:-1]
        elif self.units:
            self.units.pop()

    def reset(self):
        self.units = []
        self.pending = ""


class LocalBackend(CompositionBackend):
    """In-process transliteration, with an optional reading -> words dictionary for suggestions."""

    def __init__(self, dictionary: typing.Optional[dict[str, list[str]]] = None):
        self.composer = RomajiComposer()
        self.dictionary = dictionary or {}

    def _suggestions(self) -> list[Candidate]:
        spell = self.composer.spell
        if not spell:
            return []
        total = len(self.composer.keystrokes)
        candidates = [Candidate(text=word, corresponding_count=total) for word in self.dictionary.get(spell, ())]
        candidates.append(Candidate(text=spell, corresponding_count=total))
        candidates.append(Candidate(text=to_katakana(spell), corresponding_count=total))

        # dictionary words for a leading part of the reading, longest first
        prefix_groups = []
        reading = ""
        count = 0
        for unit in self.composer.units:
            reading += unit.kana
            count += len(unit.keys)
            if reading == spell:
                break
            prefix_groups.append(
                [Candidate(text=word, subtext=spell[len(reading) :], corresponding_count=count) for word in self.dictionary.get(reading, ())]
            )
        for group in reversed(prefix_groups):
            candidates.extend(group)

        candidates.append(Candidate(text=self.composer.keystrokes, corresponding_count=total))

        seen = set()
        unique = []
        for candidate in candidates:
            if (candidate.text, candidate.subtext) not in seen:
                seen.add((candidate.text, candidate.subtext))
                unique.append(candidate)
        return unique

    def _composed(self) -> ComposedText:
        return ComposedText(spell=self.composer.spell, suggestions=self._suggestions())

    async def append(self, unit: str) -> ComposedText:
        await checkpoint()
        self.composer.feed(unit)
        logger.debug("append %r -> %r (pending %r)", unit, self.composer.spell, self.composer.pending)
        return self._composed()

    async def remove(self) -> ComposedText:
        await checkpoint()
        self.composer.backspace()
        return self._composed()

    async def clear(self) -> None:
        await checkpoint()
        self.composer.reset()
