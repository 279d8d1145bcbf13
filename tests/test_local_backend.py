import pytest

from kanatype.backends.local import LocalBackend, RomajiComposer, to_katakana
from kanatype.imetypes import Candidate


@pytest.mark.parametrize(
    "typed,spell",
    [
        ("ka", "か"),
        ("kanji", "かんじ"),
        ("kan", "かn"),
        ("kann", "かん"),
        ("kan'", "かん"),
        ("kan＇", "かん"),
        ("gakkou", "がっこう"),
        ("kyouto", "きょうと"),
        ("shinbun", "しんぶn"),
        ("chotto", "ちょっと"),
        ("KA", "か"),
        ("ｋａ", "か"),
        ("ka、", "か、"),
        ("raーmen", "らーめn"),
        ("q", "q"),
        ("qa", "qあ"),
    ],
)
def test_composer_spell(typed, spell):
    composer = RomajiComposer()
    composer.feed(typed)
    assert composer.spell == spell


def test_feeding_one_key_at_a_time_matches_feeding_at_once():
    composer = RomajiComposer()
    for c in "toukyoueki":
        composer.feed(c)
    assert composer.spell == "とうきょうえき"
    assert composer.keystrokes == "toukyoueki"


def test_backspace_removes_whole_units():
    composer = RomajiComposer()
    composer.feed("kyak")
    assert composer.spell == "きゃk"
    composer.backspace()
    assert composer.spell == "きゃ"
    composer.backspace()
    assert composer.spell == ""
    composer.backspace()
    assert composer.spell == ""


def test_to_katakana():
    assert to_katakana("きょうと") == "キョウト"
    assert to_katakana("らーめん") == "ラーメン"
    assert to_katakana("abc") == "abc"


async def test_append_and_remove():
    backend = LocalBackend()
    composed = await backend.append("k")
    assert composed.spell == "k"
    composed = await backend.append("a")
    assert composed.spell == "か"
    assert composed.suggestions == [
        Candidate(text="か", corresponding_count=2),
        Candidate(text="カ", corresponding_count=2),
        Candidate(text="ka", corresponding_count=2),
    ]
    composed = await backend.remove()
    assert composed.spell == ""
    assert composed.suggestions == []


async def test_clear():
    backend = LocalBackend()
    await backend.append("ne")
    await backend.clear()
    composed = await backend.append("ko")
    assert composed.spell == "こ"


async def test_dictionary_suggestions():
    backend = LocalBackend({"かんじ": ["漢字", "感じ"], "かん": ["缶"]})
    for c in "kanji":
        composed = await backend.append(c)
    assert composed.spell == "かんじ"
    assert composed.suggestions == [
        Candidate(text="漢字", corresponding_count=5),
        Candidate(text="感じ", corresponding_count=5),
        Candidate(text="かんじ", corresponding_count=5),
        Candidate(text="カンジ", corresponding_count=5),
        Candidate(text="缶", subtext="じ", corresponding_count=3),
        Candidate(text="kanji", corresponding_count=5),
    ]


async def test_cursor_operations_are_not_supported():
    backend = LocalBackend()
    with pytest.raises(NotImplementedError):
        await backend.move_cursor(1)
    with pytest.raises(NotImplementedError):
        await backend.shrink(1)
