from __future__ import annotations

import collections.abc
import typing
import unicodedata

from .imetypes import (
    Backspace,
    Direction,
    Enter,
    Escape,
    Input,
    ModifierAnnotation,
    Navigation,
    Number,
    ToggleInputMode,
    UserAction,
)
from .keyboard_consts import KeyCode

if typing.TYPE_CHECKING:
    from .settings import Settings

TOP_ROW_DIGITS = {
    KeyCode.KEY_1: 1,
    KeyCode.KEY_2: 2,
    KeyCode.KEY_3: 3,
    KeyCode.KEY_4: 4,
    KeyCode.KEY_5: 5,
    KeyCode.KEY_6: 6,
    KeyCode.KEY_7: 7,
    KeyCode.KEY_8: 8,
    KeyCode.KEY_9: 9,
    KeyCode.KEY_0: 0,
}

KEYPAD_DIGITS = {
    KeyCode.KEY_KP1: 1,
    KeyCode.KEY_KP2: 2,
    KeyCode.KEY_KP3: 3,
    KeyCode.KEY_KP4: 4,
    KeyCode.KEY_KP5: 5,
    KeyCode.KEY_KP6: 6,
    KeyCode.KEY_KP7: 7,
    KeyCode.KEY_KP8: 8,
    KeyCode.KEY_KP9: 9,
    KeyCode.KEY_KP0: 0,
}

NAVIGATION_KEYS = {
    KeyCode.KEY_LEFT: Direction.LEFT,
    KeyCode.KEY_RIGHT: Direction.RIGHT,
    KeyCode.KEY_UP: Direction.UP,
    KeyCode.KEY_DOWN: Direction.DOWN,
}


def keymap_character(keymap: list[str], annotation: ModifierAnnotation) -> str:
    is_shifted = annotation.shift
    is_letter = unicodedata.category(keymap[0]).startswith("L")
    if is_letter:
        is_shifted ^= annotation.capslock
    level = 1 if is_shifted else 0
    return keymap[level]


class Classifier:
    """Turns a key code plus modifiers into the action it means for composition.

    Classification is total: keys that mean nothing to composition (including any chord
    with ctrl, alt or meta) come back as None, and the caller should pass them through
    to the host as-is.
    """

    def __init__(self, keymaps: dict[KeyCode, list[str]], toggle_keys: collections.abc.Iterable[KeyCode]):
        self.keymaps = keymaps
        self.toggle_keys = frozenset(toggle_keys)

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(settings.keymaps, settings.toggle_keys)

    def classify(self, key: KeyCode, annotation: ModifierAnnotation) -> typing.Optional[UserAction]:
        if annotation.chorded:
            return None
        if key in self.toggle_keys:
            return ToggleInputMode()
        match key:
            case KeyCode.KEY_BACKSPACE:
                return Backspace()
            case KeyCode.KEY_ENTER | KeyCode.KEY_KPENTER:
                return Enter()
            case KeyCode.KEY_ESC:
                return Escape()
        if key in NAVIGATION_KEYS:
            return Navigation(direction=NAVIGATION_KEYS[key])
        if key in KEYPAD_DIGITS:
            return Number(digit=KEYPAD_DIGITS[key])
        if key in TOP_ROW_DIGITS and not annotation.shift:
            return Number(digit=TOP_ROW_DIGITS[key])
        if key in self.keymaps:
            return Input(character=keymap_character(self.keymaps[key], annotation))
        return None
