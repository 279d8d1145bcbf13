from __future__ import annotations

import enum
import typing

import msgspec
import timeflake

from .commontypes import KanatypeError
from .keyboard_consts import KeyCode, KeyPress


class BackendFailure(KanatypeError):
    pass


class BackendDesync(BackendFailure):
    """A backend call failed after an earlier call in the same pass had already changed the backend."""


class HostBindingFailure(KanatypeError):
    pass


### Keystrokes


class KeyEvent(msgspec.Struct, frozen=True):
    key: KeyCode
    press: KeyPress

    @classmethod
    def pressed(cls, key: KeyCode):
        return cls(key=key, press=KeyPress.PRESSED)

    @classmethod
    def released(cls, key: KeyCode):
        return cls(key=key, press=KeyPress.RELEASED)


class ModifierAnnotation(msgspec.Struct, frozen=True):
    alt: bool = False
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    capslock: bool = False

    @property
    def chorded(self):
        # shift and capslock only pick a keymap level; these turn a key into a shortcut
        return self.alt or self.ctrl or self.meta


class AnnotatedKeyEvent(msgspec.Struct, frozen=True):
    key: KeyCode
    press: KeyPress
    annotation: ModifierAnnotation
    character: typing.Optional[str] = None
    is_modifier: bool = False
    is_led_able: bool = False


### Modes and states


@enum.unique
class InputMode(enum.Enum):
    KANA = "kana"
    LATIN = "latin"

    @enum.property
    def opposite(self):
        match self:
            case InputMode.KANA:
                return InputMode.LATIN
            case InputMode.LATIN:
                return InputMode.KANA


@enum.unique
class CompositionState(enum.Enum):
    NONE = enum.auto()
    COMPOSING = enum.auto()
    # Reserved for candidate browsing; nothing transitions into these yet.
    PREVIEWING = enum.auto()
    SELECTING = enum.auto()


@enum.unique
class Direction(enum.Enum):
    LEFT = enum.auto()
    RIGHT = enum.auto()
    UP = enum.auto()
    DOWN = enum.auto()


### User actions: what a keystroke means to composition


class Input(msgspec.Struct, frozen=True, tag=True):
    character: str


class Number(msgspec.Struct, frozen=True, tag=True):
    digit: int


class Navigation(msgspec.Struct, frozen=True, tag=True):
    direction: Direction


class Backspace(msgspec.Struct, frozen=True, tag=True):
    pass


class Enter(msgspec.Struct, frozen=True, tag=True):
    pass


class Escape(msgspec.Struct, frozen=True, tag=True):
    pass


class ToggleInputMode(msgspec.Struct, frozen=True, tag=True):
    pass


UserAction = Input | Number | Navigation | Backspace | Enter | Escape | ToggleInputMode


### Client actions: the executor's unit of work


class StartComposition(msgspec.Struct, frozen=True, tag=True):
    pass


class EndComposition(msgspec.Struct, frozen=True, tag=True):
    pass


class AppendText(msgspec.Struct, frozen=True, tag=True):
    text: str


class RemoveText(msgspec.Struct, frozen=True, tag=True):
    pass


class MoveCursor(msgspec.Struct, frozen=True, tag=True):
    offset: int


class SetIMEMode(msgspec.Struct, frozen=True, tag=True):
    mode: InputMode


ClientAction = StartComposition | EndComposition | AppendText | RemoveText | MoveCursor | SetIMEMode


class Transition(msgspec.Struct, frozen=True):
    next_state: CompositionState
    actions: tuple[ClientAction, ...] = ()


class NotHandled(msgspec.Struct, frozen=True):
    pass


NOT_HANDLED = NotHandled()

StepResult = Transition | NotHandled


### Composition data


class Candidate(msgspec.Struct, frozen=True):
    text: str
    subtext: str = ""
    corresponding_count: int = 0


class ComposedText(msgspec.Struct, frozen=True):
    spell: str
    suggestions: list[Candidate] = []


class CompositionRecord(msgspec.Struct):
    """The mutable session data for one attached text-entry context.

    Only the controller writes to it, and only at the end of a successful pass. When
    state is NONE, composed_text is empty and there are no suggestions.
    """

    state: CompositionState = CompositionState.NONE
    composed_text: str = ""
    suggestions: list[Candidate] = []
    session_id: typing.Optional[timeflake.Timeflake] = None

    def snapshot(self) -> CompositionRecord:
        return msgspec.structs.replace(self, suggestions=list(self.suggestions))

    def restore(self, other: CompositionRecord):
        for field_name in self.__struct_fields__:
            setattr(self, field_name, getattr(other, field_name))

    def reset(self):
        self.restore(CompositionRecord())

    @property
    def buffer_length(self):
        return len(self.composed_text)
