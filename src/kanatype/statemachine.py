"""The composition transition table.

step() is pure: it looks at the current state, the classified action, the input mode
and the length of the composed text, and says which state comes next and which client
actions get us there. It never touches a record, a backend or a sink; the executor does
that.

Only NONE and COMPOSING have transitions. PREVIEWING and SELECTING are reserved for
candidate browsing and always come back NOT_HANDLED.
"""

from .imetypes import (
    NOT_HANDLED,
    AppendText,
    Backspace,
    CompositionState,
    Direction,
    EndComposition,
    Enter,
    Escape,
    Input,
    InputMode,
    MoveCursor,
    Navigation,
    Number,
    RemoveText,
    SetIMEMode,
    StartComposition,
    StepResult,
    ToggleInputMode,
    Transition,
    UserAction,
)


def step(state: CompositionState, action: UserAction, mode: InputMode, buffer_length: int) -> StepResult:
    match state:
        case CompositionState.NONE:
            return _step_idle(action, mode)
        case CompositionState.COMPOSING:
            return _step_composing(action, buffer_length)
    return NOT_HANDLED


def _step_idle(action: UserAction, mode: InputMode) -> StepResult:
    # In latin mode, typing is left to the host's own text entry.
    match action:
        case Input(character=character) if mode is InputMode.KANA:
            return Transition(
                next_state=CompositionState.COMPOSING,
                actions=(StartComposition(), AppendText(text=character)),
            )
        case Number(digit=digit) if mode is InputMode.KANA:
            return Transition(
                next_state=CompositionState.COMPOSING,
                actions=(StartComposition(), AppendText(text=str(digit))),
            )
        case ToggleInputMode():
            return Transition(next_state=CompositionState.NONE, actions=(SetIMEMode(mode=mode.opposite),))
    return NOT_HANDLED


def _step_composing(action: UserAction, buffer_length: int) -> StepResult:
    match action:
        case Input(character=character):
            return Transition(next_state=CompositionState.COMPOSING, actions=(AppendText(text=character),))
        case Number(digit=digit):
            return Transition(next_state=CompositionState.COMPOSING, actions=(AppendText(text=str(digit)),))
        case Backspace() if buffer_length == 1:
            # never linger in COMPOSING with nothing composed
            return Transition(next_state=CompositionState.NONE, actions=(RemoveText(), EndComposition()))
        case Backspace():
            return Transition(next_state=CompositionState.COMPOSING, actions=(RemoveText(),))
        case Enter():
            return Transition(next_state=CompositionState.NONE, actions=(EndComposition(),))
        case Escape():
            return Transition(next_state=CompositionState.NONE, actions=(RemoveText(), EndComposition()))
        case Navigation(direction=Direction.RIGHT):
            return Transition(next_state=CompositionState.COMPOSING, actions=(MoveCursor(offset=1),))
        case Navigation(direction=Direction.LEFT):
            return Transition(next_state=CompositionState.COMPOSING, actions=(MoveCursor(offset=-1),))
        case Navigation():
            # up/down will browse candidates once PREVIEWING/SELECTING exist
            return Transition(next_state=CompositionState.COMPOSING)
        case ToggleInputMode():
            # switching mode mid-composition ends the session; it always lands in latin
            return Transition(next_state=CompositionState.NONE, actions=(SetIMEMode(mode=InputMode.LATIN),))
    return NOT_HANDLED
