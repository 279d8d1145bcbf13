from __future__ import annotations

import dataclasses
import logging
import typing

import timeflake
import trio

from .fullwidth import to_fullwidth
from .imetypes import (
    AppendText,
    BackendDesync,
    BackendFailure,
    CompositionRecord,
    CompositionState,
    EndComposition,
    InputMode,
    MoveCursor,
    RemoveText,
    SetIMEMode,
    StartComposition,
    Transition,
)
from .sink import (
    BeginSession,
    CommitText,
    EndSession,
    HideCandidates,
    ShowCandidates,
    SinkCall,
    UpdateCandidates,
    UpdateText,
)

if typing.TYPE_CHECKING:
    from .backends.base import CompositionBackend
    from .imetypes import ComposedText

logger = logging.getLogger(__name__)


@dataclasses.dataclass(kw_only=True)
class ExecutionResult:
    record: CompositionRecord
    mode: InputMode
    side_effects: list[SinkCall]


class ActionExecutor:
    """Applies a transition's client actions, in order, to a working copy of the record.

    The record passed in is never modified. Sink calls are collected rather than made, so
    the caller decides when (and whether) the host sees them. A BackendFailure from any
    backend call propagates out of apply() with nothing committed anywhere.
    """

    def __init__(
        self,
        backend: CompositionBackend,
        *,
        with_surface: bool = False,
        timeout: typing.Optional[float] = None,
    ):
        self.backend = backend
        self.with_surface = with_surface
        self.timeout = timeout

    async def call(self, operation, *args):
        if self.timeout is None:
            return await operation(*args)
        try:
            with trio.fail_after(self.timeout):
                return await operation(*args)
        except trio.TooSlowError as exc:
            raise BackendFailure(f"Backend {operation.__name__} took longer than {self.timeout}s") from exc

    def _write(self, working: CompositionRecord, composed: ComposedText, effects: list[SinkCall]):
        working.composed_text = composed.spell
        working.suggestions = list(composed.suggestions)
        effects.append(UpdateText(text=composed.spell))
        if self.with_surface:
            effects.append(UpdateCandidates(suggestions=working.suggestions))

    async def apply(self, transition: Transition, record: CompositionRecord, mode: InputMode) -> ExecutionResult:
        working = record.snapshot()
        working_mode = mode
        next_state = transition.next_state
        effects: list[SinkCall] = []
        session_open = record.state is not CompositionState.NONE
        changed_backend = False

        try:
            for action in transition.actions:
                match action:
                    case StartComposition():
                        effects.append(BeginSession())
                        if self.with_surface:
                            effects.append(ShowCandidates())
                        working.session_id = timeflake.random()
                        session_open = True
                        logger.debug("Starting composition %s", working.session_id)
                    case EndComposition():
                        effects.append(CommitText(text=working.composed_text))
                        effects.append(EndSession())
                        if self.with_surface:
                            effects.append(HideCandidates())
                        logger.debug("Ending composition %s with %r", working.session_id, working.composed_text)
                        working.composed_text = ""
                        working.suggestions = []
                        working.session_id = None
                        session_open = False
                        await self.call(self.backend.clear)
                        changed_backend = True
                    case AppendText(text=text):
                        unit = to_fullwidth(text) if working_mode is InputMode.KANA else text
                        composed = await self.call(self.backend.append, unit)
                        changed_backend = True
                        self._write(working, composed, effects)
                    case RemoveText():
                        composed = await self.call(self.backend.remove)
                        changed_backend = True
                        self._write(working, composed, effects)
                        if not composed.spell:
                            # the backend's buffer wins over the length the table was given
                            next_state = CompositionState.NONE
                    case MoveCursor(offset=offset):
                        # No cursor-aware contract with the backend yet; the cursor stays at the end.
                        logger.debug("Ignoring MoveCursor(%d)", offset)
                    case SetIMEMode(mode=new_mode):
                        logger.debug("Input mode %s -> %s", working_mode.value, new_mode.value)
                        working_mode = new_mode
                        working.composed_text = ""
                        working.suggestions = []
                        await self.call(self.backend.clear)
                        changed_backend = True

        except BackendFailure as exc:
            if changed_backend:
                raise BackendDesync(f"{exc} (earlier actions in this pass had already reached the backend)") from exc
            raise

        if next_state is CompositionState.NONE:
            if session_open:
                # Left NONE without an EndComposition (emptied by RemoveText, or a mode
                # switch): take down what the host is still showing.
                effects.append(UpdateText(text=""))
                effects.append(EndSession())
                if self.with_surface:
                    effects.append(HideCandidates())
            working.composed_text = ""
            working.suggestions = []
            working.session_id = None
        working.state = next_state

        return ExecutionResult(record=working, mode=working_mode, side_effects=effects)
