from __future__ import annotations

import logging
import typing

import trio
import trio_util

from .executor import ActionExecutor
from .imetypes import (
    NOT_HANDLED,
    AnnotatedKeyEvent,
    BackendDesync,
    BackendFailure,
    CompositionRecord,
    CompositionState,
    EndComposition,
    HostBindingFailure,
    InputMode,
    Transition,
    UserAction,
)
from .keyboard_consts import KeyPress
from .sink import EndSession, HideCandidates, UpdateText, flush
from .statemachine import step

if typing.TYPE_CHECKING:
    from .backends.base import CompositionBackend
    from .classifier import Classifier
    from .settings import Settings
    from .sink import ActionSink, CandidateSurface

logger = logging.getLogger(__name__)


class ImeContext:
    """Per-attachment state: one of these for each host text-entry context."""

    mode: trio_util.AsyncValue[InputMode]

    def __init__(self, initial_mode: InputMode = InputMode.KANA):
        self.record = CompositionRecord()
        self.mode = trio_util.AsyncValue(initial_mode)

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(settings.initial_mode)


class CompositionController:
    def __init__(
        self,
        context: ImeContext,
        backend: CompositionBackend,
        sink: ActionSink,
        classifier: Classifier,
        *,
        surface: typing.Optional[CandidateSurface] = None,
        backend_timeout: typing.Optional[float] = None,
    ):
        self.context = context
        self.backend = backend
        self.sink = sink
        self.classifier = classifier
        self.surface = surface
        self.executor = ActionExecutor(backend, with_surface=surface is not None, timeout=backend_timeout)
        # one pass at a time, in arrival order
        self.lock = trio.StrictFIFOLock()
        # set when a clear failed after the record was dropped
        self.backend_dirty = False

    @property
    def record(self) -> CompositionRecord:
        return self.context.record

    @property
    def mode(self) -> InputMode:
        return self.context.mode.value

    async def handle_key(self, event: AnnotatedKeyEvent) -> bool:
        """Process one keystroke. False means the host should handle it as if we weren't here."""
        if event.press is not KeyPress.PRESSED:
            return False
        if event.annotation.chorded:
            return False
        async with self.lock:
            action = self.classifier.classify(event.key, event.annotation)
            if action is None:
                logger.debug("No composition meaning for %s", event.key.name)
                return False
            return await self._step_and_run(action)

    async def handle_action(self, action: UserAction) -> bool:
        async with self.lock:
            return await self._step_and_run(action)

    async def _step_and_run(self, action: UserAction) -> bool:
        mode = self.mode
        result = step(self.record.state, action, mode, self.record.buffer_length)
        if result is NOT_HANDLED:
            logger.debug("%r not handled in %s (%s)", action, self.record.state.name, mode.value)
            return False
        logger.debug("%r in %s -> %s %r", action, self.record.state.name, result.next_state.name, result.actions)
        return await self._run_pass(result, mode)

    async def _run_pass(self, transition: Transition, mode: InputMode) -> bool:
        if self.backend_dirty:
            # an earlier clear never went through; the backend may still hold old text
            try:
                await self.executor.call(self.backend.clear)
            except BackendFailure:
                logger.warning("Backend still out of step with the composition; dropping keystroke", exc_info=True)
                return False
            self.backend_dirty = False

        before = self.record.snapshot()
        try:
            outcome = await self.executor.apply(transition, before, mode)
        except BackendDesync:
            logger.warning("Backend failed partway through; discarding composition %s", before.session_id, exc_info=True)
            self.record.reset()
            await self._clear_backend_quietly()
            if before.state is not CompositionState.NONE:
                await flush(self._teardown_calls(), self.sink, self.surface)
            return False
        except BackendFailure:
            logger.warning("Backend failed; dropping keystroke", exc_info=True)
            if before.state is CompositionState.NONE:
                # don't leave a half-started composition behind in the backend
                await self._clear_backend_quietly()
            return False

        try:
            await flush(outcome.side_effects, self.sink, self.surface)
        except HostBindingFailure:
            logger.exception("Host went away mid-composition; resetting")
            self.record.reset()
            await self._clear_backend_quietly()
            raise

        self.record.restore(outcome.record)
        if outcome.mode is not mode:
            self.context.mode.value = outcome.mode
        return True

    def _teardown_calls(self):
        calls = [UpdateText(text=""), EndSession()]
        if self.surface is not None:
            calls.append(HideCandidates())
        return calls

    async def terminate(self):
        """The host ended composition on its own (focus loss and the like)."""
        async with self.lock:
            if self.record.state is CompositionState.NONE:
                return
            transition = Transition(next_state=CompositionState.NONE, actions=(EndComposition(),))
            await self._run_pass(transition, self.mode)
            if self.record.state is not CompositionState.NONE:
                # the backend failed; end the session anyway
                logger.warning("Discarding composition %s after backend failure", self.record.session_id)
                self.record.reset()
                self.backend_dirty = True
                await flush(self._teardown_calls(), self.sink, self.surface)

    async def _clear_backend_quietly(self):
        try:
            await self.executor.call(self.backend.clear)
        except BackendFailure:
            logger.warning("Backend clear failed as well", exc_info=True)
            self.backend_dirty = True
