# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
"""Stages between raw key events and the composition controller.

Each stage reads one memory channel and writes the next; pump_all wires them up inside a
nursery. Every stage here turns one event into at most one event, so they share a
single pump loop and only describe what happens to each event.
"""

from __future__ import annotations

import abc
from contextlib import aclosing, asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterable, Optional, cast

import msgspec
import trio

from .classifier import keymap_character
from .imetypes import AnnotatedKeyEvent, KeyEvent, ModifierAnnotation
from .keyboard_consts import KeyCode, KeyPress

if TYPE_CHECKING:
    import collections.abc

    from .controller import CompositionController
    from .settings import Settings

# modifier key -> the ModifierAnnotation flag it sets
MOMENTARY_MODIFIERS = {
    KeyCode.KEY_LEFTALT: "alt",
    KeyCode.KEY_RIGHTALT: "alt",
    KeyCode.KEY_LEFTCTRL: "ctrl",
    KeyCode.KEY_RIGHTCTRL: "ctrl",
    KeyCode.KEY_LEFTMETA: "meta",
    KeyCode.KEY_RIGHTMETA: "meta",
    KeyCode.KEY_LEFTSHIFT: "shift",
    KeyCode.KEY_RIGHTSHIFT: "shift",
}
LOCKING_MODIFIERS = {
    KeyCode.KEY_CAPSLOCK: "capslock",
}


class Stage(abc.ABC):
    @abc.abstractmethod
    def process(self, event: Any) -> Optional[AnnotatedKeyEvent]:
        """Return the event to pass on, or None to drop it."""

    async def pump(self, source: AsyncIterable[Any], sink: trio.MemorySendChannel[AnnotatedKeyEvent]):
        async with aclosing(source), aclosing(sink):
            async for event in source:
                passed_on = self.process(event)
                if passed_on is not None:
                    await sink.send(passed_on)


class ModifierTracking(Stage):
    """Annotates every event with the modifiers in effect when it arrived."""

    def __init__(self):
        self.held: set[KeyCode] = set()
        self.locked: set[KeyCode] = set()

    def annotation(self) -> ModifierAnnotation:
        flags = {MOMENTARY_MODIFIERS[key]: True for key in self.held}
        flags.update((LOCKING_MODIFIERS[key], True) for key in self.locked)
        return ModifierAnnotation(**flags)

    def process(self, event: KeyEvent) -> AnnotatedKeyEvent:
        if event.key in MOMENTARY_MODIFIERS:
            if event.press is KeyPress.RELEASED:
                self.held.discard(event.key)
            else:
                self.held.add(event.key)
        elif event.key in LOCKING_MODIFIERS and event.press is KeyPress.PRESSED:
            self.locked ^= {event.key}
        return AnnotatedKeyEvent(
            key=event.key,
            press=event.press,
            annotation=self.annotation(),
            is_modifier=event.key in MOMENTARY_MODIFIERS or event.key in LOCKING_MODIFIERS,
            is_led_able=event.key in LOCKING_MODIFIERS,
        )


class OnlyPresses(Stage):
    # Composition works on discrete presses; releases and autorepeat are dropped.
    def process(self, event: AnnotatedKeyEvent) -> Optional[AnnotatedKeyEvent]:
        return event if event.press is KeyPress.PRESSED else None


class MakeCharacter(Stage):
    """Attaches the typed character, so a key the controller declines can go to the host as text."""

    def __init__(self, keymaps: dict[KeyCode, list[str]]):
        self.keymaps = keymaps

    def process(self, event: AnnotatedKeyEvent) -> AnnotatedKeyEvent:
        keymap = self.keymaps.get(event.key)
        if keymap is None:
            return event
        return msgspec.structs.replace(event, character=keymap_character(keymap, event.annotation))


@asynccontextmanager
async def pump_all(first_source: AsyncIterable[Any], *stages: Stage):
    async with trio.open_nursery() as nursery:
        stage_input = first_source
        for stage in stages:
            send_channel, receive_channel = trio.open_memory_channel(0)
            nursery.start_soon(stage.pump, stage_input, send_channel)
            stage_input = receive_channel
        yield stage_input
        nursery.cancel_scope.cancel()


@asynccontextmanager
async def make_keystream(
    key_event_channel: trio.MemoryReceiveChannel[KeyEvent],
    settings: Settings,
):
    async with pump_all(key_event_channel, ModifierTracking(), OnlyPresses(), MakeCharacter(settings.keymaps)) as keystream:
        yield cast(trio.MemoryReceiveChannel[AnnotatedKeyEvent], keystream)


async def drive(
    controller: CompositionController,
    keystream: AsyncIterable[AnnotatedKeyEvent],
    passthrough: collections.abc.Callable[[AnnotatedKeyEvent], collections.abc.Awaitable[None]],
):
    """Feed every keystroke to the controller; whatever it declines goes to the host unmodified."""
    async for event in keystream:
        if not await controller.handle_key(event):
            await passthrough(event)
