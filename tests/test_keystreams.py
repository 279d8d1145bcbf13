# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import collections.abc
import typing
from contextlib import aclosing

import msgspec
import trio
from trio.lowlevel import checkpoint

from kanatype.imetypes import AnnotatedKeyEvent, KeyEvent, ModifierAnnotation
from kanatype.keyboard_consts import KeyCode, KeyPress
from kanatype.keystreams import MakeCharacter, ModifierTracking, OnlyPresses, drive, make_keystream, pump_all
from kanatype.settings import Settings

from fakes import make_controller

T = typing.TypeVar("T")


async def make_async_source(
    items: collections.abc.Sequence[T],
):
    for item in items:
        await checkpoint()
        yield item


def tap(key: KeyCode) -> list[KeyEvent]:
    return [KeyEvent.pressed(key), KeyEvent.released(key)]


async def test_modifier_tracking():
    events = [
        KeyEvent.pressed(KeyCode.KEY_LEFTCTRL),
        *tap(KeyCode.KEY_C),
        KeyEvent.released(KeyCode.KEY_LEFTCTRL),
        *tap(KeyCode.KEY_CAPSLOCK),
        KeyEvent(key=KeyCode.KEY_K, press=KeyPress.REPEATED),
    ]
    async with (
        aclosing(make_async_source(events)) as keysource,
        pump_all(keysource, ModifierTracking()) as resultsource,
    ):
        results = [event async for event in resultsource]
    assert results == [
        AnnotatedKeyEvent(
            key=KeyCode.KEY_LEFTCTRL,
            press=KeyPress.PRESSED,
            annotation=ModifierAnnotation(ctrl=True),
            is_modifier=True,
        ),
        AnnotatedKeyEvent(key=KeyCode.KEY_C, press=KeyPress.PRESSED, annotation=ModifierAnnotation(ctrl=True)),
        AnnotatedKeyEvent(key=KeyCode.KEY_C, press=KeyPress.RELEASED, annotation=ModifierAnnotation(ctrl=True)),
        AnnotatedKeyEvent(
            key=KeyCode.KEY_LEFTCTRL,
            press=KeyPress.RELEASED,
            annotation=ModifierAnnotation(),
            is_modifier=True,
        ),
        AnnotatedKeyEvent(
            key=KeyCode.KEY_CAPSLOCK,
            press=KeyPress.PRESSED,
            annotation=ModifierAnnotation(capslock=True),
            is_modifier=True,
            is_led_able=True,
        ),
        AnnotatedKeyEvent(
            key=KeyCode.KEY_CAPSLOCK,
            press=KeyPress.RELEASED,
            annotation=ModifierAnnotation(capslock=True),
            is_modifier=True,
            is_led_able=True,
        ),
        AnnotatedKeyEvent(key=KeyCode.KEY_K, press=KeyPress.REPEATED, annotation=ModifierAnnotation(capslock=True)),
    ]


async def test_make_characters():
    keymaps = {
        KeyCode.KEY_K: ["k", "K"],
        KeyCode.KEY_A: ["a", "A"],
        KeyCode.KEY_1: ["1", "!"],
        KeyCode.KEY_COMMA: [",", "<"],
    }
    events = [
        *tap(KeyCode.KEY_K),
        KeyEvent.pressed(KeyCode.KEY_A),
        KeyEvent(key=KeyCode.KEY_A, press=KeyPress.REPEATED),
        KeyEvent.released(KeyCode.KEY_A),
        *tap(KeyCode.KEY_CAPSLOCK),
        *tap(KeyCode.KEY_K),
        *tap(KeyCode.KEY_1),
        *tap(KeyCode.KEY_COMMA),
        KeyEvent.pressed(KeyCode.KEY_RIGHTSHIFT),
        *tap(KeyCode.KEY_K),
        *tap(KeyCode.KEY_1),
        KeyEvent.released(KeyCode.KEY_RIGHTSHIFT),
        *tap(KeyCode.KEY_ZENKAKUHANKAKU),
    ]
    async with (
        aclosing(make_async_source(events)) as keysource,
        pump_all(keysource, ModifierTracking(), OnlyPresses(), MakeCharacter(keymaps)) as resultsource,
    ):
        results = [(event.key, event.character) async for event in resultsource]
    assert results == [
        (KeyCode.KEY_K, "k"),
        (KeyCode.KEY_A, "a"),
        (KeyCode.KEY_CAPSLOCK, None),
        (KeyCode.KEY_K, "K"),
        # capslock only affects letters
        (KeyCode.KEY_1, "1"),
        (KeyCode.KEY_COMMA, ","),
        (KeyCode.KEY_RIGHTSHIFT, None),
        (KeyCode.KEY_K, "k"),
        (KeyCode.KEY_1, "!"),
        (KeyCode.KEY_ZENKAKUHANKAKU, None),
    ]


async def test_drive_passes_unhandled_keys_through():
    controller, backend, sink = make_controller()
    settings = Settings.for_test()
    send_channel, receive_channel = trio.open_memory_channel(0)
    passed = []

    async def passthrough(event: AnnotatedKeyEvent):
        await checkpoint()
        passed.append(event.key)

    async def send_events():
        async with send_channel:
            for event in [
                *tap(KeyCode.KEY_K),
                *tap(KeyCode.KEY_A),
                *tap(KeyCode.KEY_SPACE),
                *tap(KeyCode.KEY_ENTER),
                *tap(KeyCode.KEY_ENTER),
            ]:
                await send_channel.send(event)

    async with trio.open_nursery() as nursery:
        nursery.start_soon(send_events)
        async with make_keystream(receive_channel, settings) as keystream:
            await drive(controller, keystream, passthrough)

    # space means nothing to composition; the second enter has nothing left to commit
    assert passed == [KeyCode.KEY_SPACE, KeyCode.KEY_ENTER]
    assert sink.committed == "ka"


def test_either_shift_key_counts():
    tracking = ModifierTracking()
    tracking.process(KeyEvent.pressed(KeyCode.KEY_LEFTSHIFT))
    tracking.process(KeyEvent.pressed(KeyCode.KEY_RIGHTSHIFT))
    tracking.process(KeyEvent.released(KeyCode.KEY_LEFTSHIFT))
    assert tracking.process(KeyEvent.pressed(KeyCode.KEY_A)).annotation == ModifierAnnotation(shift=True)
    tracking.process(KeyEvent.released(KeyCode.KEY_RIGHTSHIFT))
    assert tracking.process(KeyEvent.pressed(KeyCode.KEY_A)).annotation == ModifierAnnotation()


def test_only_presses_and_characters():
    only_presses = OnlyPresses()
    make_character = MakeCharacter({KeyCode.KEY_A: ["a", "A"]})
    held = AnnotatedKeyEvent(key=KeyCode.KEY_A, press=KeyPress.REPEATED, annotation=ModifierAnnotation())
    assert only_presses.process(held) is None
    pressed = msgspec.structs.replace(held, press=KeyPress.PRESSED)
    assert only_presses.process(pressed) is pressed
    assert make_character.process(pressed).character == "a"
    assert make_character.process(msgspec.structs.replace(pressed, key=KeyCode.KEY_TAB)).character is None
