import argparse
import codecs
import logging
import pathlib
import sys
import typing

import trio

from .backends import make_backend
from .backends.local import LocalBackend
from .classifier import Classifier
from .controller import CompositionController, ImeContext
from .imetypes import KeyEvent
from .keyboard_consts import KeyCode
from .keystreams import drive, make_keystream
from .server import serve_backend
from .settings import DEFAULT_REMOTE_HOST, DEFAULT_REMOTE_PORT, BackendKind, Settings
from .sink import ConsoleSink

logger = logging.getLogger(__name__)

SPECIAL_CHARACTERS = {
    "\n": KeyCode.KEY_ENTER,
    "\b": KeyCode.KEY_BACKSPACE,
    "\x1b": KeyCode.KEY_ESC,
    " ": KeyCode.KEY_SPACE,
}


def load_settings(path: typing.Optional[pathlib.Path]) -> Settings:
    if path is None:
        return Settings.default(pathlib.Path("kanatype.settings.json"))
    return Settings.load(path)


def add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--settings", type=pathlib.Path)
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])


def text_to_key_events(text: str, settings: Settings) -> list[KeyEvent]:
    """Spell out text as the key presses that would type it on the configured keymap."""
    by_character: dict[str, tuple[KeyCode, bool]] = {}
    for key, levels in settings.keymaps.items():
        for shifted, character in enumerate(levels[:2]):
            by_character.setdefault(character, (key, bool(shifted)))
    by_character["\t"] = (settings.toggle_keys[0], False)
    for character, key in SPECIAL_CHARACTERS.items():
        by_character[character] = (key, False)

    events = []
    for character in text:
        if character not in by_character:
            logger.warning("No key types %r; skipping it", character)
            continue
        key, shifted = by_character[character]
        if shifted:
            events.append(KeyEvent.pressed(KeyCode.KEY_LEFTSHIFT))
        events.append(KeyEvent.pressed(key))
        events.append(KeyEvent.released(key))
        if shifted:
            events.append(KeyEvent.released(KeyCode.KEY_LEFTSHIFT))
    return events


async def type_text(settings: Settings, text: str, out: typing.TextIO) -> str:
    sink = ConsoleSink(out)
    async with make_backend(settings) as backend:
        controller = CompositionController(
            ImeContext.from_settings(settings),
            backend,
            sink,
            Classifier.from_settings(settings),
            surface=sink if settings.show_candidates else None,
            backend_timeout=settings.backend_timeout,
        )
        send_channel, receive_channel = trio.open_memory_channel(0)

        async def send_events():
            async with send_channel:
                for event in text_to_key_events(text, settings):
                    await send_channel.send(event)

        async with trio.open_nursery() as nursery:
            nursery.start_soon(send_events)
            async with make_keystream(receive_channel, settings) as keystream:
                await drive(controller, keystream, sink.passthrough)
        # whatever is still composing gets committed, as if focus moved away
        await controller.terminate()
    return "".join(sink.committed)


type_parser = argparse.ArgumentParser(prog="kanatype-type", description="Type TEXT through the composition engine.")
add_common_arguments(type_parser)
type_parser.add_argument("text", help=r"\n is Enter, \b Backspace, \x1b Escape, \t toggles the input mode")


def type_cli(argv=sys.argv):
    parsed = type_parser.parse_args(argv[1:])
    logging.basicConfig(level=parsed.log_level)
    settings = load_settings(parsed.settings)
    text = codecs.decode(parsed.text, "unicode_escape")
    committed = trio.run(type_text, settings, text, sys.stdout)
    print(committed)
    return 0


server_parser = argparse.ArgumentParser(prog="kanatype-server", description="Serve suggestions to remote clients.")
add_common_arguments(server_parser)
server_parser.add_argument("--host", default=None)
server_parser.add_argument("--port", type=int, default=None)


def server_cli(argv=sys.argv):
    parsed = server_parser.parse_args(argv[1:])
    logging.basicConfig(level=parsed.log_level)
    settings = load_settings(parsed.settings)
    host = parsed.host or settings.remote_host or DEFAULT_REMOTE_HOST
    port = parsed.port or settings.remote_port or DEFAULT_REMOTE_PORT
    if settings.backend is BackendKind.REMOTE:
        # serving a remote backend would just proxy to ourselves
        backend = LocalBackend(settings.dictionary)
    else:
        backend = make_backend(settings)
    trio.run(serve_backend, backend, host, port)
    return 0
