from __future__ import annotations

import abc
import collections.abc
import typing

import msgspec

from .imetypes import AnnotatedKeyEvent, Candidate
from .keyboard_consts import KeyCode
from .util import checkpoint


### Sink calls. The executor queues these instead of calling the sink directly, so nothing
### reaches the host until every backend call in the pass has succeeded.


class BeginSession(msgspec.Struct, frozen=True, tag=True):
    pass


class UpdateText(msgspec.Struct, frozen=True, tag=True):
    text: str


class CommitText(msgspec.Struct, frozen=True, tag=True):
    text: str


class EndSession(msgspec.Struct, frozen=True, tag=True):
    pass


class ShowCandidates(msgspec.Struct, frozen=True, tag=True):
    pass


class UpdateCandidates(msgspec.Struct, frozen=True, tag=True):
    suggestions: list[Candidate]


class HideCandidates(msgspec.Struct, frozen=True, tag=True):
    pass


SinkCall = BeginSession | UpdateText | CommitText | EndSession | ShowCandidates | UpdateCandidates | HideCandidates


class ActionSink(metaclass=abc.ABCMeta):
    """The host-visible text surface.

    Implementations raise HostBindingFailure when the host context they write into has
    gone away.
    """

    @abc.abstractmethod
    async def begin_session(self): ...

    @abc.abstractmethod
    async def update_text(self, text: str): ...

    @abc.abstractmethod
    async def commit_text(self, text: str): ...

    @abc.abstractmethod
    async def end_session(self): ...


class CandidateSurface(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    async def show_candidates(self): ...

    @abc.abstractmethod
    async def update_candidates(self, suggestions: list[Candidate]): ...

    @abc.abstractmethod
    async def hide_candidates(self): ...


async def flush(
    calls: collections.abc.Iterable[SinkCall],
    sink: ActionSink,
    surface: typing.Optional[CandidateSurface] = None,
):
    for call in calls:
        match call:
            case BeginSession():
                await sink.begin_session()
            case UpdateText(text=text):
                await sink.update_text(text)
            case CommitText(text=text):
                await sink.commit_text(text)
            case EndSession():
                await sink.end_session()
            case ShowCandidates() if surface is not None:
                await surface.show_candidates()
            case UpdateCandidates(suggestions=suggestions) if surface is not None:
                await surface.update_candidates(suggestions)
            case HideCandidates() if surface is not None:
                await surface.hide_candidates()


# keys with no keymap character that still type something when the host gets them
HOST_CHARACTERS = {
    KeyCode.KEY_SPACE: " ",
    KeyCode.KEY_ENTER: "\n",
    KeyCode.KEY_TAB: "\t",
}


class ConsoleSink(ActionSink, CandidateSurface):
    """Writes the session to a terminal. Used by kanatype-type for poking at the engine by hand."""

    def __init__(self, out: typing.TextIO):
        self.out = out
        self.committed: list[str] = []

    def _write(self, line: str):
        print(line, file=self.out)

    async def begin_session(self):
        await checkpoint()
        self._write("[begin]")

    async def update_text(self, text: str):
        await checkpoint()
        self._write(f"[preedit] {text}")

    async def commit_text(self, text: str):
        await checkpoint()
        self.committed.append(text)
        self._write(f"[commit] {text}")

    async def end_session(self):
        await checkpoint()
        self._write("[end]")

    async def show_candidates(self):
        await checkpoint()

    async def update_candidates(self, suggestions: list[Candidate]):
        await checkpoint()
        for index, candidate in enumerate(suggestions[:9], start=1):
            suffix = f" +{candidate.subtext}" if candidate.subtext else ""
            self._write(f"  {index}. {candidate.text}{suffix}")

    async def hide_candidates(self):
        await checkpoint()

    async def passthrough(self, event: AnnotatedKeyEvent):
        await checkpoint()
        character = event.character if event.character is not None else HOST_CHARACTERS.get(event.key)
        if character is not None:
            self.committed.append(character)
            self._write(f"[host] {character!r}")
