import abc

from ..imetypes import ComposedText


class CompositionBackend(metaclass=abc.ABCMeta):
    """Turns appended and removed input units into composed text plus suggestions.

    Realizations raise BackendFailure for anything that goes wrong on their side
    (transport, malformed responses, engine errors). The controller only ever sees
    ComposedText.
    """

    @abc.abstractmethod
    async def append(self, unit: str) -> ComposedText: ...

    @abc.abstractmethod
    async def remove(self) -> ComposedText: ...

    @abc.abstractmethod
    async def clear(self) -> None: ...

    # Cursor-aware operations. The controller does not use these yet; MoveCursor is a
    # no-op until it does.
    async def move_cursor(self, offset: int) -> ComposedText:
        raise NotImplementedError()

    async def shrink(self, offset: int) -> ComposedText:
        raise NotImplementedError()

    async def aclose(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.aclose()
