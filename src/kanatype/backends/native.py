"""Conversion through a native engine library, loaded with cffi in ABI mode.

Every pointer the engine hands back is owned by this module: strings are copied into
Python and the engine's buffers are released with the C library's free() before anything
else happens. Nothing outside this module ever sees a cdata object.
"""

from __future__ import annotations

import logging
import pathlib
import typing

import cffi
import trio

from ..imetypes import BackendFailure, Candidate, ComposedText
from .base import CompositionBackend

logger = logging.getLogger(__name__)

CDEF = """
typedef struct {
    char *text;
    char *subtext;
    int corresponding_count;
} FFICandidate;

void Initialize(const char *path);
char *AppendText(const char *input, int *cursorPtr);
char *RemoveText(int *cursorPtr);
char *MoveCursor(int offset, int *cursorPtr);
void ClearText(void);
FFICandidate **GetComposedText(int *lengthPtr);
void ShrinkText(int offset);

void free(void *ptr);
"""


def make_ffi() -> cffi.FFI:
    ffi = cffi.FFI()
    ffi.cdef(CDEF)
    return ffi


def _copy_and_free(ffi: cffi.FFI, ptr, free) -> typing.Optional[bytes]:
    if ptr == ffi.NULL:
        return None
    with ffi.gc(ptr, free) as owned:
        return ffi.string(owned)


def _decode(raw: typing.Optional[bytes], what: str) -> str:
    if raw is None:
        raise BackendFailure(f"Native engine returned NULL for {what}")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise BackendFailure(f"Native engine returned invalid UTF-8 for {what}") from exc


def take_string(ffi: cffi.FFI, ptr, free, what: str) -> str:
    return _decode(_copy_and_free(ffi, ptr, free), what)


def read_candidates(ffi: cffi.FFI, array, length: int, free) -> list[Candidate]:
    """Copy a FFICandidate** of the given length into Candidates, freeing all of it.

    Every entry is freed even when an earlier one turns out to be bad; the first problem
    found is raised once everything has been released.
    """
    if array == ffi.NULL:
        if length > 0:
            raise BackendFailure(f"Native engine reported {length} candidates but returned NULL")
        return []
    with ffi.gc(array, free) as owned_array:
        if length < 0:
            raise BackendFailure(f"Native engine reported a negative candidate count ({length})")
        raw_entries = []
        for entry in ffi.unpack(owned_array, length):
            if entry == ffi.NULL:
                raw_entries.append(None)
                continue
            with ffi.gc(entry, free) as owned:
                raw_entries.append(
                    (
                        _copy_and_free(ffi, owned.text, free),
                        _copy_and_free(ffi, owned.subtext, free),
                        owned.corresponding_count,
                    )
                )

    candidates = []
    for index, raw in enumerate(raw_entries):
        if raw is None:
            raise BackendFailure(f"Native engine returned a NULL candidate at index {index}")
        text, subtext, count = raw
        candidates.append(
            Candidate(
                text=_decode(text, f"candidate {index} text"),
                subtext=_decode(subtext, f"candidate {index} subtext"),
                corresponding_count=count,
            )
        )
    return candidates


class NativeBackend(CompositionBackend):
    # The engine keeps its composition in process-global state, so calls go through a
    # worker thread one at a time.

    def __init__(self, library_path: pathlib.Path, resources_path: typing.Optional[pathlib.Path] = None):
        self.ffi = make_ffi()
        try:
            self.lib = self.ffi.dlopen(str(library_path))
        except OSError as exc:
            raise BackendFailure(f"Could not load native engine {library_path}: {exc}") from exc
        self.libc = self.ffi.dlopen(None)
        self.limiter = trio.CapacityLimiter(1)
        if resources_path is None:
            resources_path = pathlib.Path(library_path).parent
        self.lib.Initialize(str(resources_path).encode("utf-8"))
        logger.info("Loaded native engine %s (resources in %s)", library_path, resources_path)

    async def _run(self, fn, *args):
        return await trio.to_thread.run_sync(fn, *args, limiter=self.limiter)

    def _take(self, ptr, what: str) -> str:
        return take_string(self.ffi, ptr, self.libc.free, what)

    def _suggestions(self) -> list[Candidate]:
        with self.ffi.new("int *") as length:
            array = self.lib.GetComposedText(length)
            return read_candidates(self.ffi, array, length[0], self.libc.free)

    def _append(self, unit: str) -> ComposedText:
        with self.ffi.new("int *") as cursor:
            spell = self._take(self.lib.AppendText(unit.encode("utf-8"), cursor), "AppendText")
            logger.debug("AppendText %r -> %r, cursor %d", unit, spell, cursor[0])
        return ComposedText(spell=spell, suggestions=self._suggestions())

    def _remove(self) -> ComposedText:
        with self.ffi.new("int *") as cursor:
            spell = self._take(self.lib.RemoveText(cursor), "RemoveText")
        return ComposedText(spell=spell, suggestions=self._suggestions())

    def _move_cursor(self, offset: int) -> ComposedText:
        with self.ffi.new("int *") as cursor:
            spell = self._take(self.lib.MoveCursor(offset, cursor), "MoveCursor")
        return ComposedText(spell=spell, suggestions=self._suggestions())

    def _shrink(self, offset: int) -> ComposedText:
        self.lib.ShrinkText(offset)
        # the engine does not report the spell after shrinking
        return ComposedText(spell="", suggestions=self._suggestions())

    async def append(self, unit: str) -> ComposedText:
        return await self._run(self._append, unit)

    async def remove(self) -> ComposedText:
        return await self._run(self._remove)

    async def clear(self) -> None:
        await self._run(self.lib.ClearText)

    async def move_cursor(self, offset: int) -> ComposedText:
        return await self._run(self._move_cursor, offset)

    async def shrink(self, offset: int) -> ComposedText:
        return await self._run(self._shrink, offset)
