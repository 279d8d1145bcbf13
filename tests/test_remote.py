import importlib.resources
import re

import pytest
import trio

from kanatype.backends.local import LocalBackend
from kanatype.backends.remote import RemoteBackend, grpc_target
from kanatype.backends.rpctypes import (
    FILE_DESCRIPTOR,
    METHODS,
    AppendTextRequest,
    AppendTextResponse,
    ComposingText,
    MoveCursorRequest,
    RemoveTextRequest,
    Suggestion,
    from_wire,
    method_path,
    to_wire,
)
from kanatype.commontypes import NotInContextError
from kanatype.imetypes import BackendFailure, Candidate, ComposedText
from kanatype.server import SuggestionService

from fakes import FakeBackend

HTTP2_PREFACE = b"PRI * HTTP/2.0\r\n\r\nSM\r\n\r\n"


class CursorBackend(FakeBackend):
    async def move_cursor(self, offset):
        await self._enter("move_cursor", offset)
        return self._composed()

    async def shrink(self, offset):
        await self._enter("shrink", offset)
        return self._composed()


class ForgetfulService(SuggestionService):
    """Answers every call with an empty response message."""

    async def respond(self, rpc, request):
        await trio.lowlevel.checkpoint()
        return METHODS[rpc][1]()


async def start_service(nursery, backend, service_type=SuggestionService) -> RemoteBackend:
    port = await nursery.start(service_type(backend).serve, "127.0.0.1", 0)
    return RemoteBackend.connect_tcp("127.0.0.1", port, timeout=5)


def test_messages_match_the_wire_format():
    assert AppendTextRequest(text_to_append="k").SerializeToString() == b"\x0a\x01k"
    assert RemoveTextRequest().SerializeToString() == b""
    # negative int32 is a ten byte varint
    assert MoveCursorRequest(offset=-1).SerializeToString() == b"\x08" + b"\xff" * 9 + b"\x01"
    response = AppendTextResponse(
        composing_text=ComposingText(spell="か", suggestions=[Suggestion(text="蚊", corresponding_count=2)])
    )
    assert AppendTextResponse.FromString(response.SerializeToString()) == response
    assert method_path("AppendText") == "/azookey.AzookeyService/AppendText"


def test_proto_file_matches_descriptors():
    text = (importlib.resources.files("kanatype.backends") / "azookey.proto").read_text()
    assert "package azookey;" in text
    declared = {name: body for name, body in re.findall(r"message (\w+) \{(.*?)\}", text, re.S)}
    assert set(declared) == {message.name for message in FILE_DESCRIPTOR.message_type}
    for message in FILE_DESCRIPTOR.message_type:
        fields = {(name, int(number)) for name, number in re.findall(r"(\w+) = (\d+);", declared[message.name])}
        assert fields == {(field.name, field.number) for field in message.field}
    for method in FILE_DESCRIPTOR.service[0].method:
        assert f"rpc {method.name}({method.name}Request) returns ({method.name}Response);" in text


def test_composing_text_conversion():
    composed = ComposedText(spell="かな", suggestions=[Candidate(text="仮名", subtext="かな", corresponding_count=4)])
    wire = to_wire(composed)
    assert wire.suggestions[0].subtext == "かな"
    assert from_wire(wire) == composed


def test_targets():
    assert grpc_target("::1", 50051) == "[::1]:50051"
    assert grpc_target("localhost", 50051) == "localhost:50051"


async def test_round_trip_through_service(nursery):
    async with await start_service(nursery, LocalBackend({"かな": ["仮名"]})) as backend:
        for c in "kan":
            composed = await backend.append(c)
        assert composed.spell == "かn"
        composed = await backend.append("a")
        assert composed.spell == "かな"
        assert composed.suggestions[0] == Candidate(text="仮名", corresponding_count=4)

        composed = await backend.remove()
        assert composed.spell == "か"

        await backend.clear()
        composed = await backend.append("i")
        assert composed.spell == "い"


async def test_cursor_calls_cross_the_wire(nursery):
    fake = CursorBackend()
    async with await start_service(nursery, fake) as backend:
        await backend.append("ab")
        composed = await backend.move_cursor(-128)
        assert composed.spell == "ab"
        composed = await backend.shrink(-3)
        # shrinking never reports a spell
        assert composed.spell == ""
        assert composed.suggestions == [Candidate(text="AB", corresponding_count=2)]
    assert fake.calls[1:] == [("move_cursor", -128), ("shrink", -3)]


async def test_offsets_must_fit_in_a_byte(nursery):
    fake = CursorBackend()
    async with await start_service(nursery, fake) as backend:
        with pytest.raises(ValueError):
            await backend.move_cursor(200)
        with pytest.raises(ValueError):
            await backend.shrink(-129)
    assert fake.calls == []


async def test_service_errors_become_backend_failures(nursery):
    fake = FakeBackend()
    async with await start_service(nursery, fake) as backend:
        fake.fail_on.add("append")
        with pytest.raises(BackendFailure, match="INTERNAL: append exploded"):
            await backend.append("a")
        # the channel is still good
        fake.fail_on.clear()
        composed = await backend.append("b")
        assert composed.spell == "b"


async def test_unsupported_operation(nursery):
    async with await start_service(nursery, LocalBackend()) as backend:
        with pytest.raises(BackendFailure, match="UNIMPLEMENTED"):
            await backend.move_cursor(1)


async def test_missing_composing_text(nursery):
    async with await start_service(nursery, FakeBackend(), ForgetfulService) as backend:
        with pytest.raises(BackendFailure, match="no composing_text"):
            await backend.append("a")
        # clearing has nothing to carry
        await backend.clear()


async def test_must_be_entered():
    backend = RemoteBackend.connect_tcp("127.0.0.1", 1)
    with pytest.raises(NotInContextError):
        await backend.append("a")


async def test_unreachable_service():
    with trio.socket.socket() as sock:
        # bound but never listening, so connections are refused
        await sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
        async with RemoteBackend.connect_tcp("127.0.0.1", port, timeout=5) as backend:
            with pytest.raises(BackendFailure, match="UNAVAILABLE"):
                await backend.append("a")


async def test_speaks_http2(nursery):
    listeners = await trio.open_tcp_listeners(0, host="127.0.0.1")
    port = listeners[0].socket.getsockname()[1]
    received = []

    async def accept_one():
        async with listeners[0]:
            stream = await listeners[0].accept()
            async with stream:
                data = b""
                while len(data) < len(HTTP2_PREFACE):
                    chunk = await stream.receive_some()
                    if not chunk:
                        break
                    data += chunk
                received.append(data[: len(HTTP2_PREFACE)])

    nursery.start_soon(accept_one)
    async with RemoteBackend.connect_tcp("127.0.0.1", port, timeout=2) as backend:
        with pytest.raises(BackendFailure):
            await backend.append("a")
    assert received == [HTTP2_PREFACE]


async def test_slow_service_times_out(nursery):
    fake = FakeBackend()
    gate = fake.gates["append"] = trio.Event()
    port = await nursery.start(SuggestionService(fake).serve, "127.0.0.1", 0)
    async with RemoteBackend.connect_tcp("127.0.0.1", port, timeout=0.5) as backend:
        with pytest.raises(BackendFailure, match="DEADLINE_EXCEEDED"):
            await backend.append("a")
        gate.set()
        del fake.gates["append"]
        composed = await backend.append("b")
        # the late append still reached the service
        assert composed.spell == "ab"


async def test_cancelled_call_is_cancelled_on_the_channel(nursery):
    fake = FakeBackend()
    gate = fake.gates["append"] = trio.Event()
    async with await start_service(nursery, fake) as backend:
        with trio.move_on_after(0.2) as scope:
            await backend.append("a")
        assert scope.cancelled_caught
        gate.set()
        del fake.gates["append"]
        await backend.clear()
        composed = await backend.append("z")
        assert composed.spell == "z"
