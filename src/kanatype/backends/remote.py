from __future__ import annotations

import logging
import typing

import grpc
import trio

from ..commontypes import NotInContextError
from ..imetypes import BackendFailure, ComposedText
from ..settings import DEFAULT_REMOTE_HOST, DEFAULT_REMOTE_PORT
from .base import CompositionBackend
from .rpctypes import (
    METHODS,
    AppendTextRequest,
    ClearTextRequest,
    MoveCursorRequest,
    RemoveTextRequest,
    ShrinkTextRequest,
    check_offset,
    from_wire,
    method_path,
)

logger = logging.getLogger(__name__)


def grpc_target(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class RemoteBackend(CompositionBackend):
    """gRPC client for an out-of-process suggestion service.

    Must be used as an async context manager. grpcio's blocking stubs run in a worker
    thread, one call at a time so the service sees requests in the order they were made.
    An abandoned call (timeout or cancellation) is cancelled on the channel; its
    response, if one still arrives, is thrown away.
    """

    channel: typing.Optional[grpc.Channel]

    def __init__(self, target: str, *, timeout: typing.Optional[float] = None):
        self.target = target
        self.timeout = timeout
        self.channel = None
        self.stubs = {}
        self.limiter = trio.CapacityLimiter(1)

    @classmethod
    def connect_tcp(cls, host: str = DEFAULT_REMOTE_HOST, port: int = DEFAULT_REMOTE_PORT, **kwargs):
        return cls(grpc_target(host, port), **kwargs)

    async def __aenter__(self):
        # local service; never route it through an http proxy from the environment
        self.channel = grpc.insecure_channel(self.target, options=[("grpc.enable_http_proxy", 0)])
        for rpc, (request_type, response_type) in METHODS.items():
            self.stubs[rpc] = self.channel.unary_unary(
                method_path(rpc),
                request_serializer=request_type.SerializeToString,
                response_deserializer=response_type.FromString,
            )
        logger.debug("Opened channel to %s", self.target)
        return self

    async def aclose(self):
        channel, self.channel = self.channel, None
        self.stubs = {}
        if channel is not None:
            channel.close()

    async def _call(self, rpc: str, request):
        if self.channel is None:
            raise NotInContextError()
        call = self.stubs[rpc].future(request, timeout=self.timeout)
        try:
            return await trio.to_thread.run_sync(call.result, limiter=self.limiter, abandon_on_cancel=True)
        except grpc.RpcError as exc:
            raise BackendFailure(f"{rpc} failed: {exc.code().name}: {exc.details()}") from exc
        finally:
            if not call.done():
                logger.debug("Cancelling unfinished %s", rpc)
                call.cancel()

    async def _composing_call(self, rpc: str, request) -> ComposedText:
        response = await self._call(rpc, request)
        if not response.HasField("composing_text"):
            raise BackendFailure(f"{rpc} response carried no composing_text")
        return from_wire(response.composing_text)

    async def append(self, unit: str) -> ComposedText:
        return await self._composing_call("AppendText", AppendTextRequest(text_to_append=unit))

    async def remove(self) -> ComposedText:
        return await self._composing_call("RemoveText", RemoveTextRequest())

    async def clear(self) -> None:
        await self._call("ClearText", ClearTextRequest())

    async def move_cursor(self, offset: int) -> ComposedText:
        check_offset(offset)
        return await self._composing_call("MoveCursor", MoveCursorRequest(offset=offset))

    async def shrink(self, offset: int) -> ComposedText:
        check_offset(offset)
        return await self._composing_call("ShrinkText", ShrinkTextRequest(offset=offset))
