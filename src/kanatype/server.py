from __future__ import annotations

import concurrent.futures
import logging
import typing

import grpc
import trio

from .backends.remote import grpc_target
from .backends.rpctypes import (
    METHODS,
    SERVICE_NAME,
    AppendTextResponse,
    ClearTextResponse,
    MoveCursorResponse,
    RemoveTextResponse,
    ShrinkTextResponse,
    to_wire,
)
from .imetypes import BackendFailure

if typing.TYPE_CHECKING:
    from .backends.base import CompositionBackend

logger = logging.getLogger(__name__)


class SuggestionService:
    """Serves a CompositionBackend as an AzookeyService over gRPC.

    grpcio runs handlers on its own thread pool; each one hops back into the trio run
    that called serve(). The backend holds a single composition, so every client shares
    it and requests are handled one at a time across all of them.
    """

    def __init__(self, backend: CompositionBackend, *, max_workers: int = 4):
        self.backend = backend
        self.max_workers = max_workers
        self.lock = trio.Lock()
        self.trio_token: typing.Optional[trio.lowlevel.TrioToken] = None

    async def respond(self, rpc: str, request):
        async with self.lock:
            try:
                match rpc:
                    case "AppendText":
                        composed = await self.backend.append(request.text_to_append)
                        return AppendTextResponse(composing_text=to_wire(composed))
                    case "RemoveText":
                        composed = await self.backend.remove()
                        return RemoveTextResponse(composing_text=to_wire(composed))
                    case "MoveCursor":
                        composed = await self.backend.move_cursor(request.offset)
                        return MoveCursorResponse(composing_text=to_wire(composed))
                    case "ClearText":
                        await self.backend.clear()
                        return ClearTextResponse()
                    case "ShrinkText":
                        composing_text = to_wire(await self.backend.shrink(request.offset))
                        # shrinking never reports a spell
                        composing_text.spell = ""
                        return ShrinkTextResponse(composing_text=composing_text)
            except BackendFailure:
                logger.warning("%s failed", rpc, exc_info=True)
                raise
            except NotImplementedError:
                logger.warning("%s is not supported by %s", rpc, type(self.backend).__name__)
                raise
        raise ValueError(f"Unknown rpc {rpc!r}")

    def _handler(self, rpc: str):
        # runs on a grpc worker thread
        def handle(request, context: grpc.ServicerContext):
            try:
                return trio.from_thread.run(self.respond, rpc, request, trio_token=self.trio_token)
            except BackendFailure as exc:
                context.abort(grpc.StatusCode.INTERNAL, str(exc))
            except NotImplementedError:
                context.abort(grpc.StatusCode.UNIMPLEMENTED, f"{rpc} is not supported")

        return handle

    def generic_handler(self) -> grpc.GenericRpcHandler:
        return grpc.method_handlers_generic_handler(
            SERVICE_NAME,
            {
                rpc: grpc.unary_unary_rpc_method_handler(
                    self._handler(rpc),
                    request_deserializer=request_type.FromString,
                    response_serializer=response_type.SerializeToString,
                )
                for rpc, (request_type, response_type) in METHODS.items()
            },
        )

    async def serve(self, host: str, port: int, *, task_status=trio.TASK_STATUS_IGNORED):
        self.trio_token = trio.lowlevel.current_trio_token()
        server = grpc.server(
            concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers),
            handlers=[self.generic_handler()],
        )
        address = grpc_target(host, port)
        try:
            bound_port = server.add_insecure_port(address)
        except RuntimeError as exc:
            raise OSError(f"Could not listen on {address}: {exc}") from exc
        if bound_port == 0:
            # older grpcio reports failure this way instead of raising
            raise OSError(f"Could not listen on {address}")
        server.start()
        logger.info("Serving suggestions on %s", grpc_target(host, bound_port))
        try:
            task_status.started(bound_port)
            await trio.sleep_forever()
        finally:
            stopped = server.stop(None)
            with trio.CancelScope(shield=True):
                await trio.to_thread.run_sync(stopped.wait)
            logger.info("Suggestion service stopped")


async def serve_backend(backend: CompositionBackend, host: str, port: int):
    async with backend:
        service = SuggestionService(backend)
        await service.serve(host, port)
