"""ServerSession — serves one client connection.

Owns the transport (through a :class:`MessageChannel`), answers the
``initialize`` handshake, and dispatches every request received while
``READY`` to the shared :class:`RequestRouter` as an independent task.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable
from uuid import uuid4

from pydantic import ValidationError

from mcpwire.config import SessionConfig
from mcpwire.protocol.channel import MessageChannel
from mcpwire.protocol.errors import (
    DecodeError,
    HandshakeError,
    InvalidRequestError,
    ProtocolStateError,
    SessionClosedError,
    TransportClosedError,
    TransportError,
)
from mcpwire.protocol.models import (
    Implementation,
    InitializeParams,
    InitializeResult,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
)
from mcpwire.protocol.state import SessionState, SessionStateMachine
from mcpwire.server.router import RequestContext

if TYPE_CHECKING:
    from mcpwire.protocol.transport import Transport
    from mcpwire.server.router import RequestRouter

logger = logging.getLogger(__name__)

INITIALIZE = "initialize"
PING = "ping"
INITIALIZED = "notifications/initialized"
CANCELLED = "notifications/cancelled"


class ServerSession:
    """One client's conversation with a server.

    Usage::

        session = ServerSession(transport, router, server_info=Implementation(name="demo"))
        await session.run()   # returns once the session is CLOSED
    """

    def __init__(
        self,
        transport: Transport,
        router: RequestRouter,
        *,
        config: SessionConfig | None = None,
        server_info: Implementation | None = None,
        instructions: str | None = None,
        on_closed: Callable[[ServerSession], None] | None = None,
    ) -> None:
        self.channel = MessageChannel(transport)
        self.router = router
        self.config = config or SessionConfig()
        self.server_info = server_info or self.config.server_info
        self.instructions = instructions
        self.state = SessionStateMachine("server")
        self.session_id = uuid4().hex
        self.client_info: Implementation | None = None
        self.protocol_version: str | None = None
        self.decode_errors = 0
        self._initialize_answered = False
        self._in_flight: dict[int | str, asyncio.Task[None]] = {}
        self._reader: asyncio.Task[None] | None = None
        self._on_closed = on_closed

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    # -- lifecycle ----------------------------------------------------------

    async def run(self) -> None:
        """Start serving and return once the session has closed."""
        await self.start()
        await self.wait_closed()

    async def start(self) -> None:
        """Open the transport and begin reading in a background task."""
        await self.channel.transport.connect()
        self.state.transition(SessionState.HANDSHAKING)
        self._reader = asyncio.create_task(self._read_loop(), name=f"mcpwire-server-{self.session_id[:8]}")

    async def wait_closed(self) -> None:
        await self.state.wait_for(SessionState.CLOSED)

    async def close(self) -> None:
        """Graceful shutdown: refuse new requests, drain in-flight ones, close."""
        if self.state.state in (SessionState.CLOSING, SessionState.CLOSED):
            await self.wait_closed()
            return
        if not self.state.can_transition(SessionState.CLOSING):
            await self._shutdown(None)
            return

        self.state.transition(SessionState.CLOSING)
        if self._in_flight:
            _, pending = await asyncio.wait(
                list(self._in_flight.values()), timeout=self.config.drain_timeout
            )
            if pending:
                logger.warning("Cancelling %d request(s) still running after drain", len(pending))
        await self._shutdown(None)

    async def _shutdown(self, reason: BaseException | None) -> None:
        if self.state.is_closed:
            return
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
        for task in list(self._in_flight.values()):
            task.cancel()
        try:
            await self.channel.close()
        except TransportError as exc:
            logger.debug("Error closing transport: %s", exc)
        self.state.transition(SessionState.CLOSED, reason=reason)
        if reason is not None:
            logger.info("Server session %s closed: %s", self.session_id[:8], reason)
        else:
            logger.debug("Server session %s closed", self.session_id[:8])
        if self._on_closed is not None:
            self._on_closed(self)

    # -- read path ----------------------------------------------------------

    async def _read_loop(self) -> None:
        try:
            while True:
                try:
                    message = await self.channel.receive()
                except DecodeError as exc:
                    await self._on_decode_error(exc)
                    continue
                await self._handle(message)
                if self.state.is_closed:
                    return
        except TransportClosedError:
            reason: BaseException = SessionClosedError("Client closed the transport")
        except TransportError as exc:
            logger.warning("Transport failure: %s", exc)
            reason = SessionClosedError(str(exc))
        except Exception as exc:
            logger.exception("Server session %s reader failed", self.session_id[:8])
            reason = exc
        await self._shutdown(reason)

    async def _on_decode_error(self, exc: DecodeError) -> None:
        self.decode_errors += 1
        if exc.request_id is None:
            logger.warning("Skipping malformed frame (%s): %r", exc.reason, exc.raw[:200])
            return
        logger.warning("Rejecting invalid request %r: %s", exc.request_id, exc.reason)
        error = InvalidRequestError(f"Invalid request: {exc.reason}")
        await self._send(JsonRpcResponse.failure(exc.request_id, error.code, str(error)))

    async def _handle(self, message: Message) -> None:
        state = self.state.state
        if isinstance(message, JsonRpcRequest):
            await self._on_request(message, state)
        elif isinstance(message, JsonRpcNotification):
            await self._on_notification(message, state)
        else:
            await self._on_response(message, state)

    async def _on_request(self, request: JsonRpcRequest, state: SessionState) -> None:
        if request.method == PING:
            await self._send(JsonRpcResponse.success(request.id, {}))
            return

        if state is SessionState.HANDSHAKING:
            if request.method == INITIALIZE and not self._initialize_answered:
                await self._on_initialize(request)
                return
            error = HandshakeError(f"Expected 'initialize', got {request.method!r} during handshake")
            await self._reject(request, ProtocolStateError(str(error)))
            await self._shutdown(error)
            return

        if state is not SessionState.READY:
            await self._reject(request, ProtocolStateError(f"Session is {state.value}"))
            return

        if request.method == INITIALIZE:
            await self._reject(request, ProtocolStateError("Session is already initialized"))
            return
        if request.id in self._in_flight:
            await self._reject(request, InvalidRequestError(f"Request id {request.id!r} is already in flight"))
            return
        self._spawn_dispatch(request)

    async def _on_notification(self, note: JsonRpcNotification, state: SessionState) -> None:
        if note.method == INITIALIZED:
            if state is SessionState.HANDSHAKING and self._initialize_answered:
                self.state.transition(SessionState.READY)
                logger.info(
                    "Session %s ready (client=%s, protocol=%s)",
                    self.session_id[:8],
                    self.client_info.name if self.client_info else "?",
                    self.protocol_version,
                )
            elif state is SessionState.HANDSHAKING:
                await self._shutdown(HandshakeError("'initialized' arrived before 'initialize'"))
            return

        if state is SessionState.HANDSHAKING:
            await self._shutdown(HandshakeError(f"Unexpected notification {note.method!r} during handshake"))
            return

        if note.method == CANCELLED:
            request_id = (note.params or {}).get("requestId")
            if isinstance(request_id, bool) or not isinstance(request_id, (int, str)):
                logger.warning("Ignoring cancellation with invalid requestId %r", request_id)
                return
            task = self._in_flight.get(request_id)
            if task is not None:
                logger.debug("Client cancelled request %s", request_id)
                task.cancel()
            return

        logger.debug("Ignoring notification %s", note.method)

    async def _on_response(self, response: JsonRpcResponse, state: SessionState) -> None:
        if state is SessionState.HANDSHAKING:
            await self._shutdown(HandshakeError("Unexpected response during handshake"))
            return
        logger.warning("Discarding response %s: server session has no outstanding requests", response.id)

    async def _on_initialize(self, request: JsonRpcRequest) -> None:
        try:
            params = InitializeParams.model_validate(request.params or {})
        except ValidationError as exc:
            error = HandshakeError(f"Invalid initialize params: {exc.error_count()} error(s)")
            await self._reject(request, error)
            await self._shutdown(error)
            return

        if not self.config.accepts(params.protocol_version):
            error = HandshakeError(
                f"Unsupported protocol version {params.protocol_version!r}; "
                f"supported: {', '.join(self.config.supported_versions)}"
            )
            await self._send(
                JsonRpcResponse.failure(
                    request.id,
                    error.code,
                    str(error),
                    {"requested": params.protocol_version, "supported": self.config.supported_versions},
                )
            )
            await self._shutdown(error)
            return

        self.client_info = params.client_info
        self.protocol_version = params.protocol_version
        result = InitializeResult(
            protocol_version=params.protocol_version,
            capabilities=self.router.registry.capabilities(),
            server_info=self.server_info,
            instructions=self.instructions,
        )
        self._initialize_answered = True
        await self._send(
            JsonRpcResponse.success(request.id, result.model_dump(by_alias=True, exclude_none=True))
        )

    # -- dispatch -----------------------------------------------------------

    def _spawn_dispatch(self, request: JsonRpcRequest) -> None:
        task = asyncio.create_task(self._dispatch(request))
        self._in_flight[request.id] = task
        task.add_done_callback(lambda _t, rid=request.id: self._in_flight.pop(rid, None))

    async def _dispatch(self, request: JsonRpcRequest) -> None:
        context = RequestContext(request_id=request.id, method=request.method, session=self)
        try:
            response = await self.router.dispatch(request, context)
        except asyncio.CancelledError:
            logger.debug("Request %s (%s) cancelled", request.id, request.method)
            raise
        await self._send(response)

    async def _reject(self, request: JsonRpcRequest, error: Any) -> None:
        await self._send(JsonRpcResponse.failure(request.id, error.code, str(error)))

    async def _send(self, message: Message) -> None:
        try:
            await self.channel.send(message)
        except TransportError as exc:
            logger.debug("Dropping outbound message, transport unavailable: %s", exc)
