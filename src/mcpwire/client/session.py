"""ClientSession — the client end of one connection to an MCP server.

Owns the transport (through a :class:`MessageChannel`) and a
:class:`CallCorrelator`; performs the ``initialize`` handshake and exposes
typed helpers for the standard MCP methods.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from mcpwire.client.correlator import _DEFAULT, CallCorrelator
from mcpwire.config import SessionConfig
from mcpwire.protocol.channel import MessageChannel
from mcpwire.protocol.errors import (
    ConnectionError,
    DecodeError,
    HandshakeError,
    InvalidRequestError,
    MethodNotFoundError,
    ProtocolStateError,
    RemoteError,
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
    PromptDescriptor,
    ResourceDescriptor,
    ToolDescriptor,
    ToolResult,
)
from mcpwire.protocol.state import SessionState, SessionStateMachine

if TYPE_CHECKING:
    from mcpwire.protocol.transport import Transport

logger = logging.getLogger(__name__)


class ClientSession:
    """Async context manager around one client/server conversation.

    Usage::

        async with ClientSession(transport) as session:
            tools = await session.list_tools()
            result = await session.call_tool("get_weather", {"city": "Paris"})
    """

    def __init__(self, transport: Transport, *, config: SessionConfig | None = None) -> None:
        self.channel = MessageChannel(transport)
        self.config = config or SessionConfig()
        self.state = SessionStateMachine("client")
        self.correlator = CallCorrelator(
            self._send_request,
            default_timeout=self.config.request_timeout,
            on_cancel=self._send_cancel,
        )
        self.server_info: Implementation | None = None
        self.server_capabilities: dict[str, Any] = {}
        self.protocol_version: str | None = None
        self.instructions: str | None = None
        self.decode_errors = 0
        self._reader: asyncio.Task[None] | None = None

    async def __aenter__(self) -> ClientSession:
        await self.open()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    # -- lifecycle ----------------------------------------------------------

    async def open(self) -> None:
        """Connect the transport and perform the handshake.

        Raises:
            ConnectionError: The transport could not be opened.
            HandshakeError: The server rejected us or announced an
                incompatible protocol version.
        """
        try:
            await self.channel.transport.connect()
        except Exception as exc:
            self.state.transition(SessionState.CLOSED, reason=exc)
            raise ConnectionError(str(exc)) from exc

        self.state.transition(SessionState.HANDSHAKING)
        self._reader = asyncio.create_task(self._read_loop(), name="mcpwire-client-reader")
        try:
            await self._handshake()
        except asyncio.CancelledError:
            await self._shutdown(None)
            raise
        except Exception as exc:
            await self._shutdown(exc)
            if isinstance(exc, HandshakeError):
                # The reader may have closed first on the server's hang-up.
                self.state.close_reason = exc
            raise

    async def _handshake(self) -> None:
        params = InitializeParams(
            protocol_version=self.config.protocol_version,
            capabilities={},
            client_info=self.config.client_info,
        )
        response = await self.correlator.send("initialize", params.model_dump(by_alias=True))
        if response.error is not None:
            msg = f"Server rejected initialize: {response.error.message}"
            raise HandshakeError(msg)

        try:
            result = InitializeResult.model_validate(response.result or {})
        except ValidationError as exc:
            msg = f"Malformed initialize result: {exc.error_count()} error(s)"
            raise HandshakeError(msg) from exc

        if not self.config.accepts(result.protocol_version):
            msg = f"Server speaks unsupported protocol version {result.protocol_version!r}"
            raise HandshakeError(msg)

        self.server_info = result.server_info
        self.server_capabilities = result.capabilities
        self.protocol_version = result.protocol_version
        self.instructions = result.instructions
        await self.channel.send(JsonRpcNotification(method="notifications/initialized"))
        self.state.transition(SessionState.READY)
        logger.info(
            "Connected to %s %s (protocol %s)",
            result.server_info.name,
            result.server_info.version,
            result.protocol_version,
        )

    async def close(self) -> None:
        """Graceful shutdown: stop issuing requests, drain pending calls, close."""
        if self.state.state in (SessionState.CLOSING, SessionState.CLOSED):
            await self.state.wait_for(SessionState.CLOSED)
            return
        if not self.state.can_transition(SessionState.CLOSING):
            await self._shutdown(None)
            return
        self.state.transition(SessionState.CLOSING)
        await self.correlator.drain(self.config.drain_timeout)
        await self._shutdown(None)

    async def _shutdown(self, reason: BaseException | None) -> None:
        if self.state.is_closed:
            return
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
        self.correlator.fail_all(str(reason) if reason is not None else "Session closed")
        try:
            await self.channel.close()
        except TransportError as exc:
            logger.debug("Error closing transport: %s", exc)
        self.state.transition(SessionState.CLOSED, reason=reason)

    # -- read path ----------------------------------------------------------

    async def _read_loop(self) -> None:
        try:
            while True:
                try:
                    message = await self.channel.receive()
                except DecodeError as exc:
                    await self._on_decode_error(exc)
                    continue

                if isinstance(message, JsonRpcResponse):
                    self.correlator.resolve(message)
                elif isinstance(message, JsonRpcRequest):
                    await self._on_server_request(message)
                else:
                    logger.debug("Server notification %s", message.method)
                if self.state.is_closed:
                    return
        except TransportClosedError:
            reason: BaseException = SessionClosedError("Server closed the transport")
        except TransportError as exc:
            logger.warning("Transport failure: %s", exc)
            reason = SessionClosedError(str(exc))
        except Exception as exc:
            logger.exception("Client reader failed")
            reason = exc
        await self._shutdown(reason)

    async def _on_decode_error(self, exc: DecodeError) -> None:
        self.decode_errors += 1
        if exc.request_id is None:
            logger.warning("Skipping malformed frame (%s): %r", exc.reason, exc.raw[:200])
            return
        logger.warning("Rejecting invalid request %r from server: %s", exc.request_id, exc.reason)
        error = InvalidRequestError(f"Invalid request: {exc.reason}")
        await self._send_quietly(JsonRpcResponse.failure(exc.request_id, error.code, str(error)))

    async def _on_server_request(self, request: JsonRpcRequest) -> None:
        if request.method == "ping":
            await self._send_quietly(JsonRpcResponse.success(request.id, {}))
            return
        if self.state.state is SessionState.HANDSHAKING:
            await self._shutdown(HandshakeError(f"Unexpected request {request.method!r} during handshake"))
            return
        error = MethodNotFoundError(request.method)
        await self._send_quietly(JsonRpcResponse.failure(request.id, error.code, str(error)))

    async def _send_request(self, request: JsonRpcRequest) -> None:
        try:
            await self.channel.send(request)
        except TransportClosedError as exc:
            raise SessionClosedError(str(exc)) from exc

    async def _send_cancel(self, request_id: int | str, reason: str) -> None:
        if self.state.is_closed:
            return
        note = JsonRpcNotification(
            method="notifications/cancelled",
            params={"requestId": request_id, "reason": reason},
        )
        await self._send_quietly(note)

    async def _send_quietly(self, message: JsonRpcResponse | JsonRpcNotification) -> None:
        try:
            await self.channel.send(message)
        except TransportError as exc:
            logger.debug("Dropping outbound message, transport unavailable: %s", exc)

    # -- requests -----------------------------------------------------------

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = _DEFAULT,
    ) -> JsonRpcResponse:
        """Send a request and return the raw correlated response."""
        if not self.state.is_ready:
            msg = f"Cannot send {method!r}: session is {self.state.state.value}"
            raise ProtocolStateError(msg)
        return await self.correlator.send(method, params, timeout=timeout)

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = _DEFAULT,
    ) -> Any:
        """Send a request and return its result, raising on an error response."""
        response = await self.request(method, params, timeout=timeout)
        if response.error is not None:
            raise RemoteError(response.error)
        return response.result

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        if not self.state.is_ready:
            msg = f"Cannot notify {method!r}: session is {self.state.state.value}"
            raise ProtocolStateError(msg)
        await self.channel.send(JsonRpcNotification(method=method, params=params))

    async def ping(self) -> None:
        await self.call("ping")

    async def list_tools(self) -> list[ToolDescriptor]:
        result = await self.call("tools/list")
        return [ToolDescriptor.model_validate(raw) for raw in (result or {}).get("tools", [])]

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        timeout: float | None = _DEFAULT,
    ) -> ToolResult:
        result = await self.call(
            "tools/call",
            {"name": name, "arguments": arguments or {}},
            timeout=timeout,
        )
        return ToolResult.model_validate(result or {})

    async def list_resources(self) -> list[ResourceDescriptor]:
        result = await self.call("resources/list")
        return [ResourceDescriptor.model_validate(raw) for raw in (result or {}).get("resources", [])]

    async def read_resource(self, uri: str) -> str:
        result = await self.call("resources/read", {"uri": uri})
        contents = (result or {}).get("contents", [])
        return "\n".join(str(item.get("text", "")) for item in contents)

    async def list_prompts(self) -> list[PromptDescriptor]:
        result = await self.call("prompts/list")
        return [PromptDescriptor.model_validate(raw) for raw in (result or {}).get("prompts", [])]

    async def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"name": name}
        if arguments:
            params["arguments"] = arguments
        result: dict[str, Any] = await self.call("prompts/get", params)
        return result
