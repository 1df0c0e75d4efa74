"""Shared error types for the protocol layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from mcpwire.protocol.models import JsonRpcError


class ProtocolError(Exception):
    """Base error for all protocol-layer failures."""


# ---------------------------------------------------------------------------
# Transport / framing
# ---------------------------------------------------------------------------


class TransportError(ProtocolError):
    """The underlying byte stream failed or is not usable."""


class TransportClosedError(TransportError):
    """The peer closed the stream (end of file)."""

    def __init__(self, detail: str = "Transport closed") -> None:
        super().__init__(detail)


class ConnectionError(ProtocolError):
    """Failed to connect to an external service."""


class DecodeError(ProtocolError):
    """A frame could not be decoded into a message.

    Recoverable: the session skips the frame and keeps reading.  When the
    frame was meant as a request and its id is readable, ``request_id``
    holds it so the receiver can still answer.
    """

    def __init__(self, raw: bytes, reason: str, request_id: int | str | None = None) -> None:
        self.raw = raw
        self.reason = reason
        self.request_id = request_id
        super().__init__(f"Malformed frame: {reason}")


# ---------------------------------------------------------------------------
# Registration time
# ---------------------------------------------------------------------------


class DuplicateMethodError(ProtocolError):
    """A router method name was registered twice."""

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"Method already registered: {method}")


class DuplicateCapabilityError(ProtocolError):
    """A (kind, name) pair already exists in the capability registry."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"Duplicate {kind}: {name}")


class RegistryFrozenError(ProtocolError):
    """Capabilities cannot be added once a session is serving."""


# ---------------------------------------------------------------------------
# Request scoped, converted into error responses by the router
# ---------------------------------------------------------------------------


class RequestError(ProtocolError):
    """Base for failures reported back to the caller as an error response."""

    kind: ClassVar[str] = "HandlerError"
    code: ClassVar[int] = -32603

    def __init__(self, message: str, data: Any = None) -> None:
        self.message = message
        self.data = data
        super().__init__(message)


class InvalidRequestError(RequestError):
    kind = "InvalidRequest"
    code = -32600


class MethodNotFoundError(RequestError):
    kind = "MethodNotFound"
    code = -32601

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"Method not found: {method}")


class SchemaValidationError(RequestError):
    """Parameters do not satisfy the tool's input schema."""

    kind = "SchemaValidationError"
    code = -32602


class HandlerError(RequestError):
    """A handler raised while processing a request."""

    kind = "HandlerError"
    code = -32603


class CapabilityNotFoundError(RequestError):
    """No tool, resource or prompt with that name is registered."""

    kind = "NotFound"
    code = -32002

    def __init__(self, kind: str, name: str) -> None:
        self.capability_kind = kind
        self.name = name
        super().__init__(f"{kind.capitalize()} not found: {name}")


# ---------------------------------------------------------------------------
# Caller scoped
# ---------------------------------------------------------------------------


class CallTimeoutError(ProtocolError, TimeoutError):
    """No response arrived within the per-call timeout."""

    def __init__(self, method: str, request_id: int | str, timeout: float) -> None:
        self.method = method
        self.request_id = request_id
        self.timeout = timeout
        super().__init__(f"Request {request_id} ({method}) timed out after {timeout}s")


class SessionClosedError(ProtocolError):
    """The session closed before a response arrived."""

    def __init__(self, detail: str = "Session closed") -> None:
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Session scoped
# ---------------------------------------------------------------------------


class HandshakeError(ProtocolError):
    """Version negotiation failed or the peer broke the handshake sequence."""

    kind: ClassVar[str] = "HandshakeError"
    code: ClassVar[int] = -32001


class ProtocolStateError(ProtocolError):
    """A message arrived (or was sent) in a state that does not accept it."""

    kind: ClassVar[str] = "ProtocolStateError"
    code: ClassVar[int] = -32003


# ---------------------------------------------------------------------------
# Client-side views of remote failures
# ---------------------------------------------------------------------------


class RemoteError(ProtocolError):
    """The peer answered a request with an error response."""

    def __init__(self, error: JsonRpcError) -> None:
        self.error = error
        super().__init__(f"{error.kind.value}: {error.message}")

    @property
    def kind(self) -> str:
        return self.error.kind.value


class ToolNotFoundError(CapabilityNotFoundError):
    """Requested tool does not exist in the provider's registry."""

    def __init__(self, name: str) -> None:
        super().__init__("tool", name)


class ToolExecutionError(ProtocolError):
    """A tool invocation failed at the provider side."""

    def __init__(self, name: str, detail: str = "") -> None:
        self.name = name
        self.detail = detail
        super().__init__(f"Tool execution failed: {name}" + (f": {detail}" if detail else ""))


class ConfigError(Exception):
    """Raised when a settings file fails parsing or validation."""
