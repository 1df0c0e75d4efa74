"""Protocol layer — messages, codec, transports and session states."""

from mcpwire.protocol.channel import MessageChannel
from mcpwire.protocol.codec import decode, encode
from mcpwire.protocol.errors import (
    CallTimeoutError,
    DecodeError,
    HandshakeError,
    ProtocolError,
    ProtocolStateError,
    SessionClosedError,
    TransportClosedError,
)
from mcpwire.protocol.models import (
    ErrorKind,
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
    ToolDescriptor,
    ToolResult,
)
from mcpwire.protocol.state import SessionState, SessionStateMachine
from mcpwire.protocol.transport import (
    MemoryTransport,
    StdioTransport,
    StreamTransport,
    TcpTransport,
    Transport,
    WebSocketTransport,
    memory_transport_pair,
)

__all__ = [
    "CallTimeoutError",
    "DecodeError",
    "ErrorKind",
    "HandshakeError",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "MemoryTransport",
    "Message",
    "MessageChannel",
    "ProtocolError",
    "ProtocolStateError",
    "SessionClosedError",
    "SessionState",
    "SessionStateMachine",
    "StdioTransport",
    "StreamTransport",
    "TcpTransport",
    "ToolDescriptor",
    "ToolResult",
    "Transport",
    "TransportClosedError",
    "WebSocketTransport",
    "decode",
    "encode",
    "memory_transport_pair",
]
