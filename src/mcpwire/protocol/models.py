"""Protocol models — JSON-RPC 2.0 messages and MCP payloads.

Implements the message format used by the Model Context Protocol for the
handshake (``initialize``), discovery (``tools/list``, ``resources/list``,
``prompts/list``) and execution (``tools/call``).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

JSONRPC_VERSION = "2.0"

# ---------------------------------------------------------------------------
# Error descriptor
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    """Symbolic name for a JSON-RPC error code."""

    PARSE_ERROR = "ParseError"
    INVALID_REQUEST = "InvalidRequest"
    METHOD_NOT_FOUND = "MethodNotFound"
    SCHEMA_VALIDATION = "SchemaValidationError"
    HANDLER_ERROR = "HandlerError"
    HANDSHAKE_ERROR = "HandshakeError"
    PROTOCOL_STATE = "ProtocolStateError"
    NOT_FOUND = "NotFound"
    REQUEST_CANCELLED = "RequestCancelled"
    UNKNOWN = "Unknown"


_KIND_BY_CODE: dict[int, ErrorKind] = {
    -32700: ErrorKind.PARSE_ERROR,
    -32600: ErrorKind.INVALID_REQUEST,
    -32601: ErrorKind.METHOD_NOT_FOUND,
    -32602: ErrorKind.SCHEMA_VALIDATION,
    -32603: ErrorKind.HANDLER_ERROR,
    -32001: ErrorKind.HANDSHAKE_ERROR,
    -32002: ErrorKind.NOT_FOUND,
    -32003: ErrorKind.PROTOCOL_STATE,
    -32800: ErrorKind.REQUEST_CANCELLED,
}


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None

    @property
    def kind(self) -> ErrorKind:
        return _KIND_BY_CODE.get(self.code, ErrorKind.UNKNOWN)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            wire["data"] = self.data
        return wire


# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request message."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int | str
    method: str
    params: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id, "method": self.method}
        if self.params is not None:
            wire["params"] = self.params
        return wire


class JsonRpcNotification(BaseModel):
    """A JSON-RPC 2.0 notification: a request without an id, never answered."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    params: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"jsonrpc": self.jsonrpc, "method": self.method}
        if self.params is not None:
            wire["params"] = self.params
        return wire


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response message.

    Carries either ``result`` (which may legitimately be ``None``) or
    ``error``, never both.
    """

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int | str
    result: Any = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _result_xor_error(self) -> JsonRpcResponse:
        if self.error is not None and self.result is not None:
            msg = "a response carries either 'result' or 'error', not both"
            raise ValueError(msg)
        return self

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, request_id: int | str, result: Any) -> JsonRpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls,
        request_id: int | str,
        code: int,
        message: str,
        data: Any = None,
    ) -> JsonRpcResponse:
        return cls(id=request_id, error=JsonRpcError(code=code, message=message, data=data))

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            wire["error"] = self.error.to_wire()
        else:
            wire["result"] = self.result
        return wire


Message = Union[JsonRpcRequest, JsonRpcResponse, JsonRpcNotification]


# ---------------------------------------------------------------------------
# MCP-specific payloads
# ---------------------------------------------------------------------------


class Implementation(BaseModel):
    """Name and version of a client or server implementation."""

    name: str
    version: str = "0.0.0"


class InitializeParams(BaseModel):
    """Parameters of the ``initialize`` request."""

    model_config = {"populate_by_name": True}

    protocol_version: str = Field(alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=dict)
    client_info: Implementation = Field(alias="clientInfo")


class InitializeResult(BaseModel):
    """Result of the ``initialize`` request."""

    model_config = {"populate_by_name": True}

    protocol_version: str = Field(alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=dict)
    server_info: Implementation = Field(alias="serverInfo")
    instructions: str | None = None


class ToolDescriptor(BaseModel):
    """A tool definition as returned by ``tools/list``."""

    model_config = {"populate_by_name": True}

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        alias="inputSchema",
    )


class ResourceDescriptor(BaseModel):
    """A readable resource as returned by ``resources/list``."""

    model_config = {"populate_by_name": True}

    uri: str
    name: str
    description: str = ""
    mime_type: str = Field(default="text/plain", alias="mimeType")


class PromptArgument(BaseModel):
    name: str
    description: str = ""
    required: bool = False


class PromptDescriptor(BaseModel):
    """A prompt template as returned by ``prompts/list``."""

    name: str
    description: str = ""
    arguments: list[PromptArgument] = Field(default_factory=list)


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """The result of a ``tools/call`` request."""

    model_config = {"populate_by_name": True}

    content: list[TextContent] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def from_text(cls, text: str, *, is_error: bool = False) -> ToolResult:
        """Create a ToolResult with a single text content part."""
        return cls(content=[TextContent(text=text)], is_error=is_error)

    @property
    def text(self) -> str:
        return "\n".join(part.text for part in self.content)


class ToolCall(BaseModel):
    """A tool invocation requested by an agent's language model."""

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
