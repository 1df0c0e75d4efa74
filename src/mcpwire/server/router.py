"""RequestRouter — dispatches requests to handlers by method name.

Every request produces exactly one response carrying the request's id:
missing methods, schema violations and handler crashes all become error
responses instead of exceptions.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

import jsonschema
from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from mcpwire.protocol.errors import (
    DuplicateMethodError,
    HandlerError,
    HandshakeError,
    MethodNotFoundError,
    ProtocolStateError,
    RequestError,
    SchemaValidationError,
)
from mcpwire.protocol.models import JsonRpcResponse
from mcpwire.server.registry import CapabilityKind, CapabilityRegistry
from mcpwire.utils.telemetry import (
    ATTR_ERROR_KIND,
    ATTR_METHOD,
    ATTR_REQUEST_ID,
    ATTR_SESSION_ROLE,
    ATTR_TOOL_NAME,
    get_tracer,
)

if TYPE_CHECKING:
    from mcpwire.protocol.models import JsonRpcRequest, ToolDescriptor

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

Handler = Callable[[dict[str, Any], "RequestContext"], Any]

# Errors whose class carries a JSON-RPC code and are reported as-is.
_CODED_ERRORS = (RequestError, HandshakeError, ProtocolStateError)


@dataclass
class RequestContext:
    """Per-request information handed to every handler."""

    request_id: int | str
    method: str
    session: Any = None
    meta: dict[str, Any] = field(default_factory=dict)


def validate_arguments(descriptor: ToolDescriptor, arguments: dict[str, Any]) -> None:
    """Check *arguments* against the tool's input schema.

    Raises:
        SchemaValidationError: If the arguments do not satisfy the schema.
    """
    try:
        jsonschema.validate(arguments, descriptor.input_schema)
    except jsonschema.ValidationError as exc:
        raise SchemaValidationError(
            f"Invalid arguments for {descriptor.name}: {exc.message}",
            data={"path": list(exc.absolute_path)},
        ) from exc
    except jsonschema.SchemaError as exc:
        raise HandlerError(f"Tool {descriptor.name} has an invalid input schema") from exc


class RequestRouter:
    """Method-name → handler table shared by every session of a server.

    Handlers are sync or async callables ``handler(params, context)``.  When
    the method name is also a registered tool, params are validated against
    that tool's input schema before the handler runs.
    """

    def __init__(self, registry: CapabilityRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CapabilityRegistry()
        self._handlers: dict[str, Handler] = {}

    def register(self, method: str, handler: Handler) -> None:
        """Add *handler* for *method*; the first registration wins."""
        if method in self._handlers:
            raise DuplicateMethodError(method)
        self._handlers[method] = handler

    def has(self, method: str) -> bool:
        return method in self._handlers

    @property
    def methods(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(
        self,
        request: JsonRpcRequest,
        context: RequestContext | None = None,
    ) -> JsonRpcResponse:
        """Run the handler for *request* and wrap the outcome in a response."""
        ctx = context or RequestContext(request_id=request.id, method=request.method)
        with _tracer.start_as_current_span("mcpwire.router.dispatch") as span:
            span.set_attribute(ATTR_SESSION_ROLE, "server")
            span.set_attribute(ATTR_METHOD, request.method)
            span.set_attribute(ATTR_REQUEST_ID, str(request.id))
            tool_name = self._tool_name(request)
            if tool_name is not None:
                span.set_attribute(ATTR_TOOL_NAME, tool_name)
            try:
                result = await self._invoke(request, ctx)
            except _CODED_ERRORS as exc:
                span.set_attribute(ATTR_ERROR_KIND, exc.kind)
                logger.info("Request %s (%s) failed: %s", request.id, request.method, exc)
                return JsonRpcResponse.failure(
                    request.id, exc.code, str(exc), getattr(exc, "data", None)
                )
            except Exception as exc:
                span.set_attribute(ATTR_ERROR_KIND, HandlerError.kind)
                logger.exception("Handler for %s raised", request.method)
                return JsonRpcResponse.failure(
                    request.id,
                    HandlerError.code,
                    f"{type(exc).__name__}: {exc}",
                )
            return JsonRpcResponse.success(request.id, result)

    def _tool_name(self, request: JsonRpcRequest) -> str | None:
        if request.method == "tools/call":
            name = (request.params or {}).get("name")
            return name if isinstance(name, str) else None
        if self.registry.has(CapabilityKind.TOOL, request.method):
            return request.method
        return None

    async def _invoke(self, request: JsonRpcRequest, ctx: RequestContext) -> Any:
        handler = self._handlers.get(request.method)
        if handler is None:
            raise MethodNotFoundError(request.method)

        params = request.params or {}
        if self.registry.has(CapabilityKind.TOOL, request.method):
            validate_arguments(self.registry.get_tool(request.method), params)

        result = handler(params, ctx)
        if inspect.isawaitable(result):
            result = await result
        return _to_jsonable(result)


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json", exclude_none=True)
    return to_jsonable_python(value, by_alias=True)
