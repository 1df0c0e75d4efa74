"""MCPServer — registers capabilities and serves them over any transport.

One server instance (registry + router) is shared by all of its sessions;
each connected client gets its own :class:`ServerSession` and transport.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from mcpwire.config import SessionConfig
from mcpwire.protocol.errors import (
    DuplicateMethodError,
    InvalidRequestError,
    MethodNotFoundError,
    ToolNotFoundError,
)
from mcpwire.protocol.models import (
    Implementation,
    PromptArgument,
    PromptDescriptor,
    ResourceDescriptor,
    TextContent,
    ToolDescriptor,
    ToolResult,
)
from mcpwire.protocol.transport import StreamTransport
from mcpwire.server.registry import CapabilityKind, CapabilityRegistry, schema_from_function
from mcpwire.server.router import RequestContext, RequestRouter, validate_arguments
from mcpwire.server.session import INITIALIZE, PING, ServerSession

if TYPE_CHECKING:
    from mcpwire.protocol.transport import Transport

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


async def _call(fn: Callable[..., Any], **kwargs: Any) -> Any:
    result = fn(**kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


class MCPServer:
    """A Model Context Protocol server.

    Usage::

        server = MCPServer("weather")

        @server.tool(description="Current weather for a city.")
        async def get_weather(city: str) -> str:
            return "18C sunny"

        await server.serve_stdio()
    """

    def __init__(
        self,
        name: str,
        version: str = "0.1.0",
        *,
        config: SessionConfig | None = None,
        instructions: str | None = None,
    ) -> None:
        self.info = Implementation(name=name, version=version)
        self.config = config or SessionConfig()
        self.instructions = instructions
        self.registry = CapabilityRegistry()
        self.router = RequestRouter(self.registry)
        self.sessions: set[ServerSession] = set()
        self._register_builtins()

    # -- capability decorators ---------------------------------------------

    def tool(
        self,
        name: str | None = None,
        *,
        description: str | None = None,
        input_schema: dict[str, Any] | None = None,
    ) -> Callable[[F], F]:
        """Register a tool.  Its arguments arrive as keyword arguments.

        The tool is reachable through ``tools/call`` and also directly as a
        method of the same name.
        """

        def decorator(fn: F) -> F:
            tool_name = name or fn.__name__
            if tool_name in (INITIALIZE, PING) or self.router.has(tool_name):
                raise DuplicateMethodError(tool_name)
            descriptor = ToolDescriptor(
                name=tool_name,
                description=description if description is not None else inspect.getdoc(fn) or "",
                input_schema=input_schema if input_schema is not None else schema_from_function(fn),
            )
            self.registry.add_tool(descriptor, fn)

            async def direct(params: dict[str, Any], _ctx: RequestContext) -> Any:
                return await _call(fn, **params)

            self.router.register(tool_name, direct)
            return fn

        return decorator

    def resource(
        self,
        uri: str,
        *,
        name: str | None = None,
        description: str = "",
        mime_type: str = "text/plain",
    ) -> Callable[[F], F]:
        """Register a zero-argument reader returning the resource's text."""

        def decorator(fn: F) -> F:
            descriptor = ResourceDescriptor(
                uri=uri,
                name=name or fn.__name__,
                description=description or inspect.getdoc(fn) or "",
                mime_type=mime_type,
            )
            self.registry.add_resource(descriptor, fn)
            return fn

        return decorator

    def prompt(self, name: str | None = None, *, description: str | None = None) -> Callable[[F], F]:
        """Register a prompt renderer; its parameters become prompt arguments."""

        def decorator(fn: F) -> F:
            arguments = [
                PromptArgument(name=p.name, required=p.default is inspect.Parameter.empty)
                for p in inspect.signature(fn).parameters.values()
            ]
            descriptor = PromptDescriptor(
                name=name or fn.__name__,
                description=description if description is not None else inspect.getdoc(fn) or "",
                arguments=arguments,
            )
            self.registry.add_prompt(descriptor, fn)
            return fn

        return decorator

    # -- serving ------------------------------------------------------------

    def create_session(self, transport: Transport) -> ServerSession:
        """Freeze the registry and bind a new session to *transport*."""
        self.registry.freeze()
        session = ServerSession(
            transport,
            self.router,
            config=self.config,
            server_info=self.info,
            instructions=self.instructions,
            on_closed=self.sessions.discard,
        )
        self.sessions.add(session)
        return session

    async def serve(self, transport: Transport) -> ServerSession:
        """Serve one client over *transport* until the session closes."""
        session = self.create_session(transport)
        try:
            await session.run()
        finally:
            self.sessions.discard(session)
        return session

    async def serve_stdio(self) -> None:
        """Serve a single client over this process's stdin/stdout."""
        transport = await StreamTransport.from_stdio(max_frame_bytes=self.config.max_frame_bytes)
        await self.serve(transport)

    async def start_tcp(self, host: str = "127.0.0.1", port: int = 0) -> asyncio.AbstractServer:
        """Listen on TCP; each accepted connection gets its own session."""

        async def on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            peer = writer.get_extra_info("peername")
            logger.info("Client connected from %s", peer)
            transport = StreamTransport(reader, writer, max_frame_bytes=self.config.max_frame_bytes)
            await self.serve(transport)
            logger.info("Client %s disconnected", peer)

        return await asyncio.start_server(on_connect, host, port, limit=self.config.max_frame_bytes)

    async def serve_tcp(self, host: str = "127.0.0.1", port: int = 0) -> None:
        server = await self.start_tcp(host, port)
        addresses = ", ".join(str(sock.getsockname()) for sock in server.sockets)
        logger.info("%s listening on %s", self.info.name, addresses)
        async with server:
            await server.serve_forever()

    async def close(self) -> None:
        """Gracefully close every live session."""
        await asyncio.gather(*(session.close() for session in list(self.sessions)))

    # -- built-in MCP methods ----------------------------------------------

    def _register_builtins(self) -> None:
        self.router.register("tools/list", self._tools_list)
        self.router.register("tools/call", self._tools_call)
        self.router.register("resources/list", self._resources_list)
        self.router.register("resources/read", self._resources_read)
        self.router.register("prompts/list", self._prompts_list)
        self.router.register("prompts/get", self._prompts_get)

    def _tools_list(self, _params: dict[str, Any], _ctx: RequestContext) -> dict[str, Any]:
        return {"tools": [t.model_dump(by_alias=True) for t in self.registry.list_tools()]}

    async def _tools_call(self, params: dict[str, Any], _ctx: RequestContext) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str):
            raise InvalidRequestError("tools/call requires a string 'name'")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise InvalidRequestError("tools/call 'arguments' must be an object")

        try:
            entry = self.registry.entry(CapabilityKind.TOOL, name)
        except ToolNotFoundError:
            raise MethodNotFoundError(name) from None
        validate_arguments(self.registry.get_tool(name), arguments)

        result = await _call(entry.handler, **arguments)
        return _tool_result(result).model_dump(by_alias=True)

    def _resources_list(self, _params: dict[str, Any], _ctx: RequestContext) -> dict[str, Any]:
        return {"resources": [r.model_dump(by_alias=True) for r in self.registry.list_resources()]}

    async def _resources_read(self, params: dict[str, Any], _ctx: RequestContext) -> dict[str, Any]:
        uri = params.get("uri")
        if not isinstance(uri, str):
            raise InvalidRequestError("resources/read requires a string 'uri'")
        entry = self.registry.entry(CapabilityKind.RESOURCE, uri)
        descriptor = self.registry.get_resource(uri)
        text = await _call(entry.handler)
        return {"contents": [{"uri": uri, "mimeType": descriptor.mime_type, "text": str(text)}]}

    def _prompts_list(self, _params: dict[str, Any], _ctx: RequestContext) -> dict[str, Any]:
        return {"prompts": [p.model_dump() for p in self.registry.list_prompts()]}

    async def _prompts_get(self, params: dict[str, Any], _ctx: RequestContext) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str):
            raise InvalidRequestError("prompts/get requires a string 'name'")
        entry = self.registry.entry(CapabilityKind.PROMPT, name)
        descriptor = self.registry.get_prompt(name)
        arguments = params.get("arguments") or {}
        missing = [a.name for a in descriptor.arguments if a.required and a.name not in arguments]
        if missing:
            raise InvalidRequestError(f"Missing prompt argument(s): {', '.join(missing)}")
        text = await _call(entry.handler, **arguments)
        return {
            "description": descriptor.description,
            "messages": [{"role": "user", "content": {"type": "text", "text": str(text)}}],
        }


def _tool_result(value: Any) -> ToolResult:
    if isinstance(value, ToolResult):
        return value
    if isinstance(value, str):
        return ToolResult.from_text(value)
    return ToolResult(content=[TextContent(text=json.dumps(value, default=str))])
