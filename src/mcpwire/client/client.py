"""MCPClient — connects to an MCP server and exposes its tools.

Builds the transport described by a :class:`ServerRef`, opens a
:class:`ClientSession` over it, and offers tool discovery and execution in
the shape agents consume.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcpwire.client.session import ClientSession
from mcpwire.config import SessionConfig
from mcpwire.protocol.errors import RemoteError, ToolExecutionError, ToolNotFoundError
from mcpwire.protocol.transport import StdioTransport, TcpTransport, Transport, WebSocketTransport

if TYPE_CHECKING:
    from mcpwire.agent import Agent, AgentRun
    from mcpwire.config import ServerRef
    from mcpwire.protocol.models import ToolDescriptor, ToolResult


class MCPClient:
    """Async context manager that connects to an MCP server.

    Satisfies the :class:`~mcpwire.client.provider.ToolProvider` protocol.

    Usage::

        ref = ServerRef(name="weather", command="mcpwire serve")
        async with MCPClient(ref) as client:
            tools = await client.discover_tools()
            result = await client.execute_tool("get_weather", {"city": "Paris"})
    """

    def __init__(
        self,
        server_ref: ServerRef,
        *,
        config: SessionConfig | None = None,
        agent: Agent | None = None,
    ) -> None:
        self._ref = server_ref
        self.config = config or SessionConfig()
        self.agent = agent
        self.session: ClientSession | None = None
        self._tools: dict[str, ToolDescriptor] = {}

    async def __aenter__(self) -> MCPClient:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def connect(self) -> None:
        """Create the transport, connect, and perform the initialize handshake."""
        session = ClientSession(self._create_transport(), config=self.config)
        await session.open()
        self.session = session

    async def close(self) -> None:
        """Close the session and its transport."""
        if self.session is not None:
            await self.session.close()
            self.session = None

    async def discover_tools(self) -> list[dict[str, Any]]:
        """Send ``tools/list`` and convert results to OpenAI function schemas."""
        descriptors = await self._require_session().list_tools()
        self._tools = {d.name: d for d in descriptors}
        return [self._to_function_schema(d) for d in descriptors]

    async def execute_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Send ``tools/call`` for the named tool."""
        if name not in self._tools:
            raise ToolNotFoundError(name)

        try:
            result = await self._require_session().call_tool(name, arguments)
        except RemoteError as exc:
            raise ToolExecutionError(name, exc.error.message) from exc

        if result.is_error:
            raise ToolExecutionError(name, result.text)
        return result

    async def run_agent(self, goal: str) -> AgentRun:
        """Hand *goal* to the owned agent, which uses this client's tools."""
        if self.agent is None:
            msg = "MCPClient has no agent attached"
            raise RuntimeError(msg)
        return await self.agent.run(goal, self)

    def _require_session(self) -> ClientSession:
        if self.session is None:
            msg = "Client not connected"
            raise RuntimeError(msg)
        return self.session

    def _create_transport(self) -> Transport:
        """Build the appropriate transport from the server reference."""
        max_frame = self.config.max_frame_bytes
        if self._ref.transport == "stdio":
            if not self._ref.command:
                msg = "ServerRef with stdio transport must specify 'command'"
                raise ValueError(msg)
            env = dict(self._ref.env) if self._ref.env else None
            return StdioTransport(command=self._ref.command, env=env, max_frame_bytes=max_frame)
        if self._ref.transport == "tcp":
            if self._ref.port is None:
                msg = "ServerRef with tcp transport must specify 'port'"
                raise ValueError(msg)
            return TcpTransport(self._ref.host, self._ref.port, max_frame_bytes=max_frame)
        if not self._ref.url:
            msg = "ServerRef with websocket transport must specify 'url'"
            raise ValueError(msg)
        return WebSocketTransport(url=self._ref.url)

    @staticmethod
    def _to_function_schema(tool_def: ToolDescriptor) -> dict[str, Any]:
        """Convert a ToolDescriptor to an OpenAI-compatible function schema."""
        return {
            "type": "function",
            "function": {
                "name": tool_def.name,
                "description": tool_def.description,
                "parameters": tool_def.input_schema or {"type": "object", "properties": {}},
            },
        }
