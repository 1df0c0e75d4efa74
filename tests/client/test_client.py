"""Tests for MCPClient with a fake server transport."""

from typing import Any
from unittest.mock import patch

import pytest

from mcpwire.agent import Agent, Observation
from mcpwire.client.client import MCPClient
from mcpwire.client.provider import ToolProvider
from mcpwire.config import ServerRef
from mcpwire.protocol.errors import HandshakeError, ToolExecutionError, ToolNotFoundError
from mcpwire.protocol.models import ToolCall
from mcpwire.protocol.transport import StdioTransport, TcpTransport, WebSocketTransport

from tests.client._fakes import FakeServerTransport, initialize_ok


def _ref(**kwargs: Any) -> ServerRef:
    return ServerRef(name="test", command="echo test", **kwargs)


class TestMCPClientConnect:
    async def test_connect_performs_handshake(self, fake_server: FakeServerTransport) -> None:
        with patch.object(MCPClient, "_create_transport", return_value=fake_server):
            client = MCPClient(_ref())
            await client.connect()

            assert fake_server.connected
            assert client.session is not None
            assert client.session.state.is_ready
            await client.close()
            assert client.session is None

    async def test_context_manager(self, fake_server: FakeServerTransport) -> None:
        with patch.object(MCPClient, "_create_transport", return_value=fake_server):
            async with MCPClient(_ref()) as client:
                assert client.session is not None
        assert fake_server.closed

    async def test_handshake_failure_propagates(self) -> None:
        transport = FakeServerTransport({"initialize": initialize_ok("0.0.1")})
        with patch.object(MCPClient, "_create_transport", return_value=transport):
            with pytest.raises(HandshakeError):
                await MCPClient(_ref()).connect()

    def test_satisfies_tool_provider(self) -> None:
        assert isinstance(MCPClient(_ref()), ToolProvider)


class TestMCPClientDiscovery:
    async def test_discover_tools(self, fake_server: FakeServerTransport) -> None:
        with patch.object(MCPClient, "_create_transport", return_value=fake_server):
            async with MCPClient(_ref()) as client:
                tools = await client.discover_tools()

        assert len(tools) == 1
        assert tools[0]["type"] == "function"
        assert tools[0]["function"]["name"] == "get_weather"
        assert tools[0]["function"]["parameters"]["required"] == ["city"]

    async def test_discover_without_connect(self) -> None:
        with pytest.raises(RuntimeError, match="not connected"):
            await MCPClient(_ref()).discover_tools()


class TestMCPClientExecution:
    async def test_execute_tool(self, fake_server: FakeServerTransport) -> None:
        with patch.object(MCPClient, "_create_transport", return_value=fake_server):
            async with MCPClient(_ref()) as client:
                await client.discover_tools()
                result = await client.execute_tool("get_weather", {"city": "Paris"})

        assert result.text == "Paris: 18C sunny"
        call = next(m for m in fake_server.sent if m.get("method") == "tools/call")
        assert call["params"] == {"name": "get_weather", "arguments": {"city": "Paris"}}

    async def test_execute_unknown_tool(self, fake_server: FakeServerTransport) -> None:
        with patch.object(MCPClient, "_create_transport", return_value=fake_server):
            async with MCPClient(_ref()) as client:
                await client.discover_tools()
                with pytest.raises(ToolNotFoundError, match="nonexistent"):
                    await client.execute_tool("nonexistent", {})

    async def test_execute_error_result(self, fake_server: FakeServerTransport) -> None:
        fake_server.replies["tools/call"] = lambda _p: {
            "result": {"content": [{"type": "text", "text": "city unknown"}], "isError": True}
        }
        with patch.object(MCPClient, "_create_transport", return_value=fake_server):
            async with MCPClient(_ref()) as client:
                await client.discover_tools()
                with pytest.raises(ToolExecutionError, match="city unknown"):
                    await client.execute_tool("get_weather", {"city": "Atlantis"})

    async def test_execute_error_response(self, fake_server: FakeServerTransport) -> None:
        fake_server.replies["tools/call"] = lambda _p: {
            "error": {"code": -32602, "message": "Invalid arguments for get_weather"}
        }
        with patch.object(MCPClient, "_create_transport", return_value=fake_server):
            async with MCPClient(_ref()) as client:
                await client.discover_tools()
                with pytest.raises(ToolExecutionError, match="Invalid arguments"):
                    await client.execute_tool("get_weather", {})


class TestMCPClientTransport:
    def test_stdio(self) -> None:
        transport = MCPClient(_ref(env={"A": "1"}))._create_transport()
        assert isinstance(transport, StdioTransport)

    def test_stdio_requires_command(self) -> None:
        with pytest.raises(ValueError, match="command"):
            MCPClient(ServerRef(name="x"))._create_transport()

    def test_tcp(self) -> None:
        ref = ServerRef(name="x", transport="tcp", host="10.0.0.5", port=8765)
        assert isinstance(MCPClient(ref)._create_transport(), TcpTransport)

    def test_tcp_requires_port(self) -> None:
        with pytest.raises(ValueError, match="port"):
            MCPClient(ServerRef(name="x", transport="tcp"))._create_transport()

    def test_websocket(self) -> None:
        ref = ServerRef(name="x", transport="websocket", url="ws://localhost:8080")
        assert isinstance(MCPClient(ref)._create_transport(), WebSocketTransport)

    def test_websocket_requires_url(self) -> None:
        with pytest.raises(ValueError, match="url"):
            MCPClient(ServerRef(name="x", transport="websocket"))._create_transport()


class OneShotModel:
    """Calls get_weather once, then answers with what it saw."""

    async def decide(self, goal: str, tools: list[dict[str, Any]], observations: list[Observation]) -> ToolCall | str:
        if not observations:
            return ToolCall(name="get_weather", arguments={"city": "Paris"})
        return f"Answer: {observations[-1].output}"


class TestMCPClientAgent:
    async def test_run_agent(self, fake_server: FakeServerTransport) -> None:
        with patch.object(MCPClient, "_create_transport", return_value=fake_server):
            async with MCPClient(_ref(), agent=Agent(OneShotModel())) as client:
                run = await client.run_agent("weather in Paris?")

        assert run.answer == "Answer: Paris: 18C sunny"
        assert run.steps == 2

    async def test_run_agent_without_agent(self) -> None:
        with pytest.raises(RuntimeError, match="no agent"):
            await MCPClient(_ref()).run_agent("anything")
