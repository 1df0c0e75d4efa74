"""Tests for MCPServer capability decorators and built-in methods."""

from typing import Any

import pytest

from mcpwire.protocol.errors import DuplicateCapabilityError, DuplicateMethodError, RegistryFrozenError
from mcpwire.protocol.models import ErrorKind, JsonRpcRequest
from mcpwire.protocol.transport import memory_transport_pair
from mcpwire.server.app import MCPServer


@pytest.fixture
def server() -> MCPServer:
    srv = MCPServer("test-server", "1.2.3")

    @srv.tool(description="Current weather for a city.")
    def get_weather(city: str) -> str:
        return f"{city}: 18C sunny"

    @srv.tool()
    async def add(a: int, b: int) -> dict[str, int]:
        """Add two integers."""
        return {"sum": a + b}

    @srv.tool()
    def explode() -> str:
        raise RuntimeError("tool blew up")

    @srv.resource("demo://readme", description="Read me.")
    def readme() -> str:
        return "hello"

    @srv.prompt()
    def greet(name: str, tone: str = "warm") -> str:
        """Greeting prompt."""
        return f"Greet {name} in a {tone} tone."

    return srv


async def _call(server: MCPServer, method: str, params: dict[str, Any] | None = None) -> Any:
    return await server.router.dispatch(JsonRpcRequest(id=1, method=method, params=params))


class TestDecorators:
    def test_tool_schema_from_signature(self, server: MCPServer) -> None:
        tool = server.registry.get_tool("get_weather")
        assert tool.description == "Current weather for a city."
        assert tool.input_schema["required"] == ["city"]

    def test_docstring_becomes_description(self, server: MCPServer) -> None:
        assert server.registry.get_tool("add").description == "Add two integers."

    def test_tool_routed_directly(self, server: MCPServer) -> None:
        assert server.router.has("get_weather")
        assert "tools/call" in server.router.methods

    def test_prompt_arguments(self, server: MCPServer) -> None:
        prompt = server.registry.get_prompt("greet")
        assert [(a.name, a.required) for a in prompt.arguments] == [("name", True), ("tone", False)]

    def test_duplicate_tool(self, server: MCPServer) -> None:
        with pytest.raises(DuplicateMethodError):

            @server.tool(name="get_weather")
            def other(city: str) -> str:
                return city

    def test_tool_cannot_shadow_builtin(self, server: MCPServer) -> None:
        for reserved in ("initialize", "ping", "tools/list"):
            with pytest.raises(DuplicateMethodError):
                server.tool(name=reserved)(lambda: "")

    def test_duplicate_resource(self, server: MCPServer) -> None:
        with pytest.raises(DuplicateCapabilityError):
            server.resource("demo://readme")(lambda: "again")

    def test_registry_frozen_after_session_created(self, server: MCPServer) -> None:
        _, server_end = memory_transport_pair()
        server.create_session(server_end)
        with pytest.raises(RegistryFrozenError):

            @server.tool()
            def late() -> str:
                return ""

    async def test_closed_session_leaves_server(self, server: MCPServer) -> None:
        client_end, server_end = memory_transport_pair()
        session = server.create_session(server_end)
        await session.start()
        assert server.sessions == {session}

        await client_end.close()
        await session.wait_closed()
        assert server.sessions == set()


class TestBuiltins:
    async def test_tools_list(self, server: MCPServer) -> None:
        response = await _call(server, "tools/list")
        names = [t["name"] for t in response.result["tools"]]
        assert names == ["get_weather", "add", "explode"]
        assert "inputSchema" in response.result["tools"][0]

    async def test_tools_call_text_result(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"name": "get_weather", "arguments": {"city": "Paris"}})
        assert response.result == {
            "content": [{"type": "text", "text": "Paris: 18C sunny"}],
            "isError": False,
        }

    async def test_tools_call_structured_result(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"name": "add", "arguments": {"a": 2, "b": 3}})
        assert response.result["content"][0]["text"] == '{"sum": 5}'

    async def test_tools_call_unknown_tool(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"name": "nope", "arguments": {}})
        assert response.error.kind is ErrorKind.METHOD_NOT_FOUND

    async def test_tools_call_bad_arguments(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"name": "add", "arguments": {"a": "x", "b": 1}})
        assert response.error.kind is ErrorKind.SCHEMA_VALIDATION

    async def test_tools_call_requires_name(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"arguments": {}})
        assert response.error.kind is ErrorKind.INVALID_REQUEST

    async def test_tools_call_handler_crash(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"name": "explode"})
        assert response.error.kind is ErrorKind.HANDLER_ERROR
        assert "tool blew up" in response.error.message

    async def test_direct_tool_call(self, server: MCPServer) -> None:
        response = await _call(server, "get_weather", {"city": "Oslo"})
        assert response.result == "Oslo: 18C sunny"

    async def test_resources(self, server: MCPServer) -> None:
        listed = await _call(server, "resources/list")
        assert listed.result["resources"][0]["uri"] == "demo://readme"
        assert listed.result["resources"][0]["mimeType"] == "text/plain"

        read = await _call(server, "resources/read", {"uri": "demo://readme"})
        assert read.result["contents"] == [{"uri": "demo://readme", "mimeType": "text/plain", "text": "hello"}]

    async def test_unknown_resource(self, server: MCPServer) -> None:
        response = await _call(server, "resources/read", {"uri": "demo://missing"})
        assert response.error.kind is ErrorKind.NOT_FOUND

    async def test_prompts(self, server: MCPServer) -> None:
        listed = await _call(server, "prompts/list")
        assert listed.result["prompts"][0]["name"] == "greet"

        got = await _call(server, "prompts/get", {"name": "greet", "arguments": {"name": "Ada"}})
        assert got.result["messages"][0]["content"]["text"] == "Greet Ada in a warm tone."

    async def test_prompt_missing_argument(self, server: MCPServer) -> None:
        response = await _call(server, "prompts/get", {"name": "greet"})
        assert response.error.kind is ErrorKind.INVALID_REQUEST
        assert "name" in response.error.message
