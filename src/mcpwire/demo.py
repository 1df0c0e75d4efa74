"""The demo server bundled with ``mcpwire serve``."""

from __future__ import annotations

from mcpwire.server.app import MCPServer

_FORECASTS = {
    "paris": "18C sunny",
    "london": "14C light rain",
    "tokyo": "22C cloudy",
}


def build_demo_server() -> MCPServer:
    server = MCPServer(
        "mcpwire-demo",
        instructions="Ask get_weather for a city's forecast; echo repeats its input.",
    )

    @server.tool(description="Current weather for a city.")
    def get_weather(city: str) -> str:
        return _FORECASTS.get(city.lower(), "no data")

    @server.tool(description="Echo the given text back.")
    async def echo(text: str) -> str:
        return text

    @server.resource("demo://readme", name="readme", description="What this server offers.")
    def readme() -> str:
        return "mcpwire demo server: tools get_weather and echo, prompt summarize."

    @server.prompt(description="Ask for a short summary of a text.")
    def summarize(text: str, style: str = "bullet points") -> str:
        return f"Summarise the following as {style}:\n\n{text}"

    return server
