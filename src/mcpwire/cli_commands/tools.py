"""``mcpwire tools`` — discover and call tools on MCP servers."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import click

from mcpwire.cli_commands._output import console, print_tool_result, print_tools_table

if TYPE_CHECKING:
    from mcpwire.config import ServerRef, SessionConfig

_transport_option = click.option(
    "--transport",
    type=click.Choice(["stdio", "tcp", "websocket"]),
    default="stdio",
    help="MCP server transport type.",
)
_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Settings YAML; SERVER is then a server name from that file.",
)


def _resolve(server: str, transport: str, config_path: str | None) -> tuple[ServerRef, SessionConfig]:
    from mcpwire.config import ServerRef, SessionConfig, load_settings

    if config_path is not None:
        settings = load_settings(config_path)
        return settings.server(server), settings.session

    if transport == "stdio":
        ref = ServerRef(name="cli", transport="stdio", command=server)
    elif transport == "tcp":
        host, _, port = server.rpartition(":")
        ref = ServerRef(name="cli", transport="tcp", host=host or "127.0.0.1", port=int(port))
    else:
        ref = ServerRef(name="cli", transport="websocket", url=server)
    return ref, SessionConfig()


@click.group()
def tools() -> None:
    """Discover and call tools."""


@tools.command("discover")
@click.argument("server")
@_transport_option
@_config_option
def discover(server: str, transport: str, config_path: str | None) -> None:
    """Discover tools from an MCP server.

    SERVER is the command (stdio), HOST:PORT (tcp) or URL (websocket) of the
    MCP server, or a server name when --config is given.
    """
    from mcpwire.client.client import MCPClient

    async def _discover() -> list[dict[str, Any]]:
        ref, session_config = _resolve(server, transport, config_path)
        async with MCPClient(ref, config=session_config) as client:
            return await client.discover_tools()

    try:
        tool_schemas = asyncio.run(_discover())
    except Exception as exc:
        console.print(f"[red]Discovery error:[/red] {exc}")
        return

    if not tool_schemas:
        console.print("[yellow]No tools discovered.[/yellow]")
        return

    print_tools_table(tool_schemas)


@tools.command("call")
@click.argument("server")
@click.argument("tool")
@click.option("--args", "raw_args", default="{}", help="Tool arguments as a JSON object.")
@_transport_option
@_config_option
def call(server: str, tool: str, raw_args: str, transport: str, config_path: str | None) -> None:
    """Call TOOL on an MCP server and print its result."""
    from mcpwire.client.client import MCPClient

    try:
        arguments = json.loads(raw_args)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc.msg}", param_hint="--args") from exc
    if not isinstance(arguments, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--args")

    async def _call() -> Any:
        ref, session_config = _resolve(server, transport, config_path)
        async with MCPClient(ref, config=session_config) as client:
            await client.discover_tools()
            return await client.execute_tool(tool, arguments)

    try:
        result = asyncio.run(_call())
    except Exception as exc:
        console.print(f"[red]Call error:[/red] {exc}")
        return

    print_tool_result(tool, result)
