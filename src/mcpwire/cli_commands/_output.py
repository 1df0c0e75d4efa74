"""Shared CLI output formatters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from mcpwire.protocol.models import ToolResult

console = Console()


def print_tools_table(tools: list[dict[str, Any]]) -> None:
    """Pretty-print a list of tool schemas as a table."""
    table = Table(title="Discovered Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Parameters")

    for tool in tools:
        func = tool.get("function", {})
        params = func.get("parameters", {}).get("properties", {})
        table.add_row(
            func.get("name", "?"),
            _truncate(func.get("description", "")),
            ", ".join(params) or "-",
        )

    console.print(table)


def print_tool_result(name: str, result: ToolResult) -> None:
    """Print the text content of a tool result."""
    style = "red" if result.is_error else "green"
    console.print(f"[{style}]{name}[/{style}]")
    console.print(result.text or "(empty result)")


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
