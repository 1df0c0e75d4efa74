"""ToolProvider protocol — what an agent needs from a connected server.

:class:`~mcpwire.client.client.MCPClient` satisfies this protocol so that an
:class:`~mcpwire.agent.Agent` can discover and run tools without knowing
which transport carries them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mcpwire.protocol.models import ToolResult


@runtime_checkable
class ToolProvider(Protocol):
    """Discovers and executes tools exposed by an external service."""

    async def discover_tools(self) -> list[dict[str, Any]]:
        """Return tools as OpenAI-compatible function schemas.

        Each dict follows the shape::

            {
                "type": "function",
                "function": {
                    "name": "...",
                    "description": "...",
                    "parameters": { ... }   # JSON Schema
                }
            }
        """
        ...

    async def execute_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by name and return its result."""
        ...
