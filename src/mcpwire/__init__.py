"""mcpwire — Model Context Protocol client/server substrate."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from mcpwire.client.client import MCPClient as MCPClient
    from mcpwire.client.session import ClientSession as ClientSession
    from mcpwire.server.app import MCPServer as MCPServer

_EXPORTS = {
    "MCPClient": "mcpwire.client.client",
    "ClientSession": "mcpwire.client.session",
    "MCPServer": "mcpwire.server.app",
}


def __getattr__(name: str) -> object:
    module_path = _EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'mcpwire' has no attribute {name!r}")
