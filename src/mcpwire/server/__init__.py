"""Server side — capability registry, request router, sessions."""

from mcpwire.server.app import MCPServer
from mcpwire.server.registry import CapabilityKind, CapabilityRegistry
from mcpwire.server.router import RequestContext, RequestRouter
from mcpwire.server.session import ServerSession

__all__ = [
    "CapabilityKind",
    "CapabilityRegistry",
    "MCPServer",
    "RequestContext",
    "RequestRouter",
    "ServerSession",
]
