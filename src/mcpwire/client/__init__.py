"""Client side — call correlation, sessions and the tool-provider host."""

from mcpwire.client.client import MCPClient
from mcpwire.client.correlator import CallCorrelator, PendingCall
from mcpwire.client.provider import ToolProvider
from mcpwire.client.session import ClientSession

__all__ = [
    "CallCorrelator",
    "ClientSession",
    "MCPClient",
    "PendingCall",
    "ToolProvider",
]
