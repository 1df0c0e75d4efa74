"""Fixtures for end-to-end tests over in-memory transports."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from mcpwire.client.session import ClientSession
from mcpwire.protocol.transport import MemoryTransport, memory_transport_pair
from mcpwire.server.app import MCPServer
from mcpwire.server.session import ServerSession

from tests.e2e._helpers import Gate, RawPeer, build_weather_server


@pytest.fixture
def gate() -> Gate:
    return Gate()


@pytest.fixture
def server(gate: Gate) -> MCPServer:
    return build_weather_server(gate)


@pytest.fixture
async def served(server: MCPServer) -> AsyncIterator[tuple[MemoryTransport, ServerSession]]:
    """A started server session and the client end of its transport."""
    client_end, server_end = memory_transport_pair()
    session = server.create_session(server_end)
    await session.start()
    yield client_end, session
    await session.close()


@pytest.fixture
async def raw(served: tuple[MemoryTransport, ServerSession]) -> RawPeer:
    return RawPeer(served[0])


@pytest.fixture
async def client(
    served: tuple[MemoryTransport, ServerSession],
) -> AsyncIterator[ClientSession]:
    session = ClientSession(served[0])
    await session.open()
    yield session
    await session.close()
