"""MessageChannel — pairs the codec with a transport.

Writes are serialised with a lock so concurrently finishing handlers never
interleave frames on the wire.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from mcpwire.protocol.codec import decode, encode

if TYPE_CHECKING:
    from mcpwire.protocol.models import Message
    from mcpwire.protocol.transport import Transport


class MessageChannel:
    """Typed message I/O over a byte :class:`Transport`."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport
        self._write_lock = asyncio.Lock()

    async def send(self, message: Message) -> None:
        frame = encode(message)
        async with self._write_lock:
            await self.transport.send(frame)

    async def receive(self) -> Message:
        """Read and decode the next message.

        Raises:
            DecodeError: The frame was malformed; the caller may keep reading.
            TransportClosedError: The stream ended.
        """
        frame = await self.transport.receive()
        return decode(frame)

    async def close(self) -> None:
        await self.transport.close()
