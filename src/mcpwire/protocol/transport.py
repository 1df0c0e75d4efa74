"""Transports — stdio, stream/TCP, websocket and in-memory byte channels.

Each transport satisfies the :class:`Transport` protocol, providing
``connect``, ``send``, ``receive``, and ``close`` methods.  Frames are
newline-delimited: ``send`` terminates a frame with ``\\n`` and ``receive``
returns one complete line.
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
from typing import Any, Protocol, runtime_checkable

from mcpwire.protocol.errors import DecodeError, TransportClosedError, TransportError

DEFAULT_MAX_FRAME_BYTES = 4 * 1024 * 1024


@runtime_checkable
class Transport(Protocol):
    """Abstract byte-stream transport carrying one message per frame."""

    async def connect(self) -> None: ...
    async def send(self, frame: bytes) -> None: ...
    async def receive(self) -> bytes: ...
    async def close(self) -> None: ...


def _terminate(frame: bytes) -> bytes:
    return frame if frame.endswith(b"\n") else frame + b"\n"


async def _read_frame(reader: asyncio.StreamReader, max_frame_bytes: int) -> bytes:
    """Read one newline-terminated frame from *reader*."""
    try:
        line = await reader.readline()
    except ValueError as exc:
        # readline() drops the overlong data before raising.
        raise DecodeError(b"", f"frame exceeds {max_frame_bytes} bytes") from exc
    if not line:
        raise TransportClosedError()
    return line


class StdioTransport:
    """Communicates with an MCP server via subprocess stdin/stdout."""

    def __init__(
        self,
        command: str,
        env: dict[str, str] | None = None,
        *,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
    ) -> None:
        self._command = command
        self._env = env
        self._max_frame_bytes = max_frame_bytes
        self._process: asyncio.subprocess.Process | None = None

    async def connect(self) -> None:
        """Launch the subprocess."""
        import shlex

        parts = shlex.split(self._command)
        self._process = await asyncio.create_subprocess_exec(
            *parts,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=None,
            env=self._env,
            limit=self._max_frame_bytes,
        )

    async def send(self, frame: bytes) -> None:
        """Write a frame to the child's stdin."""
        if self._process is None or self._process.stdin is None:
            msg = "Transport not connected"
            raise TransportError(msg)
        try:
            self._process.stdin.write(_terminate(frame))
            await self._process.stdin.drain()
        except ConnectionError as exc:
            raise TransportClosedError(str(exc)) from exc

    async def receive(self) -> bytes:
        """Read a frame from the child's stdout."""
        if self._process is None or self._process.stdout is None:
            msg = "Transport not connected"
            raise TransportError(msg)
        return await _read_frame(self._process.stdout, self._max_frame_bytes)

    async def close(self) -> None:
        """Terminate the subprocess."""
        if self._process is not None:
            if self._process.stdin:
                self._process.stdin.close()
            with contextlib.suppress(ProcessLookupError):
                self._process.terminate()
            await self._process.wait()
            self._process = None


class StreamTransport:
    """Wraps an already-open asyncio reader/writer pair.

    Used for accepted TCP connections and for the server end of stdio.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader | None = None,
        writer: asyncio.StreamWriter | None = None,
        *,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._max_frame_bytes = max_frame_bytes

    @classmethod
    async def from_stdio(cls, *, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES) -> StreamTransport:
        """Attach to this process's stdin/stdout."""
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=max_frame_bytes)
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin)
        w_transport, w_protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, sys.stdout
        )
        writer = asyncio.StreamWriter(w_transport, w_protocol, reader, loop)
        return cls(reader, writer, max_frame_bytes=max_frame_bytes)

    async def connect(self) -> None:
        """No-op: the streams are open already."""
        if self._reader is None or self._writer is None:
            msg = "Transport not connected"
            raise TransportError(msg)

    async def send(self, frame: bytes) -> None:
        if self._writer is None:
            msg = "Transport not connected"
            raise TransportError(msg)
        if self._writer.is_closing():
            raise TransportClosedError()
        try:
            self._writer.write(_terminate(frame))
            await self._writer.drain()
        except ConnectionError as exc:
            raise TransportClosedError(str(exc)) from exc

    async def receive(self) -> bytes:
        if self._reader is None:
            msg = "Transport not connected"
            raise TransportError(msg)
        return await _read_frame(self._reader, self._max_frame_bytes)

    async def close(self) -> None:
        if self._writer is not None:
            writer, self._writer = self._writer, None
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()
        self._reader = None


class TcpTransport(StreamTransport):
    """Client end of a TCP connection."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
    ) -> None:
        super().__init__(max_frame_bytes=max_frame_bytes)
        self._host = host
        self._port = port

    async def connect(self) -> None:
        """Open the TCP connection."""
        self._reader, self._writer = await asyncio.open_connection(
            self._host, self._port, limit=self._max_frame_bytes
        )


class WebSocketTransport:
    """Communicates with an MCP server over WebSocket, one frame per message.

    Requires the ``websockets`` package (optional dependency ``ws``).
    """

    def __init__(self, url: str) -> None:
        self._url = url
        self._ws: Any = None  # websockets client connection
        self._closed_exc: type[BaseException] = ConnectionError

    async def connect(self) -> None:
        """Open the WebSocket connection."""
        try:
            import websockets  # type: ignore[import-untyped]
        except ImportError as exc:
            msg = "websockets package required: pip install mcpwire[ws]"
            raise ImportError(msg) from exc
        self._closed_exc = websockets.exceptions.ConnectionClosed
        self._ws = await websockets.connect(self._url)  # type: ignore[no-untyped-call]

    async def send(self, frame: bytes) -> None:
        if self._ws is None:
            msg = "Transport not connected"
            raise TransportError(msg)
        try:
            await self._ws.send(frame.rstrip(b"\n").decode("utf-8"))
        except self._closed_exc as exc:
            raise TransportClosedError(str(exc)) from exc

    async def receive(self) -> bytes:
        if self._ws is None:
            msg = "Transport not connected"
            raise TransportError(msg)
        try:
            raw = await self._ws.recv()
        except self._closed_exc as exc:
            raise TransportClosedError(str(exc)) from exc
        return raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None


class MemoryTransport:
    """One end of an in-process transport pair backed by asyncio queues.

    Closing either end delivers end-of-stream to both.
    """

    def __init__(self, inbox: asyncio.Queue[bytes | None], outbox: asyncio.Queue[bytes | None]) -> None:
        self._inbox = inbox
        self._outbox = outbox
        self._closed = False
        self.peer: MemoryTransport | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def connect(self) -> None:
        if self._closed:
            raise TransportClosedError()

    async def send(self, frame: bytes) -> None:
        if self._closed or (self.peer is not None and self.peer.closed):
            raise TransportClosedError()
        await self._outbox.put(_terminate(frame))

    async def receive(self) -> bytes:
        if self._closed and self._inbox.empty():
            raise TransportClosedError()
        frame = await self._inbox.get()
        if frame is None:
            self._closed = True
            raise TransportClosedError()
        return frame

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # EOF for the peer, and wake our own pending receive().
        self._outbox.put_nowait(None)
        self._inbox.put_nowait(None)


def memory_transport_pair() -> tuple[MemoryTransport, MemoryTransport]:
    """Return two connected in-memory transports (client end, server end)."""
    a_to_b: asyncio.Queue[bytes | None] = asyncio.Queue()
    b_to_a: asyncio.Queue[bytes | None] = asyncio.Queue()
    left = MemoryTransport(inbox=b_to_a, outbox=a_to_b)
    right = MemoryTransport(inbox=a_to_b, outbox=b_to_a)
    left.peer, right.peer = right, left
    return left, right
