"""CallCorrelator — matches responses to the requests that caused them.

All bookkeeping runs on one event loop and never awaits between reading
and updating the pending table, so id allocation and resolution cannot
race.
"""

from __future__ import annotations

import asyncio
import collections
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from mcpwire.protocol.errors import CallTimeoutError, SessionClosedError
from mcpwire.protocol.models import JsonRpcRequest, JsonRpcResponse
from mcpwire.utils.telemetry import (
    ATTR_ERROR_KIND,
    ATTR_METHOD,
    ATTR_REQUEST_ID,
    ATTR_SESSION_ROLE,
    get_tracer,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

SendFn = Callable[[JsonRpcRequest], Awaitable[None]]
CancelFn = Callable[[int | str, str], Awaitable[None]]

_DEFAULT: Any = object()


@dataclass
class PendingCall:
    """An issued request still waiting for its response."""

    request_id: int | str
    method: str
    future: asyncio.Future[JsonRpcResponse]
    issued_at: float = field(default_factory=time.monotonic)

    @property
    def age(self) -> float:
        return time.monotonic() - self.issued_at


class CallCorrelator:
    """Issues requests and resolves each one exactly once.

    A pending call ends in one of three ways: its response arrives, its
    timeout expires (:class:`CallTimeoutError`), or the session closes
    (:class:`SessionClosedError`).  A caller that is cancelled abandons its
    call; a response arriving later for that id is dropped.  Only the most
    recent *max_abandoned* abandoned ids are remembered; older ones fall
    back to being reported as anomalies.
    """

    def __init__(
        self,
        send: SendFn,
        *,
        default_timeout: float | None = 30.0,
        on_cancel: CancelFn | None = None,
        max_abandoned: int = 1024,
    ) -> None:
        self._send = send
        self.default_timeout = default_timeout
        self._on_cancel = on_cancel
        self._ids = itertools.count(1)
        self._pending: dict[int | str, PendingCall] = {}
        self._abandoned: collections.OrderedDict[int | str, None] = collections.OrderedDict()
        self.max_abandoned = max_abandoned
        self._background: set[asyncio.Task[None]] = set()
        self._closed_reason: str | None = None
        self.anomalies = 0

    @property
    def pending_ids(self) -> list[int | str]:
        return list(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed_reason is not None

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = _DEFAULT,
    ) -> JsonRpcResponse:
        """Issue a request and wait for its correlated response.

        Raises:
            CallTimeoutError: No response within *timeout* seconds.
            SessionClosedError: The session closed first.
        """
        if self._closed_reason is not None:
            raise SessionClosedError(self._closed_reason)

        effective_timeout = self.default_timeout if timeout is _DEFAULT else timeout
        request_id = next(self._ids)
        future: asyncio.Future[JsonRpcResponse] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingCall(request_id=request_id, method=method, future=future)
        request = JsonRpcRequest(id=request_id, method=method, params=params)

        with _tracer.start_as_current_span("mcpwire.client.request") as span:
            span.set_attribute(ATTR_SESSION_ROLE, "client")
            span.set_attribute(ATTR_METHOD, method)
            span.set_attribute(ATTR_REQUEST_ID, str(request_id))

            try:
                await self._send(request)
            except BaseException:
                self._pending.pop(request_id, None)
                raise

            try:
                response = await asyncio.wait_for(future, effective_timeout)
            except TimeoutError:
                if future.done() and not future.cancelled():
                    # Resolved in the same tick the timer fired.
                    return future.result()
                self._abandon(request_id, "timeout")
                span.set_attribute(ATTR_ERROR_KIND, "Timeout")
                raise CallTimeoutError(method, request_id, effective_timeout or 0.0) from None
            except asyncio.CancelledError:
                self._abandon(request_id, "cancelled")
                raise

            if response.error is not None:
                span.set_attribute(ATTR_ERROR_KIND, response.error.kind.value)
            return response

    def resolve(self, response: JsonRpcResponse) -> bool:
        """Hand *response* to its waiting caller.

        Returns ``False`` when no live call matches; unknown ids are logged
        as protocol anomalies, late replies to abandoned calls are dropped.
        """
        pending = self._pending.pop(response.id, None)
        if pending is None:
            if response.id in self._abandoned:
                del self._abandoned[response.id]
                logger.debug("Dropping late response for abandoned request %r", response.id)
            else:
                self.anomalies += 1
                logger.warning("Protocol anomaly: response for unknown request id %r", response.id)
            return False
        if not pending.future.done():
            pending.future.set_result(response)
        return True

    def fail_all(self, reason: str = "Session closed") -> int:
        """Resolve every outstanding call with :class:`SessionClosedError`.

        Further :meth:`send` calls fail immediately.  Returns the number of
        calls that were failed.
        """
        self._closed_reason = reason
        failed = 0
        for pending in self._pending.values():
            if not pending.future.done():
                pending.future.set_exception(SessionClosedError(reason))
                failed += 1
        self._pending.clear()
        self._abandoned.clear()
        if failed:
            logger.debug("Failed %d pending call(s): %s", failed, reason)
        return failed

    async def drain(self, timeout: float | None) -> None:
        """Wait until no calls are pending, or *timeout* elapses."""
        futures = [p.future for p in self._pending.values()]
        if futures:
            await asyncio.wait(futures, timeout=timeout)

    def _abandon(self, request_id: int | str, reason: str) -> None:
        if self._pending.pop(request_id, None) is None:
            return
        self._abandoned[request_id] = None
        while len(self._abandoned) > self.max_abandoned:
            self._abandoned.popitem(last=False)
        if self._on_cancel is not None and self._closed_reason is None:
            task = asyncio.ensure_future(self._notify_cancel(request_id, reason))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def _notify_cancel(self, request_id: int | str, reason: str) -> None:
        assert self._on_cancel is not None
        try:
            await self._on_cancel(request_id, reason)
        except Exception:
            logger.warning("Could not notify peer that request %r was cancelled", request_id, exc_info=True)
