"""Session lifecycle state machine.

``UNCONNECTED -> HANDSHAKING -> READY -> CLOSING -> CLOSED``, with a direct
edge to ``CLOSED`` from every state for abrupt transport failure.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from mcpwire.protocol.errors import ProtocolStateError

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNCONNECTED = "unconnected"
    HANDSHAKING = "handshaking"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.UNCONNECTED: frozenset({SessionState.HANDSHAKING, SessionState.CLOSED}),
    SessionState.HANDSHAKING: frozenset(
        {SessionState.READY, SessionState.CLOSING, SessionState.CLOSED}
    ),
    SessionState.READY: frozenset({SessionState.CLOSING, SessionState.CLOSED}),
    SessionState.CLOSING: frozenset({SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}


class SessionStateMachine:
    """Tracks one session's state and wakes tasks waiting on transitions."""

    def __init__(self, role: str) -> None:
        self.role = role
        self._state = SessionState.UNCONNECTED
        self._waiters: list[tuple[frozenset[SessionState], asyncio.Future[SessionState]]] = []
        self.close_reason: BaseException | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def is_closed(self) -> bool:
        return self._state is SessionState.CLOSED

    def can_transition(self, target: SessionState) -> bool:
        return target in _TRANSITIONS[self._state]

    def transition(self, target: SessionState, *, reason: BaseException | None = None) -> None:
        """Move to *target*.

        Re-entering ``CLOSED`` is a no-op; any other illegal edge raises
        :class:`ProtocolStateError`.
        """
        if target is SessionState.CLOSED and self._state is SessionState.CLOSED:
            return
        if not self.can_transition(target):
            msg = f"{self.role} session cannot move from {self._state.value} to {target.value}"
            raise ProtocolStateError(msg)

        logger.debug("%s session: %s -> %s", self.role, self._state.value, target.value)
        self._state = target
        if target is SessionState.CLOSED and reason is not None and self.close_reason is None:
            self.close_reason = reason
        self._notify()

    async def wait_for(self, *states: SessionState) -> SessionState:
        """Suspend until the state is one of *states* (or ``CLOSED``)."""
        wanted = frozenset(states) | {SessionState.CLOSED}
        if self._state in wanted:
            return self._state
        future: asyncio.Future[SessionState] = asyncio.get_running_loop().create_future()
        self._waiters.append((wanted, future))
        return await future

    def _notify(self) -> None:
        remaining: list[tuple[frozenset[SessionState], asyncio.Future[SessionState]]] = []
        for wanted, future in self._waiters:
            if future.done():
                continue
            if self._state in wanted:
                future.set_result(self._state)
            else:
                remaining.append((wanted, future))
        self._waiters = remaining
