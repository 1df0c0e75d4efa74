"""Tests for the session lifecycle state machine."""

import asyncio

import pytest

from mcpwire.protocol.errors import ProtocolStateError
from mcpwire.protocol.state import SessionState, SessionStateMachine


class TestTransitions:
    def test_starts_unconnected(self) -> None:
        sm = SessionStateMachine("client")
        assert sm.state is SessionState.UNCONNECTED
        assert not sm.is_ready
        assert not sm.is_closed

    def test_happy_path(self) -> None:
        sm = SessionStateMachine("client")
        for target in (
            SessionState.HANDSHAKING,
            SessionState.READY,
            SessionState.CLOSING,
            SessionState.CLOSED,
        ):
            sm.transition(target)
        assert sm.is_closed
        assert sm.close_reason is None

    @pytest.mark.parametrize(
        "path",
        [
            [],
            [SessionState.HANDSHAKING],
            [SessionState.HANDSHAKING, SessionState.READY],
            [SessionState.HANDSHAKING, SessionState.READY, SessionState.CLOSING],
        ],
    )
    def test_closed_reachable_from_every_state(self, path: list[SessionState]) -> None:
        sm = SessionStateMachine("server")
        for target in path:
            sm.transition(target)
        sm.transition(SessionState.CLOSED)
        assert sm.is_closed

    def test_cannot_skip_handshake(self) -> None:
        sm = SessionStateMachine("client")
        with pytest.raises(ProtocolStateError, match="unconnected to ready"):
            sm.transition(SessionState.READY)
        assert sm.state is SessionState.UNCONNECTED

    def test_no_way_back_from_closing(self) -> None:
        sm = SessionStateMachine("server")
        sm.transition(SessionState.HANDSHAKING)
        sm.transition(SessionState.READY)
        sm.transition(SessionState.CLOSING)
        assert not sm.can_transition(SessionState.READY)
        with pytest.raises(ProtocolStateError):
            sm.transition(SessionState.READY)

    def test_closed_is_terminal(self) -> None:
        sm = SessionStateMachine("client")
        sm.transition(SessionState.CLOSED)
        with pytest.raises(ProtocolStateError):
            sm.transition(SessionState.HANDSHAKING)

    def test_reentering_closed_is_a_no_op(self) -> None:
        sm = SessionStateMachine("client")
        first = RuntimeError("first")
        sm.transition(SessionState.CLOSED, reason=first)
        sm.transition(SessionState.CLOSED, reason=RuntimeError("second"))
        assert sm.close_reason is first


class TestWaitFor:
    async def test_returns_immediately_when_already_there(self) -> None:
        sm = SessionStateMachine("client")
        assert await sm.wait_for(SessionState.UNCONNECTED) is SessionState.UNCONNECTED

    async def test_wakes_on_transition(self) -> None:
        sm = SessionStateMachine("client")
        waiter = asyncio.create_task(sm.wait_for(SessionState.READY))
        await asyncio.sleep(0)
        sm.transition(SessionState.HANDSHAKING)
        await asyncio.sleep(0)
        assert not waiter.done()
        sm.transition(SessionState.READY)
        assert await waiter is SessionState.READY

    async def test_closed_always_wakes_waiters(self) -> None:
        sm = SessionStateMachine("client")
        sm.transition(SessionState.HANDSHAKING)
        waiter = asyncio.create_task(sm.wait_for(SessionState.READY))
        await asyncio.sleep(0)
        sm.transition(SessionState.CLOSED)
        assert await waiter is SessionState.CLOSED
