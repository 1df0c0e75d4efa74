"""Agent — the layer between a client host and its language model.

The relationship is plain ownership: an :class:`~mcpwire.client.client.MCPClient`
may own an :class:`Agent`, and the agent owns a :class:`LanguageModel`.
How the model reasons is outside this package; the agent only feeds it the
discovered tools and the results of earlier calls, and carries out the tool
calls it asks for.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from mcpwire.protocol.errors import ProtocolError
from mcpwire.protocol.models import ToolCall

if TYPE_CHECKING:
    from mcpwire.client.provider import ToolProvider

logger = logging.getLogger(__name__)


class Observation(BaseModel):
    """The outcome of one tool call, as shown to the model."""

    call: ToolCall
    output: str
    is_error: bool = False


class AgentRun(BaseModel):
    """Everything that happened while pursuing one goal."""

    goal: str
    answer: str | None = None
    observations: list[Observation] = Field(default_factory=list)
    steps: int = 0

    @property
    def finished(self) -> bool:
        return self.answer is not None


@runtime_checkable
class LanguageModel(Protocol):
    """Chooses the next action: a tool call, or a final answer string."""

    async def decide(
        self,
        goal: str,
        tools: list[dict[str, Any]],
        observations: list[Observation],
    ) -> ToolCall | str: ...


class Agent:
    """Runs a decide → call tool → observe loop against a :class:`ToolProvider`."""

    def __init__(self, llm: LanguageModel, *, max_steps: int = 8) -> None:
        self.llm = llm
        self.max_steps = max_steps

    async def run(self, goal: str, provider: ToolProvider) -> AgentRun:
        """Pursue *goal* until the model answers or ``max_steps`` is reached."""
        run = AgentRun(goal=goal)
        tools = await provider.discover_tools()

        while run.steps < self.max_steps:
            run.steps += 1
            decision = await self.llm.decide(goal, tools, list(run.observations))
            if isinstance(decision, str):
                run.answer = decision
                return run

            logger.debug("Agent step %d: calling %s", run.steps, decision.name)
            try:
                result = await provider.execute_tool(decision.name, decision.arguments)
            except ProtocolError as exc:
                run.observations.append(Observation(call=decision, output=str(exc), is_error=True))
                continue
            run.observations.append(
                Observation(call=decision, output=result.text, is_error=result.is_error)
            )

        logger.info("Agent stopped after %d step(s) without an answer", run.steps)
        return run
