"""Keyword dispatch of a task to exactly one agent.

The dispatcher holds the agents in a fixed priority order (most specific
first, the front desk as catch-all last) and hands the task to the first one
whose keywords match. The same intent always reaches the same agent.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any

from clinic_agents.agents import default_agents
from clinic_agents.agents.base import BaseAgent
from clinic_agents.event_log import EventLog
from clinic_agents.events import AgentEvent, AgentName, EventStatus, Task
from clinic_agents.llm import ModelClient
from clinic_agents.wrapper import ExecutionWrapper

logger = logging.getLogger(__name__)


class Dispatcher:
    def __init__(self, agents: Sequence[BaseAgent], wrapper: ExecutionWrapper) -> None:
        if not agents:
            raise ValueError("Dispatcher needs at least one agent")
        self.agents = list(agents)
        self.wrapper = wrapper

    def select(self, task: Task) -> BaseAgent | None:
        return next((agent for agent in self.agents if agent.can_handle(task)), None)

    async def dispatch(
        self,
        intent: str,
        context: dict[str, Any] | None = None,
        user_id: str = "anonymous",
        session_id: str | None = None,
    ) -> AsyncIterator[AgentEvent]:
        """Run `intent` through the matching agent, yielding its events.

        Nothing happens until the caller starts iterating. When no agent
        matches, a single front-desk `escalated` event is produced instead.
        """
        task = Task(
            intent=intent,
            context=context or {},
            user_id=user_id,
            session_id=session_id or "session-anon",
        )
        agent = self.select(task)

        if agent is None:
            logger.warning("No agent matched task %s: %r", task.id, intent[:80])
            event = AgentEvent(
                task_id=task.id,
                agent_name=AgentName.FRONT_DESK,
                status=EventStatus.ESCALATED,
                message=f'No agent available for "{intent}". Logged for review.',
            )
            self.wrapper.record(event, task, time.monotonic())
            yield event
            return

        logger.info("Dispatching task %s to %s", task.id, agent.name.value)
        async with aclosing(self.wrapper.execute(agent, task)) as events:
            async for event in events:
                yield event


def build_dispatcher(model: ModelClient | None, event_log: EventLog) -> Dispatcher:
    return Dispatcher(default_agents(model), ExecutionWrapper(event_log))
