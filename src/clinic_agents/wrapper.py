"""Runs one agent on one task and enforces the event stream's rules.

ExecutionWrapper sits between the dispatcher and an agent's raw event
sequence. For every event the agent produces it:

1. submits a log record (fire-and-forget, see EventLog)
2. forwards the event to the caller
3. if the event's confidence is below the threshold and it is not already
   an escalation or an error, appends one `escalated` event and stops

Anything the agent raises becomes a single `error` event. Whatever happens,
the caller sees exactly one terminal event, and nothing after it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing

from clinic_agents.agents.base import BaseAgent
from clinic_agents.event_log import AgentLogRecord, EventLog
from clinic_agents.events import AgentEvent, EventStatus, Task

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.6


def escalation_message(confidence: float) -> str:
    return f"Low confidence ({round(confidence * 100)}%) — escalating to human review"


class ExecutionWrapper:
    def __init__(self, event_log: EventLog, threshold: float = CONFIDENCE_THRESHOLD) -> None:
        self.event_log = event_log
        self.threshold = threshold

    def record(self, event: AgentEvent, task: Task, started: float) -> None:
        duration_ms = int((time.monotonic() - started) * 1000)
        self.event_log.submit(AgentLogRecord.from_event(event, task, duration_ms))

    def low_confidence(self, event: AgentEvent) -> float | None:
        """The event's confidence if it must go to human review, else None."""
        if event.status in (EventStatus.ESCALATED, EventStatus.ERROR):
            return None
        if event.confidence is None or event.confidence >= self.threshold:
            return None
        return event.confidence

    async def execute(self, agent: BaseAgent, task: Task) -> AsyncIterator[AgentEvent]:
        started = time.monotonic()
        try:
            async with aclosing(agent.run(task)) as events:
                async for event in events:
                    self.record(event, task, started)
                    yield event

                    confidence = self.low_confidence(event)
                    if confidence is not None:
                        logger.info(
                            "Task %s escalated: %s confidence %.2f below %.2f",
                            task.id,
                            agent.name.value,
                            confidence,
                            self.threshold,
                        )
                        escalation = agent.event(
                            task,
                            EventStatus.ESCALATED,
                            escalation_message(confidence),
                            confidence=confidence,
                            reasoning=event.reasoning,
                        )
                        self.record(escalation, task, started)
                        yield escalation
                        return

                    if event.is_terminal:
                        return
        except Exception as exc:
            logger.exception("Agent %s failed on task %s", agent.name.value, task.id)
            error = agent.event(task, EventStatus.ERROR, str(exc) or type(exc).__name__)
            self.record(error, task, started)
            yield error
            return

        logger.warning("Agent %s ended task %s without a result", agent.name.value, task.id)
        error = agent.event(task, EventStatus.ERROR, "Agent finished without a result")
        self.record(error, task, started)
        yield error
