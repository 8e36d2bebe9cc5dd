"""Common shape of the five task agents.

An agent is a stateless, named strategy: it decides whether it can handle
a task and produces a sequence of events for it. Every agent follows the
same skeleton:

1. emit a `thinking` event describing the stage
2. emit a `working` event
3. answer from the model, or from a canned deterministic response when no
   model client was injected
4. emit exactly one terminal event

Agents never implement escalation or error translation themselves; that
is ExecutionWrapper's job.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any, ClassVar

from clinic_agents.events import AgentEvent, AgentName, EventStatus, Task
from clinic_agents.llm import ChatMessage, ModelClient


def matches_keywords(text: str, keywords: tuple[str, ...]) -> bool:
    """Substring test over the lower-cased text."""
    lowered = text.lower()
    return any(kw in lowered for kw in keywords)


class BaseAgent(ABC):
    """Base class for the task agents.

    Subclasses set `name`, `system_prompt` and `keywords`, and implement
    run(). The model client is injected; None means "use the fallback".
    """

    name: ClassVar[AgentName]
    system_prompt: ClassVar[str]
    keywords: ClassVar[tuple[str, ...]]

    def __init__(self, model: ModelClient | None = None) -> None:
        self.model = model

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={'yes' if self.model else 'fallback'})"

    def can_handle(self, task: Task) -> bool:
        return matches_keywords(task.intent, self.keywords)

    @abstractmethod
    def run(self, task: Task) -> AsyncIterator[AgentEvent]:
        """Yield this agent's events for `task`, ending with one terminal event."""

    def event(self, task: Task, status: EventStatus, message: str, **fields: Any) -> AgentEvent:
        return AgentEvent(
            task_id=task.id,
            agent_name=self.name,
            status=status,
            message=message,
            **fields,
        )

    async def ask_model(self, content: str) -> str:
        """Send one user message under this agent's system prompt; return the text."""
        if self.model is None:
            raise RuntimeError(f"{self.name.value} agent has no model client")
        response = await self.model.generate(
            self.system_prompt, [ChatMessage(role="user", content=content)]
        )
        return response.text


def format_context(context: dict[str, Any]) -> str:
    return json.dumps(context, indent=2, default=str)
