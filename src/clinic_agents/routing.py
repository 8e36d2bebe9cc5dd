"""Picks which agent should answer a free-form chat message.

Two strategies share the Classifier interface:

- KeywordClassifier: the agents' own can_handle() tests, in priority order
- ModelClassifier:   a one-word answer from a small model

The model classifier never fails "open": an answer that is not exactly one
of the five agent names routes to the front desk.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from clinic_agents.agents.base import BaseAgent
from clinic_agents.config import AGENT_ROUTER
from clinic_agents.events import AgentName, Task
from clinic_agents.llm import ChatMessage, ModelClient

logger = logging.getLogger(__name__)

DEFAULT_AGENT = AgentName.FRONT_DESK

CLASSIFY_PROMPT = """\
You are an intent router for a family health clinic. Given a user message, \
respond with ONLY the agent name — nothing else.

Agents:
- front-desk → patient check-in, appointment scheduling/cancellation, patient lookup, \
registration, insurance verification, room assignments
- clinical-doc → SOAP notes, encounter documentation, ICD-10/CPT coding, clinical questions
- claim-scrubber → claim validation, scrubbing, status checks, billing code review
- billing → denied claims, payments, appeals, outstanding balances, revenue cycle
- analytics → reports, metrics, denial rates, revenue statistics, trends, Medicaid provider \
analysis, statewide billing data, procedure code costs, provider anomalies, top billers
"""


class Classifier(Protocol):
    async def classify(self, text: str) -> AgentName:  # pragma: no cover - interface
        """Return the agent that should handle `text`."""


def parse_agent_name(answer: str) -> AgentName:
    """Map a model answer to an agent name, defaulting to the front desk."""
    cleaned = answer.strip().strip(".`'\"").lower()
    try:
        return AgentName(cleaned)
    except ValueError:
        logger.info("Unrecognised routing answer %r — using %s", answer[:50], DEFAULT_AGENT.value)
        return DEFAULT_AGENT


class KeywordClassifier:
    def __init__(self, agents: Sequence[BaseAgent]) -> None:
        self.agents = list(agents)

    async def classify(self, text: str) -> AgentName:
        task = Task(intent=text)
        for agent in self.agents:
            if agent.can_handle(task):
                return agent.name
        return DEFAULT_AGENT


class ModelClassifier:
    def __init__(self, model: ModelClient) -> None:
        self.model = model

    async def classify(self, text: str) -> AgentName:
        response = await self.model.generate(
            CLASSIFY_PROMPT, [ChatMessage(role="user", content=f"Message: {text}")]
        )
        return parse_agent_name(response.text)


def build_classifier(
    agents: Sequence[BaseAgent],
    model: ModelClient | None,
    strategy: str = AGENT_ROUTER,
) -> Classifier:
    """Model routing when asked for and a model is available; keywords otherwise."""
    if strategy == "model" and model is not None:
        return ModelClassifier(model)
    return KeywordClassifier(agents)
