"""Task and event types shared by the agents, the wrapper and the transport.

A Task is created once per caller request and identifies one orchestration
run. Every progress update an agent produces for that run is an AgentEvent
carrying the task's id. Both are immutable pydantic models; on the wire they
use camelCase keys (taskId, agentName) and ISO-8601 timestamps.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AgentName(str, Enum):
    FRONT_DESK = "front-desk"
    CLINICAL_DOC = "clinical-doc"
    CLAIM_SCRUBBER = "claim-scrubber"
    BILLING = "billing"
    ANALYTICS = "analytics"

    @property
    def label(self) -> str:
        """Human-readable name shown in progress frames."""
        return _AGENT_LABELS[self]


_AGENT_LABELS = {
    AgentName.FRONT_DESK: "Front Desk",
    AgentName.CLINICAL_DOC: "Clinical Documentation",
    AgentName.CLAIM_SCRUBBER: "Claim Scrubber",
    AgentName.BILLING: "Billing",
    AgentName.ANALYTICS: "Analytics",
}


class EventStatus(str, Enum):
    THINKING = "thinking"
    WORKING = "working"
    COMPLETE = "complete"
    ESCALATED = "escalated"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {EventStatus.COMPLETE, EventStatus.ESCALATED, EventStatus.ERROR}
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Task(_WireModel):
    """One orchestration run: the caller's intent plus who asked for it.

    user_id and session_id come from the authentication layer and are used
    only to attribute log rows, never to make authorization decisions.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    intent: str
    context: dict[str, Any] = Field(default_factory=dict)
    user_id: str = "anonymous"
    session_id: str = "session-anon"


class AgentEvent(_WireModel):
    """A single timestamped progress or result record for a task."""

    task_id: str
    agent_name: AgentName
    status: EventStatus
    message: str
    data: Any = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    reasoning: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON shape sent to stream consumers.

        Optional fields that are unset are omitted entirely rather than
        sent as null.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
