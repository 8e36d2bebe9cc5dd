"""Shared test fixtures.

StubModelClient stands in for the Anthropic client: it returns scripted
ModelResponses in order and records every call, so tests can assert on what
the agents and the chat pipeline sent without any network access.

RecordingSink collects log records in memory instead of writing them out.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Any

import pytest

from clinic_agents.event_log import AgentLogRecord, EventLog
from clinic_agents.llm import ConversationItem, ModelResponse


class StubModelClient:
    """Scripted ModelClient.

    Each generate() call pops the next response (a ModelResponse, a plain
    string, or an exception to raise). stream() yields `chunks`.
    """

    def __init__(
        self,
        responses: Sequence[ModelResponse | str | Exception] = (),
        chunks: Sequence[str] = (),
    ) -> None:
        self.responses = list(responses)
        self.chunks = list(chunks)
        self.calls: list[dict[str, Any]] = []
        self.stream_calls: list[dict[str, Any]] = []

    async def generate(
        self,
        system: str,
        conversation: Sequence[ConversationItem],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> ModelResponse:
        self.calls.append({"system": system, "conversation": list(conversation), "tools": tools})
        if not self.responses:
            raise AssertionError("StubModelClient ran out of scripted responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return ModelResponse(text=response)
        return response

    async def stream(
        self,
        system: str,
        conversation: Sequence[ConversationItem],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> AsyncIterator[str]:
        self.stream_calls.append(
            {"system": system, "conversation": list(conversation), "tools": tools}
        )
        for chunk in self.chunks:
            yield chunk


class RecordingSink:
    def __init__(self, fail: bool = False) -> None:
        self.records: list[AgentLogRecord] = []
        self.fail = fail

    async def write(self, record: AgentLogRecord) -> None:
        if self.fail:
            raise ConnectionError("log store unavailable")
        self.records.append(record)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def event_log(sink: RecordingSink) -> EventLog:
    return EventLog(sink)
