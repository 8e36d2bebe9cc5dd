"""Tests for chat message classification."""

from __future__ import annotations

import pytest

from clinic_agents.agents import default_agents
from clinic_agents.events import AgentName
from clinic_agents.routing import (
    CLASSIFY_PROMPT,
    KeywordClassifier,
    ModelClassifier,
    build_classifier,
    parse_agent_name,
)
from conftest import StubModelClient


@pytest.mark.parametrize(
    ("answer", "expected"),
    [
        ("billing", AgentName.BILLING),
        ("  Claim-Scrubber\n", AgentName.CLAIM_SCRUBBER),
        ("`analytics`.", AgentName.ANALYTICS),
        ("I think billing", AgentName.FRONT_DESK),
        ("", AgentName.FRONT_DESK),
    ],
)
def test_parse_agent_name(answer: str, expected: AgentName) -> None:
    assert parse_agent_name(answer) == expected


@pytest.mark.asyncio
async def test_model_classifier_sends_message() -> None:
    model = StubModelClient(["analytics"])
    classifier = ModelClassifier(model)

    assert await classifier.classify("Top billers in Houston?") == AgentName.ANALYTICS
    call = model.calls[0]
    assert call["system"] == CLASSIFY_PROMPT
    assert call["conversation"][0].content == "Message: Top billers in Houston?"


@pytest.mark.asyncio
async def test_keyword_classifier_priority_and_default() -> None:
    classifier = KeywordClassifier(default_agents())

    assert await classifier.classify("scrub claim 1234") == AgentName.CLAIM_SCRUBBER
    assert await classifier.classify("xyzzy") == AgentName.FRONT_DESK


def test_build_classifier_strategy() -> None:
    agents = default_agents()
    model = StubModelClient()

    assert isinstance(build_classifier(agents, model, "model"), ModelClassifier)
    assert isinstance(build_classifier(agents, model, "keyword"), KeywordClassifier)
    assert isinstance(build_classifier(agents, None, "model"), KeywordClassifier)
