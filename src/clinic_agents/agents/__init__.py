"""The five task agents and their dispatch priority."""

from __future__ import annotations

from clinic_agents.agents.analytics import AnalyticsAgent
from clinic_agents.agents.base import BaseAgent
from clinic_agents.agents.billing import BillingAgent
from clinic_agents.agents.claim_scrubber import ClaimScrubberAgent
from clinic_agents.agents.clinical_doc import ClinicalDocAgent
from clinic_agents.agents.front_desk import FrontDeskAgent
from clinic_agents.llm import ModelClient

__all__ = [
    "AnalyticsAgent",
    "BaseAgent",
    "BillingAgent",
    "ClaimScrubberAgent",
    "ClinicalDocAgent",
    "FrontDeskAgent",
    "default_agents",
]


def default_agents(model: ModelClient | None = None) -> list[BaseAgent]:
    """Agents in dispatch priority order: most specific first, catch-all last."""
    return [
        AnalyticsAgent(model),
        ClinicalDocAgent(model),
        ClaimScrubberAgent(model),
        BillingAgent(model),
        FrontDeskAgent(model),
    ]
