"""Billing agent — denial appeals, remittance questions, payment posting."""

from __future__ import annotations

from collections.abc import AsyncIterator

from clinic_agents.agents.base import BaseAgent, format_context
from clinic_agents.events import AgentEvent, AgentName, EventStatus, Task

SYSTEM_PROMPT = """\
You are a medical billing specialist AI for a family health clinic. You help with:
- Drafting insurance appeal letters for denied claims
- Explaining denial reasons and remediation steps
- ERA/remittance advice interpretation
- Payment posting guidance

For appeal letters include: claim reference, date of service, clinical \
justification, regulatory references (CMS LCD if applicable), and request for \
reconsideration. Be professional, concise, and clinically accurate.
"""

KEYWORDS = (
    "appeal", "denial", "denied", "payment", "era", "remittance", "post payment",
    "write off", "void", "resubmit", "reconsider", "appeal-denial", "draft-appeal",
)  # fmt: skip

SUMMARY_LENGTH = 200


def fallback_appeal(claim_number: str, reason: str) -> str:
    return (
        "Dear Claims Review Department,\n\n"
        f"Re: Appeal for Claim {claim_number}\n\n"
        "We are writing to appeal the denial of the above-referenced claim for services "
        f'rendered. The denial reason provided was: "{reason}."\n\n'
        "The services billed were medically necessary and clinically appropriate for the "
        "patient's documented condition. We respectfully request reconsideration and attach "
        "supporting clinical documentation.\n\n"
        "Please contact our billing department with any questions.\n\n"
        "Sincerely,\nBilling Department"
    )


class BillingAgent(BaseAgent):
    name = AgentName.BILLING
    system_prompt = SYSTEM_PROMPT
    keywords = KEYWORDS

    async def run(self, task: Task) -> AsyncIterator[AgentEvent]:
        yield self.event(task, EventStatus.THINKING, "Reviewing billing information...")

        if self.model is None:
            yield self.event(task, EventStatus.WORKING, "Processing billing request...")
            claim_number = str(task.context.get("claimNumber") or "CLM-XXXX")
            reason = str(task.context.get("denialReason") or "unspecified reason")
            yield self.event(
                task,
                EventStatus.COMPLETE,
                f"Appeal drafted for {claim_number}. Denial: {reason}. Action: Obtain "
                "supporting documentation and resubmit within 180 days.",
                data={
                    "appealLetter": fallback_appeal(claim_number, reason),
                    "recommendedAction": "Attach medical records and resubmit within "
                    "180 days of denial date",
                },
                confidence=0.80,
                reasoning="Fallback (no model configured)",
            )
            return

        yield self.event(task, EventStatus.WORKING, "Drafting with the model...")
        text = await self.ask_model(
            f"Request: {task.intent}\nContext: {format_context(task.context)}"
        )
        summary = text[:SUMMARY_LENGTH] + ("..." if len(text) > SUMMARY_LENGTH else "")
        yield self.event(
            task,
            EventStatus.COMPLETE,
            summary,
            data={"appealLetter": text},
            confidence=0.91,
            reasoning="Model billing draft",
        )
