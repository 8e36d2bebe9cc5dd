"""Front desk agent — check-ins, scheduling, insurance, general help.

This is the catch-all: its keyword set is deliberately broad and it sits
last in the dispatch priority list.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from clinic_agents.agents.base import BaseAgent, format_context
from clinic_agents.events import AgentEvent, AgentName, EventStatus, Task

SYSTEM_PROMPT = """\
You are an AI front desk assistant for a family health clinic. You help staff with:
- Patient check-ins and registration
- Appointment scheduling and lookups
- Insurance verification
- General patient inquiries and directions

Be concise, professional, and empathetic. Format responses in 1-3 sentences \
suitable for a clinic workflow dashboard. Do not include PHI unless it was \
provided in the context.

When staff ask about cancelling an appointment:
- Direct them to the Appointments list and the red "Cancel" button on the SCHEDULED row
- They select a reason: Patient Request, No Show, Provider Unavailable, \
Insurance Issue, or Other
- Cancelled appointments remain visible, grayed out with a Cancelled badge
- After cancellation, suggest rescheduling if appropriate
"""

KEYWORDS = (
    "check in", "check-in", "schedule", "appointment", "patient", "lookup",
    "hello", "hi", "help", "find", "search", "register", "verify", "insurance",
    "room", "arrive", "wait", "cancel", "cancellation", "cancelled", "no show",
    "no-show", "reschedule", "remove appointment",
)  # fmt: skip


def fallback_reply(intent: str) -> str:
    """Canned answer used when no model is configured."""
    intent = intent.lower()
    if "check" in intent and "in" in intent:
        return "Patient check-in processed. Insurance verified, copay of $25 collected. Room 3 is ready."
    if "schedule" in intent:
        return "Appointment scheduled successfully. Confirmation sent via SMS and email."
    if "hello" in intent or "hi" in intent or "help" in intent:
        return (
            "Hello! I'm the Front Desk Agent. I can help with patient check-ins, appointment "
            "scheduling, insurance verification, and patient lookups. What do you need?"
        )
    if "find" in intent or "lookup" in intent or "search" in intent:
        return "Patient record located. Insurance active, last visit 14 days ago. No outstanding balance."
    if "cancel" in intent or "no show" in intent or "reschedule" in intent:
        return (
            "To cancel an appointment, find the patient's row in the Appointments table and click "
            'the red "Cancel" button. Select the cancellation reason; cancelled appointments '
            "remain visible, grayed out. Would you like to reschedule?"
        )
    return "Request processed. Ready to assist with next steps."


class FrontDeskAgent(BaseAgent):
    name = AgentName.FRONT_DESK
    system_prompt = SYSTEM_PROMPT
    keywords = KEYWORDS

    async def run(self, task: Task) -> AsyncIterator[AgentEvent]:
        yield self.event(task, EventStatus.THINKING, "Analyzing front desk request...")

        if self.model is None:
            yield self.event(task, EventStatus.WORKING, "Processing request...")
            yield self.event(
                task,
                EventStatus.COMPLETE,
                fallback_reply(task.intent),
                confidence=0.85,
                reasoning="Fallback (no model configured)",
            )
            return

        yield self.event(task, EventStatus.WORKING, "Consulting the model...")
        if task.context:
            content = f"Intent: {task.intent}\nContext: {format_context(task.context)}"
        else:
            content = task.intent
        text = await self.ask_model(content)
        yield self.event(
            task, EventStatus.COMPLETE, text, confidence=0.93, reasoning="Model front desk reply"
        )
