"""Clinical documentation agent — SOAP note drafts and code suggestions."""

from __future__ import annotations

from collections.abc import AsyncIterator

from pydantic import BaseModel, Field

from clinic_agents.agents.base import BaseAgent, format_context
from clinic_agents.events import AgentEvent, AgentName, EventStatus, Task
from clinic_agents.structured import StructuredOutputError, parse_structured

SYSTEM_PROMPT = """\
You are a clinical documentation AI for a family medicine clinic. Generate SOAP \
note suggestions and coding recommendations.

SOAP sections:
- Subjective: Chief complaint, HPI, symptoms
- Objective: Vitals, physical exam, lab findings
- Assessment: Clinical impression + ICD-10 codes
- Plan: Treatment, meds, orders, follow-up

Return JSON ONLY with this exact structure:
{
  "subjective": "...",
  "objective": "...",
  "assessment": "...",
  "plan": "...",
  "suggestedCodes": [
    { "type": "ICD-10", "code": "...", "description": "..." },
    { "type": "CPT", "code": "...", "description": "..." }
  ]
}

Be concise, clinically accurate, use standard medical terminology. This is a \
draft for provider review.
"""

KEYWORDS = (
    "soap", "note", "document", "clinical", "encounter", "diagnosis", "assess",
    "subjective", "objective", "plan", "icd", "cpt", "code suggest", "soap-assist",
)  # fmt: skip


class SuggestedCode(BaseModel):
    type: str
    code: str
    description: str = ""


class SoapNote(BaseModel):
    subjective: str = ""
    objective: str = ""
    assessment: str = ""
    plan: str = ""
    suggestedCodes: list[SuggestedCode] = Field(default_factory=list)  # noqa: N815


def fallback_note(chief_complaint: str) -> SoapNote:
    return SoapNote(
        subjective=(
            f"Patient presents with {chief_complaint}. Onset approximately 3 days ago, "
            "moderate severity. No known alleviating or aggravating factors identified."
        ),
        objective=(
            "Vitals stable. Alert and oriented x3. No acute distress. "
            "Physical examination within normal limits."
        ),
        assessment=(
            f"1. {chief_complaint}: clinical evaluation completed.\n"
            "2. Monitor for symptom progression or complications."
        ),
        plan=(
            "1. Symptomatic management as discussed with patient.\n"
            "2. Diagnostic labs ordered per protocol.\n"
            "3. Return to clinic in 2 weeks or sooner if symptoms worsen.\n"
            "4. Patient education provided regarding diagnosis and warning signs."
        ),
        suggestedCodes=[
            SuggestedCode(
                type="ICD-10",
                code="Z00.00",
                description="Encounter for general adult medical exam without abnormal findings",
            ),
            SuggestedCode(
                type="CPT",
                code="99213",
                description="Office visit, established patient, moderate complexity",
            ),
        ],
    )


class ClinicalDocAgent(BaseAgent):
    name = AgentName.CLINICAL_DOC
    system_prompt = SYSTEM_PROMPT
    keywords = KEYWORDS

    async def run(self, task: Task) -> AsyncIterator[AgentEvent]:
        yield self.event(task, EventStatus.THINKING, "Reviewing clinical context...")

        if self.model is None:
            yield self.event(task, EventStatus.WORKING, "Generating SOAP note suggestions...")
            complaint = str(task.context.get("chiefComplaint") or "presenting concern")
            yield self.event(
                task,
                EventStatus.COMPLETE,
                "SOAP note suggestions generated. Review and edit before signing.",
                data=fallback_note(complaint).model_dump(),
                confidence=0.75,
                reasoning="Fallback (no model configured)",
            )
            return

        yield self.event(task, EventStatus.WORKING, "Generating clinical documentation...")
        text = await self.ask_model(
            f"Encounter context:\n{format_context(task.context)}\n\nIntent: {task.intent}"
        )
        try:
            note = parse_structured(text, SoapNote)
        except StructuredOutputError:
            # Keep the free text so the provider still sees the draft
            note = SoapNote(plan=text)

        yield self.event(
            task,
            EventStatus.COMPLETE,
            "SOAP note suggestions ready. Review and edit before signing.",
            data=note.model_dump(),
            confidence=0.88,
            reasoning="Model clinical documentation",
        )
