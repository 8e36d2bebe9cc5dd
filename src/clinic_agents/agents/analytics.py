"""Analytics agent — clinic performance metrics and recommendations."""

from __future__ import annotations

from collections.abc import AsyncIterator

from clinic_agents.agents.base import BaseAgent, format_context
from clinic_agents.events import AgentEvent, AgentName, EventStatus, Task

SYSTEM_PROMPT = """\
You are a healthcare analytics AI for a family health clinic. Analyze clinic \
performance metrics and provide actionable insights.

When given metrics, you:
1. Identify key trends and anomalies
2. Compare against benchmarks (industry denial rate ~8-10%, collection rate ~95%)
3. Provide 2-3 specific, actionable recommendations
4. Keep responses concise (max 4-5 sentences)

Lead with the most important insight, then give recommendations.
"""

KEYWORDS = (
    "metrics", "report", "analytics", "revenue", "denial", "ar ", "stats", "trend",
    "performance", "rate", "collection", "benchmark", "insight", "data", "numbers",
    "query-metrics",
)  # fmt: skip


class AnalyticsAgent(BaseAgent):
    name = AgentName.ANALYTICS
    system_prompt = SYSTEM_PROMPT
    keywords = KEYWORDS

    async def run(self, task: Task) -> AsyncIterator[AgentEvent]:
        yield self.event(task, EventStatus.THINKING, "Querying clinic metrics...")

        if self.model is None:
            yield self.event(task, EventStatus.WORKING, "Aggregating data...")
            yield self.event(
                task,
                EventStatus.COMPLETE,
                "Metrics: 8 patients today, $2,150 pending claims, 12% denial rate (above 8% "
                "benchmark). Recommend: Review top denial reasons and resubmit corrected "
                "claims within 30 days.",
                data={"patientsToday": 8, "pendingClaims": 2150, "denialRate": 0.12},
                confidence=0.88,
                reasoning="Fallback (no model configured)",
            )
            return

        yield self.event(task, EventStatus.WORKING, "Generating insights...")
        content = f"Query: {task.intent}"
        if task.context:
            content += f"\nData: {format_context(task.context)}"
        text = await self.ask_model(content)
        yield self.event(
            task, EventStatus.COMPLETE, text, confidence=0.94, reasoning="Model analytics"
        )
