"""Server-sent-event encoding and the two-stage chat pipeline.

Wire format: every frame is `data: <json>\\n\\n` and every stream ends with
the literal sentinel `data: [DONE]\\n\\n`, even after an error.

ChatPipeline turns one chat message into a sequence of frames:

    routing -> agent -> (tool_call -> tool_result)* -> text+ -> done

1. classify the message to an agent name
2. first model call with that agent's system prompt and every tool declared
3. if the model asked for tools, run them one at a time, then stream a
   second model call that sees the tool results
4. otherwise send the first call's text as a single text frame

Any failure in these steps ends the frames with a single error frame.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import aclosing
from typing import Any

from clinic_agents.event_log import AgentLogRecord, EventLog
from clinic_agents.events import AgentEvent, AgentName, EventStatus
from clinic_agents.llm import ChatMessage, ConversationItem, ModelClient, ToolResult
from clinic_agents.routing import Classifier
from clinic_agents.tools.registry import ToolRegistry, result_count

logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"
SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}

MISSING_KEY_MESSAGE = "ANTHROPIC_API_KEY is not configured. Add it to your .env file."


def sse_frame(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


async def event_stream(
    events: AsyncIterator[AgentEvent],
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """Encode agent events as SSE frames, then the sentinel.

    When `is_disconnected` reports the client gone, the agent is closed
    and nothing more is sent.
    """
    try:
        async with aclosing(events) as source:  # type: ignore[type-var]
            async for event in source:
                yield sse_frame(event.to_wire())
                if is_disconnected is not None and await is_disconnected():
                    logger.info("Client disconnected — abandoning task %s", event.task_id)
                    return
    except Exception as exc:
        logger.exception("Event stream failed")
        yield sse_frame({"status": "error", "message": str(exc) or type(exc).__name__})
    yield DONE_FRAME


async def frame_stream(frames: AsyncIterator[dict[str, Any]]) -> AsyncIterator[str]:
    """Encode chat frames as SSE frames, then the sentinel."""
    try:
        async with aclosing(frames) as source:  # type: ignore[type-var]
            async for frame in source:
                yield sse_frame(frame)
    except Exception as exc:
        logger.exception("Chat stream failed")
        yield sse_frame({"type": "error", "message": str(exc) or type(exc).__name__})
    yield DONE_FRAME


_TOOL_USE = """
You have access to the clinic's live systems through tools. Use them to \
answer with real data instead of guessing, and summarize what they return \
clearly and concisely. If a tool returns an error, explain it plainly."""

CHAT_PROMPTS: dict[AgentName, str] = {
    AgentName.FRONT_DESK: (
        "You are the Front Desk agent for a family health clinic. You help staff "
        "look up patients, check and cancel appointments, and verify insurance. "
        "Always confirm with the staff member before cancelling an appointment."
        + _TOOL_USE
    ),
    AgentName.CLINICAL_DOC: (
        "You are the Clinical Documentation agent for a family health clinic. You "
        "help with SOAP notes, encounter documentation and ICD-10/CPT coding "
        "questions. Look up the patient and their encounters when the question "
        "is about a specific person."
        + _TOOL_USE
    ),
    AgentName.CLAIM_SCRUBBER: (
        "You are the Claim Scrubber agent for a family health clinic. You check "
        "claim status and review billing codes before submission. Use "
        "claim_lookup to find the claims the staff member is asking about."
        + _TOOL_USE
    ),
    AgentName.BILLING: (
        "You are the Billing agent for a family health clinic. You handle denied "
        "claims, payments, appeals and outstanding balances. Use claim_lookup to "
        "find denied or pending claims before drafting appeals or advice."
        + _TOOL_USE
    ),
    AgentName.ANALYTICS: (
        "You are the Analytics agent for a family health clinic. You answer "
        "questions about clinic metrics with metrics_query, and about statewide "
        "Medicaid billing with the Medicaid tools: provider search and analytics, "
        "procedure code costs, anomaly detection and the Medicaid dashboard. "
        "Lead with the most important number."
        + _TOOL_USE
    ),
}


class ChatPipeline:
    def __init__(
        self,
        model: ModelClient | None,
        classifier: Classifier,
        registry: ToolRegistry,
        event_log: EventLog,
        prompts: dict[AgentName, str] | None = None,
    ) -> None:
        self.model = model
        self.classifier = classifier
        self.registry = registry
        self.event_log = event_log
        self.prompts = prompts or CHAT_PROMPTS

    async def run(
        self,
        message: str,
        history: Sequence[ChatMessage] = (),
        user_id: str = "anonymous",
        session_id: str = "session-anon",
    ) -> AsyncIterator[dict[str, Any]]:
        if self.model is None:
            yield {"type": "error", "message": MISSING_KEY_MESSAGE}
            return

        started = time.monotonic()
        try:
            yield {"type": "routing", "message": "Routing request..."}
            agent_name = await self.classifier.classify(message)
            logger.info("Chat message routed to %s", agent_name.value)
            yield {
                "type": "agent",
                "name": agent_name.value,
                "message": f"{agent_name.label} Agent is thinking...",
            }

            system = self.prompts[agent_name]
            tools = self.registry.model_tools()
            conversation: list[ConversationItem] = [
                *history,
                ChatMessage(role="user", content=message),
            ]
            first = await self.model.generate(system, conversation, tools)

            if first.tool_calls:
                conversation.append(first)
                for call in first.tool_calls:
                    yield {"type": "tool_call", "tool": call.name}
                    payload = await self._run_tool(call.name, call.args)
                    result: dict[str, Any] = {"type": "tool_result", "tool": call.name}
                    count = result_count(payload)
                    if count is not None:
                        result["count"] = count
                    yield result
                    conversation.append(ToolResult(call_id=call.id, name=call.name, payload=payload))

                chunks: list[str] = []
                async for chunk in self.model.stream(system, conversation, tools):
                    chunks.append(chunk)
                    yield {"type": "text", "content": chunk}
                reply = "".join(chunks)
            else:
                reply = first.text
                yield {"type": "text", "content": reply}

            yield {"type": "done", "agentName": agent_name.value}
        except Exception as exc:
            logger.exception("Chat pipeline failed")
            yield {"type": "error", "message": str(exc) or "Unknown error occurred"}
            return

        self.event_log.submit(
            AgentLogRecord(
                task_id=f"chat-{int(time.time() * 1000)}",
                agent_name=agent_name,
                status=EventStatus.COMPLETE,
                intent=message[:200],
                message=reply[:500],
                user_id=user_id,
                session_id=session_id,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        )

    async def _run_tool(self, name: str, args: dict[str, Any]) -> Any:
        """Execute one tool; a failing backend is reported to the model as data."""
        try:
            return await self.registry.execute(name, args)
        except Exception as exc:
            logger.exception("Tool %s failed", name)
            return {"error": f"{name} failed: {exc}"}
