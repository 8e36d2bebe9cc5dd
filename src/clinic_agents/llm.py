"""Generative model capability used by the agents and the chat pipeline.

Everything above this module talks to a ModelClient: "given a system
instruction and a conversation, produce text and/or function-call
requests". AnthropicModelClient implements it with LangChain's ChatAnthropic.

The client is injected rather than looked up from process-wide state. When
ANTHROPIC_API_KEY is not set, build_model_client() returns None and callers
take their deterministic fallback path, which is also what the tests use
(together with a scripted stub client).
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any, Literal, Protocol, Union

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from clinic_agents.config import (
    ANTHROPIC_AGENT_MODEL,
    ANTHROPIC_API_KEY,
    MODEL_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    """A plain conversation turn, as sent by the caller in `history`.

    Any role other than "assistant" is treated as the user speaking.
    """

    role: Literal["user", "assistant"]
    content: str

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> str:
        return "assistant" if value == "assistant" else "user"


class ToolCall(BaseModel):
    """A function-call request produced by the model."""

    id: str = ""
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """The outcome of executing one ToolCall, fed back to the model."""

    call_id: str = ""
    name: str
    payload: Any = None


class ModelResponse(BaseModel):
    """One model turn: its text and any function calls it requested.

    `raw` keeps the provider's own message object so the turn can be echoed
    back verbatim when tool results are appended to the conversation.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    raw: Any = None


ConversationItem = Union[ChatMessage, ModelResponse, ToolResult]


class ModelClient(Protocol):
    """Interface for generative model providers."""

    async def generate(
        self,
        system: str,
        conversation: Sequence[ConversationItem],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> ModelResponse:  # pragma: no cover - interface
        """Return one complete model turn."""

    def stream(
        self,
        system: str,
        conversation: Sequence[ConversationItem],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> AsyncIterator[str]:  # pragma: no cover - interface
        """Yield the model's text incrementally, in generation order."""


def _text_of(content: Any) -> str:
    """Flatten LangChain message content (str or list of blocks) to text."""
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


def _to_langchain(system: str, conversation: Sequence[ConversationItem]) -> list[BaseMessage]:
    messages: list[BaseMessage] = [SystemMessage(content=system)]
    for item in conversation:
        if isinstance(item, ChatMessage):
            if item.role == "assistant":
                messages.append(AIMessage(content=item.content))
            else:
                messages.append(HumanMessage(content=item.content))
        elif isinstance(item, ModelResponse):
            if isinstance(item.raw, AIMessage):
                messages.append(item.raw)
            else:
                messages.append(
                    AIMessage(
                        content=item.text,
                        tool_calls=[
                            {"id": c.id, "name": c.name, "args": c.args}
                            for c in item.tool_calls
                        ],
                    )
                )
        else:
            messages.append(
                ToolMessage(
                    content=json.dumps(item.payload, default=str),
                    tool_call_id=item.call_id,
                    name=item.name,
                )
            )
    return messages


class AnthropicModelClient:
    """ModelClient backed by Claude through langchain-anthropic.

    generate() runs under a deadline (MODEL_TIMEOUT_SECONDS by default), and
    stream() applies it to each chunk. Exceeding it raises TimeoutError,
    which the wrapper and the chat pipeline report as an error like any
    other provider failure.
    """

    def __init__(
        self,
        model: str,
        api_key: str = ANTHROPIC_API_KEY,
        timeout: float = MODEL_TIMEOUT_SECONDS,
        max_tokens: int = 2048,
    ) -> None:
        self.model = model
        self.timeout = timeout
        # mypy can't see Pydantic model fields as constructor kwargs, so we
        # suppress the type error here. This works correctly at runtime.
        self._chat = ChatAnthropic(
            model_name=model,  # type: ignore[call-arg]
            anthropic_api_key=SecretStr(api_key),  # type: ignore[call-arg]
            max_tokens=max_tokens,  # type: ignore[call-arg]
        )

    def _runnable(self, tools: Sequence[dict[str, Any]] | None) -> Any:
        if not tools:
            return self._chat
        return self._chat.bind_tools(list(tools))

    async def generate(
        self,
        system: str,
        conversation: Sequence[ConversationItem],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> ModelResponse:
        messages = _to_langchain(system, conversation)
        async with asyncio.timeout(self.timeout):
            result = await self._runnable(tools).ainvoke(messages)

        tool_calls = [
            ToolCall(id=tc.get("id") or "", name=tc["name"], args=tc.get("args") or {})
            for tc in getattr(result, "tool_calls", None) or []
        ]
        logger.debug(
            "Model %s returned %d tool call(s)", self.model, len(tool_calls)
        )
        return ModelResponse(text=_text_of(result.content), tool_calls=tool_calls, raw=result)

    async def stream(
        self,
        system: str,
        conversation: Sequence[ConversationItem],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> AsyncIterator[str]:
        messages = _to_langchain(system, conversation)
        # The deadline covers each chunk fetch only, never time spent in the consumer
        async with aclosing(self._runnable(tools).astream(messages)) as chunks:
            while True:
                async with asyncio.timeout(self.timeout):
                    try:
                        chunk = await anext(chunks)
                    except StopAsyncIteration:
                        break
                text = _text_of(chunk.content)
                if text:
                    yield text


def build_model_client(model: str = ANTHROPIC_AGENT_MODEL) -> AnthropicModelClient | None:
    """Return a client for `model`, or None when no API key is configured."""
    if not ANTHROPIC_API_KEY:
        logger.info("ANTHROPIC_API_KEY not set — agents will use fallback responses")
        return None
    return AnthropicModelClient(model=model)
