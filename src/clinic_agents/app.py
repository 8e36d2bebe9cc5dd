"""FastAPI server — the HTTP entry point for the clinic agents.

Endpoints:

- GET  /agent/health  — Simple check that the server is running
- POST /agent/stream  — Dispatch an intent to one task agent, stream its events
- POST /agent/chat    — Route a chat message, call tools, stream the answer

Both POST endpoints answer with server-sent events (text/event-stream) and
end every stream with `data: [DONE]`. They require an agent API key as a
bearer token; the optional X-Session-Id header attributes log rows to a
dashboard session.

Run locally with:
    uvicorn clinic_agents.app:app --reload
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from pydantic import BaseModel, Field, field_validator

from clinic_agents.agents import default_agents
from clinic_agents.clinic_client import close_client
from clinic_agents.config import (
    AGENT_API_KEYS,
    ANTHROPIC_MODEL,
    ANTHROPIC_ROUTER_MODEL,
    LOG_LEVEL,
)
from clinic_agents.event_log import EventLog, build_event_log
from clinic_agents.llm import ChatMessage, build_model_client
from clinic_agents.orchestrator import Dispatcher, build_dispatcher
from clinic_agents.routing import build_classifier
from clinic_agents.streaming import SSE_HEADERS, ChatPipeline, event_stream, frame_stream
from clinic_agents.tools.registry import build_registry

logger = logging.getLogger(__name__)


# --- Service singletons (built on first use, replaceable in tests) ---

_event_log: EventLog | None = None
_dispatcher: Dispatcher | None = None
_chat_pipeline: ChatPipeline | None = None


def get_event_log() -> EventLog:
    global _event_log  # noqa: PLW0603
    if _event_log is None:
        _event_log = build_event_log()
    return _event_log


def get_dispatcher() -> Dispatcher:
    global _dispatcher  # noqa: PLW0603
    if _dispatcher is None:
        _dispatcher = build_dispatcher(build_model_client(), get_event_log())
    return _dispatcher


def get_chat_pipeline() -> ChatPipeline:
    global _chat_pipeline  # noqa: PLW0603
    if _chat_pipeline is None:
        router_model = build_model_client(ANTHROPIC_ROUTER_MODEL)
        _chat_pipeline = ChatPipeline(
            model=build_model_client(ANTHROPIC_MODEL),
            classifier=build_classifier(default_agents(), router_model),
            registry=build_registry(),
            event_log=get_event_log(),
        )
    return _chat_pipeline


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    yield
    if _event_log is not None:
        await _event_log.close()
    await close_client()


app = FastAPI(
    title="Clinic Agent Service",
    description="Task agents and tool-using chat for the clinic dashboard",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Authentication ---


class NotAuthenticated(Exception):
    """The request carried no valid agent API key."""


class Session(BaseModel):
    user_id: str
    session_id: str


def parse_api_keys(raw: str) -> dict[str, str]:
    """Parse "user_id:key,user_id:key" into {key: user_id}."""
    keys: dict[str, str] = {}
    for pair in raw.split(","):
        user_id, sep, key = pair.strip().partition(":")
        if sep and user_id and key:
            keys[key] = user_id
    return keys


_API_KEYS = parse_api_keys(AGENT_API_KEYS)


def get_api_keys() -> dict[str, str]:
    return _API_KEYS


def get_session(
    authorization: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
    api_keys: dict[str, str] = Depends(get_api_keys),
) -> Session:
    scheme, _, token = (authorization or "").partition(" ")
    user_id = api_keys.get(token.strip()) if scheme.lower() == "bearer" else None
    if not user_id:
        raise NotAuthenticated()
    return Session(user_id=user_id, session_id=x_session_id or "session-anon")


@app.exception_handler(NotAuthenticated)
async def not_authenticated_handler(request: Request, exc: NotAuthenticated) -> Response:
    return Response(status_code=401)


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError) -> Response:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        message = str(errors[0].get("msg", message)).removeprefix("Value error, ")
    return PlainTextResponse(message, status_code=400)


# --- Request models ---


class StreamRequest(BaseModel):
    """What the client sends to /agent/stream."""

    intent: str
    context: dict[str, Any] | None = None

    @field_validator("intent")
    @classmethod
    def _intent_present(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Missing intent")
        return value


class ChatRequest(BaseModel):
    """What the client sends to /agent/chat."""

    message: str
    history: list[ChatMessage] = Field(default_factory=list)

    @field_validator("message")
    @classmethod
    def _message_present(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Missing message")
        return value


# --- Routes ---


@app.get("/agent/health")
async def health() -> dict[str, str]:
    """Health check endpoint. Returns 200 if the server is running."""
    return {"status": "ok"}


@app.post("/agent/stream")
async def stream(
    request: Request,
    body: StreamRequest,
    session: Session = Depends(get_session),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> StreamingResponse:
    """Run the intent through the matching agent and stream its events.

    Each frame is one AgentEvent in its camelCase wire form. The client
    disconnecting stops the stream, and the agent with it.
    """
    events = dispatcher.dispatch(
        body.intent,
        context=body.context,
        user_id=session.user_id,
        session_id=session.session_id,
    )
    return StreamingResponse(
        event_stream(events, request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.post("/agent/chat")
async def chat(
    body: ChatRequest,
    session: Session = Depends(get_session),
    pipeline: ChatPipeline = Depends(get_chat_pipeline),
) -> StreamingResponse:
    """Answer a chat message with progress, tool and text frames."""
    frames = pipeline.run(
        body.message,
        history=body.history,
        user_id=session.user_id,
        session_id=session.session_id,
    )
    return StreamingResponse(
        frame_stream(frames), media_type="text/event-stream", headers=SSE_HEADERS
    )
