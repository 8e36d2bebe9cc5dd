"""Best-effort persistence of agent events.

Every event an agent emits is also written to an append-only log for audit
and review. Writing must never slow down or break the event stream, so
EventLog is a bounded in-memory queue drained by a background task:

- submit() never blocks and never raises; a full queue drops the record
- a failing sink is logged at debug level and counted, nothing more
- the counters (written / failed / dropped) are the only observable signal

Sinks:
- LoggingSink:   one structured log line per record (default)
- ClinicAPISink: POST /agent-logs on the clinic API
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from clinic_agents.clinic_client import get_client
from clinic_agents.config import EVENT_LOG_QUEUE_SIZE, EVENT_LOG_SINK
from clinic_agents.events import AgentEvent, AgentName, EventStatus, Task

logger = logging.getLogger(__name__)


class AgentLogRecord(BaseModel):
    """One row of the agent log."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    task_id: str
    agent_name: AgentName
    status: EventStatus
    intent: str
    message: str
    reasoning: str | None = None
    confidence: float | None = None
    data: Any = None
    user_id: str | None = None
    session_id: str | None = None
    duration_ms: int = 0

    @classmethod
    def from_event(cls, event: AgentEvent, task: Task, duration_ms: int) -> AgentLogRecord:
        return cls(
            task_id=task.id,
            agent_name=event.agent_name,
            status=event.status,
            intent=task.intent,
            message=event.message,
            reasoning=event.reasoning,
            confidence=event.confidence,
            data=event.data,
            user_id=task.user_id or None,
            session_id=task.session_id or None,
            duration_ms=duration_ms,
        )


class EventSink(Protocol):
    async def write(self, record: AgentLogRecord) -> None:  # pragma: no cover - interface
        """Persist one record. May raise; EventLog absorbs the failure."""


class LoggingSink:
    """Writes each record as a JSON log line on the `clinic_agents.audit` logger."""

    def __init__(self, name: str = "clinic_agents.audit") -> None:
        self._logger = logging.getLogger(name)

    async def write(self, record: AgentLogRecord) -> None:
        self._logger.info(record.model_dump_json(by_alias=True, exclude_none=True))


class ClinicAPISink:
    """Appends records to the clinic's agent_logs table through the API."""

    async def write(self, record: AgentLogRecord) -> None:
        client = await get_client()
        await client.post("/agent-logs", json_data=record.model_dump(mode="json", by_alias=True))


class EventLog:
    """Bounded async side-channel from the event stream to a sink."""

    def __init__(self, sink: EventSink, maxsize: int = EVENT_LOG_QUEUE_SIZE) -> None:
        self.sink = sink
        self.maxsize = maxsize
        self.written = 0
        self.failed = 0
        self.dropped = 0
        self._queue: asyncio.Queue[AgentLogRecord] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def submit(self, record: AgentLogRecord) -> None:
        """Queue a record for writing. Returns immediately; never raises."""
        try:
            queue = self._ensure_worker()
            queue.put_nowait(record)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug("Event log queue full — dropped record for task %s", record.task_id)
        except RuntimeError:
            # No running event loop (called from sync code): nothing can drain it
            self.dropped += 1

    def _ensure_worker(self) -> asyncio.Queue[AgentLogRecord]:
        loop = asyncio.get_running_loop()
        if self._queue is None or self._worker is None or self._worker.done() or self._loop is not loop:
            self._loop = loop
            self._queue = asyncio.Queue(maxsize=self.maxsize)
            self._worker = loop.create_task(self._drain(self._queue), name="event-log-drain")
        return self._queue

    async def _drain(self, queue: asyncio.Queue[AgentLogRecord]) -> None:
        while True:
            record = await queue.get()
            try:
                await self.sink.write(record)
                self.written += 1
            except Exception:
                self.failed += 1
                logger.debug("Event log write failed for task %s", record.task_id, exc_info=True)
            finally:
                queue.task_done()

    async def flush(self) -> None:
        """Wait until every queued record has been handed to the sink."""
        if self._queue is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()

    async def close(self) -> None:
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            self._worker = None


def build_event_log(sink_name: str = EVENT_LOG_SINK) -> EventLog:
    sink: EventSink = ClinicAPISink() if sink_name == "api" else LoggingSink()
    return EventLog(sink)
