"""Tests for keyword dispatch."""

from __future__ import annotations

import pytest

from clinic_agents.event_log import EventLog
from clinic_agents.events import AgentName, EventStatus
from clinic_agents.orchestrator import Dispatcher, build_dispatcher
from conftest import RecordingSink


@pytest.mark.asyncio
async def test_check_in_goes_to_front_desk(event_log: EventLog, sink: RecordingSink) -> None:
    dispatcher = build_dispatcher(None, event_log)

    events = [e async for e in dispatcher.dispatch("check in patient Maria", user_id="u1", session_id="s1")]

    assert [e.status for e in events] == [
        EventStatus.THINKING,
        EventStatus.WORKING,
        EventStatus.COMPLETE,
    ]
    assert {e.agent_name for e in events} == {AgentName.FRONT_DESK}
    assert len({e.task_id for e in events}) == 1
    assert events[-1].confidence == 0.85
    assert events[-1].message.startswith("Patient check-in processed")

    await event_log.flush()
    assert len(sink.records) == 3
    assert {(r.user_id, r.session_id) for r in sink.records} == {("u1", "s1")}


@pytest.mark.asyncio
async def test_schedule_follow_up_goes_to_front_desk(event_log: EventLog) -> None:
    dispatcher = build_dispatcher(None, event_log)

    events = [e async for e in dispatcher.dispatch("schedule a follow-up for patient X")]

    assert {e.agent_name for e in events} == {AgentName.FRONT_DESK}
    assert [e.status for e in events] == [
        EventStatus.THINKING,
        EventStatus.WORKING,
        EventStatus.COMPLETE,
    ]
    assert events[-1].message == "Appointment scheduled successfully. Confirmation sent via SMS and email."
    assert events[-1].confidence == 0.85


@pytest.mark.asyncio
async def test_no_matching_agent_escalates(event_log: EventLog) -> None:
    dispatcher = build_dispatcher(None, event_log)

    events = [e async for e in dispatcher.dispatch("xyzzy")]

    assert len(events) == 1
    event = events[0]
    assert event.status == EventStatus.ESCALATED
    assert event.agent_name == AgentName.FRONT_DESK
    assert event.message == 'No agent available for "xyzzy". Logged for review.'


@pytest.mark.asyncio
async def test_specific_agent_wins_over_catch_all(event_log: EventLog) -> None:
    """"Lookup claim" matches both the scrubber and the front desk; priority decides."""
    dispatcher = build_dispatcher(None, event_log)

    events = [e async for e in dispatcher.dispatch("lookup claim for patient")]

    assert events[-1].agent_name == AgentName.CLAIM_SCRUBBER


@pytest.mark.asyncio
async def test_dispatch_is_deterministic(event_log: EventLog) -> None:
    dispatcher = build_dispatcher(None, event_log)
    intents = ["scrub claim 1234", "draft a soap note", "denial appeal", "revenue report", "hello"]

    first = [[e.agent_name async for e in dispatcher.dispatch(i)] for i in intents]
    second = [[e.agent_name async for e in dispatcher.dispatch(i)] for i in intents]

    assert first == second


@pytest.mark.asyncio
async def test_each_dispatch_gets_a_new_task_id(event_log: EventLog) -> None:
    dispatcher = build_dispatcher(None, event_log)

    a = [e async for e in dispatcher.dispatch("hello")]
    b = [e async for e in dispatcher.dispatch("hello")]

    assert a[0].task_id != b[0].task_id


@pytest.mark.asyncio
async def test_dispatch_is_lazy(event_log: EventLog, sink: RecordingSink) -> None:
    dispatcher = build_dispatcher(None, event_log)

    stream = dispatcher.dispatch("hello")
    await event_log.flush()
    assert sink.records == []

    await stream.__anext__()
    await stream.aclose()  # type: ignore[attr-defined]


def test_dispatcher_requires_agents(event_log: EventLog) -> None:
    from clinic_agents.wrapper import ExecutionWrapper

    with pytest.raises(ValueError):
        Dispatcher([], ExecutionWrapper(event_log))
