"""Tests for the study session orchestrator."""

import asyncio

import pytest

from mentora.core.exceptions import (
    ConfirmationRequiredError,
    InvalidTransitionError,
    SessionBusyError,
    ValidationError,
)
from mentora.schemas.study import WELCOME_MESSAGE
from mentora.services.generation_client import GenerationError, GenerationErrorKind
from mentora.services.lesson_service import LessonService
from mentora.services.study_orchestrator import (
    LESSON_FAILED_MESSAGE,
    REPLY_FAILED_MESSAGE,
    DEFAULT_TOPICS,
    StudyEvent,
    StudySessionOrchestrator,
    topics_for,
)

PLAN = ["Contiguous memory", "Indexing", "Resizing"]


async def _open(store, fake_client, persona_id="dsa-narayanan") -> StudySessionOrchestrator:
    return await StudySessionOrchestrator.open(
        store, fake_client, LessonService(fake_client), "user-1", persona_id
    )


async def _into_dialogue(orchestrator, fake_client, topic="Arrays"):
    await orchestrator.dispatch(StudyEvent(type="select_mode", mode="study"))
    await orchestrator.dispatch(StudyEvent(type="select_level", level="beginner"))
    fake_client.queue_json({"lessonPlan": PLAN, "explanation": "Arrays hold items in a row."})
    fake_client.queue_stream("Great! ", "Arrays store items side by side. ", "Ready?")
    await orchestrator.dispatch(StudyEvent(type="select_topic", topic=topic))


async def test_first_visit_creates_default_state(store, fake_client):
    orchestrator = await _open(store, fake_client)

    assert orchestrator.state.mode == "unselected"
    assert [m.content for m in orchestrator.state.messages] == [WELCOME_MESSAGE]
    assert await store.read_study_state("user-1", "dsa-narayanan") is not None


def test_topics_lookup_falls_back_for_unknown_subjects():
    assert "Arrays" in topics_for("dsa", "beginner")
    assert topics_for("underwater-basketry", "advanced") == DEFAULT_TOPICS["advanced"]
    assert topics_for("dsa", "expert") == []


async def test_study_flow_to_dialogue(store, fake_client):
    orchestrator = await _open(store, fake_client)
    await _into_dialogue(orchestrator, fake_client)
    state = orchestrator.state

    assert state.study_stage == "open-dialogue"
    assert state.selected_topic == "Arrays"
    assert state.lesson_plan == PLAN
    assert [(m.role, m.content) for m in state.messages[1:]] == [
        ("assistant", "Arrays hold items in a row."),
        ("user", "Let's start learning about Arrays"),
        ("assistant", "Great! Arrays store items side by side. Ready?"),
    ]
    assert not state.is_replying

    system_prompt = fake_client.stream_calls[0]["system_prompt"]
    assert "1. Contiguous memory" in system_prompt

    persisted = await store.read_study_state("user-1", "dsa-narayanan")
    assert persisted.messages[-1].content == "Great! Arrays store items side by side. Ready?"
    transcript = await store.list_study_messages("user-1", "dsa-narayanan")
    assert [m.role for m in transcript] == ["assistant", "user", "assistant"]
    assert transcript[0].content == "Arrays hold items in a row."


async def test_selection_order_is_enforced(store, fake_client):
    orchestrator = await _open(store, fake_client)
    with pytest.raises(InvalidTransitionError):
        await orchestrator.dispatch(StudyEvent(type="select_level", level="beginner"))
    with pytest.raises(InvalidTransitionError):
        await orchestrator.send_message("hello?")

    await orchestrator.dispatch(StudyEvent(type="select_mode", mode="study"))
    with pytest.raises(InvalidTransitionError):
        await orchestrator.dispatch(StudyEvent(type="select_mode", mode="advice"))
    with pytest.raises(ValidationError):
        await orchestrator.dispatch(StudyEvent(type="select_level", level="guru"))

    await orchestrator.dispatch(StudyEvent(type="select_level", level="advanced"))
    with pytest.raises(ValidationError):
        await orchestrator.dispatch(StudyEvent(type="select_topic", topic="Arrays"))


async def test_dialogue_turns_keep_order(store, fake_client):
    orchestrator = await _open(store, fake_client)
    await _into_dialogue(orchestrator, fake_client)

    fake_client.queue_stream("Exactly. ", "Why start at 0?")
    fragments = await orchestrator.send_message("yes")
    # The user's message and the placeholder are visible before the reply arrives
    assert orchestrator.state.messages[-2].content == "yes"
    assert orchestrator.state.messages[-1].content == ""
    assert orchestrator.state.is_replying

    received = [f async for f in fragments]
    await orchestrator.wait_for_reply()

    assert received == ["Exactly. ", "Why start at 0?"]
    roles = [m.role for m in orchestrator.state.messages]
    assert roles == ["assistant", "assistant", "user", "assistant", "user", "assistant"]
    assert orchestrator.state.messages[-1].content == "Exactly. Why start at 0?"

    history = fake_client.stream_calls[-1]["history"]
    assert history[-1] == {"role": "user", "content": "yes"}
    assert history[0]["content"] == WELCOME_MESSAGE


async def test_abandoned_listener_still_gets_full_reply(store, fake_client):
    orchestrator = await _open(store, fake_client)
    await _into_dialogue(orchestrator, fake_client)

    fake_client.queue_stream("one ", "two ", "three")
    fragments = await orchestrator.send_message("go on")
    async for _ in fragments:
        break
    await fragments.aclose()
    await orchestrator.wait_for_reply()

    assert orchestrator.state.messages[-1].content == "one two three"
    persisted = await store.read_study_state("user-1", "dsa-narayanan")
    assert persisted.messages[-1].content == "one two three"


async def test_events_while_replying_are_rejected(store, fake_client):
    orchestrator = await _open(store, fake_client)
    await _into_dialogue(orchestrator, fake_client)

    fake_client.stream_gate = asyncio.Event()
    fake_client.queue_stream("slow reply")
    fragments = await orchestrator.send_message("question")

    with pytest.raises(SessionBusyError):
        await orchestrator.send_message("another")
    with pytest.raises(SessionBusyError):
        await orchestrator.dispatch(StudyEvent(type="reset", confirmed=True))

    fake_client.stream_gate.set()
    assert [f async for f in fragments] == ["slow reply"]
    await orchestrator.wait_for_reply()
    assert not orchestrator.state.is_replying


async def test_stream_failure_removes_placeholder(store, fake_client):
    orchestrator = await _open(store, fake_client)
    await _into_dialogue(orchestrator, fake_client)
    before = len(orchestrator.state.messages)

    fake_client.queue_stream("partial", error=GenerationError(GenerationErrorKind.TRANSPORT, "reset"))
    fragments = await orchestrator.send_message("will this fail?")
    assert [f async for f in fragments] == ["partial"]
    await orchestrator.wait_for_reply()

    state = orchestrator.state
    assert len(state.messages) == before + 1
    assert state.messages[-1].role == "user"
    assert state.messages[-1].content == "will this fail?"
    assert state.error == REPLY_FAILED_MESSAGE
    assert not state.is_replying


async def test_lesson_failure_keeps_topic_selection_open(store, fake_client):
    orchestrator = await _open(store, fake_client)
    await orchestrator.dispatch(StudyEvent(type="select_mode", mode="study"))
    await orchestrator.dispatch(StudyEvent(type="select_level", level="beginner"))

    fake_client.queue_failure()
    state = await orchestrator.dispatch(StudyEvent(type="select_topic", topic="Arrays"))

    assert state.study_stage == "choosing-topic"
    assert state.error == LESSON_FAILED_MESSAGE
    assert not state.is_replying


async def test_advance_lesson(store, fake_client):
    orchestrator = await _open(store, fake_client)
    await _into_dialogue(orchestrator, fake_client)

    fake_client.queue_json({"explanation": "Indexes are offsets."})
    await orchestrator.dispatch(StudyEvent(type="advance_lesson"))
    assert orchestrator.state.lesson_step == 1
    assert orchestrator.state.messages[-1].content == "Indexes are offsets."

    fake_client.queue_json({"explanation": "Arrays double when full.", "conclusion": "Congrats!"})
    await orchestrator.dispatch(StudyEvent(type="advance_lesson"))
    assert orchestrator.state.lesson_step == 2
    assert orchestrator.state.messages[-1].content == "Arrays double when full.\n\nCongrats!"

    with pytest.raises(InvalidTransitionError):
        await orchestrator.dispatch(StudyEvent(type="advance_lesson"))


async def test_advice_mode_sends_only_the_query(store, fake_client):
    orchestrator = await _open(store, fake_client, "sys-ramirez")
    await orchestrator.dispatch(StudyEvent(type="select_mode", mode="advice"))

    fake_client.queue_stream("Start with the basics.")
    await orchestrator.dispatch(StudyEvent(type="send_message", text="How do I prepare?"))
    fake_client.queue_stream("Practice daily.")
    await orchestrator.dispatch(StudyEvent(type="send_message", text="Anything else?"))

    call = fake_client.stream_calls[-1]
    assert call["history"] == [{"role": "user", "content": "Anything else?"}]
    assert "Advice Mode" in call["system_prompt"]
    assert orchestrator.state.messages[-1].content == "Practice daily."


async def test_empty_message_is_rejected(store, fake_client):
    orchestrator = await _open(store, fake_client)
    await orchestrator.dispatch(StudyEvent(type="select_mode", mode="advice"))
    with pytest.raises(ValidationError):
        await orchestrator.send_message("   ")


async def test_reset_clears_everything(store, fake_client):
    orchestrator = await _open(store, fake_client)
    await _into_dialogue(orchestrator, fake_client)

    with pytest.raises(ConfirmationRequiredError):
        await orchestrator.dispatch(StudyEvent(type="reset"))

    state = await orchestrator.dispatch(StudyEvent(type="reset", confirmed=True))
    assert state.mode == "unselected"
    assert [m.content for m in state.messages] == [WELCOME_MESSAGE]
    assert state.lesson_plan == []
    assert await store.list_study_messages("user-1", "dsa-narayanan") == []

    reopened = await _open(store, fake_client)
    assert reopened.state.mode == "unselected"
    assert len(reopened.state.messages) == 1
