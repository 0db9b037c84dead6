"""Tests for the SQLAlchemy session store."""

import pytest

from mentora.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from mentora.schemas.study import ChatMessage, PersonaInfo, StudySessionState

QUESTIONS = [{"text": f"Q{i}?", "difficulty": "easy"} for i in range(3)]


def _graded(questions):
    return [{**q, "good": "Clear.", "missing": "Depth."} for q in questions]


async def test_create_and_read_interview(store):
    session_id = await store.create_interview_session("user-1", "dsa", "easy", QUESTIONS)

    record = await store.read_interview_session(session_id, "user-1")
    assert record.answers == ["", "", ""]
    assert record.questions == QUESTIONS
    assert record.completed_at is None
    assert record.started_at is not None


async def test_interviews_are_owner_scoped(store):
    session_id = await store.create_interview_session("user-1", "dsa", "easy", QUESTIONS)
    with pytest.raises(NotFoundError):
        await store.read_interview_session(session_id, "user-2")
    with pytest.raises(NotFoundError):
        await store.delete_interview_session(session_id, "user-2")


async def test_update_answers_replaces_whole_array(store):
    session_id = await store.create_interview_session("user-1", "dsa", "easy", QUESTIONS)
    await store.update_interview_answers(session_id, ["a", "", ""], "user-1")
    await store.update_interview_answers(session_id, ["a", "b", ""], "user-1")

    record = await store.read_interview_session(session_id)
    assert record.answers == ["a", "b", ""]

    with pytest.raises(ValidationError):
        await store.update_interview_answers(session_id, ["a"], "user-1")


async def test_complete_interview_is_single_shot(store):
    session_id = await store.create_interview_session("user-1", "dsa", "easy", QUESTIONS)

    completed_at = await store.complete_interview_session(
        session_id, _graded(QUESTIONS), "Great job!", "user-1"
    )
    assert completed_at is not None

    record = await store.read_interview_session(session_id)
    assert record.summary == "Great job!"
    assert all(q["good"] and q["missing"] for q in record.questions)

    with pytest.raises(InvalidTransitionError):
        await store.complete_interview_session(session_id, _graded(QUESTIONS), "Again", "user-1")
    with pytest.raises(InvalidTransitionError):
        await store.update_interview_answers(session_id, ["x", "y", "z"], "user-1")


async def test_complete_requires_full_feedback(store):
    session_id = await store.create_interview_session("user-1", "dsa", "easy", QUESTIONS)
    partial = _graded(QUESTIONS)
    partial[1]["missing"] = ""
    with pytest.raises(ValidationError):
        await store.complete_interview_session(session_id, partial, "Summary", "user-1")
    with pytest.raises(ValidationError):
        await store.complete_interview_session(session_id, _graded(QUESTIONS[:2]), "Summary", "user-1")

    record = await store.read_interview_session(session_id)
    assert record.completed_at is None
    assert record.summary is None


async def test_list_and_delete(store):
    first = await store.create_interview_session("user-1", "dsa", "easy", QUESTIONS)
    second = await store.create_interview_session("user-1", "frontend", "hard", QUESTIONS)
    await store.create_interview_session("user-2", "dsa", "easy", QUESTIONS)

    listed = await store.list_interview_sessions("user-1")
    assert [r.id for r in listed] == [second, first]

    await store.delete_interview_session(first, "user-1")
    with pytest.raises(NotFoundError):
        await store.read_interview_session(first)


async def test_study_state_round_trip_and_reset(store):
    assert await store.read_study_state("user-1", "web-choi") is None

    state = StudySessionState()
    state.mode = "study"
    state.study_stage = "open-dialogue"
    state.selected_level = "beginner"
    state.selected_topic = "The DOM"
    state.lesson_plan = ["Nodes", "Events", "Traversal"]
    state.messages.append(ChatMessage(role="user", content="hi"))
    await store.write_study_state("user-1", "web-choi", state)
    await store.append_study_message("user-1", "web-choi", ChatMessage(role="user", content="hi"))

    loaded = await store.read_study_state("user-1", "web-choi")
    assert loaded.mode == "study"
    assert loaded.lesson_plan == ["Nodes", "Events", "Traversal"]
    assert loaded.messages[-1].content == "hi"
    assert [m.content for m in await store.list_study_messages("user-1", "web-choi")] == ["hi"]

    await store.reset_study_state("user-1", "web-choi")
    assert await store.read_study_state("user-1", "web-choi") is None
    assert await store.list_study_messages("user-1", "web-choi") == []


async def test_fetch_persona(store):
    persona = await store.fetch_persona("dsa-narayanan")
    assert persona.subject == "dsa"

    with pytest.raises(NotFoundError):
        await store.fetch_persona("nobody")

    await store.upsert_persona(PersonaInfo(id="blank", name="Blank", subject="dsa", display_prompt="  "))
    with pytest.raises(ValidationError):
        await store.fetch_persona("blank")
