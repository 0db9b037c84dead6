"""Tests for interview grading."""

import pytest

from conftest import make_grading
from mentora.core.config import settings
from mentora.services.answer_grader import AnswerGrader, GradingError
from mentora.services.prompt_builder import NO_ANSWER_PLACEHOLDER

QUESTIONS = ["What is a stack?", "What is a queue?", "What is a heap?"]


async def test_grade_returns_feedback_per_question(fake_client):
    fake_client.queue_json(make_grading(3))

    result = await AnswerGrader(fake_client).grade(QUESTIONS, ["LIFO", "", None], "medium")

    assert len(result.feedback) == 3
    assert result.feedback[1].missing == "Missing detail 2."
    call = fake_client.complete_calls[0]
    assert call["temperature"] == settings.TEMPERATURE_ANALYTICAL
    assert call["prompt"].count(NO_ANSWER_PLACEHOLDER) == 2


async def test_feedback_count_mismatch_is_an_error(fake_client):
    fake_client.queue_json(make_grading(2))
    with pytest.raises(GradingError) as exc_info:
        await AnswerGrader(fake_client).grade(QUESTIONS, ["a", "b", "c"], "hard")
    assert exc_info.value.raw is not None


async def test_malformed_response(fake_client):
    fake_client.queue_text('{"feedback": [{"good": "ok"}]}')
    with pytest.raises(GradingError):
        await AnswerGrader(fake_client).grade(QUESTIONS[:1], ["a"], "easy")


async def test_provider_failure(fake_client):
    fake_client.queue_failure()
    with pytest.raises(GradingError) as exc_info:
        await AnswerGrader(fake_client).grade(QUESTIONS, ["a", "b", "c"], "easy")
    assert exc_info.value.kind == "provider"


async def test_empty_feedback_field_is_rejected(fake_client):
    grading = make_grading(3)
    grading["feedback"][1]["good"] = ""
    fake_client.queue_json(grading)

    with pytest.raises(GradingError) as exc_info:
        await AnswerGrader(fake_client).grade(QUESTIONS, ["LIFO", "", "tree"], "medium")
    assert exc_info.value.raw is not None
