"""Tests for lesson generation and its Redis cache."""

import pytest

from mentora.core.exceptions import GenerationFailedError, ValidationError
from mentora.services.lesson_service import LessonService
from mentora.services.personas import DEFAULT_PERSONAS

PERSONA = DEFAULT_PERSONAS[0]
PLAN = ["What is a graph", "Traversal", "Shortest paths"]


async def test_start_lesson(fake_client):
    fake_client.queue_text(
        'Here you go: {"lessonPlan": ["What is a graph", "Traversal", "Shortest paths"], '
        '"explanation": "A graph is nodes and edges."}'
    )
    step = await LessonService(fake_client).start_lesson(PERSONA, "Graphs")

    assert step.lesson_plan == PLAN
    assert step.current_step == 0
    assert step.conclusion is None
    assert step.model_dump(by_alias=True)["lessonPlan"] == PLAN


async def test_start_lesson_rejects_short_plans(fake_client):
    fake_client.queue_json({"lessonPlan": ["Only one"], "explanation": "x"})
    with pytest.raises(GenerationFailedError):
        await LessonService(fake_client).start_lesson(PERSONA, "Graphs")


async def test_continue_lesson_final_step_needs_conclusion(fake_client):
    service = LessonService(fake_client)

    fake_client.queue_json({"explanation": "BFS visits level by level.", "conclusion": "stray"})
    middle = await service.continue_lesson(PERSONA, PLAN, 1)
    assert middle.conclusion is None
    assert middle.current_step == 1

    fake_client.queue_json({"explanation": "Dijkstra finds shortest paths."})
    with pytest.raises(GenerationFailedError):
        await service.continue_lesson(PERSONA, PLAN, 2)

    fake_client.queue_json({"explanation": "Dijkstra.", "conclusion": "Well done!"})
    final = await service.continue_lesson(PERSONA, PLAN, 2)
    assert final.conclusion == "Well done!"


async def test_continue_lesson_validates_step(fake_client):
    service = LessonService(fake_client)
    with pytest.raises(ValidationError):
        await service.continue_lesson(PERSONA, PLAN, 3)
    with pytest.raises(ValidationError):
        await service.continue_lesson(PERSONA, [], 0)


async def test_cache_hit_skips_generation(fake_client, fake_redis):
    service = LessonService(fake_client, fake_redis)
    fake_client.queue_json({"lessonPlan": PLAN, "explanation": "A graph is nodes and edges."})

    first = await service.start_lesson(PERSONA, "Graphs")
    second = await service.start_lesson(PERSONA, "Graphs")

    assert first == second
    assert len(fake_client.complete_calls) == 1


async def test_failed_generation_is_not_cached(fake_client, fake_redis):
    service = LessonService(fake_client, fake_redis)
    fake_client.queue_failure()
    with pytest.raises(GenerationFailedError):
        await service.start_lesson(PERSONA, "Graphs")
    assert await fake_redis.keys("lesson:*") == []
