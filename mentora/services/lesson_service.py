"""Service for guided lessons: a short lesson plan explained one sub-topic at a time."""

import hashlib
import json
import logging
from typing import Optional, Sequence

import redis.asyncio as redis
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from mentora.core.config import settings
from mentora.core.exceptions import GenerationFailedError, ValidationError
from mentora.schemas.study import PersonaInfo
from mentora.services.generation_client import GenerationClient, GenerationErrorKind
from mentora.services.prompt_builder import (
    build_lesson_continuation_prompt,
    build_lesson_start_prompt,
)
from mentora.utils.text_utils import extract_json

logger = logging.getLogger(__name__)

LESSON_SYSTEM_PROMPT = "You are an expert mentor writing lesson content. Respond with minified JSON only."


class _LessonStart(BaseModel):
    lessonPlan: list[str] = Field(..., min_length=3, max_length=5)
    explanation: str = Field(..., min_length=1)


class _LessonContinuation(BaseModel):
    explanation: str = Field(..., min_length=1)
    conclusion: Optional[str] = None


class LessonStep(BaseModel):
    """One explained step of a lesson."""

    model_config = ConfigDict(populate_by_name=True)

    lesson_plan: list[str] = Field(..., alias="lessonPlan")
    explanation: str
    conclusion: Optional[str] = None
    current_step: int = Field(..., alias="currentStep")


class LessonService:
    """Generates lesson steps, caching each response in Redis."""

    def __init__(
        self,
        client: Optional[GenerationClient] = None,
        redis_client: Optional[redis.Redis] = None,
    ):
        self._client = client or GenerationClient()
        self._redis = redis_client

    @staticmethod
    def _cache_key(persona_id: str, query: str, is_final_step: bool) -> str:
        digest = hashlib.sha256(f"{persona_id}|{query}|{is_final_step}".encode("utf-8")).hexdigest()
        return f"lesson:{digest}"

    async def _cache_get(self, key: str) -> Optional[LessonStep]:
        if self._redis is None:
            return None
        try:
            cached = await self._redis.get(key)
        except redis.RedisError as e:
            logger.warning(f"Lesson cache read failed: {e}")
            return None
        if not cached:
            return None
        logger.info(f"Lesson cache HIT for {key}")
        return LessonStep.model_validate(json.loads(cached))

    async def _cache_set(self, key: str, step: LessonStep) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set(
                key,
                step.model_dump_json(by_alias=True),
                ex=settings.LESSON_CACHE_TTL_SECONDS,
            )
        except redis.RedisError as e:
            logger.warning(f"Lesson cache write failed: {e}")

    async def _generate(self, prompt: str, response_model: type[BaseModel]) -> BaseModel:
        result = await self._client.complete(LESSON_SYSTEM_PROMPT, prompt)
        if not result.ok:
            raise GenerationFailedError(
                f"Failed to generate lesson: {result.detail}", result.error_kind.value
            )
        try:
            return response_model.model_validate(extract_json(result.text, opening="{"))
        except (ValueError, PydanticValidationError) as e:
            logger.error(f"Failed to parse lesson response: {e}; raw={result.text[:1000]!r}")
            raise GenerationFailedError(
                "The AI returned an invalid response. Please try again.",
                GenerationErrorKind.EMPTY.value,
            ) from e

    async def start_lesson(self, persona: PersonaInfo, topic: str) -> LessonStep:
        """Create the lesson plan and explain its first sub-topic."""
        if not topic or not topic.strip():
            raise ValidationError("Missing lesson topic.")

        key = self._cache_key(persona.id, topic, False)
        cached = await self._cache_get(key)
        if cached is not None:
            return cached

        parsed = await self._generate(
            build_lesson_start_prompt(persona.display_prompt, topic), _LessonStart
        )
        step = LessonStep(
            lesson_plan=parsed.lessonPlan,
            explanation=parsed.explanation,
            conclusion=None,
            current_step=0,
        )
        await self._cache_set(key, step)
        return step

    async def continue_lesson(
        self, persona: PersonaInfo, lesson_plan: Sequence[str], current_step: int
    ) -> LessonStep:
        """Explain ``lesson_plan[current_step]``; the last step also carries a conclusion."""
        if not lesson_plan:
            raise ValidationError("Missing lesson plan.")
        if not 0 <= current_step < len(lesson_plan):
            raise ValidationError(f"Lesson step {current_step} is out of range.")

        sub_topic = lesson_plan[current_step]
        is_final_step = current_step == len(lesson_plan) - 1

        key = self._cache_key(persona.id, sub_topic, is_final_step)
        cached = await self._cache_get(key)
        if cached is not None:
            return LessonStep(
                lesson_plan=list(lesson_plan),
                explanation=cached.explanation,
                conclusion=cached.conclusion,
                current_step=current_step,
            )

        parsed = await self._generate(
            build_lesson_continuation_prompt(persona.display_prompt, sub_topic, is_final_step),
            _LessonContinuation,
        )
        if is_final_step and not parsed.conclusion:
            logger.error(f"Final lesson step for '{sub_topic}' came back without a conclusion")
            raise GenerationFailedError(
                "The AI returned an invalid response. Please try again.",
                GenerationErrorKind.EMPTY.value,
            )

        step = LessonStep(
            lesson_plan=list(lesson_plan),
            explanation=parsed.explanation,
            conclusion=parsed.conclusion if is_final_step else None,
            current_step=current_step,
        )
        await self._cache_set(key, step)
        return step
