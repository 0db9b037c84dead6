"""Service for generating the question bank of a mock interview."""

import logging
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from mentora.core.config import settings
from mentora.core.exceptions import GenerationFailedError
from mentora.services.generation_client import GenerationClient, GenerationErrorKind
from mentora.services.prompt_builder import build_question_generation_prompt
from mentora.utils.text_utils import extract_json

logger = logging.getLogger(__name__)

QUESTION_SYSTEM_PROMPT = (
    "You are an expert interviewer. Generate relevant, diverse interview questions "
    "and answer with raw JSON only."
)


class GeneratedQuestion(BaseModel):
    """One question as returned by the model."""

    question: str = Field(..., min_length=1, description="The question text")
    difficulty: Literal["easy", "medium", "hard"] = Field(
        ..., description="Difficulty of this question"
    )


class QuestionGenerator:
    """Service for generating interview questions for a subject and difficulty."""

    def __init__(self, client: Optional[GenerationClient] = None):
        self._client = client or GenerationClient()

    async def generate_questions(self, subject: str, difficulty: str) -> list[dict]:
        """
        Generate the fixed-size question bank.

        Returns:
            List of ``{"text", "difficulty"}`` dicts, exactly
            ``INTERVIEW_QUESTION_COUNT`` long

        Raises:
            GenerationFailedError: On any provider failure or if the response
                does not hold exactly the expected number of valid questions
        """
        prompt = build_question_generation_prompt(subject, difficulty)
        result = await self._client.complete(QUESTION_SYSTEM_PROMPT, prompt)
        if not result.ok:
            raise GenerationFailedError(
                f"Failed to generate questions: {result.detail}", result.error_kind.value
            )

        try:
            raw = extract_json(result.text, opening="[")
            if not isinstance(raw, list):
                raise ValueError("Expected a JSON array of questions")
            questions = [GeneratedQuestion.model_validate(item) for item in raw]
        except (ValueError, PydanticValidationError) as e:
            logger.error(f"Unparseable question response: {e}; raw={result.text[:1000]!r}")
            raise GenerationFailedError(
                "Generated questions response was not valid JSON.",
                GenerationErrorKind.EMPTY.value,
            ) from e

        expected = settings.INTERVIEW_QUESTION_COUNT
        if len(questions) != expected:
            logger.error(f"Expected {expected} questions, model returned {len(questions)}")
            raise GenerationFailedError(
                f"Expected {expected} questions but received {len(questions)}.",
                GenerationErrorKind.EMPTY.value,
            )

        logger.info(f"Generated {len(questions)} {difficulty} questions for subject '{subject}'")
        return [{"text": q.question, "difficulty": q.difficulty} for q in questions]
