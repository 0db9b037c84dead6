"""Service for grading a finished interview transcript."""

import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from mentora.core.config import settings
from mentora.services.generation_client import GenerationClient, GenerationErrorKind
from mentora.services.prompt_builder import NO_ANSWER_PLACEHOLDER, build_grading_prompt
from mentora.utils.text_utils import extract_json

logger = logging.getLogger(__name__)

GRADER_SYSTEM_PROMPT = (
    "You are an expert interviewer providing feedback on interview answers. "
    "Be objective, specific and actionable. Respond with a single JSON object only."
)


class FeedbackItem(BaseModel):
    """Feedback on one answer."""

    good: str = Field(..., min_length=1, description="What was good about the answer")
    missing: str = Field(..., min_length=1, description="What was missing or could be improved")


class GradingResult(BaseModel):
    """Schema for the grader's structured output."""

    feedback: List[FeedbackItem] = Field(..., description="One entry per question, in order")
    summary: str = Field(..., min_length=1, description="One-sentence overall acknowledgement")


class GradingError(Exception):
    """A grading attempt failed; nothing from it may be persisted."""

    def __init__(self, message: str, kind: str, raw: Optional[str] = None):
        self.kind = kind
        self.raw = raw
        super().__init__(message)


class AnswerGrader:
    """Grades all answers of an interview in a single generation call."""

    def __init__(self, client: Optional[GenerationClient] = None):
        self._client = client or GenerationClient()

    async def grade(
        self,
        questions: Sequence[str],
        answers: Sequence[Optional[str]],
        difficulty: str,
    ) -> GradingResult:
        """
        Grade a complete transcript.

        Args:
            questions: Question texts, in order
            answers: Answers, index-aligned with questions; blanks are allowed
            difficulty: Declared interview difficulty (drives the summary tone)

        Returns:
            GradingResult whose feedback list is exactly as long as questions

        Raises:
            GradingError: On provider failure or malformed/mismatched output.
                Not retried here; the caller decides.
        """
        padded = [
            answers[i] if i < len(answers) and answers[i] and answers[i].strip()
            else NO_ANSWER_PLACEHOLDER
            for i in range(len(questions))
        ]
        prompt = build_grading_prompt(questions, padded, difficulty)

        result = await self._client.complete(
            GRADER_SYSTEM_PROMPT, prompt, temperature=settings.TEMPERATURE_ANALYTICAL
        )
        if not result.ok:
            raise GradingError(
                f"Grading request failed: {result.detail}", result.error_kind.value
            )

        try:
            grading = GradingResult.model_validate(extract_json(result.text, opening="{"))
        except (ValueError, PydanticValidationError) as e:
            # Raw output goes to the log only, never to the user
            logger.error(f"Failed to parse grading response: {e}; raw={result.text[:1000]!r}")
            raise GradingError(
                "Failed to parse grading JSON response.",
                GenerationErrorKind.EMPTY.value,
                raw=result.text,
            ) from e

        if len(grading.feedback) != len(questions):
            logger.error(
                f"Grading returned {len(grading.feedback)} feedback entries "
                f"for {len(questions)} questions; raw={result.text[:1000]!r}"
            )
            raise GradingError(
                "Grading response did not cover every question.",
                GenerationErrorKind.EMPTY.value,
                raw=result.text,
            )

        return grading
