"""Request bodies of the stateless function endpoints.

Fields are optional at the schema level so a missing field is reported as
``{"error": ...}`` with a 400, like the rest of the API.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class GenerateQuestionsRequest(BaseModel):
    type: Optional[str] = Field(None, description="Interview specialization")
    difficulty: Optional[str] = None


class GradeAnswersRequest(BaseModel):
    questions: Optional[list[Any]] = None
    answers: Optional[list[Optional[str]]] = None
    difficulty: Optional[str] = None


class StudySessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    history: Optional[list[dict]] = None
    query: Optional[str] = None
    persona_id: Optional[str] = Field(None, alias="personaId")


class FindAdviceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = None
    persona_id: Optional[str] = Field(None, alias="personaId")


class MentorBotRequest(BaseModel):
    """Start a lesson (no ``lessonPlan``) or continue one at ``currentStep``."""

    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = None
    topic: Optional[str] = None
    persona_id: Optional[str] = Field(None, alias="personaId")
    lesson_plan: Optional[list[str]] = Field(None, alias="lessonPlan")
    current_step: Optional[int] = Field(None, alias="currentStep")
