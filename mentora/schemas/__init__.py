"""Pydantic schemas for request/response validation and session state."""

from mentora.schemas.interview import (
    InterviewCreate,
    InterviewEventRequest,
    InterviewStateResponse,
    InterviewSummary,
    QuestionEntry,
)
from mentora.schemas.study import (
    ChatMessage,
    PersonaInfo,
    StudyEventRequest,
    StudyMessageCreate,
    StudySessionResponse,
    StudySessionState,
)

__all__ = [
    "InterviewCreate",
    "InterviewEventRequest",
    "InterviewStateResponse",
    "InterviewSummary",
    "QuestionEntry",
    "ChatMessage",
    "PersonaInfo",
    "StudyEventRequest",
    "StudyMessageCreate",
    "StudySessionResponse",
    "StudySessionState",
]
