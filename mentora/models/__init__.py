"""Database models."""

from mentora.models.interview import InterviewSession
from mentora.models.study import Persona, StudyMessage, StudyState

__all__ = ["InterviewSession", "Persona", "StudyMessage", "StudyState"]
