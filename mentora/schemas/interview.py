"""Interview-related Pydantic schemas."""

from typing import Literal, Optional
from pydantic import BaseModel, Field


class InterviewCreate(BaseModel):
    """Schema for creating a new interview session."""

    subject: str = Field(..., description="Interview specialization, e.g. dsa, frontend, system-design")
    difficulty: Literal["easy", "medium", "hard"] = Field(..., description="Overall difficulty")


class QuestionEntry(BaseModel):
    """A question of the bank; graded entries also carry feedback."""

    text: str
    difficulty: str
    good: Optional[str] = None
    missing: Optional[str] = None


class InterviewStateResponse(BaseModel):
    """Snapshot of an interview session machine."""

    id: str
    subject: str
    difficulty: str
    stage: str
    questions: list[QuestionEntry]
    answers: list[str]
    current_index: int
    remaining_seconds: int
    timer_running: bool
    summary: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    error: Optional[str] = None


class InterviewSummary(BaseModel):
    """List entry for a user's interview sessions."""

    id: str
    subject: str
    difficulty: str
    status: Literal["in_progress", "completed"]
    started_at: str
    completed_at: Optional[str] = None


class InterviewEventRequest(BaseModel):
    """Schema for dispatching an event to an interview session."""

    type: Literal[
        "start", "answer", "next", "previous", "goto", "pause", "resume", "finish"
    ]
    text: Optional[str] = Field(None, description="Answer text for 'answer' events")
    index: Optional[int] = Field(None, description="Target question for 'goto' events")
