"""Study-session Pydantic schemas and the orchestrator's state."""

from typing import Literal, Optional
from pydantic import BaseModel, Field

WELCOME_MESSAGE = (
    "Hi! I'm your mentor. Would you like to start a guided study session, "
    "or do you have a question you'd like some advice on?"
)


class ChatMessage(BaseModel):
    """One transcript entry."""

    role: Literal["user", "assistant"]
    content: str


def welcome_message() -> ChatMessage:
    return ChatMessage(role="assistant", content=WELCOME_MESSAGE)


class StudySessionState(BaseModel):
    """Conversational state for one (user, persona) pair."""

    messages: list[ChatMessage] = Field(default_factory=lambda: [welcome_message()])
    mode: Literal["unselected", "study", "advice"] = "unselected"
    study_stage: Literal["choosing-level", "choosing-topic", "open-dialogue"] = "choosing-level"
    selected_level: Optional[Literal["beginner", "intermediate", "advanced"]] = None
    selected_topic: Optional[str] = None
    lesson_plan: list[str] = Field(default_factory=list)
    lesson_step: int = 0

    # Runtime only; never persisted
    is_replying: bool = False
    error: Optional[str] = None


class PersonaInfo(BaseModel):
    """Mentor persona as seen by the orchestrator."""

    id: str
    name: str
    subject: str
    display_prompt: str


class StudyEventRequest(BaseModel):
    """Schema for dispatching a non-streaming event to a study session."""

    type: Literal["select_mode", "select_level", "select_topic", "advance_lesson", "reset"]
    mode: Optional[Literal["study", "advice"]] = None
    level: Optional[Literal["beginner", "intermediate", "advanced"]] = None
    topic: Optional[str] = None
    confirmed: bool = False


class StudyMessageCreate(BaseModel):
    """Schema for submitting a dialogue turn."""

    content: str = Field(..., description="User's message")


class StudySessionResponse(BaseModel):
    """A study session as returned by the API."""

    persona: PersonaInfo
    state: StudySessionState
    available_topics: list[str] = Field(default_factory=list)
