"""Study session models: cached conversation state, transcript rows and personas."""

from datetime import datetime
from sqlalchemy import String, Text, DateTime, JSON, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from mentora.core.database import Base


class StudyState(Base):
    """Cached orchestrator state for one (owner, persona) pair, used for fast reload."""

    __tablename__ = "study_states"
    __table_args__ = (UniqueConstraint("owner_id", "persona_id", name="uq_study_state_owner_persona"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    persona_id: Mapped[str] = mapped_column(String(64), nullable=False)

    messages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    mode: Mapped[str] = mapped_column(String(20), default="unselected", nullable=False)
    study_stage: Mapped[str] = mapped_column(
        String(20), default="choosing-level", nullable=False)
    selected_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    selected_topic: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lesson_plan: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    lesson_step: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StudyState(owner_id={self.owner_id}, persona_id={self.persona_id}, mode={self.mode})>"


class StudyMessage(Base):
    """Durable transcript row, independent of the cached state's messages."""

    __tablename__ = "study_messages"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    persona_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Persona(Base):
    """Mentor persona; the display prompt defines the mentor's voice and expertise."""

    __tablename__ = "personas"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(50), nullable=False)
    display_prompt: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<Persona(id={self.id}, subject={self.subject})>"
