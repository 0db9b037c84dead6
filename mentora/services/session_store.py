"""Durable storage for interview sessions, study state and personas.

Every operation opens its own database session so the store can be shared by
long-lived session machines and background reply tasks. Rows are owner-scoped:
any read or write that names an ``owner_id`` only ever touches that owner's rows.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mentora.core.database import AsyncSessionLocal
from mentora.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from mentora.models.interview import InterviewSession
from mentora.models.study import Persona, StudyMessage, StudyState
from mentora.schemas.study import ChatMessage, PersonaInfo, StudySessionState

logger = logging.getLogger(__name__)


class SessionStore:
    """SQLAlchemy-backed session store."""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Interview sessions
    # ------------------------------------------------------------------

    @staticmethod
    async def _get_interview(
        db: AsyncSession, session_id: str, owner_id: Optional[str]
    ) -> InterviewSession:
        query = select(InterviewSession).where(InterviewSession.id == session_id)
        if owner_id is not None:
            query = query.where(InterviewSession.owner_id == owner_id)
        result = await db.execute(query)
        interview = result.scalar_one_or_none()
        if not interview:
            raise NotFoundError("Interview session", session_id)
        return interview

    async def create_interview_session(
        self, owner_id: str, subject: str, difficulty: str, questions: Sequence[dict]
    ) -> str:
        """Persist a new session with empty answers; returns its id."""
        interview = InterviewSession(
            owner_id=owner_id,
            subject=subject,
            difficulty=difficulty,
            questions=[dict(q) for q in questions],
            answers=[""] * len(questions),
            started_at=datetime.now(timezone.utc),
        )
        async with self._session_factory() as db:
            try:
                db.add(interview)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to create interview session: {e}", exc_info=True)
                raise StoreError("Failed to create interview session") from e

        logger.info(f"Created interview session {interview.id} for owner {owner_id}")
        return interview.id

    async def read_interview_session(
        self, session_id: str, owner_id: Optional[str] = None
    ) -> InterviewSession:
        async with self._session_factory() as db:
            try:
                return await self._get_interview(db, session_id, owner_id)
            except SQLAlchemyError as e:
                logger.error(f"Failed to read interview session {session_id}: {e}")
                raise StoreError("Failed to read interview session") from e

    async def update_interview_answers(
        self, session_id: str, answers: Sequence[str], owner_id: Optional[str] = None
    ) -> None:
        """Replace the whole answers array (last write wins)."""
        async with self._session_factory() as db:
            try:
                interview = await self._get_interview(db, session_id, owner_id)
                if interview.completed_at is not None:
                    raise InvalidTransitionError("Interview session is already completed")
                if len(answers) != len(interview.questions):
                    raise ValidationError(
                        f"Expected {len(interview.questions)} answers, got {len(answers)}"
                    )
                interview.answers = list(answers)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise StoreError("Failed to save answers") from e

    async def complete_interview_session(
        self,
        session_id: str,
        graded_questions: Sequence[dict],
        summary: str,
        owner_id: Optional[str] = None,
    ) -> datetime:
        """
        Upgrade the question bank to the graded transcript and stamp completion.

        Questions, summary and ``completed_at`` land in one UPDATE guarded by
        ``completed_at IS NULL``, so either all of them are written or none.

        Returns:
            The completion timestamp
        """
        for entry in graded_questions:
            if not entry.get("good") or not entry.get("missing"):
                raise ValidationError("Every graded question needs 'good' and 'missing'")

        completed_at = datetime.now(timezone.utc)
        async with self._session_factory() as db:
            try:
                interview = await self._get_interview(db, session_id, owner_id)
                if len(graded_questions) != len(interview.answers):
                    raise ValidationError(
                        f"Expected {len(interview.answers)} graded questions, "
                        f"got {len(graded_questions)}"
                    )
                result = await db.execute(
                    update(InterviewSession)
                    .where(
                        InterviewSession.id == session_id,
                        InterviewSession.completed_at.is_(None),
                    )
                    .values(
                        questions=[dict(q) for q in graded_questions],
                        summary=summary,
                        completed_at=completed_at,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    await db.rollback()
                    raise InvalidTransitionError("Interview session is already completed")
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to complete interview session {session_id}: {e}", exc_info=True)
                raise StoreError("Failed to save graded interview") from e

        logger.info(f"Completed interview session {session_id}")
        return completed_at

    async def delete_interview_session(
        self, session_id: str, owner_id: Optional[str] = None
    ) -> None:
        async with self._session_factory() as db:
            try:
                interview = await self._get_interview(db, session_id, owner_id)
                await db.delete(interview)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to delete interview session {session_id}: {e}")
                raise StoreError("Failed to delete interview session") from e

        logger.info(f"Deleted interview session {session_id}")

    async def list_interview_sessions(self, owner_id: str) -> list[InterviewSession]:
        """All sessions of one owner, newest first."""
        async with self._session_factory() as db:
            try:
                result = await db.execute(
                    select(InterviewSession)
                    .where(InterviewSession.owner_id == owner_id)
                    .order_by(InterviewSession.started_at.desc(), InterviewSession.created_at.desc())
                )
                return list(result.scalars().all())
            except SQLAlchemyError as e:
                raise StoreError("Failed to list interview sessions") from e

    # ------------------------------------------------------------------
    # Study sessions
    # ------------------------------------------------------------------

    async def read_study_state(
        self, owner_id: str, persona_id: str
    ) -> Optional[StudySessionState]:
        async with self._session_factory() as db:
            try:
                result = await db.execute(
                    select(StudyState).where(
                        StudyState.owner_id == owner_id,
                        StudyState.persona_id == persona_id,
                    )
                )
                row = result.scalar_one_or_none()
            except SQLAlchemyError as e:
                raise StoreError("Failed to read study state") from e

        if row is None:
            return None
        return StudySessionState(
            messages=[ChatMessage.model_validate(m) for m in row.messages or []],
            mode=row.mode,
            study_stage=row.study_stage,
            selected_level=row.selected_level,
            selected_topic=row.selected_topic,
            lesson_plan=list(row.lesson_plan or []),
            lesson_step=row.lesson_step,
        )

    async def write_study_state(
        self, owner_id: str, persona_id: str, state: StudySessionState
    ) -> None:
        """Full replace of the cached state for the pair."""
        async with self._session_factory() as db:
            try:
                result = await db.execute(
                    select(StudyState).where(
                        StudyState.owner_id == owner_id,
                        StudyState.persona_id == persona_id,
                    )
                )
                row = result.scalar_one_or_none()
                if row is None:
                    row = StudyState(owner_id=owner_id, persona_id=persona_id)
                    db.add(row)
                row.messages = [m.model_dump() for m in state.messages]
                row.mode = state.mode
                row.study_stage = state.study_stage
                row.selected_level = state.selected_level
                row.selected_topic = state.selected_topic
                row.lesson_plan = list(state.lesson_plan)
                row.lesson_step = state.lesson_step
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise StoreError("Failed to write study state") from e

    async def append_study_message(
        self, owner_id: str, persona_id: str, message: ChatMessage
    ) -> None:
        async with self._session_factory() as db:
            try:
                db.add(StudyMessage(
                    owner_id=owner_id,
                    persona_id=persona_id,
                    role=message.role,
                    content=message.content,
                ))
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise StoreError("Failed to append study message") from e

    async def list_study_messages(self, owner_id: str, persona_id: str) -> list[ChatMessage]:
        """Durable transcript for the pair, oldest first."""
        async with self._session_factory() as db:
            try:
                result = await db.execute(
                    select(StudyMessage)
                    .where(
                        StudyMessage.owner_id == owner_id,
                        StudyMessage.persona_id == persona_id,
                    )
                    .order_by(StudyMessage.id)
                )
                rows = result.scalars().all()
            except SQLAlchemyError as e:
                raise StoreError("Failed to list study messages") from e
        return [ChatMessage(role=r.role, content=r.content) for r in rows]

    async def reset_study_state(self, owner_id: str, persona_id: str) -> None:
        """Delete every transcript row and the cached state for the pair."""
        async with self._session_factory() as db:
            try:
                await db.execute(
                    delete(StudyMessage).where(
                        StudyMessage.owner_id == owner_id,
                        StudyMessage.persona_id == persona_id,
                    )
                )
                await db.execute(
                    delete(StudyState).where(
                        StudyState.owner_id == owner_id,
                        StudyState.persona_id == persona_id,
                    )
                )
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to reset study state for {owner_id}/{persona_id}: {e}")
                raise StoreError("Failed to reset study session") from e

        logger.info(f"Reset study session for owner {owner_id}, persona {persona_id}")

    # ------------------------------------------------------------------
    # Personas
    # ------------------------------------------------------------------

    async def fetch_persona(self, persona_id: str) -> PersonaInfo:
        async with self._session_factory() as db:
            try:
                persona = await db.get(Persona, persona_id)
            except SQLAlchemyError as e:
                raise StoreError("Failed to fetch persona") from e
        if persona is None:
            raise NotFoundError("Persona", persona_id)
        if not persona.display_prompt or not persona.display_prompt.strip():
            raise ValidationError(f"Persona prompt for {persona_id} is empty.")
        return PersonaInfo(
            id=persona.id,
            name=persona.name,
            subject=persona.subject,
            display_prompt=persona.display_prompt,
        )

    async def upsert_persona(self, persona: PersonaInfo) -> None:
        async with self._session_factory() as db:
            try:
                await db.merge(Persona(
                    id=persona.id,
                    name=persona.name,
                    subject=persona.subject,
                    display_prompt=persona.display_prompt,
                ))
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise StoreError("Failed to save persona") from e
