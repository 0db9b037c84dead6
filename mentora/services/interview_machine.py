"""State machine for one timed mock interview.

Stages::

    ready --start--> answering --finish / timer expiry--> grading --ok--> results
                         ^                                   |
                         +----------- grading failed --------+

``results`` is terminal. A confirmed ``delete`` from any stage but ``grading``
removes the record and moves the machine to ``deleted``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from mentora.core.config import settings
from mentora.core.exceptions import (
    ConfirmationRequiredError,
    InvalidTransitionError,
    MentoraError,
    SessionBusyError,
    ValidationError,
)
from mentora.models.interview import InterviewSession
from mentora.services.answer_grader import AnswerGrader, GradingError
from mentora.services.countdown import CountdownTimer
from mentora.services.question_generator import QuestionGenerator
from mentora.services.session_store import SessionStore

logger = logging.getLogger(__name__)

GRADING_FAILED_MESSAGE = "We couldn't grade your interview. Your answers are saved, please try submitting again."
SAVE_RESULTS_FAILED_MESSAGE = "Your interview was graded but the results could not be saved. Please try submitting again."


class InterviewStage(str, Enum):
    READY = "ready"
    ANSWERING = "answering"
    GRADING = "grading"
    RESULTS = "results"
    DELETED = "deleted"


@dataclass
class InterviewEvent:
    """An input to the machine. ``text`` is used by answer, ``index`` by goto."""

    type: str
    text: Optional[str] = None
    index: Optional[int] = None
    confirmed: bool = False


@dataclass
class InterviewMachineState:
    session_id: str
    owner_id: str
    subject: str
    difficulty: str
    stage: InterviewStage
    questions: list[dict]
    answers: list[str]
    current_index: int = 0
    remaining_seconds: int = 0
    timer_running: bool = False
    summary: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    autosave_failures: int = field(default=0, repr=False)


class InterviewSessionMachine:
    """Drives one interview session through its lifecycle via ``dispatch``."""

    def __init__(
        self,
        store: SessionStore,
        grader: AnswerGrader,
        record: InterviewSession,
        duration_seconds: int = settings.INTERVIEW_DURATION_SECONDS,
        with_timer: bool = False,
        on_settled: Optional[Callable[["InterviewSessionMachine"], None]] = None,
    ):
        self._store = store
        self._grader = grader
        self._duration = duration_seconds
        self._timer = CountdownTimer(self._on_timer_tick) if with_timer else None
        self._on_settled = on_settled

        answers = list(record.answers or [])
        questions = [dict(q) for q in record.questions or []]
        if len(answers) != len(questions):
            # Never surface a misaligned record; pad or trim to the question bank
            logger.warning(f"Interview {record.id} had {len(answers)} answers for {len(questions)} questions")
            answers = (answers + [""] * len(questions))[:len(questions)]

        self.state = InterviewMachineState(
            session_id=record.id,
            owner_id=record.owner_id,
            subject=record.subject,
            difficulty=record.difficulty,
            stage=InterviewStage.RESULTS if record.completed_at else InterviewStage.READY,
            questions=questions,
            answers=answers,
            # A reload always starts from a fresh full timer
            remaining_seconds=0 if record.completed_at else duration_seconds,
            summary=record.summary,
            started_at=record.started_at,
            completed_at=record.completed_at,
        )

        self._handlers = {
            "start": self._handle_start,
            "answer": self._handle_answer,
            "next": self._handle_next,
            "previous": self._handle_previous,
            "goto": self._handle_goto,
            "pause": self._handle_pause,
            "resume": self._handle_resume,
            "tick": self._handle_tick,
            "finish": self._handle_finish,
            "delete": self._handle_delete,
        }

    @classmethod
    async def create(
        cls,
        store: SessionStore,
        question_generator: QuestionGenerator,
        grader: AnswerGrader,
        owner_id: str,
        subject: str,
        difficulty: str,
        **kwargs,
    ) -> "InterviewSessionMachine":
        """Generate the question bank, persist the session, and return it in ``ready``."""
        if not subject or not difficulty:
            raise ValidationError("Missing 'subject' or 'difficulty'.")

        questions = await question_generator.generate_questions(subject, difficulty)
        session_id = await store.create_interview_session(owner_id, subject, difficulty, questions)
        record = await store.read_interview_session(session_id, owner_id)
        return cls(store, grader, record, **kwargs)

    @classmethod
    async def load(
        cls,
        store: SessionStore,
        grader: AnswerGrader,
        session_id: str,
        owner_id: Optional[str] = None,
        **kwargs,
    ) -> "InterviewSessionMachine":
        """Rebuild a machine from the store; completed sessions open in ``results``."""
        record = await store.read_interview_session(session_id, owner_id)
        return cls(store, grader, record, **kwargs)

    @property
    def is_busy(self) -> bool:
        return self.state.stage == InterviewStage.GRADING

    async def dispatch(self, event: InterviewEvent) -> InterviewMachineState:
        """Apply one event and return the resulting state."""
        handler = self._handlers.get(event.type)
        if handler is None:
            raise ValidationError(f"Unknown interview event: {event.type}")

        stage = self.state.stage
        if stage == InterviewStage.GRADING and event.type != "tick":
            raise SessionBusyError("Your interview is being graded.")
        if stage == InterviewStage.DELETED:
            raise InvalidTransitionError("Interview session was deleted.")
        if stage == InterviewStage.RESULTS and event.type not in ("delete", "tick"):
            raise InvalidTransitionError("Interview session is completed and read-only.")

        await handler(event)
        return self.state

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _require_stage(self, event: InterviewEvent, *stages: InterviewStage) -> None:
        if self.state.stage not in stages:
            raise InvalidTransitionError(
                f"Cannot '{event.type}' while interview is {self.state.stage.value}"
            )

    async def _handle_start(self, event: InterviewEvent) -> None:
        self._require_stage(event, InterviewStage.READY)
        self.state.stage = InterviewStage.ANSWERING
        self.state.current_index = 0
        self.state.remaining_seconds = self._duration
        self._start_timer()
        logger.info(f"Interview {self.state.session_id} started ({self._duration}s)")

    async def _handle_answer(self, event: InterviewEvent) -> None:
        self._require_stage(event, InterviewStage.ANSWERING)
        if self.state.remaining_seconds <= 0:
            raise InvalidTransitionError("Time is up; answers can no longer be changed.")
        self.state.answers[self.state.current_index] = event.text or ""
        await self._autosave()

    async def _handle_next(self, event: InterviewEvent) -> None:
        await self._move_to(event, self.state.current_index + 1)

    async def _handle_previous(self, event: InterviewEvent) -> None:
        await self._move_to(event, self.state.current_index - 1)

    async def _handle_goto(self, event: InterviewEvent) -> None:
        if event.index is None:
            raise ValidationError("'goto' requires an index")
        await self._move_to(event, event.index)

    async def _move_to(self, event: InterviewEvent, index: int) -> None:
        self._require_stage(event, InterviewStage.ANSWERING)
        if not 0 <= index < len(self.state.questions):
            raise InvalidTransitionError(f"No question at index {index}")
        self.state.current_index = index

    async def _handle_pause(self, event: InterviewEvent) -> None:
        self._require_stage(event, InterviewStage.ANSWERING)
        self._stop_timer()

    async def _handle_resume(self, event: InterviewEvent) -> None:
        self._require_stage(event, InterviewStage.ANSWERING)
        if self.state.remaining_seconds <= 0:
            raise InvalidTransitionError("Time is up; submit your interview.")
        self._start_timer()

    async def _handle_tick(self, event: InterviewEvent) -> None:
        if self.state.stage != InterviewStage.ANSWERING or not self.state.timer_running:
            return
        self.state.remaining_seconds = max(0, self.state.remaining_seconds - 1)
        if self.state.remaining_seconds == 0:
            logger.info(f"Interview {self.state.session_id} timer expired, submitting")
            await self._finish()

    async def _handle_finish(self, event: InterviewEvent) -> None:
        self._require_stage(event, InterviewStage.ANSWERING)
        await self._finish()

    async def _handle_delete(self, event: InterviewEvent) -> None:
        if not event.confirmed:
            raise ConfirmationRequiredError("Deleting a session is permanent; confirm to continue.")
        await self._store.delete_interview_session(self.state.session_id, self.state.owner_id)
        self._stop_timer()
        self.state.stage = InterviewStage.DELETED
        self._settle()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _finish(self) -> None:
        self._stop_timer()
        self.state.stage = InterviewStage.GRADING
        self.state.error = None

        answers = list(self.state.answers)
        questions = [q["text"] for q in self.state.questions]
        await self._autosave()

        try:
            grading = await self._grader.grade(questions, answers, self.state.difficulty)
        except GradingError as e:
            logger.warning(f"Grading failed for interview {self.state.session_id} ({e.kind}): {e}")
            self.state.stage = InterviewStage.ANSWERING
            self.state.error = GRADING_FAILED_MESSAGE
            return

        graded = [
            {**question, "good": item.good, "missing": item.missing}
            for question, item in zip(self.state.questions, grading.feedback)
        ]
        try:
            completed_at = await self._store.complete_interview_session(
                self.state.session_id, graded, grading.summary, self.state.owner_id
            )
        except MentoraError as e:
            logger.error(f"Failed to persist grading for interview {self.state.session_id}: {e}")
            self.state.stage = InterviewStage.ANSWERING
            self.state.error = SAVE_RESULTS_FAILED_MESSAGE
            return

        self.state.questions = graded
        self.state.summary = grading.summary
        self.state.completed_at = completed_at
        self.state.stage = InterviewStage.RESULTS
        logger.info(f"Interview {self.state.session_id} graded and completed")
        self._settle()

    def _settle(self) -> None:
        """Tell the owner the machine reached a terminal stage."""
        if self._on_settled is not None:
            self._on_settled(self)

    async def _autosave(self) -> None:
        """Best-effort write of the whole answers array; the next write retries."""
        try:
            await self._store.update_interview_answers(
                self.state.session_id, list(self.state.answers), self.state.owner_id
            )
        except MentoraError as e:
            self.state.autosave_failures += 1
            logger.warning(f"Autosave failed for interview {self.state.session_id}: {e}")

    def _start_timer(self) -> None:
        self.state.timer_running = True
        if self._timer is not None:
            self._timer.start()

    def _stop_timer(self) -> None:
        self.state.timer_running = False
        if self._timer is not None:
            self._timer.stop()

    async def _on_timer_tick(self) -> None:
        await self.dispatch(InterviewEvent(type="tick"))

    def close(self) -> None:
        """Abandon the countdown (navigating away); nothing about it is persisted."""
        self._stop_timer()
