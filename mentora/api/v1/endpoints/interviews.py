"""Interview session endpoints."""

import logging
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response

from mentora.core.exceptions import SessionBusyError
from mentora.schemas.interview import (
    InterviewCreate,
    InterviewEventRequest,
    InterviewStateResponse,
    InterviewSummary,
)
from mentora.services.answer_grader import AnswerGrader
from mentora.services.interview_machine import (
    InterviewEvent,
    InterviewMachineState,
    InterviewSessionMachine,
    InterviewStage,
)
from mentora.services.question_generator import QuestionGenerator
from mentora.services.registry import interview_sessions
from mentora.services.session_store import SessionStore
from mentora.api.v1.dependencies import (
    get_answer_grader,
    get_current_owner_id,
    get_question_generator,
    get_session_store,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=InterviewStateResponse, status_code=status.HTTP_201_CREATED)
async def create_interview(
    interview_data: InterviewCreate,
    owner_id: str = Depends(get_current_owner_id),
    store: SessionStore = Depends(get_session_store),
    question_generator: QuestionGenerator = Depends(get_question_generator),
    grader: AnswerGrader = Depends(get_answer_grader),
):
    """Generate a question bank and create a new interview session."""
    machine = await InterviewSessionMachine.create(
        store,
        question_generator,
        grader,
        owner_id,
        interview_data.subject,
        interview_data.difficulty,
        with_timer=True,
        on_settled=_release,
    )
    interview_sessions.put((owner_id, machine.state.session_id), machine)
    logger.info(f"Created interview {machine.state.session_id} for {owner_id}")
    return _state_to_response(machine.state)


@router.get("/", response_model=list[InterviewSummary])
async def list_interviews(
    owner_id: str = Depends(get_current_owner_id),
    store: SessionStore = Depends(get_session_store),
):
    """List all interviews for the current user, newest first."""
    interviews = await store.list_interview_sessions(owner_id)
    return [
        InterviewSummary(
            id=interview.id,
            subject=interview.subject,
            difficulty=interview.difficulty,
            status="completed" if interview.completed_at else "in_progress",
            started_at=interview.started_at.isoformat(),
            completed_at=interview.completed_at.isoformat() if interview.completed_at else None,
        )
        for interview in interviews
    ]


@router.get("/{session_id}", response_model=InterviewStateResponse)
async def get_interview(
    session_id: str,
    owner_id: str = Depends(get_current_owner_id),
    store: SessionStore = Depends(get_session_store),
    grader: AnswerGrader = Depends(get_answer_grader),
):
    """Get the live state of an interview, loading it if needed."""
    machine = await _get_machine(session_id, owner_id, store, grader)
    return _state_to_response(machine.state)


@router.post("/{session_id}/events", response_model=InterviewStateResponse)
async def dispatch_interview_event(
    session_id: str,
    event: InterviewEventRequest,
    owner_id: str = Depends(get_current_owner_id),
    store: SessionStore = Depends(get_session_store),
    grader: AnswerGrader = Depends(get_answer_grader),
):
    """Apply one event (start, answer, navigate, pause/resume, finish)."""
    machine = await _get_machine(session_id, owner_id, store, grader)
    if machine.is_busy:
        raise SessionBusyError("Your interview is being graded.")

    async with interview_sessions.lock((owner_id, session_id)):
        state = await machine.dispatch(
            InterviewEvent(type=event.type, text=event.text, index=event.index)
        )
    return _state_to_response(state)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_interview(
    session_id: str,
    confirm: bool = Query(False, description="Deletion is permanent and must be confirmed"),
    owner_id: str = Depends(get_current_owner_id),
    store: SessionStore = Depends(get_session_store),
    grader: AnswerGrader = Depends(get_answer_grader),
):
    """Permanently delete an interview session."""
    key = (owner_id, session_id)
    machine = await _get_machine(session_id, owner_id, store, grader)
    if machine.is_busy:
        raise SessionBusyError("Your interview is being graded.")

    async with interview_sessions.lock(key):
        await machine.dispatch(InterviewEvent(type="delete", confirmed=confirm))
    logger.info(f"Deleted interview {session_id} for {owner_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_interview(
    session_id: str,
    owner_id: str = Depends(get_current_owner_id),
):
    """Walk away from an interview; its countdown stops and a revisit starts fresh."""
    machine = interview_sessions.get((owner_id, session_id))
    if machine is not None and machine.is_busy:
        raise SessionBusyError("Your interview is being graded.")

    interview_sessions.discard((owner_id, session_id))
    logger.info(f"Interview {session_id} left by {owner_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _get_machine(
    session_id: str, owner_id: str, store: SessionStore, grader: AnswerGrader
) -> InterviewSessionMachine:
    key = (owner_id, session_id)
    machine = await interview_sessions.get_or_load(
        key,
        lambda: InterviewSessionMachine.load(
            store, grader, session_id, owner_id, with_timer=True, on_settled=_release
        ),
    )
    # Completed sessions are read-only; nothing needs to stay live for them
    if machine.state.stage == InterviewStage.RESULTS:
        interview_sessions.discard(key, machine)
    return machine


def _release(machine: InterviewSessionMachine) -> None:
    interview_sessions.discard((machine.state.owner_id, machine.state.session_id), machine)


def _state_to_response(state: InterviewMachineState) -> InterviewStateResponse:
    """Convert machine state to response schema."""
    return InterviewStateResponse(
        id=state.session_id,
        subject=state.subject,
        difficulty=state.difficulty,
        stage=state.stage.value,
        questions=state.questions,
        answers=state.answers,
        current_index=state.current_index,
        remaining_seconds=state.remaining_seconds,
        timer_running=state.timer_running,
        summary=state.summary,
        started_at=state.started_at.isoformat() if state.started_at else None,
        completed_at=state.completed_at.isoformat() if state.completed_at else None,
        error=state.error,
    )
