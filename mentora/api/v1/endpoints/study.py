"""Study session endpoints (guided study and advice chat with a persona)."""

import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import Response, StreamingResponse

from mentora.core.exceptions import SessionBusyError
from mentora.schemas.study import (
    StudyEventRequest,
    StudyMessageCreate,
    StudySessionResponse,
)
from mentora.services.generation_client import GenerationClient
from mentora.services.lesson_service import LessonService
from mentora.services.registry import study_sessions
from mentora.services.session_store import SessionStore
from mentora.services.study_orchestrator import StudyEvent, StudySessionOrchestrator
from mentora.api.v1.dependencies import (
    get_current_owner_id,
    get_generation_client,
    get_lesson_service,
    get_session_store,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_orchestrator(
    persona_id: str,
    owner_id: str = Depends(get_current_owner_id),
    store: SessionStore = Depends(get_session_store),
    client: GenerationClient = Depends(get_generation_client),
    lesson_service: LessonService = Depends(get_lesson_service),
) -> StudySessionOrchestrator:
    return await study_sessions.get_or_load(
        (owner_id, persona_id),
        lambda: StudySessionOrchestrator.open(store, client, lesson_service, owner_id, persona_id),
    )


@router.get("/{persona_id}", response_model=StudySessionResponse)
async def get_study_session(
    orchestrator: StudySessionOrchestrator = Depends(_get_orchestrator),
):
    """Get (or start) the study session with a persona."""
    return _to_response(orchestrator)


@router.post("/{persona_id}/events", response_model=StudySessionResponse)
async def dispatch_study_event(
    event: StudyEventRequest,
    orchestrator: StudySessionOrchestrator = Depends(_get_orchestrator),
):
    """Apply one event: select mode/level/topic, advance the lesson, or reset."""
    if orchestrator.state.is_replying:
        raise SessionBusyError("Your mentor is still replying.")

    async with study_sessions.lock((orchestrator.owner_id, orchestrator.persona.id)):
        await orchestrator.dispatch(
            StudyEvent(
                type=event.type,
                mode=event.mode,
                level=event.level,
                topic=event.topic,
                confirmed=event.confirmed,
            )
        )
    return _to_response(orchestrator)


@router.post("/{persona_id}/messages")
async def send_study_message(
    message: StudyMessageCreate,
    orchestrator: StudySessionOrchestrator = Depends(_get_orchestrator),
):
    """Send a dialogue turn; the reply is streamed back as plain text."""
    async with study_sessions.lock((orchestrator.owner_id, orchestrator.persona.id)):
        fragments = await orchestrator.send_message(message.content)

    return StreamingResponse(fragments, media_type="text/plain; charset=utf-8")


@router.post("/{persona_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_study_session(
    persona_id: str,
    owner_id: str = Depends(get_current_owner_id),
):
    """Release the live session; the saved state is reloaded on the next visit."""
    orchestrator = study_sessions.get((owner_id, persona_id))
    if orchestrator is not None and orchestrator.state.is_replying:
        raise SessionBusyError("Your mentor is still replying.")

    study_sessions.discard((owner_id, persona_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _to_response(orchestrator: StudySessionOrchestrator) -> StudySessionResponse:
    return StudySessionResponse(
        persona=orchestrator.persona,
        state=orchestrator.state,
        available_topics=orchestrator.available_topics,
    )
