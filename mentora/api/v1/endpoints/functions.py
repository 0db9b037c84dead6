"""Stateless generation endpoints.

Each call takes everything it needs in the request body and keeps no session.
"""

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from mentora.core.exceptions import GenerationFailedError, ValidationError
from mentora.schemas.functions import (
    FindAdviceRequest,
    GenerateQuestionsRequest,
    GradeAnswersRequest,
    MentorBotRequest,
    StudySessionRequest,
)
from mentora.services.answer_grader import AnswerGrader, GradingError
from mentora.services.generation_client import (
    GenerationClient,
    GenerationError,
    GenerationErrorKind,
)
from mentora.services.lesson_service import LessonService
from mentora.services.prompt_builder import (
    build_advice_system_prompt,
    build_dialogue_system_prompt,
)
from mentora.services.question_generator import QuestionGenerator
from mentora.services.session_store import SessionStore
from mentora.api.v1.dependencies import (
    get_answer_grader,
    get_current_owner_id,
    get_generation_client,
    get_lesson_service,
    get_question_generator,
    get_session_store,
)

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(get_current_owner_id)])


@router.post("/generate-questions")
async def generate_questions(
    body: GenerateQuestionsRequest,
    question_generator: QuestionGenerator = Depends(get_question_generator),
):
    """Generate an interview question bank."""
    if not body.type or not body.difficulty:
        raise ValidationError("Missing 'type' or 'difficulty' in request body.")

    questions = await question_generator.generate_questions(body.type, body.difficulty)
    return {"questions": questions}


@router.post("/grade-answers")
async def grade_answers(
    body: GradeAnswersRequest,
    grader: AnswerGrader = Depends(get_answer_grader),
):
    """Grade a transcript; returns ``{feedback, summary}``."""
    if not body.questions or body.answers is None or not body.difficulty:
        raise ValidationError(
            "Invalid request body. 'questions', 'answers', and 'difficulty' are required."
        )

    # Accept both plain question strings and stored question entries
    questions = [q.get("text", "") if isinstance(q, dict) else str(q) for q in body.questions]
    try:
        grading = await grader.grade(questions, body.answers, body.difficulty)
    except GradingError as e:
        raise GenerationFailedError(str(e), e.kind) from e
    return grading.model_dump()


@router.post("/study-session")
async def study_session(
    body: StudySessionRequest,
    store: SessionStore = Depends(get_session_store),
    client: GenerationClient = Depends(get_generation_client),
):
    """Stream one Socratic reply for a client-held transcript."""
    if not body.query or not body.persona_id or body.history is None:
        raise ValidationError("Missing query, personaId, or history.")

    persona = await store.fetch_persona(body.persona_id)

    # The transcript ends with the query itself, and must not open with the mentor
    history = list(body.history[:-1])
    while history and history[0].get("role") in ("assistant", "model"):
        history.pop(0)

    fragments = client.stream(
        build_dialogue_system_prompt(persona.display_prompt),
        prompt=body.query,
        history=history,
    )
    return await _stream_response(fragments)


@router.post("/find-advice")
async def find_advice(
    body: FindAdviceRequest,
    store: SessionStore = Depends(get_session_store),
    client: GenerationClient = Depends(get_generation_client),
):
    """Stream a one-off advice answer to a single query."""
    if not body.query or not body.persona_id:
        raise ValidationError("Missing query or personaId.")

    persona = await store.fetch_persona(body.persona_id)
    fragments = client.stream(build_advice_system_prompt(persona.display_prompt), prompt=body.query)
    return await _stream_response(fragments)


@router.post("/mentor-bot")
async def mentor_bot(
    body: MentorBotRequest,
    store: SessionStore = Depends(get_session_store),
    lesson_service: LessonService = Depends(get_lesson_service),
):
    """Start a lesson or explain its next step."""
    is_new_lesson = not body.lesson_plan
    if is_new_lesson:
        sub_topic = body.query
    elif body.current_step is not None and 0 <= body.current_step < len(body.lesson_plan):
        sub_topic = body.lesson_plan[body.current_step]
    else:
        sub_topic = None
    if not sub_topic or not body.topic:
        raise ValidationError("Missing query/sub-topic or main topic.")
    if not body.persona_id:
        raise ValidationError("Missing personaId.")

    persona = await store.fetch_persona(body.persona_id)
    if is_new_lesson:
        step = await lesson_service.start_lesson(persona, body.query)
    else:
        step = await lesson_service.continue_lesson(persona, body.lesson_plan, body.current_step)
    return step.model_dump(by_alias=True)


async def _stream_response(fragments: AsyncIterator[str]) -> StreamingResponse:
    """Wait for the first fragment so an early failure still gets an error status."""
    try:
        first = await fragments.__anext__()
    except GenerationError as e:
        raise GenerationFailedError(f"Failed to generate a reply: {e.detail}", e.kind.value) from e
    except StopAsyncIteration:
        raise GenerationFailedError(
            "Failed to generate a reply: empty response", GenerationErrorKind.EMPTY.value
        )

    async def body() -> AsyncIterator[str]:
        yield first
        try:
            async for fragment in fragments:
                yield fragment
        except GenerationError as e:
            # Headers are already sent; the client sees a truncated reply
            logger.error(f"Reply stream broke off ({e.kind.value}): {e.detail}")

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8")
