"""API dependencies."""

from typing import Optional

import redis.asyncio as redis
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mentora.core.exceptions import AuthenticationError
from mentora.core.redis import get_redis
from mentora.core.security import decode_access_token
from mentora.services.answer_grader import AnswerGrader
from mentora.services.generation_client import GenerationClient
from mentora.services.lesson_service import LessonService
from mentora.services.question_generator import QuestionGenerator
from mentora.services.session_store import SessionStore

security = HTTPBearer(auto_error=False)

_session_store: Optional[SessionStore] = None
_generation_client: Optional[GenerationClient] = None


async def get_current_owner_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Return the owner id (``sub`` claim) of the bearer token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    owner_id = payload.get("sub")
    if not owner_id:
        raise AuthenticationError("Could not validate credentials")
    return str(owner_id)


def get_session_store() -> SessionStore:
    global _session_store
    if _session_store is None:
        _session_store = SessionStore()
    return _session_store


def get_generation_client() -> GenerationClient:
    global _generation_client
    if _generation_client is None:
        _generation_client = GenerationClient()
    return _generation_client


def get_question_generator(
    client: GenerationClient = Depends(get_generation_client),
) -> QuestionGenerator:
    return QuestionGenerator(client)


def get_answer_grader(
    client: GenerationClient = Depends(get_generation_client),
) -> AnswerGrader:
    return AnswerGrader(client)


def get_lesson_service(
    client: GenerationClient = Depends(get_generation_client),
    redis_client: redis.Redis = Depends(get_redis),
) -> LessonService:
    return LessonService(client, redis_client)
