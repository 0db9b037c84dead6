"""
Pytest fixtures for Mentora tests.

Everything runs in-process: an in-memory SQLite database, fakeredis for the
lesson cache and a scripted generation client, so no test touches the network.
"""
import asyncio
import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

import pytest
from fakeredis import aioredis as fakeredis_aioredis
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import mentora.models  # noqa: F401  registers the tables
from mentora.core.database import Base
from mentora.services.generation_client import (
    GenerationError,
    GenerationErrorKind,
    GenerationResult,
)
from mentora.services.personas import DEFAULT_PERSONAS
from mentora.services.session_store import SessionStore


class FakeGenerationClient:
    """Scripted stand-in for GenerationClient.

    ``complete`` pops queued results in order; ``stream`` pops queued fragment
    scripts. Every call is recorded for assertions.
    """

    def __init__(self):
        self.completions: list[GenerationResult] = []
        self.streams: list[tuple[list[str], GenerationError | None]] = []
        self.complete_calls: list[dict] = []
        self.stream_calls: list[dict] = []
        self.stream_gate: asyncio.Event | None = None

    def queue_text(self, text: str) -> None:
        self.completions.append(GenerationResult.success(text))

    def queue_json(self, payload) -> None:
        self.queue_text(json.dumps(payload))

    def queue_failure(self, kind: GenerationErrorKind = GenerationErrorKind.PROVIDER) -> None:
        self.completions.append(GenerationResult.failure(kind, "scripted failure"))

    def queue_stream(self, *fragments: str, error: GenerationError | None = None) -> None:
        self.streams.append((list(fragments), error))

    async def complete(self, system_prompt, prompt=None, history=None, temperature=None):
        self.complete_calls.append(
            {"system_prompt": system_prompt, "prompt": prompt, "history": history, "temperature": temperature}
        )
        assert self.completions, "unexpected complete() call"
        return self.completions.pop(0)

    async def stream(self, system_prompt, prompt=None, history=None, temperature=None):
        self.stream_calls.append(
            {"system_prompt": system_prompt, "prompt": prompt, "history": list(history or [])}
        )
        assert self.streams, "unexpected stream() call"
        fragments, error = self.streams.pop(0)
        for fragment in fragments:
            if self.stream_gate is not None:
                await self.stream_gate.wait()
            await asyncio.sleep(0)
            yield fragment
        if error is not None:
            raise error


def make_questions(count: int = 10, difficulty: str = "medium") -> list[dict]:
    return [{"question": f"Question {i + 1}?", "difficulty": difficulty} for i in range(count)]


def make_grading(count: int = 10, summary: str = "Excellent work on these complex topics.") -> dict:
    return {
        "feedback": [
            {"good": f"Good point {i + 1}.", "missing": f"Missing detail {i + 1}."}
            for i in range(count)
        ],
        "summary": summary,
    }


@pytest.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def store(session_factory) -> SessionStore:
    store = SessionStore(session_factory)
    for persona in DEFAULT_PERSONAS:
        await store.upsert_persona(persona)
    return store


@pytest.fixture
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
async def fake_redis():
    client = fakeredis_aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.aclose()
