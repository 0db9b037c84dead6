"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from mentora import __version__
from mentora.api.v1.dependencies import get_session_store
from mentora.api.v1.router import api_router
from mentora.core.config import settings
from mentora.core.database import engine, Base
from mentora.core.exceptions import (
    MentoraError,
    mentora_exception_handler,
    request_validation_exception_handler,
)
from mentora.core.logging import setup_logging
from mentora.core.redis import RedisClient
from mentora.services.personas import seed_personas
from mentora.services.registry import interview_sessions, study_sessions


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await seed_personas(get_session_store())
    yield
    # Shutdown
    interview_sessions.close_all()
    study_sessions.close_all()
    await RedisClient.close()


app = FastAPI(
    title="Mentora API",
    description="Mock interviews and persona-led study sessions",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,  # Must be False when allow_origins is ["*"]
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.add_exception_handler(MentoraError, mentora_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    lesson_cache = "up" if await RedisClient.ping() else "down"
    return {"status": "healthy", "service": "mentora", "lesson_cache": lesson_cache}


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Mentora API", "version": __version__}
