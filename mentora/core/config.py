"""Application configuration using Pydantic settings."""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Application
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # Database
    DATABASE_URL: str

    # Redis (lesson cache)
    REDIS_URL: str = "redis://localhost:6379/0"
    LESSON_CACHE_TTL_SECONDS: int = 60 * 60 * 24 * 7

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # OpenAI
    OPENAI_API_KEY: str
    OPENAI_MODEL: str = "gpt-4o-mini"
    GENERATION_MAX_OUTPUT_TOKENS: int = 1000
    GENERATION_TIMEOUT_SECONDS: float = 60.0
    TEMPERATURE_CREATIVE: float = 0.8  # questions, dialogue
    TEMPERATURE_ANALYTICAL: float = 0.3  # grading

    # Interview sessions
    INTERVIEW_DURATION_SECONDS: int = 1800  # 30 minutes
    INTERVIEW_QUESTION_COUNT: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )


settings = Settings()
