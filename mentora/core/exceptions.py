"""Application exceptions and their HTTP rendering.

Every error raised by the session machines, the store and the generation
layer derives from ``MentoraError`` so the API can render it uniformly as
``{"error": message}`` with a non-200 status.
"""

import logging
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class MentoraError(Exception):
    """Base exception for all Mentora errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(MentoraError):
    """Raised when a request is missing a required field or carries a bad value."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(MentoraError):
    """Raised when the bearer token is missing or invalid."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(MentoraError):
    """Raised when a requested record does not exist for the caller."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} not found: {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class InvalidTransitionError(MentoraError):
    """Raised when an event is not allowed in the machine's current stage."""

    status_code = status.HTTP_409_CONFLICT


class SessionBusyError(InvalidTransitionError):
    """Raised when a generation call is already outstanding for the session."""


class ConfirmationRequiredError(MentoraError):
    """Raised when a destructive action was requested without confirmation."""

    status_code = status.HTTP_400_BAD_REQUEST


class GenerationFailedError(MentoraError):
    """Raised when a generation step fails (transport, provider or shape)."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, kind: str):
        super().__init__(message)
        self.kind = kind


class StoreError(MentoraError):
    """Raised when the session store cannot complete a read or write."""


async def mentora_exception_handler(request: Request, exc: MentoraError) -> JSONResponse:
    """Render MentoraError instances as ``{"error": message}``."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render malformed request bodies and parameters as ``{"error": message}``."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "Invalid request. " + "; ".join(problems)
    logger.info(f"Rejected request to {request.url.path}: {message}")
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"error": message})
