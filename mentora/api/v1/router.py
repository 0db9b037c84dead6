"""Main API v1 router."""

from fastapi import APIRouter

from mentora.api.v1.endpoints import functions, interviews, study

api_router = APIRouter()

api_router.include_router(interviews.router, prefix="/interviews", tags=["interviews"])
api_router.include_router(study.router, prefix="/study", tags=["study"])
api_router.include_router(functions.router, prefix="/functions", tags=["functions"])
