"""
Health check route.
"""
from fastapi import APIRouter, Request

from pasteburn.models import HealthCheck

router = APIRouter()


@router.get("/api/healthz", response_model=HealthCheck)
def health_check(request: Request) -> HealthCheck:
    """
    Health check endpoint.
    Returns 200 with ok=true if application and database are healthy.
    """
    store = request.app.state.lifecycle.store
    return HealthCheck(ok=store.ping(), using_fallback=store.using_fallback)
