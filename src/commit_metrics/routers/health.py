"""Health check endpoints."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    session = request.app.state.analysis_service.session
    return {
        "status": "healthy",
        "service": "commit-metrics",
        "current_repository": session.repository_id,
    }
