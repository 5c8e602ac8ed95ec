"""Repository analysis endpoints."""

import structlog
from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from ..errors import InvalidRepositoryIdentifier, NoDataAvailable
from ..models import TimeRange
from ..services import RepositoryAnalysisService

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/repo", tags=["repo"])


class AnalyzeRequest(BaseModel):
    """Body of an analyze request."""

    repo_path: str = Field(..., description="Repository URL")
    force: bool = Field(False, description="Ignore a fresh cached result")


def get_service(request: Request) -> RepositoryAnalysisService:
    return request.app.state.analysis_service


def _not_found(e: NoDataAvailable) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/analyze")
async def analyze_repository(body: AnalyzeRequest, request: Request):
    """Analyze a repository and make it the current one."""
    service = get_service(request)
    try:
        result = await service.analyze(body.repo_path, force=body.force)
    except InvalidRepositoryIdentifier as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)
        ) from e

    return {
        "success": True,
        "message": f"Repository {result.repository_id} analyzed",
        "data": result.model_dump(mode="json"),
    }


@router.get("/summary")
async def repo_summary(request: Request):
    """Summary of the current repository."""
    try:
        return get_service(request).get_repo_summary()
    except NoDataAvailable as e:
        raise _not_found(e) from e


@router.get("/commits")
async def repo_commits(
    request: Request,
    time_range: TimeRange = Query(TimeRange.ALL),
    author: str | None = Query(None),
):
    """Commits in a time range, optionally by author."""
    try:
        return await get_service(request).get_commits(time_range, author)
    except NoDataAvailable as e:
        raise _not_found(e) from e


@router.get("/languages")
async def repo_languages(request: Request):
    """Language breakdown of the current repository."""
    try:
        return await get_service(request).get_languages()
    except NoDataAvailable as e:
        raise _not_found(e) from e


@router.get("/top-files")
async def repo_top_files(request: Request, limit: int = Query(10, ge=1, le=100)):
    """Most changed files of the current repository."""
    try:
        return await get_service(request).get_top_files(limit)
    except NoDataAvailable as e:
        raise _not_found(e) from e


@router.get("/activity")
async def repo_activity(request: Request, window: TimeRange = Query(TimeRange.WEEK)):
    """Daily commit counts for charting."""
    try:
        return get_service(request).get_activity_series(window)
    except NoDataAvailable as e:
        raise _not_found(e) from e
