"""Report export endpoints."""

import structlog
from fastapi import APIRouter, HTTPException, Request, Response, status
from pydantic import BaseModel, Field

from ..errors import NoDataAvailable
from ..models import TimeRange

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/export", tags=["export"])


class ExportRequest(BaseModel):
    """Body of an export request."""

    repo_path: str = Field(..., description="Repository URL")
    time_range: TimeRange = Field(TimeRange.ALL, description="Reported window")


@router.post("/pdf")
async def export_report(body: ExportRequest, request: Request):
    """Export the dashboard of an analyzed repository."""
    service = request.app.state.analysis_service
    try:
        artifact = await service.export_report(body.repo_path, body.time_range)
    except NoDataAvailable as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    logger.info(
        "Report exported",
        repo=body.repo_path,
        media_type=artifact.media_type,
        size=len(artifact.content),
    )
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{artifact.filename}"',
            "X-Data-Source": artifact.source.value,
            "X-Data-Cached": str(artifact.cached).lower(),
        },
    )
