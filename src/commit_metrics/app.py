"""FastAPI application factory for the Commit Metrics dashboard API."""

import logging
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .routers import export_router, health_router, repo_router
from .services import RepositoryAnalysisService


def create_app(service: Optional[RepositoryAnalysisService] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    # Configure logging
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
            if settings.debug
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper())
        ),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    app = FastAPI(
        title="Commit Metrics",
        description="Repository analytics data for the Commit Metrics dashboard",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Data-Source", "X-Data-Cached"],
    )

    # One service per app: it owns the current repository and the cache slot
    app.state.analysis_service = service or RepositoryAnalysisService()

    app.include_router(health_router)
    app.include_router(repo_router)
    app.include_router(export_router)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "commit_metrics.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
