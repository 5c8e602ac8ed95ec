"""API routers for Commit Metrics."""

from .export import router as export_router
from .health import router as health_router
from .repo import router as repo_router

__all__ = ["health_router", "repo_router", "export_router"]
