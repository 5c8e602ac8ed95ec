"""Services module for Commit Metrics."""

from .analysis_service import AnalysisSession, RepositoryAnalysisService
from .report_service import ReportService

__all__ = [
    "AnalysisSession",
    "RepositoryAnalysisService",
    "ReportService",
]
