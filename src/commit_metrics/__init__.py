"""Commit Metrics - resilient data layer for a Git analytics dashboard."""

__version__ = "0.1.0"

from .cache import ResultCache
from .config import Settings
from .fallback import SyntheticDataGenerator
from .github_client import GitHubClient
from .models import AnalysisResult, Commit, DataSource, FileChange, TimeRange
from .services import RepositoryAnalysisService
from .transport import Transport

__all__ = [
    "AnalysisResult",
    "Commit",
    "DataSource",
    "FileChange",
    "GitHubClient",
    "RepositoryAnalysisService",
    "ResultCache",
    "Settings",
    "SyntheticDataGenerator",
    "TimeRange",
    "Transport",
]
