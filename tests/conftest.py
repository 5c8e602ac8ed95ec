"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from commit_metrics.cache import ResultCache
from commit_metrics.config import Settings, settings
from commit_metrics.errors import TransientFailure
from commit_metrics.fallback import SyntheticDataGenerator
from commit_metrics.github_client import GitHubClient
from commit_metrics.models import AnalysisResult, DataSource, FileChange
from commit_metrics.services import ReportService, RepositoryAnalysisService
from commit_metrics.storage import MemoryStore

from helpers import DAILY_COUNTS, FIRST_DAY, REPO_URL, FakeClock, make_commit


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch, tmp_path):
    """Keep tests offline-safe, fast and isolated."""
    structlog.reset_defaults()
    monkeypatch.setattr(settings, "retry_base_delay", 0.0)
    monkeypatch.setattr(settings, "cache_dir", str(tmp_path / "cache"))
    monkeypatch.setattr(settings, "offline", False)


@pytest.fixture
def mock_settings():
    """Settings for testing."""
    return Settings(github_token="test-token", debug=True)


@pytest.fixture
def clock():
    """Clock frozen at 2025-05-14 12:00 UTC."""
    return FakeClock(datetime(2025, 5, 14, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def cache(memory_store, clock):
    return ResultCache(store=memory_store, key="test-slot", clock=clock)


@pytest.fixture
def scenario_commits():
    """Commits on 2025-05-01..05-14 following DAILY_COUNTS, newest first."""
    commits = []
    authors = ["alice", "bob", "carol"]
    for offset, count in enumerate(DAILY_COUNTS):
        day = FIRST_DAY + timedelta(days=offset)
        for i in range(count):
            index = len(commits) + 1
            commits.append(
                make_commit(index, day, author=authors[index % 3], hour=8 + i)
            )
    commits.sort(key=lambda c: c.date, reverse=True)
    return commits


@pytest.fixture
def sample_result(scenario_commits):
    """Primary analysis of REPO_URL."""
    return AnalysisResult(
        repository_id=REPO_URL,
        commits=scenario_commits,
        files_changed=[
            FileChange(filename="src/app.py", changes=30),
            FileChange(filename="README.md", changes=12),
            FileChange(filename="setup.cfg", changes=12),
            FileChange(filename="src/cli.py", changes=8),
            FileChange(filename="tests/test_app.py", changes=5),
            FileChange(filename="docs/index.md", changes=1),
        ],
        languages={"Python": 9000, "Shell": 1000},
        source=DataSource.PRIMARY,
    )


@pytest.fixture
def mock_github_client(sample_result):
    """GitHub client whose full analysis succeeds and narrow queries fail."""
    client = MagicMock(spec=GitHubClient)
    client.fetch_analysis = AsyncMock(return_value=sample_result)
    client.fetch_commits = AsyncMock(side_effect=TransientFailure("GitHub unreachable"))
    client.fetch_languages = AsyncMock(side_effect=TransientFailure("GitHub unreachable"))
    client.fetch_file_changes = AsyncMock(side_effect=TransientFailure("GitHub unreachable"))
    return client


@pytest.fixture
def mock_report_service():
    return MagicMock(spec=ReportService)


@pytest.fixture
def analysis_service(mock_github_client, cache, clock, mock_report_service):
    """Analysis service wired to mocks and an in-memory cache."""
    return RepositoryAnalysisService(
        github=mock_github_client,
        fallback=SyntheticDataGenerator(clock=clock),
        cache=cache,
        reports=mock_report_service,
        clock=clock,
        max_age=3600,
    )
