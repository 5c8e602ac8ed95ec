"""Repository analysis orchestration."""

from datetime import date, datetime, timezone
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar, Union

import structlog

from ..cache import ResultCache
from ..config import settings
from ..errors import NoDataAvailable
from ..fallback import SyntheticDataGenerator
from ..github_client import GitHubClient, parse_repository_id
from ..models import (
    ActivityPoint,
    AnalysisResult,
    CommitsView,
    DataSource,
    DateRange,
    LanguagesView,
    RepoSummary,
    ReportArtifact,
    TimeRange,
    TopFilesView,
    utcnow,
)
from ..time_ranges import window_for
from .report_service import ReportService

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SUMMARY_TOP_FILES = 5


class AnalysisSession:
    """The repository context shared by the dashboard's views.

    Every ``analyze`` call takes a new token; only the holder of the latest
    token may replace the current repository and result.
    """

    def __init__(self):
        self.latest_token = 0
        self.requested_id: Optional[str] = None
        self.repository_id: Optional[str] = None
        self.result: Optional[AnalysisResult] = None

    def begin(self, repository_id: str) -> int:
        self.latest_token += 1
        self.requested_id = repository_id
        return self.latest_token

    def is_current(self, token: int) -> bool:
        return token == self.latest_token

    def commit(self, repository_id: str, result: AnalysisResult) -> None:
        self.repository_id = repository_id
        self.result = result

    def snapshot(self) -> Tuple[Optional[str], Optional[AnalysisResult]]:
        return self.repository_id, self.result


class RepositoryAnalysisService:
    """Facade used by the dashboard to obtain repository data.

    ``analyze`` never fails for reachability reasons: one attempt is made
    against GitHub and any error switches to synthetic data. Narrow accessors
    prefer a fresh GitHub query and fall back to the current or cached
    result; they raise :class:`NoDataAvailable` only when nothing has been
    analyzed yet.
    """

    def __init__(
        self,
        github: Optional[GitHubClient] = None,
        fallback: Optional[SyntheticDataGenerator] = None,
        cache: Optional[ResultCache] = None,
        reports: Optional[ReportService] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_age: Optional[float] = None,
    ):
        self.clock = clock or utcnow
        self.github = github or GitHubClient()
        self.fallback = fallback or SyntheticDataGenerator(clock=self.clock)
        self.cache = cache or ResultCache(clock=self.clock)
        self.reports = reports or ReportService()
        self.max_age = settings.cache_max_age if max_age is None else max_age
        self.session = AnalysisSession()
        self.logger = logger.bind(component="RepositoryAnalysisService")

    async def analyze(self, repository_id: str, force: bool = False) -> AnalysisResult:
        """Analyze a repository and make it the current one."""
        repository_id = (repository_id or "").strip()
        parse_repository_id(repository_id)
        token = self.session.begin(repository_id)

        if not force:
            cached = self._fresh_cached_result(repository_id)
            if cached is not None:
                self.logger.info("Using cached analysis", repo=repository_id)
                self._adopt(token, repository_id, cached, persist=False)
                return cached

        try:
            result = await self.github.fetch_analysis(repository_id)
        except Exception as e:
            self.logger.warning(
                "Primary source failed, using synthetic data",
                repo=repository_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            result = self.fallback.generate(repository_id)

        self._adopt(token, repository_id, result, persist=True)
        return result

    async def get_commits(
        self,
        time_range: Union[TimeRange, str, DateRange] = TimeRange.ALL,
        author: Optional[str] = None,
    ) -> CommitsView:
        """Commits of the current repository inside a window, optionally by author."""
        date_range = self._resolve_range(time_range)
        author = author or None

        def derive(result: AnalysisResult):
            return [
                c
                for c in result.commits
                if date_range.contains(c.day) and (author is None or c.author == author)
            ]

        commits, source, cached = await self._resilient_read(
            "commits",
            lambda repo: self.github.fetch_commits(repo, date_range, author),
            derive,
        )
        return CommitsView(commits=commits, source=source, cached=cached)

    async def get_languages(self) -> LanguagesView:
        """Language weights of the current repository."""
        languages, source, cached = await self._resilient_read(
            "languages",
            self.github.fetch_languages,
            lambda result: dict(result.languages),
        )
        return LanguagesView(languages=languages, source=source, cached=cached)

    async def get_top_files(self, limit: int = 10) -> TopFilesView:
        """Most changed files within the sampled commits."""
        if limit < 1:
            raise ValueError("limit must be >= 1")

        async def fetch(repository_id: str):
            files = await self.github.fetch_file_changes(repository_id)
            return files[:limit]

        files, source, cached = await self._resilient_read(
            "top_files", fetch, lambda result: result.top_files(limit)
        )
        return TopFilesView(files=files, source=source, cached=cached)

    def get_repo_summary(self) -> RepoSummary:
        """Summary of the current repository."""
        result = self._current_result()
        return RepoSummary(
            repository_id=result.repository_id,
            total_commits=len(result.commits),
            top_files=result.top_files(SUMMARY_TOP_FILES),
            languages=dict(result.languages),
            authors=result.authors,
            commit_count_by_date=result.commit_count_by_date,
            source=result.source,
            cached=result.cached,
        )

    def get_activity_series(
        self, window: Union[TimeRange, str, DateRange] = TimeRange.ALL
    ) -> List[ActivityPoint]:
        """Daily commit counts inside a window, ascending by date."""
        result = self._current_result()
        date_range = self._resolve_range(window)
        points = []
        for day, count in result.commit_count_by_date.items():
            parsed = date.fromisoformat(day)
            if date_range.contains(parsed):
                points.append(ActivityPoint(date=parsed, commit_count=count))
        return sorted(points, key=lambda p: p.date)

    async def export_report(
        self,
        repository_id: str,
        time_range: Union[TimeRange, str] = TimeRange.ALL,
    ) -> ReportArtifact:
        """Export a report of an analyzed repository."""
        result = self._current_result(repository_id.strip())
        time_range = TimeRange(time_range)
        return await self.reports.export(
            result, time_range, window_for(time_range, self._today())
        )

    async def _resilient_read(
        self,
        operation: str,
        fetch: Callable[[str], Awaitable[T]],
        derive: Callable[[AnalysisResult], T],
    ) -> Tuple[T, DataSource, bool]:
        # The session may switch repositories while the fetch is in flight
        repository_id, snapshot = self.session.snapshot()
        if repository_id:
            try:
                return await fetch(repository_id), DataSource.PRIMARY, False
            except Exception as e:
                self.logger.warning(
                    "Fresh fetch failed, deriving from last result",
                    operation=operation,
                    repo=repository_id,
                    error=str(e),
                )
        result = snapshot if snapshot is not None else self._current_result(repository_id)
        return derive(result), result.source, True

    def _current_result(self, repository_id: Optional[str] = None) -> AnalysisResult:
        current_id, result = self.session.snapshot()
        if result is not None and repository_id in (None, current_id):
            return result

        entry = self.cache.read()
        if entry is not None and repository_id in (None, entry.repository_id):
            return entry.result.model_copy(update={"cached": True})

        if repository_id:
            raise NoDataAvailable(f"No analysis available for {repository_id}")
        raise NoDataAvailable("No repository has been analyzed yet")

    def _fresh_cached_result(self, repository_id: str) -> Optional[AnalysisResult]:
        entry = self.cache.read()
        if entry is None or entry.repository_id != repository_id:
            return None
        if not self.cache.is_valid(self.max_age):
            return None
        return entry.result.model_copy(update={"cached": True})

    def _adopt(
        self, token: int, repository_id: str, result: AnalysisResult, persist: bool
    ) -> None:
        if not self.session.is_current(token):
            self.logger.warning(
                "Discarding stale analysis",
                repo=repository_id,
                current=self.session.requested_id,
            )
            return
        self.session.commit(repository_id, result)
        if persist:
            self.cache.write(repository_id, result)

    def _resolve_range(self, time_range: Union[TimeRange, str, DateRange]) -> DateRange:
        if isinstance(time_range, DateRange):
            return time_range
        return window_for(time_range, self._today())

    def _today(self) -> date:
        return self.clock().astimezone(timezone.utc).date()
