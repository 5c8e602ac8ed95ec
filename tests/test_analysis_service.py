"""Tests for the repository analysis service."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from commit_metrics.cache import ResultCache
from commit_metrics.errors import (
    InvalidRepositoryIdentifier,
    NoDataAvailable,
    ProtocolFailure,
    TransientFailure,
)
from commit_metrics.fallback import SyntheticDataGenerator
from commit_metrics.github_client import GitHubClient
from commit_metrics.models import (
    AnalysisResult,
    DataSource,
    DateRange,
    ReportArtifact,
    TimeRange,
)
from commit_metrics.services import RepositoryAnalysisService
from commit_metrics.storage import MemoryStore

from helpers import DAILY_COUNTS, REPO_URL, FakeClock, github_commit, make_commit, mock_transport

REPO_A = "https://github.com/acme/alpha"
REPO_B = "https://github.com/acme/beta"
SHA = "1a2b3c4d" + "0" * 32


class TestAnalyze:
    """Tests for analyze and its fallback behaviour."""

    @pytest.mark.asyncio
    async def test_primary_analysis_week_activity(self, analysis_service, cache):
        """A healthy GitHub feeds the dashboard and the cache."""
        result = await analysis_service.analyze(REPO_URL)

        assert result.source == DataSource.PRIMARY
        assert cache.read().repository_id == REPO_URL

        series = analysis_service.get_activity_series("week")
        assert [p.date for p in series] == [date(2025, 5, d) for d in range(8, 15)]
        assert [p.commit_count for p in series] == [7, 9, 4, 6, 11, 8, 7]

    @pytest.mark.asyncio
    async def test_rejected_request_falls_back_to_synthetic(
        self, analysis_service, mock_github_client, cache
    ):
        mock_github_client.fetch_analysis.side_effect = ProtocolFailure("Not Found", 404)

        result = await analysis_service.analyze(REPO_URL)

        assert result.source == DataSource.SYNTHETIC
        assert result.repository_id == REPO_URL
        assert result.commits
        assert analysis_service.session.repository_id == REPO_URL
        assert cache.read().result.source == DataSource.SYNTHETIC

    @pytest.mark.asyncio
    async def test_unexpected_error_falls_back_to_synthetic(
        self, analysis_service, mock_github_client
    ):
        mock_github_client.fetch_analysis.side_effect = KeyError("sha")

        result = await analysis_service.analyze(REPO_URL)

        assert result.source == DataSource.SYNTHETIC

    @pytest.mark.asyncio
    async def test_invalid_identifier_rejected_before_any_call(
        self, analysis_service, mock_github_client, cache
    ):
        with pytest.raises(InvalidRepositoryIdentifier):
            await analysis_service.analyze("not-a-url")

        mock_github_client.fetch_analysis.assert_not_called()
        assert analysis_service.session.repository_id is None
        assert cache.read() is None

    @pytest.mark.asyncio
    async def test_invalid_identifier_sends_no_http_request(self, cache, clock):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={})

        service = RepositoryAnalysisService(
            github=GitHubClient(transport=mock_transport(handler)),
            cache=cache,
            clock=clock,
        )

        with pytest.raises(InvalidRepositoryIdentifier):
            await service.analyze("not-a-url")

        assert requests == []

    @pytest.mark.asyncio
    async def test_unreachable_github_end_to_end(self, cache, clock):
        """Connection errors on every attempt end in synthetic data."""
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        service = RepositoryAnalysisService(
            github=GitHubClient(transport=mock_transport(handler, max_retries=2)),
            fallback=SyntheticDataGenerator(clock=clock),
            cache=cache,
            clock=clock,
        )

        result = await service.analyze(REPO_URL)

        assert result.source == DataSource.SYNTHETIC
        # three endpoints, three attempts each
        assert len(attempts) == 9

    @pytest.mark.asyncio
    async def test_identifier_is_trimmed(self, analysis_service, mock_github_client):
        await analysis_service.analyze(f"  {REPO_URL}  ")

        mock_github_client.fetch_analysis.assert_awaited_once_with(REPO_URL)
        assert analysis_service.session.repository_id == REPO_URL

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_fail_analysis(
        self, mock_github_client, mock_report_service, clock
    ):
        service = RepositoryAnalysisService(
            github=mock_github_client,
            cache=ResultCache(store=MemoryStore(quota=10), key="slot", clock=clock),
            reports=mock_report_service,
            clock=clock,
        )

        result = await service.analyze(REPO_URL)

        assert result.source == DataSource.PRIMARY
        assert service.session.result == result


class TestCacheReuse:
    """Tests for reuse of a fresh cached analysis."""

    @pytest.mark.asyncio
    async def test_fresh_entry_reused(self, analysis_service, mock_github_client):
        await analysis_service.analyze(REPO_URL)
        second = await analysis_service.analyze(REPO_URL)

        assert mock_github_client.fetch_analysis.await_count == 1
        assert second.cached is True
        assert second.source == DataSource.PRIMARY

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, analysis_service, mock_github_client):
        await analysis_service.analyze(REPO_URL)
        result = await analysis_service.analyze(REPO_URL, force=True)

        assert mock_github_client.fetch_analysis.await_count == 2
        assert result.cached is False

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, analysis_service, mock_github_client, clock):
        await analysis_service.analyze(REPO_URL)
        clock.advance(3601)

        await analysis_service.analyze(REPO_URL)

        assert mock_github_client.fetch_analysis.await_count == 2

    @pytest.mark.asyncio
    async def test_entry_for_other_repository_ignored(
        self, analysis_service, mock_github_client, sample_result
    ):
        mock_github_client.fetch_analysis.side_effect = [
            sample_result.model_copy(update={"repository_id": REPO_A}),
            sample_result.model_copy(update={"repository_id": REPO_B}),
        ]

        await analysis_service.analyze(REPO_A)
        result = await analysis_service.analyze(REPO_B)

        assert mock_github_client.fetch_analysis.await_count == 2
        assert result.repository_id == REPO_B
        assert result.cached is False


class TestConcurrentAnalyze:
    """Tests for overlapping analyze calls."""

    @pytest.mark.asyncio
    async def test_latest_request_wins(self, analysis_service, mock_github_client, cache):
        """A slow earlier analysis never overwrites a later one."""
        release_a = asyncio.Event()

        async def fetch(repository_id):
            if repository_id == REPO_A:
                await release_a.wait()
            return AnalysisResult(repository_id=repository_id)

        mock_github_client.fetch_analysis = AsyncMock(side_effect=fetch)

        task_a = asyncio.create_task(analysis_service.analyze(REPO_A))
        await asyncio.sleep(0)
        result_b = await analysis_service.analyze(REPO_B)
        release_a.set()
        result_a = await task_a

        assert result_a.repository_id == REPO_A
        assert result_b.repository_id == REPO_B
        assert analysis_service.session.repository_id == REPO_B
        assert analysis_service.session.result == result_b
        assert cache.read().repository_id == REPO_B

    @pytest.mark.asyncio
    async def test_stale_fallback_discarded(self, analysis_service, mock_github_client, cache):
        release_a = asyncio.Event()

        async def fetch(repository_id):
            if repository_id == REPO_A:
                await release_a.wait()
                raise ProtocolFailure("Bad credentials", 401)
            return AnalysisResult(repository_id=repository_id)

        mock_github_client.fetch_analysis = AsyncMock(side_effect=fetch)

        task_a = asyncio.create_task(analysis_service.analyze(REPO_A))
        await asyncio.sleep(0)
        await analysis_service.analyze(REPO_B)
        release_a.set()
        result_a = await task_a

        assert result_a.source == DataSource.SYNTHETIC
        assert analysis_service.session.repository_id == REPO_B
        assert cache.read().result.source == DataSource.PRIMARY


class TestResilientReads:
    """Tests for the narrow accessors."""

    @pytest.mark.asyncio
    async def test_nothing_analyzed(self, analysis_service):
        with pytest.raises(NoDataAvailable):
            await analysis_service.get_commits()
        with pytest.raises(NoDataAvailable):
            await analysis_service.get_languages()
        with pytest.raises(NoDataAvailable):
            analysis_service.get_repo_summary()
        with pytest.raises(NoDataAvailable):
            analysis_service.get_activity_series()

    @pytest.mark.asyncio
    async def test_commits_fresh_query(self, analysis_service, mock_github_client):
        await analysis_service.analyze(REPO_URL)
        fresh = [make_commit(999, date(2025, 5, 14), author="alice")]
        mock_github_client.fetch_commits.side_effect = None
        mock_github_client.fetch_commits.return_value = fresh

        view = await analysis_service.get_commits("week", author="alice")

        assert view.commits == fresh
        assert view.source == DataSource.PRIMARY
        assert view.cached is False
        mock_github_client.fetch_commits.assert_awaited_once_with(
            REPO_URL, DateRange(start=date(2025, 5, 8), end=date(2025, 5, 14)), "alice"
        )

    @pytest.mark.asyncio
    async def test_commits_derived_when_query_fails(self, analysis_service):
        await analysis_service.analyze(REPO_URL)

        view = await analysis_service.get_commits(TimeRange.WEEK)

        assert len(view.commits) == sum(DAILY_COUNTS[7:])
        assert view.cached is True
        assert view.source == DataSource.PRIMARY

    @pytest.mark.asyncio
    async def test_commits_filtered_by_author(self, analysis_service):
        await analysis_service.analyze(REPO_URL)

        view = await analysis_service.get_commits(author="bob")

        assert view.commits
        assert {c.author for c in view.commits} == {"bob"}

    @pytest.mark.asyncio
    async def test_commits_custom_range(self, analysis_service):
        await analysis_service.analyze(REPO_URL)

        view = await analysis_service.get_commits(
            DateRange(start=date(2025, 5, 1), end=date(2025, 5, 2))
        )

        assert len(view.commits) == DAILY_COUNTS[0] + DAILY_COUNTS[1]

    @pytest.mark.asyncio
    async def test_languages(self, analysis_service, mock_github_client):
        await analysis_service.analyze(REPO_URL)

        derived = await analysis_service.get_languages()
        assert derived.languages == {"Python": 9000, "Shell": 1000}
        assert derived.cached is True

        mock_github_client.fetch_languages.side_effect = None
        mock_github_client.fetch_languages.return_value = {"Go": 10}
        fresh = await analysis_service.get_languages()
        assert fresh.languages == {"Go": 10}
        assert fresh.cached is False

    @pytest.mark.asyncio
    async def test_top_files(self, analysis_service, mock_github_client):
        await analysis_service.analyze(REPO_URL)

        view = await analysis_service.get_top_files(limit=3)

        assert [f.filename for f in view.files] == ["src/app.py", "README.md", "setup.cfg"]
        assert view.cached is True

    @pytest.mark.asyncio
    async def test_top_files_invalid_limit(self, analysis_service):
        with pytest.raises(ValueError):
            await analysis_service.get_top_files(limit=0)

    @pytest.mark.asyncio
    async def test_synthetic_provenance_propagates(self, analysis_service, mock_github_client):
        mock_github_client.fetch_analysis.side_effect = ProtocolFailure("Not Found", 404)
        await analysis_service.analyze(REPO_URL)

        view = await analysis_service.get_languages()

        assert view.source == DataSource.SYNTHETIC
        assert view.cached is True

    @pytest.mark.asyncio
    async def test_reads_from_cache_after_restart(
        self, analysis_service, mock_github_client, mock_report_service, cache, clock
    ):
        """A new service instance serves the last persisted analysis."""
        await analysis_service.analyze(REPO_URL)
        restarted = RepositoryAnalysisService(
            github=mock_github_client,
            cache=cache,
            reports=mock_report_service,
            clock=clock,
        )

        languages = await restarted.get_languages()
        summary = restarted.get_repo_summary()

        assert languages.languages == {"Python": 9000, "Shell": 1000}
        assert languages.cached is True
        assert summary.cached is True
        assert summary.repository_id == REPO_URL
        mock_github_client.fetch_languages.assert_not_called()


class TestSummaryAndExport:
    """Tests for summary, activity and report export."""

    @pytest.mark.asyncio
    async def test_repo_summary(self, analysis_service):
        await analysis_service.analyze(REPO_URL)

        summary = analysis_service.get_repo_summary()

        assert summary.total_commits == sum(DAILY_COUNTS)
        assert len(summary.top_files) == 5
        assert summary.top_files[0].filename == "src/app.py"
        assert sorted(summary.authors) == ["alice", "bob", "carol"]
        assert summary.source == DataSource.PRIMARY

    @pytest.mark.asyncio
    async def test_activity_all_time(self, analysis_service):
        await analysis_service.analyze(REPO_URL)

        series = analysis_service.get_activity_series()

        assert [p.commit_count for p in series] == DAILY_COUNTS

    @pytest.mark.asyncio
    async def test_export_delegates_to_report_service(
        self, analysis_service, mock_report_service, sample_result
    ):
        artifact = ReportArtifact(
            content=b"%PDF-1.7", filename="widgets-week-report.pdf", source=DataSource.PRIMARY
        )
        mock_report_service.export = AsyncMock(return_value=artifact)
        await analysis_service.analyze(REPO_URL)

        exported = await analysis_service.export_report(REPO_URL, "week")

        assert exported == artifact
        mock_report_service.export.assert_awaited_once_with(
            sample_result,
            TimeRange.WEEK,
            DateRange(start=date(2025, 5, 8), end=date(2025, 5, 14)),
        )

    @pytest.mark.asyncio
    async def test_export_unknown_repository(self, analysis_service):
        await analysis_service.analyze(REPO_URL)

        with pytest.raises(NoDataAvailable):
            await analysis_service.export_report(REPO_A)


class TestSnapshotsAndClock:
    """Tests for reads that overlap a repository switch, and clock handling."""

    @pytest.mark.asyncio
    async def test_read_survives_repository_switch(self, analysis_service, mock_github_client):
        """A read started for one repository derives from that repository."""
        await analysis_service.analyze(REPO_URL)
        release = asyncio.Event()

        async def slow_failure(repository_id):
            await release.wait()
            raise TransientFailure("GitHub unreachable")

        mock_github_client.fetch_languages = AsyncMock(side_effect=slow_failure)
        mock_github_client.fetch_analysis = AsyncMock(
            return_value=AnalysisResult(repository_id=REPO_B)
        )

        read = asyncio.create_task(analysis_service.get_languages())
        await asyncio.sleep(0)
        await analysis_service.analyze(REPO_B)
        release.set()
        view = await read

        assert view.languages == {"Python": 9000, "Shell": 1000}
        assert view.cached is True
        assert analysis_service.session.repository_id == REPO_B

    @pytest.mark.asyncio
    async def test_top_files_not_replaced_by_placeholders(
        self, analysis_service, mock_github_client
    ):
        """Rate-limited commit details fall back to the current result."""

        def handler(request):
            if request.url.path.startswith("/repos/acme/widgets/commits/"):
                return httpx.Response(403, json={"message": "API rate limit exceeded"})
            return httpx.Response(200, json=[github_commit(SHA, "2025-05-14T10:00:00Z")])

        client = GitHubClient(transport=mock_transport(handler))
        mock_github_client.fetch_file_changes = AsyncMock(side_effect=client.fetch_file_changes)
        await analysis_service.analyze(REPO_URL)

        view = await analysis_service.get_top_files(3)

        assert [f.filename for f in view.files] == ["src/app.py", "README.md", "setup.cfg"]
        assert view.cached is True
        assert view.source == DataSource.PRIMARY

    @pytest.mark.asyncio
    async def test_windows_use_utc_day(self, mock_github_client, mock_report_service, cache):
        # 2025-05-14 23:30 at UTC-3 is already 2025-05-15 in UTC
        clock = FakeClock(datetime(2025, 5, 14, 23, 30, tzinfo=timezone(timedelta(hours=-3))))
        service = RepositoryAnalysisService(
            github=mock_github_client,
            cache=cache,
            reports=mock_report_service,
            clock=clock,
        )
        await service.analyze(REPO_URL)

        series = service.get_activity_series("week")

        assert [p.date for p in series] == [date(2025, 5, d) for d in range(9, 15)]
