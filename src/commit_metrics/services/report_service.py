"""Dashboard report export."""

from datetime import date
from typing import Any, Dict, Optional

import structlog

from ..config import settings
from ..fallback import repository_slug
from ..models import (
    AnalysisResult,
    DataSource,
    DateRange,
    ReportArtifact,
    TimeRange,
    language_percentages,
)
from ..transport import RequestSpec, Transport

logger = structlog.get_logger(__name__)

REPORT_TOP_FILES = 5

RANGE_TITLES = {
    TimeRange.WEEK: "Last Week",
    TimeRange.MONTH: "Last Month",
    TimeRange.ALL: "All Time",
}


class ReportService:
    """Builds report payloads and exports them through the report API."""

    def __init__(self, transport: Optional[Transport] = None):
        self.transport = transport or Transport(settings.report_api_url)
        self.logger = logger.bind(component="ReportService")

    def build_payload(
        self, result: AnalysisResult, time_range: TimeRange, date_range: DateRange
    ) -> Dict[str, Any]:
        """Report body understood by the export endpoint."""
        commits = [c for c in result.commits if date_range.contains(c.day)]
        daily = {
            day: count
            for day, count in result.commit_count_by_date.items()
            if date_range.contains(date.fromisoformat(day))
        }
        return {
            "repoPath": result.repository_id,
            "timeRange": time_range.value,
            "source": result.source.value,
            "cached": result.cached,
            "summary": {
                "totalCommits": len(commits),
                "topFiles": [f.model_dump() for f in result.top_files(REPORT_TOP_FILES)],
                "languages": dict(result.languages),
                "authors": list(dict.fromkeys(c.author for c in commits)),
                "commitCountByDate": daily,
            },
        }

    async def export(
        self, result: AnalysisResult, time_range: TimeRange, date_range: DateRange
    ) -> ReportArtifact:
        """Request a PDF; render a Markdown report locally if that fails."""
        payload = self.build_payload(result, time_range, date_range)
        basename = f"{repository_slug(result.repository_id)}-{time_range.value}-report"

        response = await self.transport.send(
            RequestSpec(method="POST", path="/api/export/pdf", body=payload)
        )
        if response.ok and response.content is not None:
            self.logger.info("Exported PDF report", repo=result.repository_id)
            return ReportArtifact(
                content=response.content,
                media_type=response.media_type or "application/pdf",
                filename=f"{basename}.pdf",
                source=result.source,
                cached=result.cached,
            )

        self.logger.warning(
            "Report service unavailable, rendering locally",
            repo=result.repository_id,
            outcome=response.outcome.value,
            error=response.message,
        )
        return ReportArtifact(
            content=render_markdown_report(payload).encode("utf-8"),
            media_type="text/markdown",
            filename=f"{basename}.md",
            source=result.source,
            cached=result.cached,
        )


def render_markdown_report(payload: Dict[str, Any]) -> str:
    """Render a report payload as Markdown."""
    summary = payload["summary"]
    time_range = TimeRange(payload["timeRange"])
    lines = [
        f"# Commit Metrics: {payload['repoPath']}",
        "",
        f"Period: {RANGE_TITLES[time_range]}",
    ]
    if payload["source"] == DataSource.SYNTHETIC.value:
        lines.append("Data: synthetic sample, GitHub was unreachable")
    elif payload["cached"]:
        lines.append("Data: cached result")

    lines += ["", f"Total commits: {summary['totalCommits']}", "", "## Top files", ""]
    lines += [f"- {f['filename']}: {f['changes']} changes" for f in summary["topFiles"]]

    lines += ["", "## Languages", ""]
    for name, percent in language_percentages(summary["languages"]).items():
        lines.append(f"- {name}: {percent}%")

    lines += ["", "## Authors", ""]
    lines += [f"- {author}" for author in summary["authors"]]

    lines += ["", "## Daily commits", "", "| Date | Commits |", "| --- | --- |"]
    lines += [f"| {day} | {count} |" for day, count in summary["commitCountByDate"].items()]
    return "\n".join(lines) + "\n"
