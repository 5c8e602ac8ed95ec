"""Data models for Commit Metrics."""

from collections import Counter
from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    computed_field,
    field_validator,
    model_validator,
)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class DataSource(str, Enum):
    """Where an analysis result came from."""

    PRIMARY = "primary"
    SYNTHETIC = "synthetic"


class TimeRange(str, Enum):
    """Coarse window selectors used by the dashboard."""

    WEEK = "week"
    MONTH = "month"
    ALL = "all"


class Commit(BaseModel):
    """A single commit, normalized for display."""

    model_config = ConfigDict(frozen=True)

    hash: str = Field(..., pattern=r"^[0-9a-f]{7}$", description="Short commit hash")
    author: str = Field(..., description="Author login or display name")
    date: datetime = Field(..., description="Author date in UTC")
    message: str = Field("", description="First line of the commit message")

    @field_validator("date")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_validator("message")
    @classmethod
    def _first_line(cls, value: str) -> str:
        lines = value.splitlines()
        return lines[0] if lines else ""

    @property
    def day(self):
        """UTC calendar day of the commit."""
        return self.date.date()


class FileChange(BaseModel):
    """Accumulated change count for one file."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., min_length=1, description="Repository-relative path")
    changes: NonNegativeInt = Field(0, description="Changed lines across the sample")


class AnalysisResult(BaseModel):
    """Normalized analysis of one repository.

    ``authors`` and ``commit_count_by_date`` are derived from ``commits`` and
    cannot be set directly. ``files_changed`` only reflects the handful of
    recent commits that were sampled, never the full history.
    """

    model_config = ConfigDict(frozen=True)

    repository_id: str = Field(..., description="Repository URL used as cache key")
    commits: List[Commit] = Field(
        default_factory=list, description="Commits, most recent first"
    )
    files_changed: List[FileChange] = Field(
        default_factory=list, description="Per-file change counts, unique by filename"
    )
    languages: Dict[str, NonNegativeInt] = Field(
        default_factory=dict, description="Language name to weight"
    )
    source: DataSource = Field(DataSource.PRIMARY, description="Data provenance")
    cached: bool = Field(False, description="Served from the persistent cache")

    @model_validator(mode="after")
    def _check_invariants(self) -> "AnalysisResult":
        filenames = [f.filename for f in self.files_changed]
        if len(set(filenames)) != len(filenames):
            raise ValueError("files_changed must be unique by filename")
        if self.commits and not self.languages:
            raise ValueError("languages must not be empty when commits exist")
        return self

    @computed_field
    @property
    def authors(self) -> List[str]:
        """Distinct commit authors in first-seen order."""
        return list(dict.fromkeys(c.author for c in self.commits))

    @computed_field
    @property
    def commit_count_by_date(self) -> Dict[str, int]:
        """Commits per UTC day (YYYY-MM-DD), ascending by day."""
        counts = Counter(c.day.isoformat() for c in self.commits)
        return dict(sorted(counts.items()))

    def top_files(self, limit: Optional[int] = None) -> List[FileChange]:
        """Files by descending change count; ties keep insertion order."""
        ranked = sorted(self.files_changed, key=lambda f: f.changes, reverse=True)
        return ranked if limit is None else ranked[:limit]


class CacheEntry(BaseModel):
    """The single persisted analysis slot."""

    repository_id: str = Field(..., description="Repository the result belongs to")
    result: AnalysisResult = Field(..., description="Stored analysis")
    fetched_at: datetime = Field(..., description="When the result was stored")


class DateRange(BaseModel):
    """Inclusive day range; either bound may be open."""

    model_config = ConfigDict(frozen=True)

    start: Optional[date] = Field(None, description="First day included")
    end: Optional[date] = Field(None, description="Last day included")

    @model_validator(mode="after")
    def _ordered(self) -> "DateRange":
        if self.start and self.end and self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    def contains(self, day: date) -> bool:
        """Check whether a day falls inside the range."""
        if self.start and day < self.start:
            return False
        if self.end and day > self.end:
            return False
        return True


def language_percentages(languages: Dict[str, int]) -> Dict[str, float]:
    """Convert language weights to percentages with one decimal place."""
    total = sum(languages.values())
    if total == 0:
        return {name: 0.0 for name in languages}
    return {name: round(weight * 100 / total, 1) for name, weight in languages.items()}


class CommitsView(BaseModel):
    """Commits matching a filter."""

    commits: List[Commit] = Field(default_factory=list)
    source: DataSource = Field(..., description="Data provenance")
    cached: bool = Field(False, description="Derived from the cached result")


class LanguagesView(BaseModel):
    """Language breakdown."""

    languages: Dict[str, int] = Field(default_factory=dict)
    source: DataSource = Field(..., description="Data provenance")
    cached: bool = Field(False, description="Derived from the cached result")

    @computed_field
    @property
    def percentages(self) -> Dict[str, float]:
        return language_percentages(self.languages)


class TopFilesView(BaseModel):
    """Most frequently changed files."""

    files: List[FileChange] = Field(default_factory=list)
    source: DataSource = Field(..., description="Data provenance")
    cached: bool = Field(False, description="Derived from the cached result")


class RepoSummary(BaseModel):
    """Dashboard summary of the current repository."""

    repository_id: str
    total_commits: int
    top_files: List[FileChange] = Field(default_factory=list)
    languages: Dict[str, int] = Field(default_factory=dict)
    authors: List[str] = Field(default_factory=list)
    commit_count_by_date: Dict[str, int] = Field(default_factory=dict)
    source: DataSource = Field(..., description="Data provenance")
    cached: bool = Field(False, description="Derived from the cached result")


class ActivityPoint(BaseModel):
    """Commit count for one day of an activity chart."""

    date: date
    commit_count: int


class ReportArtifact(BaseModel):
    """Exported dashboard report."""

    content: bytes
    media_type: str = Field("application/pdf", description="MIME type of content")
    filename: str = Field(..., description="Suggested download name")
    source: DataSource = Field(..., description="Provenance of the reported data")
    cached: bool = Field(False, description="Report built from cached data")
