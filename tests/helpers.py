"""Shared test helpers."""

from datetime import date, datetime, timedelta, timezone

import httpx

from commit_metrics.models import Commit
from commit_metrics.transport import Transport

REPO_URL = "https://github.com/acme/widgets"

# Commits per day from 2025-05-01 to 2025-05-14
DAILY_COUNTS = [4, 2, 6, 8, 5, 10, 3, 7, 9, 4, 6, 11, 8, 7]
FIRST_DAY = date(2025, 5, 1)


class FakeClock:
    """Controllable replacement for ``utcnow``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_commit(index: int, day: date, author: str = "alice", hour: int = 12) -> Commit:
    return Commit(
        hash=f"{index:07x}",
        author=author,
        date=datetime(day.year, day.month, day.day, hour, 0, tzinfo=timezone.utc),
        message=f"Commit {index}",
    )


def github_commit(
    sha: str,
    date: str,
    login: str | None = "octocat",
    name: str = "The Octocat",
    message: str = "Fix bug\n\nLonger description",
) -> dict:
    """Commit payload as returned by the GitHub commits endpoint."""
    return {
        "sha": sha,
        "commit": {"author": {"name": name, "date": date}, "message": message},
        "author": {"login": login} if login else None,
    }


def mock_transport(handler, base_url: str = "https://api.github.com", **kwargs) -> Transport:
    """Transport whose requests are answered by ``handler``."""
    kwargs.setdefault("max_retries", 0)
    kwargs.setdefault("base_delay", 0)
    kwargs.setdefault("is_online", lambda: True)
    return Transport(base_url, http_transport=httpx.MockTransport(handler), **kwargs)
