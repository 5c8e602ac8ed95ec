"""Synthetic analysis data used when GitHub cannot be reached."""

import random
import re
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Dict, List, Optional

import structlog

from .models import AnalysisResult, Commit, DataSource, FileChange, utcnow

logger = structlog.get_logger(__name__)

HISTORY_DAYS = 30
MAX_COMMITS_PER_DAY = 5

AUTHORS = ["alex.dev", "sam-codes", "jordan.k", "taylor-m", "casey.r"]

COMMIT_MESSAGES = [
    "Fix typo in README",
    "Refactor data fetching layer",
    "Add unit tests for parser",
    "Update dependencies",
    "Improve error handling",
    "Cache API responses",
    "Remove unused imports",
    "Tweak chart colors",
]

BASE_LANGUAGES = {
    "TypeScript": 45,
    "JavaScript": 25,
    "CSS": 15,
    "HTML": 10,
    "Python": 5,
}

PATH_TEMPLATES = [
    "src/{name}/index.ts",
    "src/{name}/api.ts",
    "src/components/App.tsx",
    "src/utils/helpers.ts",
    "src/styles/main.css",
    "tests/{name}.test.ts",
    "README.md",
    "package.json",
]


def identifier_seed(repository_id: str) -> int:
    """Sum of the character codes of the identifier."""
    return sum(ord(ch) for ch in repository_id)


def repository_slug(repository_id: str) -> str:
    """Short lowercase name derived from the last path segment."""
    segment = repository_id.rstrip("/").rsplit("/", 1)[-1]
    segment = re.sub(r"\.git$", "", segment)
    slug = re.sub(r"[^a-z0-9-]+", "-", segment.lower()).strip("-")
    return slug or "app"


class SyntheticDataGenerator:
    """Derives a plausible :class:`AnalysisResult` from the identifier alone.

    Output depends only on the identifier and the current UTC day, never
    touches the network and cannot fail. Results are tagged
    ``DataSource.SYNTHETIC``.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        days: int = HISTORY_DAYS,
    ):
        self.clock = clock or utcnow
        self.days = days
        self.logger = logger.bind(component="SyntheticDataGenerator")

    def generate(self, repository_id: str) -> AnalysisResult:
        seed = identifier_seed(repository_id)
        rng = random.Random(seed)
        today = self.clock().astimezone(timezone.utc).date()

        commits = self._commits(rng, seed, today)
        result = AnalysisResult(
            repository_id=repository_id,
            commits=commits,
            files_changed=self._files(rng, repository_id),
            languages=self._languages(rng),
            source=DataSource.SYNTHETIC,
        )
        self.logger.info(
            "Generated synthetic analysis",
            repo=repository_id,
            seed=seed,
            commits=len(commits),
        )
        return result

    def _commits(self, rng: random.Random, seed: int, today) -> List[Commit]:
        commits = []
        for offset in range(self.days):
            day = today - timedelta(days=offset)
            count = rng.randint(0, MAX_COMMITS_PER_DAY)
            if offset == 0:
                count = max(count, 1)
            for _ in range(count):
                moment = time(rng.randint(8, 20), rng.randint(0, 59), rng.randint(0, 59))
                if offset == 0:
                    # Today's commits never postdate the clock
                    moment = time.min
                commits.append(
                    Commit(
                        hash=f"{rng.getrandbits(28):07x}",
                        author=AUTHORS[(seed + len(commits)) % len(AUTHORS)],
                        date=datetime.combine(day, moment, tzinfo=timezone.utc),
                        message=rng.choice(COMMIT_MESSAGES),
                    )
                )
        commits.sort(key=lambda c: c.date, reverse=True)
        return commits

    @staticmethod
    def _languages(rng: random.Random) -> Dict[str, int]:
        return {
            name: max(1, weight + rng.randint(-5, 5))
            for name, weight in BASE_LANGUAGES.items()
        }

    @staticmethod
    def _files(rng: random.Random, repository_id: str) -> List[FileChange]:
        name = repository_slug(repository_id)
        filenames = dict.fromkeys(t.format(name=name) for t in PATH_TEMPLATES)
        files = [FileChange(filename=f, changes=rng.randint(1, 50)) for f in filenames]
        return sorted(files, key=lambda f: f.changes, reverse=True)
