"""Thread-safe counters that record what happened to each source during a run."""

from __future__ import annotations

import threading
from datetime import datetime
from enum import Enum
from pathlib import Path


class Counter(str, Enum):
    """The events counted for each source."""

    COUNT = "SitemapCount"
    HTTP_ERROR = "SitemapHttpError"
    ISSUES = "SitemapIssues"
    SUMMONED = "SitemapSummoned"
    EMPTY_DOC = "SitemapEmptyDoc"
    STORED = "SitemapStored"
    STORE_ERROR = "SitemapStoreError"
    HEADLESS_ERROR = "HeadlessServerError"


class RepoStats:
    """Counters for a single source."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._counts: dict[Counter, int] = {}
        self._lock = threading.Lock()

    @property
    def counts(self) -> dict[Counter, int]:
        """A snapshot of the counters recorded so far."""
        with self._lock:
            return dict(self._counts)

    def set(self, key: Counter, value: int) -> None:
        """Set a counter to ``value``."""
        with self._lock:
            self._counts[key] = value

    def inc(self, key: Counter) -> None:
        """Add one to a counter, starting from zero if it was never set."""
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1

    def output(self) -> str:
        """Render the counters as an indented text block."""
        with self._lock:
            lines = [f"Source: {self.name}"]
            lines.extend(
                f"    {counter.value}: {self._counts[counter]}"
                for counter in Counter
                if counter in self._counts
            )
        return "\n".join(lines) + "\n"


class RunStats:
    """Counters for all sources of one run."""

    def __init__(self) -> None:
        self.date = datetime.now()
        self.stop_reason = ""
        self._repos: dict[str, RepoStats] = {}
        self._lock = threading.Lock()

    def add(self, name: str) -> RepoStats:
        """Return the counters for source ``name``, creating them on first use."""
        with self._lock:
            return self._repos.setdefault(name, RepoStats(name))

    def output(self) -> str:
        """Render the run and the counters of every source."""
        with self._lock:
            repos = list(self._repos.values())
        header = (
            "RunStats:\n"
            f"  Start: {self.date.isoformat(sep=' ', timespec='seconds')}\n"
            f"  Reason: {self.stop_reason}\n"
        )
        return header + "".join(repo.output() for repo in repos)

    def output_to_file(self, log_dir: str | Path) -> Path:
        """Append the rendered stats to a time-stamped file in ``log_dir`` and return its path."""
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"gleaner-runstats-{datetime.now():%Y-%m-%d-%H-%M-%S}.log"
        with path.open("a", encoding="utf-8") as handle:
            handle.write(self.output())
        return path