"""Run-history providers.

Usage:
    client  = HistoryClient(url="https://ci.example.com/data/dashboard-history.json")
    history = client.fetch_history(repository="org/app", branch="main")
    run     = client.fetch_run_record("run-1234")

    source  = FileHistorySource("dashboard-history.json")
    latest  = source.latest_for_branch("main")

Both providers read a JSON list of history entries, keep it for
``cache_ttl`` seconds and hand out immutable :class:`RunRecord` objects,
newest first.
"""

import json
import time
from pathlib import Path
from typing import Any, Protocol

import requests

from merge_readiness.models import RunRecord

DEFAULT_CACHE_TTL = 300

#: Branch names treated as the baseline when none is given
BASELINE_BRANCHES: tuple[str, ...] = ("main", "master")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class HistorySourceError(Exception):
    """Base exception for all history provider errors."""


class NotFoundError(HistorySourceError):
    """Raised on HTTP 404, a missing history file or an unknown run id."""


class NetworkError(HistorySourceError):
    """Raised on connection timeout or unreachable server."""


# ---------------------------------------------------------------------------
# Provider interface
# ---------------------------------------------------------------------------

class RunRecordProvider(Protocol):
    """Read-only source of run records consumed by the scorer and aggregator."""

    def fetch_history(self, repository: str | None = None, branch: str = "all") -> list[RunRecord]:
        ...

    def fetch_run_record(self, run_id: str) -> RunRecord:
        ...

    def latest_for_branch(self, branch: str) -> RunRecord | None:
        ...


# ---------------------------------------------------------------------------
# Shared behaviour
# ---------------------------------------------------------------------------

class _CachedHistory:
    """Filtering, lookup and TTL caching on top of ``_load_entries()``."""

    def __init__(self, cache_ttl: float = DEFAULT_CACHE_TTL) -> None:
        self._cache_ttl = cache_ttl
        self._cached: list[RunRecord] | None = None
        self._cached_at = 0.0

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def fetch_history(self, repository: str | None = None, branch: str = "all") -> list[RunRecord]:
        """Return history entries newest first, optionally filtered.

        Args:
            repository: Keep only entries for this repository (``None``: all).
            branch:     Keep only entries for this branch (``"all"``: all).
        """
        return [
            run for run in self._records()
            if (repository is None or run.repository == repository)
            and (branch == "all" or run.branch == branch)
        ]

    def fetch_run_record(self, run_id: str) -> RunRecord:
        """Return the entry whose ``run_id`` (or commit) matches *run_id*.

        Raises:
            NotFoundError: no such run in the history.
        """
        for run in self._records():
            if run_id in (run.run_id, run.commit):
                return run
        raise NotFoundError(f"Run '{run_id}' not found in history")

    def latest_for_branch(self, branch: str) -> RunRecord | None:
        runs = self.fetch_history(branch=branch)
        return runs[0] if runs else None

    def baseline(self) -> RunRecord | None:
        """Latest ``main``/``master`` run, else the oldest entry, else None."""
        for branch in BASELINE_BRANCHES:
            run = self.latest_for_branch(branch)
            if run is not None:
                return run
        records = self._records()
        return records[-1] if records else None

    def invalidate(self) -> None:
        self._cached = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _records(self) -> list[RunRecord]:
        now = time.monotonic()
        if self._cached is None or now - self._cached_at > self._cache_ttl:
            self._cached = _to_records(self._load_entries())
            self._cached_at = now
        return self._cached

    def _load_entries(self) -> Any:
        raise NotImplementedError


def _to_records(entries: Any) -> list[RunRecord]:
    if isinstance(entries, dict):
        entries = entries.get("history", entries.get("runs"))
    if not isinstance(entries, list):
        raise HistorySourceError("History must be a JSON list of run entries.")

    records = [RunRecord.from_dict(e) for e in entries if isinstance(e, dict)]
    # ISO-8601 strings sort chronologically; stable for equal timestamps
    records.sort(key=lambda r: r.timestamp, reverse=True)
    return records


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

class HistoryClient(_CachedHistory):
    """Fetches a published ``dashboard-history.json`` over HTTP."""

    def __init__(self, url: str, timeout: int = 30, cache_ttl: float = DEFAULT_CACHE_TTL) -> None:
        super().__init__(cache_ttl=cache_ttl)
        self.url = url
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers["Accept"] = "application/json"

    def _load_entries(self) -> Any:
        try:
            response = self._session.get(self.url, timeout=self._timeout)
        except requests.exceptions.Timeout as exc:
            raise NetworkError(
                f"Request timed out after {self._timeout}s while fetching '{self.url}'"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            raise NetworkError(f"Unable to reach '{self.url}'") from exc

        if response.status_code == 404:
            raise NotFoundError(f"History not found: {self.url}")
        if not response.ok:
            raise HistorySourceError(
                f"Unexpected response {response.status_code} from {self.url}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise HistorySourceError(f"Invalid JSON in history from {self.url}") from exc


# ---------------------------------------------------------------------------
# File
# ---------------------------------------------------------------------------

class FileHistorySource(_CachedHistory):
    """Reads history entries from a local JSON file."""

    def __init__(self, path: str | Path, cache_ttl: float = DEFAULT_CACHE_TTL) -> None:
        super().__init__(cache_ttl=cache_ttl)
        self.path = Path(path)

    def _load_entries(self) -> Any:
        if not self.path.exists():
            raise NotFoundError(f"History file not found: '{self.path}'")
        try:
            with self.path.open(encoding="utf-8") as f:
                return json.load(f)
        except ValueError as exc:
            raise HistorySourceError(f"Invalid JSON in '{self.path}': {exc}") from exc
