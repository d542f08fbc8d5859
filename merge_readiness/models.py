"""Data models for canonical CI records.

Contains frozen dataclasses used to structure and serialize the JSON output:
    - FileCoverage / CanonicalCoverage
    - SuiteResult / CanonicalTestResults
    - CanonicalSecurity
    - BuildStats / LintStats
    - RunRecord            (one CI run, unit of exchange)
    - ReadinessResult      (score breakdown)
    - ReadinessLevel
    - HealthScore
    - AggregateSummary     (rolling window summary)
    - CorrelationResult

Every model exposes ``to_dict()``; records read from history JSON expose
``from_dict()``.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

#: Per-language coverage keys found in history entries
LANGUAGE_KEYS: tuple[str, ...] = ("python", "javascript", "rust", "dart")


def _num(value, default=0):
    """Coerce *value* to a number, falling back to *default* when unusable."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return value
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    return int(f) if f == int(f) else f


# --------------------------------------------------------------------------- #
# Coverage
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class FileCoverage:
    name: str
    line: float = 0
    branch: float = 0
    function: float = 0
    statement: float = 0


@dataclass(frozen=True)
class CanonicalCoverage:
    line: float = 0
    branch: float = 0
    function: float = 0
    statement: float = 0
    overall: float = 0
    files: list[FileCoverage] = field(default_factory=list)
    by_language: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict | None) -> "CanonicalCoverage":
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"coverage must be a JSON object, got {type(data).__name__}")
        by_language = dict(data.get("by_language") or {})
        for key in LANGUAGE_KEYS:
            if key in data:
                by_language[key] = _num(data[key])
        return cls(
            line=_num(data.get("line")),
            branch=_num(data.get("branch")),
            function=_num(data.get("function")),
            statement=_num(data.get("statement")),
            overall=_num(data.get("overall")),
            files=[
                FileCoverage(
                    name=str(f.get("name", "")),
                    line=_num(f.get("line")),
                    branch=_num(f.get("branch")),
                    function=_num(f.get("function")),
                    statement=_num(f.get("statement")),
                )
                for f in data.get("files") or []
                if isinstance(f, dict)
            ],
            by_language=by_language,
        )

    def to_dict(self) -> dict:
        return asdict(self)


# --------------------------------------------------------------------------- #
# Tests
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class SuiteResult:
    name: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration: float = 0


def pass_rate(passed, total) -> float:
    """``passed / total * 100``, or 0 when there are no tests.

    Totals are trusted verbatim: inconsistent source counts can push the
    result above 100 or below 0.
    """
    return passed / total * 100 if total > 0 else 0


@dataclass(frozen=True)
class CanonicalTestResults:
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration: float = 0
    suites: list[SuiteResult] = field(default_factory=list)

    @property
    def pass_rate(self) -> float:
        return pass_rate(self.passed, self.total)

    @classmethod
    def from_dict(cls, data: dict) -> "CanonicalTestResults":
        return cls(
            total=_num(data.get("total")),
            passed=_num(data.get("passed")),
            failed=_num(data.get("failed")),
            skipped=_num(data.get("skipped")),
            duration=_num(data.get("duration")),
            suites=[
                SuiteResult(
                    name=str(s.get("name", "Unknown")),
                    total=_num(s.get("total")),
                    passed=_num(s.get("passed")),
                    failed=_num(s.get("failed")),
                    skipped=_num(s.get("skipped")),
                    duration=_num(s.get("duration")),
                )
                for s in data.get("suites") or []
                if isinstance(s, dict)
            ],
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["pass_rate"] = self.pass_rate
        return d


# --------------------------------------------------------------------------- #
# Security
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class CanonicalSecurity:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0
    total: int = 0
    score: float = 100

    @classmethod
    def from_dict(cls, data: dict) -> "CanonicalSecurity":
        """Read a security object; a missing ``score`` is computed from the counts."""
        from merge_readiness.parsers.security import PARSER_SECURITY_WEIGHTS, security_score

        counts = {k: _num(data.get(k)) for k in ("critical", "high", "medium", "low", "info")}
        total = data.get("total")
        score = data.get("score")
        return cls(
            **counts,
            total=_num(total) if total is not None else sum(counts.values()),
            score=(
                _num(score, 100) if score is not None
                else security_score(counts, PARSER_SECURITY_WEIGHTS)
            ),
        )

    def to_dict(self) -> dict:
        return asdict(self)


# --------------------------------------------------------------------------- #
# Build / lint
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class BuildStats:
    warnings: int = 0
    errors: int = 0


@dataclass(frozen=True)
class LintStats:
    errors: int = 0
    warnings: int = 0


# --------------------------------------------------------------------------- #
# Health
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class HealthScore:
    """Overall health of a run or a window of runs."""

    score: int
    level: str
    color: str

    @classmethod
    def from_dict(cls, data: dict) -> "HealthScore":
        return cls(
            score=_num(data.get("score")),
            level=str(data.get("level") or ""),
            color=str(data.get("color") or ""),
        )

    def to_dict(self) -> dict:
        return asdict(self)


# --------------------------------------------------------------------------- #
# Run record
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class RunRecord:
    """One CI run. Produced fresh per run and never mutated.

    ``tests`` and ``security`` are ``None`` when the run carried no such
    object, which the aggregator and scorer treat differently from zeros.
    """

    timestamp: str = ""
    branch: str = ""
    commit: str = ""
    status: str = ""
    coverage: CanonicalCoverage = field(default_factory=CanonicalCoverage)
    tests: CanonicalTestResults | None = None
    security: CanonicalSecurity | None = None
    build: BuildStats = field(default_factory=BuildStats)
    linting: LintStats | None = None
    health: HealthScore | None = None
    repository: str = ""
    run_id: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "RunRecord":
        """Build a record from a history entry.

        Metric objects may sit at the top level or, as in transformed
        workflow runs, under a ``metrics`` key.

        Raises:
            ValueError: *data* or its ``coverage`` is not a JSON object.
        """
        if not isinstance(data, dict):
            raise ValueError(f"run record must be a JSON object, got {type(data).__name__}")
        metrics = data.get("metrics") if isinstance(data.get("metrics"), dict) else {}

        def pick(key: str):
            value = data.get(key)
            return value if value is not None else metrics.get(key)

        tests = pick("tests")
        security = pick("security")
        build = pick("build")
        if not isinstance(build, dict):
            build = {}
        linting = pick("linting")
        health = pick("health")
        run_id = data.get("run_id", data.get("runId", data.get("id", "")))

        return cls(
            timestamp=str(data.get("timestamp") or ""),
            branch=str(data.get("branch") or ""),
            commit=str(data.get("commit") or ""),
            status=str(data.get("status") or ""),
            coverage=CanonicalCoverage.from_dict(pick("coverage")),
            tests=CanonicalTestResults.from_dict(tests) if isinstance(tests, dict) else None,
            security=CanonicalSecurity.from_dict(security) if isinstance(security, dict) else None,
            build=BuildStats(
                warnings=_num(build.get("warnings")),
                errors=_num(build.get("errors")),
            ),
            linting=(
                LintStats(errors=_num(linting.get("errors")), warnings=_num(linting.get("warnings")))
                if isinstance(linting, dict) else None
            ),
            health=HealthScore.from_dict(health) if isinstance(health, dict) else None,
            repository=str(data.get("repository") or ""),
            run_id=str(run_id) if run_id is not None else "",
        )

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "branch": self.branch,
            "commit": self.commit,
            "status": self.status,
            "repository": self.repository,
            "run_id": self.run_id,
            "coverage": self.coverage.to_dict(),
            "tests": self.tests.to_dict() if self.tests else None,
            "security": self.security.to_dict() if self.security else None,
            "build": asdict(self.build),
            "linting": asdict(self.linting) if self.linting else None,
            "health": self.health.to_dict() if self.health else None,
        }


# --------------------------------------------------------------------------- #
# Results
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class ReadinessLevel:
    level: str
    color: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ReadinessResult:
    total: int
    breakdown: dict[str, float]
    weights: dict[str, float]
    level: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AggregateSummary:
    coverage: dict[str, float]
    tests: dict[str, Any]
    security: dict[str, Any]
    build: dict[str, int]
    last_update: str | None = None
    total_runs: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CorrelationResult:
    coefficient: float
    p_value: float
    significance: str
    interpretation: str

    def to_dict(self) -> dict:
        return asdict(self)
