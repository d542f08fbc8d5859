"""Rolling-window aggregation over run history.

Functions:
    aggregate(runs, window=10)                          -> AggregateSummary
    trend_direction(recent, previous, path, inverse)    -> str
    calculate_trends(history)                           -> dict
    metric_history(history, path, limit=30)             -> list[dict]
    branch_comparison(history)                          -> dict
    health_score(summary)                               -> HealthScore
    run_health(run)                                     -> HealthScore
    statistics(history, branch="all")                   -> dict

Runs are expected newest-first, as returned by the history providers.
"""

import math
from typing import Iterable, Sequence

from merge_readiness.models import AggregateSummary, HealthScore, RunRecord
from merge_readiness.trends import mean

DEFAULT_WINDOW = 10

#: Relative change (of the previous average) below which a trend is neutral
TREND_CHANGE_THRESHOLD = 0.05

#: Weight of each health factor; factors without data are left out
HEALTH_WEIGHTS: dict[str, float] = {
    "coverage": 30,
    "tests": 30,
    "security": 25,
    "build": 15,
}

#: Vulnerability points per severity, and the total that zeroes the factor
HEALTH_VULNERABILITY_POINTS: dict[str, int] = {"critical": 10, "high": 5, "medium": 2, "low": 1}
HEALTH_VULNERABILITY_LIMIT = 50


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #

def as_records(runs: Iterable) -> list[RunRecord]:
    """Accept RunRecords or history-shaped dicts; return RunRecords."""
    return [r if isinstance(r, RunRecord) else RunRecord.from_dict(r) for r in runs]


def _average_present(values: Iterable[float]) -> float:
    """Average of the non-zero values; zero means "no data", not 0%."""
    present = [v for v in values if v > 0]
    return mean(present)


def _metric(run: RunRecord, path: str):
    """Resolve a dotted path (``"coverage.overall"``) against a run.

    ``tests.pass_rate`` and other properties resolve too; ``health`` falls
    back to the run's computed health. Missing segments yield ``None``.
    """
    value = run
    for part in path.split("."):
        if value is None:
            return None
        if value is run and part == "health":
            value = run_health(run)
            continue
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def _numeric(value) -> float:
    return value if isinstance(value, (int, float)) and not isinstance(value, bool) else 0


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #

def aggregate(runs: Sequence, window: int = DEFAULT_WINDOW) -> AggregateSummary:
    """Summarise the most recent *window* runs.

    Headline test and security figures come from the latest run alone; the
    window sums are only a fallback for when the latest run carries no such
    object. ``tests.pass_rate`` is always computed from the window sums.
    """
    records = as_records(runs)
    if not records:
        return AggregateSummary(
            coverage={"overall": 0},
            tests={"total": 0, "passed": 0, "failed": 0, "pass_rate": 0},
            security={"critical": 0, "high": 0, "medium": 0, "low": 0},
            build={"success": 0, "failed": 0, "total": 0},
        )

    latest = records[0]
    recent = records[:window]

    languages: list[str] = []
    for run in recent:
        for name in run.coverage.by_language:
            if name not in languages:
                languages.append(name)

    coverage = {"overall": _average_present(r.coverage.overall for r in recent)}
    for name in languages:
        coverage[name] = _average_present(r.coverage.by_language.get(name, 0) for r in recent)

    window_tests = [r.tests for r in recent if r.tests is not None]
    total_tests = sum(t.total for t in window_tests)
    passed_tests = sum(t.passed for t in window_tests)
    failed_tests = sum(t.failed for t in window_tests)

    if latest.tests is not None:
        headline_tests = {
            "total": latest.tests.total,
            "passed": latest.tests.passed,
            "failed": latest.tests.failed,
        }
    else:
        headline_tests = {"total": total_tests, "passed": passed_tests, "failed": failed_tests}
    headline_tests["pass_rate"] = passed_tests / total_tests * 100 if total_tests > 0 else 0

    if latest.security is not None:
        security = latest.security.to_dict()
    else:
        window_security = [r.security for r in recent if r.security is not None]
        security = {
            severity: sum(getattr(s, severity) for s in window_security)
            for severity in ("critical", "high", "medium", "low")
        }

    build = {
        "success": sum(1 for r in recent if r.status == "success"),
        "failed": sum(1 for r in recent if r.status == "failed"),
        "total": len(recent),
    }

    return AggregateSummary(
        coverage=coverage,
        tests=headline_tests,
        security=security,
        build=build,
        last_update=latest.timestamp or None,
        total_runs=len(records),
    )


def trend_direction(recent: Sequence, previous: Sequence, path: str, inverse: bool = False) -> str:
    """Compare the average of *path* over two periods.

    Returns ``"improving"``, ``"declining"`` or ``"neutral"`` (change under
    5% of the previous average, or either period empty). With *inverse*,
    lower values are better (e.g. vulnerability counts).
    """
    if not recent or not previous:
        return "neutral"

    recent_avg = mean([_numeric(_metric(r, path)) for r in as_records(recent)])
    previous_avg = mean([_numeric(_metric(r, path)) for r in as_records(previous)])

    diff = recent_avg - previous_avg
    if abs(diff) < abs(previous_avg) * TREND_CHANGE_THRESHOLD:
        return "neutral"
    if diff == 0:
        return "neutral"
    better = diff < 0 if inverse else diff > 0
    return "improving" if better else "declining"


def calculate_trends(history: Sequence) -> dict[str, str]:
    """Trend of the last 30 runs against the 30 before them."""
    records = as_records(history)
    last, prev = records[:30], records[30:60]
    return {
        "coverage": trend_direction(last, prev, "coverage.overall"),
        "tests": trend_direction(last, prev, "tests.passed"),
        "security": trend_direction(last, prev, "security.score"),
        "health": trend_direction(last, prev, "health.score"),
    }


def metric_history(history: Sequence, path: str, limit: int = 30) -> list[dict]:
    """Chronological ``{timestamp, value, branch, commit}`` points for *path*."""
    points = [
        {
            "timestamp": run.timestamp,
            "value": _numeric(_metric(run, path)),
            "branch": run.branch,
            "commit": run.commit,
        }
        for run in as_records(history)[:limit]
    ]
    points.reverse()
    return points


def branch_comparison(history: Sequence) -> dict[str, dict]:
    """Latest figures per branch, with the number of runs seen for each."""
    by_branch: dict[str, list[RunRecord]] = {}
    for run in as_records(history):
        by_branch.setdefault(run.branch, []).append(run)

    comparison = {}
    for branch, runs in by_branch.items():
        latest = runs[0]
        comparison[branch] = {
            "coverage": latest.coverage.overall,
            "test_pass_rate": latest.tests.pass_rate if latest.tests else 0,
            "security_score": latest.security.score if latest.security else 0,
            "last_update": latest.timestamp,
            "total_runs": len(runs),
        }
    return comparison


# --------------------------------------------------------------------------- #
# Health / statistics
# --------------------------------------------------------------------------- #

def _health_level(score: float) -> tuple[str, str]:
    if score >= 80:
        return "healthy", "green"
    if score >= 60:
        return "warning", "yellow"
    return "critical", "red"


def health_score(summary) -> HealthScore:
    """Blend coverage, pass rate, vulnerabilities and build success rate.

    *summary* is an :class:`AggregateSummary` or its dict form. Coverage,
    tests and build only count when they carry data; security always
    counts. The blend is normalised over the weights that counted, so a
    window without coverage is not penalised for it. A summary with no
    coverage, tests or builds at all scores 0.
    """
    if isinstance(summary, AggregateSummary):
        summary = summary.to_dict()
    coverage = summary.get("coverage") or {}
    tests = summary.get("tests") or {}
    security = summary.get("security") or {}
    build = summary.get("build") or {}

    factors: dict[str, float] = {}
    overall = _numeric(coverage.get("overall"))
    if overall > 0:
        factors["coverage"] = min(overall / 100, 1)
    total_tests = _numeric(tests.get("total"))
    if total_tests > 0:
        factors["tests"] = _numeric(tests.get("passed")) / total_tests
    total_builds = _numeric(build.get("total"))
    if total_builds > 0:
        factors["build"] = _numeric(build.get("success")) / total_builds

    if not factors:
        level, color = _health_level(0)
        return HealthScore(score=0, level=level, color=color)

    points = sum(
        _numeric(security.get(severity)) * weight
        for severity, weight in HEALTH_VULNERABILITY_POINTS.items()
    )
    factors["security"] = max(0, 1 - points / HEALTH_VULNERABILITY_LIMIT)

    weighted = sum(value * HEALTH_WEIGHTS[name] for name, value in factors.items())
    score = weighted / sum(HEALTH_WEIGHTS[name] for name in factors) * 100
    level, color = _health_level(score)
    return HealthScore(score=math.floor(round(score, 9) + 0.5), level=level, color=color)


def run_health(run) -> HealthScore:
    """Stored health of a single run, or its health computed on the spot."""
    run = run if isinstance(run, RunRecord) else RunRecord.from_dict(run)
    if run.health is not None:
        return run.health
    return health_score({
        "coverage": {"overall": run.coverage.overall},
        "tests": {
            "total": run.tests.total if run.tests else 0,
            "passed": run.tests.passed if run.tests else 0,
        },
        "security": run.security.to_dict() if run.security else {},
        "build": {"success": 1 if run.status == "success" else 0, "total": 1},
    })


def statistics(history: Sequence, branch: str = "all") -> dict:
    """Whole-history averages for one branch (or ``"all"``).

    The test pass rate is pooled over all tests rather than averaged per run.
    """
    records = as_records(history)
    if branch != "all":
        records = [r for r in records if r.branch == branch]
    if not records:
        return {
            "avg_coverage": 0,
            "avg_test_pass_rate": 0,
            "avg_security_score": 0,
            "avg_health_score": 0,
            "total_runs": 0,
            "success_rate": 0,
        }

    count = len(records)
    tests_total = sum(r.tests.total for r in records if r.tests)
    tests_passed = sum(r.tests.passed for r in records if r.tests)
    return {
        "avg_coverage": sum(r.coverage.overall for r in records) / count,
        "avg_test_pass_rate": tests_passed / tests_total * 100 if tests_total > 0 else 0,
        "avg_security_score": sum(r.security.score for r in records if r.security) / count,
        "avg_health_score": sum(run_health(r).score for r in records) / count,
        "total_runs": count,
        "success_rate": sum(1 for r in records if r.status == "success") / count * 100,
    }
