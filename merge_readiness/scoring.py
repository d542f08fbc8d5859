"""Merge-readiness scoring.

Functions:
    calculate_score(current, baseline)                 -> int
    score_breakdown(current, baseline, policy)         -> ReadinessResult
    get_readiness_level(score)                         -> ReadinessLevel
    get_detailed_analysis(current, baseline)           -> dict
    get_recommendation(score, issues)                  -> dict
    generate_report(current, baseline)                 -> dict

The composite score is a weighted sum of four 0-100 sub-scores (coverage,
tests, security, code quality), rounded to an int. *current* and *baseline*
may be :class:`RunRecord` instances or history-shaped dicts.
"""

import math
from datetime import datetime, timezone

from merge_readiness.models import (
    CanonicalSecurity,
    ReadinessLevel,
    ReadinessResult,
    RunRecord,
)
from merge_readiness.parsers.security import security_score as _weighted_security_score

# --------------------------------------------------------------------------- #
# Constants
# --------------------------------------------------------------------------- #

WEIGHTS: dict[str, float] = {
    "coverage": 0.30,
    "tests": 0.25,
    "security": 0.25,
    "code_quality": 0.20,
}

#: Weights used when the scorer recomputes a security score from raw counts.
#: NOTE: differs from ``parsers.security.PARSER_SECURITY_WEIGHTS`` on info
#: (0.5 vs 1). Possibly unintended drift; kept verbatim pending review.
SCORER_SECURITY_WEIGHTS: dict[str, float] = {
    "critical": 25,
    "high": 15,
    "medium": 5,
    "low": 2,
    "info": 0.5,
}

#: Absolute coverage floor used by the threshold policy
COVERAGE_THRESHOLD = 80

COVERAGE_POLICIES = ("delta", "threshold")

#: (minimum score, level, color), checked top-down
_LEVELS: tuple[tuple[int, str, str], ...] = (
    (90, "excellent", "green"),
    (80, "good", "lime"),
    (70, "acceptable", "yellow"),
    (60, "needs-work", "orange"),
)
_NOT_READY = ReadinessLevel(level="not-ready", color="red")


def _as_record(run) -> RunRecord | None:
    if run is None or isinstance(run, RunRecord):
        return run
    return RunRecord.from_dict(run)


def _coverage_delta(current: RunRecord, baseline: RunRecord) -> float:
    return current.coverage.overall - baseline.coverage.overall


# --------------------------------------------------------------------------- #
# Sub-scores
# --------------------------------------------------------------------------- #
# Two coverage policies coexist: the delta policy backs calculate_score(),
# the threshold policy backs the CI gate. They disagree for the same inputs
# and are deliberately not merged; existing PR scores depend on each.

def coverage_score_by_delta(current: RunRecord, baseline: RunRecord) -> float:
    """Full marks unless coverage dropped; 10 points lost per point dropped."""
    delta = _coverage_delta(current, baseline)
    if delta >= 0:
        return 100
    return max(0, 100 + delta * 10)


def coverage_score_by_threshold(
    current: RunRecord,
    baseline: RunRecord,
    threshold: float = COVERAGE_THRESHOLD,
) -> float:
    """Scale by ``current / threshold`` below the absolute floor.

    At or above the floor, full marks unless coverage dropped versus the
    baseline, with 2 points lost per point dropped.
    """
    value = current.coverage.overall
    if value < threshold:
        return value / threshold * 100 if threshold > 0 else 0
    delta = _coverage_delta(current, baseline)
    if delta >= 0:
        return 100
    return max(0, 100 + delta * 2)


def test_score(run: RunRecord) -> float:
    """Absolute pass rate of *run*; 0 without tests."""
    if run.tests is None or run.tests.total <= 0:
        return 0
    return run.tests.passed / run.tests.total * 100


test_score.__test__ = False  # not a pytest test


def security_score(security: CanonicalSecurity | None) -> float:
    """Recompute from raw counts; any pre-computed ``score`` is ignored.

    No security object means no known vulnerabilities.
    """
    if security is None:
        return 100
    return _weighted_security_score(security, SCORER_SECURITY_WEIGHTS)


def quality_score(run: RunRecord) -> float:
    score = 100
    if run.status != "success":
        score -= 50
    if run.build.warnings > 0:
        score -= min(30, run.build.warnings * 5)
    if run.linting is not None:
        lint_score = 100 - min(50, run.linting.errors * 10 + run.linting.warnings * 2)
        score = (score + lint_score) / 2
    return max(0, score)


# --------------------------------------------------------------------------- #
# Composite
# --------------------------------------------------------------------------- #

def score_breakdown(current, baseline, coverage_policy: str = "delta",
                    coverage_threshold: float = COVERAGE_THRESHOLD) -> ReadinessResult:
    """Compute every sub-score and the rounded weighted total.

    Either record missing yields a total of 0 with an all-zero breakdown.

    Raises:
        ValueError: unknown *coverage_policy*.
    """
    if coverage_policy not in COVERAGE_POLICIES:
        raise ValueError(
            f"Unknown coverage policy '{coverage_policy}'. "
            f"Expected one of: {', '.join(COVERAGE_POLICIES)}"
        )

    current = _as_record(current)
    baseline = _as_record(baseline)
    if current is None or baseline is None:
        zeros = {name: 0 for name in WEIGHTS}
        return ReadinessResult(total=0, breakdown=zeros, weights=dict(WEIGHTS),
                               level=get_readiness_level(0).level)

    if coverage_policy == "threshold":
        coverage = coverage_score_by_threshold(current, baseline, coverage_threshold)
    else:
        coverage = coverage_score_by_delta(current, baseline)

    breakdown = {
        "coverage": coverage,
        "tests": test_score(current),
        "security": security_score(current.security),
        "code_quality": quality_score(current),
    }
    weighted = sum(breakdown[name] * weight for name, weight in WEIGHTS.items())
    # Half-up, so x.5 always rounds toward the higher score; the inner
    # round() drops float noise from the fractional weights.
    total = math.floor(round(weighted, 9) + 0.5)

    return ReadinessResult(
        total=total,
        breakdown=breakdown,
        weights=dict(WEIGHTS),
        level=get_readiness_level(total).level,
    )


def calculate_score(current, baseline) -> int:
    """Composite 0-100 readiness score using the delta coverage policy.

    Returns 0 when either record is missing.
    """
    return score_breakdown(current, baseline).total


def get_readiness_level(score: float) -> ReadinessLevel:
    for minimum, level, color in _LEVELS:
        if score >= minimum:
            return ReadinessLevel(level=level, color=color)
    return _NOT_READY


# --------------------------------------------------------------------------- #
# Analysis
# --------------------------------------------------------------------------- #

def _collect_issues(current: RunRecord, baseline: RunRecord) -> tuple[list[dict], list[dict]]:
    issues: list[dict] = []
    improvements: list[dict] = []

    delta = _coverage_delta(current, baseline)
    if delta < -5:
        issues.append({
            "type": "coverage",
            "severity": "high",
            "message": f"Coverage decreased by {abs(delta):.1f}%",
        })
    elif delta > 5:
        improvements.append({
            "type": "coverage",
            "message": f"Coverage improved by {delta:.1f}%",
        })

    tests = current.tests
    if tests is not None:
        if test_score(current) < 100 and tests.failed > 0:
            issues.append({
                "type": "tests",
                "severity": "critical",
                "message": f"{tests.failed} tests are failing",
            })
        if tests.total == 0:
            issues.append({
                "type": "tests",
                "severity": "medium",
                "message": "No tests found for this PR",
            })

    security = current.security
    if security is not None:
        if security.critical > 0:
            issues.append({
                "type": "security",
                "severity": "critical",
                "message": f"{security.critical} critical vulnerabilities found",
            })
        if security.high > 0:
            issues.append({
                "type": "security",
                "severity": "high",
                "message": f"{security.high} high severity vulnerabilities found",
            })

    if current.status != "success":
        issues.append({
            "type": "build",
            "severity": "critical",
            "message": "Build is failing",
        })

    return issues, improvements


def get_recommendation(score: float, issues: list[dict]) -> dict:
    has_critical = any(issue.get("severity") == "critical" for issue in issues)
    if score >= 80 and not has_critical:
        return {
            "action": "approve",
            "message": "This PR meets quality standards and is ready to merge",
        }
    if score >= 70 and not has_critical:
        return {
            "action": "conditional",
            "message": "This PR can be merged with caution, but consider addressing the identified issues",
        }
    return {
        "action": "block",
        "message": "This PR needs significant improvements before it can be merged",
    }


def get_detailed_analysis(current, baseline) -> dict:
    """Score plus the issues, improvements and merge recommendation behind it.

    A missing record scores 0 and is reported as a single critical issue.
    """
    current = _as_record(current)
    baseline = _as_record(baseline)
    score = calculate_score(current, baseline)
    level = get_readiness_level(score)

    if current is None or baseline is None:
        missing = "current" if current is None else "baseline"
        issues = [{
            "type": "data",
            "severity": "critical",
            "message": f"No {missing} run data available",
        }]
        improvements: list[dict] = []
    else:
        issues, improvements = _collect_issues(current, baseline)

    return {
        "score": score,
        "level": level.to_dict(),
        "issues": issues,
        "improvements": improvements,
        "recommendation": get_recommendation(score, issues),
    }


def _test_counts(run: RunRecord) -> dict:
    tests = run.tests
    return {
        "total": tests.total if tests else 0,
        "passed": tests.passed if tests else 0,
        "failed": tests.failed if tests else 0,
    }


def generate_report(current, baseline) -> dict:
    """Full readiness report for *current* against *baseline*.

    Raises:
        ValueError: if either record is missing.
    """
    current = _as_record(current)
    baseline = _as_record(baseline)
    if current is None or baseline is None:
        raise ValueError("Both current and baseline runs are required to build a report.")

    analysis = get_detailed_analysis(current, baseline)
    return {
        "report_type": "readiness",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "branch": current.branch,
        "commit": current.commit,
        "score": analysis["score"],
        "level": analysis["level"],
        "metrics": {
            "coverage": {
                "current": current.coverage.overall,
                "baseline": baseline.coverage.overall,
                "delta": _coverage_delta(current, baseline),
            },
            "tests": {
                "current": _test_counts(current),
                "baseline": _test_counts(baseline),
            },
            "security": {
                "current": current.security.to_dict() if current.security else None,
                "baseline": baseline.security.to_dict() if baseline.security else None,
            },
            "build": {
                "current": current.status,
                "baseline": baseline.status,
            },
        },
        "issues": analysis["issues"],
        "improvements": analysis["improvements"],
        "recommendation": analysis["recommendation"],
    }
