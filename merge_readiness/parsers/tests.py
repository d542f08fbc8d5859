"""Test-result artifact parsers.

Functions:
    parse_test_results(raw, format_hint="auto")  -> CanonicalTestResults

Supported formats: JUnit XML, Jest ``--json``, Mocha JSON reporter and
pytest-json-report. Durations are normalised to milliseconds. Source totals
are trusted verbatim; ``pass_rate`` is always derived from them.
"""

import json
import logging
import re
import xml.etree.ElementTree as ET

from merge_readiness.models import CanonicalTestResults, SuiteResult
from merge_readiness.parsers.detect import TestFormat, decode_payload, detect_test_format

logger = logging.getLogger(__name__)

_PATH_SEP_RE = re.compile(r"[\\/]")


def _as_json(payload) -> dict:
    data = json.loads(payload) if isinstance(payload, str) else payload
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _int(value) -> int:
    return int(float(value or 0))


def _basename(path: str) -> str:
    return _PATH_SEP_RE.split(path)[-1]


# --------------------------------------------------------------------------- #
# Format parsers
# --------------------------------------------------------------------------- #

def _parse_junit(payload) -> CanonicalTestResults:
    root = ET.fromstring(payload)  # nosec B314 - CI artifact, no entity expansion needed

    total = failed = skipped = 0
    seconds = 0.0
    suites = []
    for suite in root.iter("testsuite"):
        suite_total = _int(suite.get("tests"))
        suite_failed = _int(suite.get("failures")) + _int(suite.get("errors"))
        suite_skipped = _int(suite.get("skipped"))
        suite_time = float(suite.get("time") or 0)

        total += suite_total
        failed += suite_failed
        skipped += suite_skipped
        seconds += suite_time

        suites.append(SuiteResult(
            name=suite.get("name") or "Unknown",
            total=suite_total,
            passed=suite_total - suite_failed - suite_skipped,
            failed=suite_failed,
            skipped=suite_skipped,
            duration=suite_time * 1000,
        ))

    return CanonicalTestResults(
        total=total,
        passed=total - failed - skipped,
        failed=failed,
        skipped=skipped,
        duration=seconds * 1000,
        suites=suites,
    )


def _parse_jest(payload) -> CanonicalTestResults:
    data = _as_json(payload)

    suites = []
    for result in data.get("testResults") or []:
        perf = result.get("perfStats") or {}
        runtime = perf.get("runtime")
        if runtime is None and "end" in perf and "start" in perf:
            runtime = perf["end"] - perf["start"]
        suites.append(SuiteResult(
            name=_basename(result.get("name") or result.get("testFilePath") or "Unknown"),
            total=_int(result.get("numTotalTests")),
            passed=_int(result.get("numPassedTests")),
            failed=_int(result.get("numFailedTests")),
            skipped=_int(result.get("numPendingTests")),
            duration=float(runtime or 0),
        ))

    duration = data.get("totalTime")
    if duration is None:
        duration = sum(s.duration for s in suites)

    return CanonicalTestResults(
        total=_int(data.get("numTotalTests")),
        passed=_int(data.get("numPassedTests")),
        failed=_int(data.get("numFailedTests")),
        skipped=_int(data.get("numPendingTests")),
        duration=float(duration or 0),
        suites=suites,
    )


def _parse_mocha(payload) -> CanonicalTestResults:
    stats = _as_json(payload).get("stats") or {}
    return CanonicalTestResults(
        total=_int(stats.get("tests")),
        passed=_int(stats.get("passes")),
        failed=_int(stats.get("failures")),
        skipped=_int(stats.get("pending")),
        duration=float(stats.get("duration") or 0),
    )


def _parse_pytest(payload) -> CanonicalTestResults:
    data = _as_json(payload)
    summary = data.get("summary") or {}
    return CanonicalTestResults(
        total=_int(summary.get("total")),
        passed=_int(summary.get("passed")),
        failed=_int(summary.get("failed")),
        skipped=_int(summary.get("skipped")),
        duration=float(data.get("duration") or 0) * 1000,
    )


_PARSERS = {
    TestFormat.JUNIT: _parse_junit,
    TestFormat.JEST: _parse_jest,
    TestFormat.MOCHA: _parse_mocha,
    TestFormat.PYTEST: _parse_pytest,
}


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #

def parse_test_results(raw, format_hint: str = "auto") -> CanonicalTestResults:
    """Parse a test-result artifact into a :class:`CanonicalTestResults`.

    *format_hint* accepts ``"auto"``, a format name (``"junit"``, ``"jest"``,
    ``"mocha"``, ``"pytest"``) or an artifact file name (``"junit.xml"``,
    ``"jest.json"``, ``"mocha.json"``, ``"pytest.json"``).

    Malformed input returns the zero-valued default, never an exception.
    """
    payload = decode_payload(raw)
    if payload is None:
        return CanonicalTestResults()

    fmt = detect_test_format(payload, format_hint)
    parser = _PARSERS.get(fmt)
    if parser is None:
        logger.warning("Unknown test results format (hint=%r), using default values", format_hint)
        return CanonicalTestResults()

    try:
        return parser(payload)
    except Exception as exc:
        logger.warning("Error parsing %s test results: %s", fmt.value, exc)
        return CanonicalTestResults()
