"""Coverage artifact parsers.

Functions:
    parse_coverage(raw, format_hint="auto")  -> CanonicalCoverage

Supported formats: Jest/Istanbul ``coverage-summary.json``, Cobertura XML,
Python ``coverage.json`` and LCOV text. Malformed or unrecognised input
yields the zero-valued default record; nothing here raises.
"""

import json
import logging
import xml.etree.ElementTree as ET

from merge_readiness.models import CanonicalCoverage, FileCoverage
from merge_readiness.parsers.detect import CoverageFormat, decode_payload, detect_coverage_format

logger = logging.getLogger(__name__)

#: Istanbul summary keys mapped to canonical metric names
_ISTANBUL_METRICS: dict[str, str] = {
    "lines": "line",
    "branches": "branch",
    "functions": "function",
    "statements": "statement",
}


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #

def _as_json(payload) -> dict:
    data = json.loads(payload) if isinstance(payload, str) else payload
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _pct(entry) -> float | None:
    """Return the ``pct`` of an Istanbul metric entry, or None if absent.

    Istanbul writes ``"Unknown"`` when a metric has nothing to cover.
    """
    if not isinstance(entry, dict) or "pct" not in entry:
        return None
    try:
        return float(entry["pct"])
    except (TypeError, ValueError):
        return None


def _rate(element: ET.Element, attribute: str) -> float:
    return float(element.get(attribute) or 0) * 100


def _ratio(hit: int, found: int) -> float:
    return hit / found * 100 if found > 0 else 0


# --------------------------------------------------------------------------- #
# Format parsers
# --------------------------------------------------------------------------- #

def _parse_jest(payload) -> CanonicalCoverage:
    data = _as_json(payload)
    summary = data.get("total") or {}

    present: dict[str, float] = {}
    for key, name in _ISTANBUL_METRICS.items():
        pct = _pct(summary.get(key))
        if pct is not None:
            present[name] = pct
    overall = sum(present.values()) / len(present) if present else 0

    files = []
    for path, entry in data.items():
        if path == "total" or not isinstance(entry, dict):
            continue
        files.append(FileCoverage(
            name=path,
            **{name: _pct(entry.get(key)) or 0 for key, name in _ISTANBUL_METRICS.items()},
        ))

    return CanonicalCoverage(
        line=present.get("line", 0),
        branch=present.get("branch", 0),
        function=present.get("function", 0),
        statement=present.get("statement", 0),
        overall=overall,
        files=files,
    )


def _parse_cobertura(payload) -> CanonicalCoverage:
    root = ET.fromstring(payload)  # nosec B314 - CI artifact, no entity expansion needed
    line = _rate(root, "line-rate")
    branch = _rate(root, "branch-rate")

    # Cobertura has no function/statement rates: both follow the line rate.
    files = []
    for cls in root.iter("class"):
        class_line = _rate(cls, "line-rate")
        files.append(FileCoverage(
            name=cls.get("filename") or cls.get("name") or "",
            line=class_line,
            branch=_rate(cls, "branch-rate"),
            function=class_line,
            statement=class_line,
        ))

    return CanonicalCoverage(
        line=line,
        branch=branch,
        function=line,
        statement=line,
        overall=(line + branch) / 2,
        files=files,
    )


def _python_file_coverage(entry: dict) -> float:
    summary = entry.get("summary") or {}
    if "percent_covered" in summary:
        return float(summary["percent_covered"])

    executed = entry.get("executed_lines", summary.get("covered_lines", 0))
    if isinstance(executed, list):
        executed = len(executed)
    statements = entry.get("num_statements", summary.get("num_statements", 0))
    return _ratio(executed, statements)


def _parse_python(payload) -> CanonicalCoverage:
    data = _as_json(payload)
    totals = data.get("totals") or {}
    overall = float(totals.get("percent_covered") or 0)
    branch = float(totals.get("branch_coverage") or overall)

    files = []
    for path, entry in (data.get("files") or {}).items():
        if not isinstance(entry, dict):
            continue
        coverage = _python_file_coverage(entry)
        files.append(FileCoverage(
            name=path,
            line=coverage,
            branch=float(entry.get("branch_coverage") or coverage),
            function=coverage,
            statement=coverage,
        ))

    return CanonicalCoverage(
        line=overall,
        branch=branch,
        function=overall,
        statement=overall,
        overall=overall,
        files=files,
    )


def _parse_lcov(payload) -> CanonicalCoverage:
    if not isinstance(payload, str):
        raise ValueError("LCOV coverage must be text")

    records: list[dict] = []
    current: dict | None = None
    totals = {key: 0 for key in ("LF", "LH", "BRF", "BRH", "FNF", "FNH")}

    for raw_line in payload.splitlines():
        line = raw_line.strip()
        if line.startswith("SF:"):
            current = {"name": line[3:], "LF": 0, "LH": 0, "BRF": 0, "BRH": 0, "FNF": 0, "FNH": 0}
            records.append(current)
            continue
        if current is None or ":" not in line:
            continue
        key, _, value = line.partition(":")
        if key in totals:
            current[key] = int(value)
            totals[key] += current[key]

    files = [
        FileCoverage(
            name=r["name"],
            line=_ratio(r["LH"], r["LF"]),
            branch=_ratio(r["BRH"], r["BRF"]),
            function=_ratio(r["FNH"], r["FNF"]),
            statement=_ratio(r["LH"], r["LF"]),
        )
        for r in records
    ]

    line_pct = _ratio(totals["LH"], totals["LF"])
    branch_pct = _ratio(totals["BRH"], totals["BRF"])
    function_pct = _ratio(totals["FNH"], totals["FNF"])

    return CanonicalCoverage(
        line=line_pct,
        branch=branch_pct,
        function=function_pct,
        statement=line_pct,
        overall=(line_pct + branch_pct + function_pct) / 3,
        files=files,
    )


_PARSERS = {
    CoverageFormat.JEST: _parse_jest,
    CoverageFormat.COBERTURA: _parse_cobertura,
    CoverageFormat.PYTHON: _parse_python,
    CoverageFormat.LCOV: _parse_lcov,
}


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #

def parse_coverage(raw, format_hint: str = "auto") -> CanonicalCoverage:
    """Parse a coverage artifact into a :class:`CanonicalCoverage`.

    Args:
        raw:         Artifact payload: ``str``, ``bytes``, a decoded JSON
                     ``dict``, or ``None``.
        format_hint: ``"auto"``, a format name (``"jest"``, ``"cobertura"``,
                     ``"python"``, ``"lcov"``) or an artifact file name
                     (``"coverage.json"``, ``"coverage.xml"``,
                     ``".coverage"``, ``"lcov.info"``).

    A missing payload, an unknown format and a payload the selected parser
    rejects all produce the same zero-valued record.
    """
    payload = decode_payload(raw)
    if payload is None:
        return CanonicalCoverage()

    fmt = detect_coverage_format(payload, format_hint)
    parser = _PARSERS.get(fmt)
    if parser is None:
        logger.warning("Unknown coverage format (hint=%r), using default values", format_hint)
        return CanonicalCoverage()

    try:
        return parser(payload)
    except Exception as exc:
        logger.warning("Error parsing %s coverage artifact: %s", fmt.value, exc)
        return CanonicalCoverage()
