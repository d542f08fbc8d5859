"""Artifact format detection.

Functions:
    decode_payload(raw)                     -> str | dict | list | None
    detect_coverage_format(raw, hint)       -> CoverageFormat
    detect_test_format(raw, hint)           -> TestFormat

Detection is content sniffing only: no parser is run here, so the result can
be checked in isolation before dispatching.
"""

import json
import re
from enum import Enum


class CoverageFormat(str, Enum):
    JEST = "jest"
    COBERTURA = "cobertura"
    LCOV = "lcov"
    PYTHON = "python"
    UNKNOWN = "unknown"


class TestFormat(str, Enum):
    __test__ = False  # not a pytest test class

    JUNIT = "junit"
    JEST = "jest"
    MOCHA = "mocha"
    PYTEST = "pytest"
    UNKNOWN = "unknown"


#: Artifact file names accepted as format hints, alongside the enum values
_COVERAGE_HINTS: dict[str, CoverageFormat] = {
    "coverage.json": CoverageFormat.JEST,
    "coverage.xml": CoverageFormat.COBERTURA,
    ".coverage": CoverageFormat.PYTHON,
    "lcov.info": CoverageFormat.LCOV,
}

_TEST_HINTS: dict[str, TestFormat] = {
    "junit.xml": TestFormat.JUNIT,
    "pytest.json": TestFormat.PYTEST,
    "jest.json": TestFormat.JEST,
    "mocha.json": TestFormat.MOCHA,
}

_LCOV_RECORD_RE = re.compile(r"^(TN|SF):", re.MULTILINE)


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #

def decode_payload(raw):
    """Normalise a raw artifact to ``str`` or an already-decoded JSON value.

    ``bytes`` are decoded as UTF-8 (BOM tolerated). Empty payloads become
    ``None``.
    """
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8-sig", errors="replace")
    if isinstance(raw, str):
        return raw if raw.strip() else None
    if isinstance(raw, (dict, list)):
        return raw if raw else None
    return None


def _is_xml(text: str) -> bool:
    return "<?xml" in text or text.lstrip().startswith("<")


def _try_json(text: str):
    try:
        return json.loads(text)
    except ValueError:
        return None


def _resolve_hint(hint: str, enum_cls, by_filename: dict):
    key = (hint or "").strip().lower()
    if key in by_filename:
        return by_filename[key]
    try:
        return enum_cls(key)
    except ValueError:
        return enum_cls.UNKNOWN


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #

def detect_coverage_format(raw, format_hint: str = "auto") -> CoverageFormat:
    """Pick the coverage parser for *raw*.

    Sniffing order for text: XML prolog (Cobertura), LCOV ``TN:``/``SF:``
    records, JSON (Jest/Istanbul summary), then anything else is handed to
    the Python ``coverage.json`` parser. Already-decoded objects are treated
    like JSON text, so a coverage.py document needs the ``"python"`` hint
    (or its ``.coverage`` file name) in both forms.
    """
    if format_hint and format_hint != "auto":
        return _resolve_hint(format_hint, CoverageFormat, _COVERAGE_HINTS)

    payload = decode_payload(raw)
    if payload is None:
        return CoverageFormat.UNKNOWN
    if isinstance(payload, dict):
        return CoverageFormat.JEST
    if not isinstance(payload, str):
        return CoverageFormat.UNKNOWN

    if _is_xml(payload):
        return CoverageFormat.COBERTURA
    if _LCOV_RECORD_RE.search(payload):
        return CoverageFormat.LCOV
    if _try_json(payload) is not None:
        return CoverageFormat.JEST
    return CoverageFormat.PYTHON


def detect_test_format(raw, format_hint: str = "auto") -> TestFormat:
    """Pick the test-results parser for *raw*.

    XML is JUnit; JSON is told apart by its top-level keys: ``numTotalTests``
    (Jest), ``stats`` (Mocha), anything else is read as a pytest summary.
    Text that is neither XML nor JSON is ``UNKNOWN``.
    """
    if format_hint and format_hint != "auto":
        return _resolve_hint(format_hint, TestFormat, _TEST_HINTS)

    payload = decode_payload(raw)
    if payload is None:
        return TestFormat.UNKNOWN
    if isinstance(payload, str):
        if _is_xml(payload):
            return TestFormat.JUNIT
        payload = _try_json(payload)
    if not isinstance(payload, dict):
        return TestFormat.UNKNOWN

    if "numTotalTests" in payload:
        return TestFormat.JEST
    if "stats" in payload:
        return TestFormat.MOCHA
    return TestFormat.PYTEST
