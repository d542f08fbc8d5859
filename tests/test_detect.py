"""Tests for parsers/detect.py — format sniffing in isolation."""

import pytest

from merge_readiness.parsers.detect import (
    CoverageFormat,
    TestFormat,
    decode_payload,
    detect_coverage_format,
    detect_test_format,
)


# ---------------------------------------------------------------------------
# decode_payload
# ---------------------------------------------------------------------------

def test_decode_bytes_strips_bom():
    assert decode_payload(b"\xef\xbb\xbf{}") == "{}"


@pytest.mark.parametrize("raw", [None, "", "  \n", b"", {}, [], 42])
def test_decode_empty_or_unsupported_is_none(raw):
    assert decode_payload(raw) is None


# ---------------------------------------------------------------------------
# detect_coverage_format
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("raw, expected", [
    ('<?xml version="1.0"?><coverage/>', CoverageFormat.COBERTURA),
    ("<coverage line-rate='1'/>", CoverageFormat.COBERTURA),
    ("TN:\nSF:a.js\nend_of_record", CoverageFormat.LCOV),
    ("SF:a.js\nLF:1\nLH:1", CoverageFormat.LCOV),
    ('{"total": {}}', CoverageFormat.JEST),
    ("garbage", CoverageFormat.PYTHON),
    ({"total": {}}, CoverageFormat.JEST),
    ({"totals": {"percent_covered": 1}}, CoverageFormat.JEST),
    ('{"totals": {"percent_covered": 1}}', CoverageFormat.JEST),
    (None, CoverageFormat.UNKNOWN),
])
def test_detect_coverage_auto(raw, expected):
    assert detect_coverage_format(raw) is expected


@pytest.mark.parametrize("hint, expected", [
    ("coverage.json", CoverageFormat.JEST),
    ("coverage.xml", CoverageFormat.COBERTURA),
    (".coverage", CoverageFormat.PYTHON),
    ("lcov.info", CoverageFormat.LCOV),
    ("LCOV", CoverageFormat.LCOV),
    ("jacoco.xml", CoverageFormat.UNKNOWN),
])
def test_detect_coverage_hint_overrides_content(hint, expected):
    assert detect_coverage_format('{"total": {}}', hint) is expected


# ---------------------------------------------------------------------------
# detect_test_format
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("raw, expected", [
    ("<testsuites/>", TestFormat.JUNIT),
    ('{"numTotalTests": 1}', TestFormat.JEST),
    ('{"stats": {}}', TestFormat.MOCHA),
    ('{"summary": {}}', TestFormat.PYTEST),
    ({"numTotalTests": 0}, TestFormat.JEST),
    ("not json", TestFormat.UNKNOWN),
    ("[]", TestFormat.UNKNOWN),
    (None, TestFormat.UNKNOWN),
])
def test_detect_tests_auto(raw, expected):
    assert detect_test_format(raw) is expected


@pytest.mark.parametrize("hint, expected", [
    ("junit.xml", TestFormat.JUNIT),
    ("jest.json", TestFormat.JEST),
    ("mocha", TestFormat.MOCHA),
    ("pytest.json", TestFormat.PYTEST),
    ("nunit.xml", TestFormat.UNKNOWN),
])
def test_detect_tests_hint(hint, expected):
    assert detect_test_format("{}", hint) is expected
