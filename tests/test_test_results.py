"""Tests for parsers/tests.py — parse_test_results across formats."""

import json

import pytest

from merge_readiness.models import CanonicalTestResults
from merge_readiness.parsers.tests import parse_test_results

JUNIT = """<?xml version="1.0" encoding="UTF-8"?>
<testsuites>
  <testsuite name="unit" tests="10" failures="1" errors="1" skipped="2" time="1.5"/>
  <testsuite name="integration" tests="5" failures="0" errors="0" skipped="0" time="0.5"/>
</testsuites>
"""

JEST = {
    "numTotalTests": 20,
    "numPassedTests": 18,
    "numFailedTests": 1,
    "numPendingTests": 1,
    "testResults": [
        {
            "name": "/home/ci/repo/src/__tests__/app.test.js",
            "numTotalTests": 12, "numPassedTests": 12, "numFailedTests": 0, "numPendingTests": 0,
            "perfStats": {"start": 1000, "end": 1250},
        },
        {
            "testFilePath": "C:\\repo\\src\\util.test.js",
            "numTotalTests": 8, "numPassedTests": 6, "numFailedTests": 1, "numPendingTests": 1,
            "perfStats": {"runtime": 300},
        },
    ],
}

MOCHA = {"stats": {"tests": 40, "passes": 38, "failures": 1, "pending": 1, "duration": 812}}

PYTEST = {"duration": 2.5, "summary": {"total": 50, "passed": 45, "failed": 3, "skipped": 2}}


# --------------------------------------------------------------------------- #
# Defaults
# --------------------------------------------------------------------------- #

class TestDefaults:
    @pytest.mark.parametrize("raw", [None, "", "definitely not a report", "<testsuite"])
    def test_malformed_input_yields_zero_record(self, raw):
        result = parse_test_results(raw)
        assert result == CanonicalTestResults()
        assert result.pass_rate == 0

    def test_default_to_dict(self):
        assert parse_test_results(None).to_dict() == {
            "total": 0, "passed": 0, "failed": 0, "skipped": 0,
            "duration": 0, "suites": [], "pass_rate": 0,
        }

    def test_unknown_hint(self):
        assert parse_test_results(json.dumps(MOCHA), "tap") == CanonicalTestResults()


# --------------------------------------------------------------------------- #
# JUnit
# --------------------------------------------------------------------------- #

class TestJUnit:
    def test_totals_summed_across_suites(self):
        result = parse_test_results(JUNIT)
        assert result.total == 15
        assert result.failed == 2          # failures + errors
        assert result.skipped == 2
        assert result.passed == 11

    def test_duration_in_milliseconds(self):
        assert parse_test_results(JUNIT).duration == pytest.approx(2000)

    def test_pass_rate_derived(self):
        assert parse_test_results(JUNIT).pass_rate == pytest.approx(11 / 15 * 100)

    def test_per_suite_counts(self):
        unit, integration = parse_test_results(JUNIT).suites
        assert unit.name == "unit"
        assert unit.passed == 6
        assert integration.passed == 5

    def test_single_testsuite_root(self):
        xml = '<testsuite name="solo" tests="3" failures="1" time="0.1"/>'
        result = parse_test_results(xml)
        assert result.total == 3
        assert result.passed == 2

    def test_inconsistent_totals_are_not_clamped(self):
        xml = '<testsuite tests="1" failures="2" skipped="1"/>'
        result = parse_test_results(xml)
        assert result.passed == -2
        assert result.pass_rate == -200


# --------------------------------------------------------------------------- #
# Jest
# --------------------------------------------------------------------------- #

class TestJest:
    def test_direct_field_mapping(self):
        result = parse_test_results(json.dumps(JEST))
        assert (result.total, result.passed, result.failed, result.skipped) == (20, 18, 1, 1)
        assert result.pass_rate == pytest.approx(90)

    def test_suite_names_are_basenamed(self):
        suites = parse_test_results(JEST).suites
        assert [s.name for s in suites] == ["app.test.js", "util.test.js"]

    def test_suite_durations(self):
        suites = parse_test_results(JEST).suites
        assert suites[0].duration == 250
        assert suites[1].duration == 300

    def test_duration_falls_back_to_suite_sum(self):
        assert parse_test_results(JEST).duration == 550

    def test_passed_above_total_propagates(self):
        result = parse_test_results({"numTotalTests": 2, "numPassedTests": 3})
        assert result.pass_rate == pytest.approx(150)


# --------------------------------------------------------------------------- #
# Mocha / pytest
# --------------------------------------------------------------------------- #

class TestMocha:
    def test_stats_mapping(self):
        result = parse_test_results(json.dumps(MOCHA))
        assert (result.total, result.passed, result.failed, result.skipped) == (40, 38, 1, 1)
        assert result.duration == 812
        assert result.suites == []


class TestPytest:
    def test_summary_mapping(self):
        result = parse_test_results(json.dumps(PYTEST))
        assert (result.total, result.passed, result.failed, result.skipped) == (50, 45, 3, 2)
        assert result.pass_rate == 90
        assert result.suites == []

    def test_duration_seconds_to_milliseconds(self):
        assert parse_test_results(PYTEST).duration == pytest.approx(2500)

    def test_zero_total(self):
        result = parse_test_results({"summary": {"total": 0}})
        assert result.pass_rate == 0

    def test_explicit_file_name_hint(self):
        assert parse_test_results(json.dumps(PYTEST), "pytest.json").total == 50
