"""Tests for parsers/coverage.py — parse_coverage across formats."""

import json

import pytest

from merge_readiness.models import CanonicalCoverage
from merge_readiness.parsers.coverage import parse_coverage

ZERO = {
    "line": 0, "branch": 0, "function": 0, "statement": 0, "overall": 0,
    "files": [], "by_language": {},
}

ISTANBUL_SUMMARY = {
    "total": {
        "lines": {"total": 200, "covered": 170, "pct": 85},
        "branches": {"total": 50, "covered": 35, "pct": 70},
        "functions": {"total": 40, "covered": 36, "pct": 90},
        "statements": {"total": 210, "covered": 168, "pct": 80},
    },
    "/repo/src/app.js": {
        "lines": {"pct": 100},
        "branches": {"pct": 50},
        "functions": {"pct": 100},
        "statements": {"pct": 95.5},
    },
    "/repo/src/util.js": {
        "lines": {"pct": 60},
        "branches": {"pct": "Unknown"},
        "functions": {"pct": 75},
        "statements": {"pct": 60},
    },
}

COBERTURA = """<?xml version="1.0" ?>
<coverage line-rate="0.9" branch-rate="0.7" version="7.4">
  <packages>
    <package name="app" line-rate="0.9" branch-rate="0.7">
      <classes>
        <class name="main.py" filename="app/main.py" line-rate="0.95" branch-rate="0.5"/>
        <class name="util.py" filename="app/util.py" line-rate="0.8" branch-rate="1"/>
      </classes>
    </package>
  </packages>
</coverage>
"""

PYTHON_COVERAGE = {
    "meta": {"version": "7.4.0"},
    "files": {
        "app/main.py": {
            "executed_lines": [1, 2, 3],
            "summary": {"num_statements": 4, "percent_covered": 75.0},
        },
        "app/util.py": {
            "executed_lines": [1, 2],
            "num_statements": 8,
        },
        "app/empty.py": {
            "executed_lines": [],
            "num_statements": 0,
        },
    },
    "totals": {"percent_covered": 72.5, "num_statements": 12},
}

LCOV = """TN:
SF:src/a.js
FNF:4
FNH:3
LF:10
LH:8
BRF:4
BRH:2
end_of_record
SF:src/b.js
FNF:0
FNH:0
LF:10
LH:10
BRF:0
BRH:0
end_of_record
"""


# --------------------------------------------------------------------------- #
# Zero defaults
# --------------------------------------------------------------------------- #

class TestDefaults:
    @pytest.mark.parametrize("raw", [None, "", "not json and not xml", b"   "])
    def test_unusable_input_yields_zero_record(self, raw):
        assert parse_coverage(raw).to_dict() == ZERO

    def test_broken_xml_yields_zero_record(self):
        assert parse_coverage("<?xml version='1.0'?><coverage").to_dict() == ZERO

    def test_unknown_format_hint_yields_zero_record(self):
        assert parse_coverage(json.dumps(ISTANBUL_SUMMARY), "clover.xml") == CanonicalCoverage()

    def test_json_array_yields_zero_record(self):
        assert parse_coverage("[1, 2, 3]") == CanonicalCoverage()

    def test_degraded_parse_is_logged(self, caplog):
        with caplog.at_level("WARNING"):
            parse_coverage("<?xml version='1.0'?><coverage")
        assert "cobertura" in caplog.text

    def test_parse_is_idempotent(self):
        raw = json.dumps(ISTANBUL_SUMMARY)
        assert parse_coverage(raw) == parse_coverage(raw)


# --------------------------------------------------------------------------- #
# Jest / Istanbul
# --------------------------------------------------------------------------- #

class TestJest:
    def test_summary_metrics(self):
        result = parse_coverage(json.dumps(ISTANBUL_SUMMARY))
        assert result.line == 85
        assert result.branch == 70
        assert result.function == 90
        assert result.statement == 80

    def test_overall_is_mean_of_present_metrics(self):
        result = parse_coverage(json.dumps(ISTANBUL_SUMMARY))
        assert result.overall == pytest.approx((85 + 70 + 90 + 80) / 4)

    def test_missing_metric_excluded_from_overall(self):
        data = {"total": {"lines": {"pct": 80}, "branches": {"pct": 60}}}
        result = parse_coverage(data)
        assert result.overall == pytest.approx(70)
        assert result.function == 0

    def test_files_exclude_total_key(self):
        result = parse_coverage(json.dumps(ISTANBUL_SUMMARY))
        names = [f.name for f in result.files]
        assert names == ["/repo/src/app.js", "/repo/src/util.js"]

    def test_file_metrics(self):
        result = parse_coverage(json.dumps(ISTANBUL_SUMMARY))
        util = result.files[1]
        assert util.line == 60
        assert util.branch == 0   # "Unknown" pct
        assert util.function == 75

    def test_decoded_dict_accepted(self):
        assert parse_coverage(ISTANBUL_SUMMARY).line == 85

    def test_bytes_accepted(self):
        assert parse_coverage(json.dumps(ISTANBUL_SUMMARY).encode()).line == 85


# --------------------------------------------------------------------------- #
# Cobertura
# --------------------------------------------------------------------------- #

class TestCobertura:
    def test_root_rates(self):
        result = parse_coverage(COBERTURA)
        assert result.line == pytest.approx(90)
        assert result.branch == pytest.approx(70)

    def test_function_and_statement_follow_line(self):
        result = parse_coverage(COBERTURA)
        assert result.function == result.line
        assert result.statement == result.line

    def test_overall_is_mean_of_line_and_branch(self):
        assert parse_coverage(COBERTURA).overall == pytest.approx(80)

    def test_class_elements_become_files(self):
        files = parse_coverage(COBERTURA).files
        assert [f.name for f in files] == ["app/main.py", "app/util.py"]
        assert files[0].line == pytest.approx(95)
        assert files[0].function == pytest.approx(95)
        assert files[0].statement == pytest.approx(95)
        assert files[0].branch == pytest.approx(50)

    def test_explicit_hint(self):
        assert parse_coverage(COBERTURA, "coverage.xml").overall == pytest.approx(80)


# --------------------------------------------------------------------------- #
# Python coverage.json
# --------------------------------------------------------------------------- #

class TestPythonCoverage:
    def test_overall_from_totals(self):
        result = parse_coverage(PYTHON_COVERAGE, format_hint="python")
        assert result.overall == 72.5
        assert result.line == 72.5
        assert result.branch == 72.5

    def test_file_percent_from_summary(self):
        files = {f.name: f for f in parse_coverage(PYTHON_COVERAGE, format_hint="python").files}
        assert files["app/main.py"].line == 75.0

    def test_file_percent_computed_from_executed_lines(self):
        files = {f.name: f for f in parse_coverage(PYTHON_COVERAGE, format_hint="python").files}
        assert files["app/util.py"].line == pytest.approx(25.0)

    def test_file_without_statements_is_zero(self):
        files = {f.name: f for f in parse_coverage(PYTHON_COVERAGE, format_hint="python").files}
        assert files["app/empty.py"].line == 0

    def test_explicit_hint_on_text(self):
        result = parse_coverage(json.dumps(PYTHON_COVERAGE), format_hint="python")
        assert result.overall == 72.5

    def test_decoded_and_text_documents_parse_alike(self):
        assert parse_coverage(PYTHON_COVERAGE) == parse_coverage(json.dumps(PYTHON_COVERAGE))
        assert parse_coverage(PYTHON_COVERAGE, ".coverage").overall == 72.5


# --------------------------------------------------------------------------- #
# LCOV
# --------------------------------------------------------------------------- #

class TestLcov:
    def test_single_block_line_coverage(self):
        result = parse_coverage("SF:src/x.js\nLF:10\nLH:8\nend_of_record\n")
        assert result.line == pytest.approx(80)

    def test_totals_accumulate_across_blocks(self):
        result = parse_coverage(LCOV)
        assert result.line == pytest.approx(90)
        assert result.branch == pytest.approx(50)
        assert result.function == pytest.approx(75)
        assert result.statement == result.line

    def test_overall_is_mean_of_line_branch_function(self):
        assert parse_coverage(LCOV).overall == pytest.approx((90 + 50 + 75) / 3)

    def test_per_file_records(self):
        files = parse_coverage(LCOV).files
        assert [f.name for f in files] == ["src/a.js", "src/b.js"]
        assert files[0].line == pytest.approx(80)
        assert files[1].branch == 0

    def test_invalid_count_yields_zero_record(self):
        assert parse_coverage("TN:\nSF:a.js\nLF:ten\n") == CanonicalCoverage()
