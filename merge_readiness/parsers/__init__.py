"""CI artifact parsers: coverage, test results and security scans."""

from merge_readiness.parsers.coverage import parse_coverage
from merge_readiness.parsers.detect import (
    CoverageFormat,
    TestFormat,
    detect_coverage_format,
    detect_test_format,
)
from merge_readiness.parsers.security import parse_security_results
from merge_readiness.parsers.tests import parse_test_results

__all__ = [
    "CoverageFormat",
    "TestFormat",
    "detect_coverage_format",
    "detect_test_format",
    "parse_coverage",
    "parse_security_results",
    "parse_test_results",
]
