"""Merge-readiness scoring engine for CI artifacts."""

__version__ = "0.1.0"
