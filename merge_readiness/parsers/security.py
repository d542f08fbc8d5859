"""Security scan artifact parser.

Functions:
    security_score(counts, weights)   -> float
    parse_security_results(raw)       -> CanonicalSecurity

Accepted shapes: a flat ``{critical, high, medium, low, info}`` object, the
same counts nested under ``vulnerabilities``, or an ``npm audit --json``
report (``metadata.vulnerabilities``, where ``moderate`` means medium).
"""

import json
import logging

from merge_readiness.models import CanonicalSecurity
from merge_readiness.parsers.detect import decode_payload

logger = logging.getLogger(__name__)

SEVERITIES: tuple[str, ...] = ("critical", "high", "medium", "low", "info")

#: Weights used for the score attached by the parser.
#: NOTE: the readiness scorer recomputes its own score with
#: ``SCORER_SECURITY_WEIGHTS`` (info=0.5 instead of 1). Which set is intended
#: is unresolved; both are kept as-is so existing scores do not move.
PARSER_SECURITY_WEIGHTS: dict[str, float] = {
    "critical": 25,
    "high": 15,
    "medium": 5,
    "low": 2,
    "info": 1,
}


def security_score(counts, weights: dict[str, float]) -> float:
    """``max(0, 100 - sum(count * weight))`` over the five severities.

    *counts* may be a mapping or any object with severity attributes.
    """
    penalty = 0
    for severity in SEVERITIES:
        if isinstance(counts, dict):
            count = counts.get(severity) or 0
        else:
            count = getattr(counts, severity, 0) or 0
        penalty += count * weights[severity]
    return max(0, 100 - penalty)


def _count(value) -> int:
    return int(float(value or 0))


def _severity_counts(data: dict) -> dict[str, int]:
    nested = data.get("vulnerabilities")
    if not isinstance(nested, dict):
        nested = (data.get("metadata") or {}).get("vulnerabilities")
    if not isinstance(nested, dict):
        nested = {}
    if "medium" not in nested and "moderate" in nested:
        nested = {**nested, "medium": nested["moderate"]}

    # Flat fields win when set, like the dashboard's history entries.
    return {
        severity: _count(data.get(severity) or nested.get(severity))
        for severity in SEVERITIES
    }


def parse_security_results(raw) -> CanonicalSecurity:
    """Parse a security scan summary into a :class:`CanonicalSecurity`.

    No payload and a malformed payload both yield the full default
    (no vulnerabilities, ``score=100``).
    """
    payload = decode_payload(raw)
    if payload is None:
        return CanonicalSecurity()

    try:
        data = json.loads(payload) if isinstance(payload, str) else payload
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        counts = _severity_counts(data)
    except Exception as exc:
        logger.warning("Error parsing security results: %s", exc)
        return CanonicalSecurity()

    return CanonicalSecurity(
        **counts,
        total=sum(counts.values()),
        score=security_score(counts, PARSER_SECURITY_WEIGHTS),
    )
