"""Trend and statistics helpers for longitudinal metric analysis.

All functions are pure and guard against empty input and zero variance:
they return 0 / ``"neutral"`` instead of NaN or raising.
"""

import math
import statistics
from typing import Sequence

from merge_readiness.models import CorrelationResult

#: Slopes inside +/- this band are reported as "neutral"
TREND_SLOPE_EPSILON = 0.01

#: Default percentiles reported by distribution()
DISTRIBUTION_PERCENTILES: tuple[int, ...] = (25, 50, 75, 90, 95)


# --------------------------------------------------------------------------- #
# Central tendency / spread
# --------------------------------------------------------------------------- #

def mean(values: Sequence[float]) -> float:
    return statistics.fmean(values) if values else 0


def median(values: Sequence[float]) -> float:
    return statistics.median(values) if values else 0


def standard_deviation(values: Sequence[float]) -> float:
    """Population standard deviation."""
    return statistics.pstdev(values) if values else 0


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolation percentile of an ascending sequence.

    *p* is clamped to ``[0, 100]``. An empty sequence yields 0.
    """
    if not sorted_values:
        return 0
    last = len(sorted_values) - 1
    index = min(max(p / 100 * last, 0), last)
    lower = math.floor(index)
    upper = math.ceil(index)
    weight = index - lower
    return sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight


def distribution(values: Sequence[float]) -> dict[str, float]:
    """Return ``{"p25": ..., "p50": ..., ...}`` for *values* (any order)."""
    ordered = sorted(values)
    return {f"p{p}": percentile(ordered, p) for p in DISTRIBUTION_PERCENTILES}


def consistency(values: Sequence[float]) -> float:
    """Consistency score in ``[0, 100]``: 100 minus the coefficient of variation.

    Fewer than two values are perfectly consistent.
    """
    if len(values) < 2:
        return 100
    avg = mean(values)
    cv = standard_deviation(values) / avg * 100 if avg > 0 else 0
    return max(0, 100 - cv)


# --------------------------------------------------------------------------- #
# Smoothing
# --------------------------------------------------------------------------- #

def rolling_average(series: Sequence[float], window: int) -> list[float]:
    """Trailing mean of ``series[max(0, i - window + 1) .. i]`` for every *i*.

    The first ``window - 1`` points average over whatever history exists;
    nothing is padded.
    """
    window = max(1, int(window))
    result = []
    for i in range(len(series)):
        subset = series[max(0, i - window + 1): i + 1]
        result.append(sum(subset) / len(subset))
    return result


def moving_average(series: Sequence[float], window: int) -> list[float]:
    """Centred moving average, truncated at both ends of *series*."""
    window = max(1, int(window))
    half_before = window // 2
    half_after = math.ceil(window / 2)
    result = []
    for i in range(len(series)):
        subset = series[max(0, i - half_before): min(len(series), i + half_after)]
        result.append(sum(subset) / len(subset))
    return result


# --------------------------------------------------------------------------- #
# Trend
# --------------------------------------------------------------------------- #

def linear_trend_slope(series: Sequence[float]) -> float:
    """Ordinary least-squares slope of *series* against its index."""
    n = len(series)
    if n < 2:
        return 0
    sum_x = n * (n - 1) / 2
    sum_y = sum(series)
    sum_xy = sum(i * y for i, y in enumerate(series))
    sum_x2 = sum(i * i for i in range(n))
    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0
    return (n * sum_xy - sum_x * sum_y) / denominator


def classify_trend(series: Sequence[float]) -> str:
    """``"increasing"``, ``"decreasing"`` or ``"neutral"`` from the OLS slope."""
    if len(series) < 2:
        return "neutral"
    slope = linear_trend_slope(series)
    if slope > TREND_SLOPE_EPSILON:
        return "increasing"
    if slope < -TREND_SLOPE_EPSILON:
        return "decreasing"
    return "neutral"


# --------------------------------------------------------------------------- #
# Correlation
# --------------------------------------------------------------------------- #

def _normal_cdf(x: float) -> float:
    return 0.5 * (1 + math.erf(x / math.sqrt(2)))


def interpret_correlation(r: float) -> str:
    strength = abs(r)
    direction = "positive" if r > 0 else "negative"
    if strength < 0.1:
        return "No correlation"
    if strength < 0.3:
        return f"Weak {direction} correlation"
    if strength < 0.5:
        return f"Moderate {direction} correlation"
    if strength < 0.7:
        return f"Strong {direction} correlation"
    return f"Very strong {direction} correlation"


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> CorrelationResult:
    """Pearson correlation of two equally long series.

    The p-value comes from a normal approximation of the t statistic, so it
    is only indicative for small samples. Series without variance report a
    coefficient of 0 and ``"No variation"``.
    """
    n = min(len(xs), len(ys))
    if n < 2:
        return CorrelationResult(
            coefficient=0,
            p_value=1,
            significance="Insufficient data",
            interpretation="Need more data points",
        )
    xs, ys = xs[:n], ys[:n]

    sum_x = sum(xs)
    sum_y = sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_x2 = sum(x * x for x in xs)
    sum_y2 = sum(y * y for y in ys)

    variance_product = (n * sum_x2 - sum_x ** 2) * (n * sum_y2 - sum_y ** 2)
    if variance_product <= 0:
        return CorrelationResult(
            coefficient=0,
            p_value=1,
            significance="No variation",
            interpretation="No correlation (no variation in data)",
        )

    r = (n * sum_xy - sum_x * sum_y) / math.sqrt(variance_product)
    r = max(-1.0, min(1.0, r))

    if n <= 2:
        p_value = 1.0
    elif abs(r) == 1:
        p_value = 0.0
    else:
        t = r * math.sqrt((n - 2) / (1 - r * r))
        p_value = 2 * (1 - _normal_cdf(abs(t)))

    return CorrelationResult(
        coefficient=r,
        p_value=p_value,
        significance="Significant" if p_value < 0.05 else "Not Significant",
        interpretation=interpret_correlation(r),
    )
