"""Tests for trends.py"""

import pytest

from merge_readiness.trends import (
    classify_trend,
    consistency,
    distribution,
    interpret_correlation,
    linear_trend_slope,
    mean,
    median,
    moving_average,
    pearson_correlation,
    percentile,
    rolling_average,
    standard_deviation,
)


# ---------------------------------------------------------------------------
# rolling / moving average
# ---------------------------------------------------------------------------

def test_rolling_average_window_larger_than_series():
    result = rolling_average([1, 2, 3], window=7)
    assert result[0] == 1
    assert result[2] == 2


def test_rolling_average_trailing_window():
    assert rolling_average([2, 4, 6, 8], window=2) == [2, 3, 5, 7]


def test_rolling_average_empty():
    assert rolling_average([], window=3) == []


def test_moving_average_is_centred():
    assert moving_average([1, 2, 3, 4, 5], window=3) == [1.5, 2, 3, 4, 4.5]


# ---------------------------------------------------------------------------
# slope / classification
# ---------------------------------------------------------------------------

def test_slope_of_straight_line():
    assert linear_trend_slope([1, 3, 5, 7]) == pytest.approx(2)


def test_slope_degenerate_input():
    assert linear_trend_slope([]) == 0
    assert linear_trend_slope([42]) == 0


@pytest.mark.parametrize("series, expected", [
    ([70, 72, 75, 80], "increasing"),
    ([80, 75, 72, 70], "decreasing"),
    ([75, 75, 75], "neutral"),
    ([75, 75.005], "neutral"),
    ([75], "neutral"),
    ([], "neutral"),
])
def test_classify_trend(series, expected):
    assert classify_trend(series) == expected


# ---------------------------------------------------------------------------
# correlation
# ---------------------------------------------------------------------------

def test_perfect_positive_correlation():
    result = pearson_correlation([1, 2, 3, 4], [10, 20, 30, 40])
    assert result.coefficient == pytest.approx(1)
    assert result.interpretation == "Very strong positive correlation"
    assert result.significance == "Significant"


def test_negative_correlation():
    result = pearson_correlation([1, 2, 3, 4, 5], [5, 4, 3.5, 2, 1])
    assert result.coefficient < -0.9
    assert "negative" in result.interpretation


def test_no_variation_is_zero_not_nan():
    result = pearson_correlation([1, 1, 1], [3, 4, 5])
    assert result.coefficient == 0
    assert result.significance == "No variation"


def test_insufficient_data():
    result = pearson_correlation([1], [2])
    assert result.coefficient == 0
    assert result.significance == "Insufficient data"


@pytest.mark.parametrize("r, expected", [
    (0.05, "No correlation"),
    (0.2, "Weak positive correlation"),
    (-0.4, "Moderate negative correlation"),
    (0.6, "Strong positive correlation"),
])
def test_interpret_correlation(r, expected):
    assert interpret_correlation(r) == expected


# ---------------------------------------------------------------------------
# percentile / distribution / spread
# ---------------------------------------------------------------------------

def test_percentile_interpolates():
    assert percentile([10, 20, 30, 40], 50) == pytest.approx(25)
    assert percentile([10, 20, 30, 40], 90) == pytest.approx(37)


def test_percentile_bounds_and_empty():
    assert percentile([1, 2, 3], 0) == 1
    assert percentile([1, 2, 3], 100) == 3
    assert percentile([], 50) == 0


def test_percentile_out_of_range_is_clamped():
    assert percentile([1, 2, 3], -10) == 1
    assert percentile([1, 2, 3], 150) == 3


def test_distribution_sorts_input():
    result = distribution([5, 1, 3])
    assert result["p50"] == 3
    assert set(result) == {"p25", "p50", "p75", "p90", "p95"}


def test_mean_median_std():
    assert mean([]) == 0
    assert median([3, 1, 2]) == 2
    assert median([4, 1, 2, 3]) == 2.5
    assert standard_deviation([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2)


def test_consistency():
    assert consistency([5]) == 100
    assert consistency([10, 10, 10]) == 100
    assert consistency([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(60)
    assert consistency([0, 0]) == 100
