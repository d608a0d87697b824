"""
Pure statistics over ordered price series.

This module provides the mean/variance/covariance/correlation functions the
matrix builder composes. All functions are stateless and deterministic.

Conventions:
    - variance and std_dev use the population divisor n
    - covariance uses the sample divisor n - 1
    - covariance and correlation align two series by position from the
      oldest sample and truncate to the shorter one; timestamps are not
      matched, so both series are assumed to share a sampling cadence
    - sums accumulate left to right in series order (np.cumsum rather than
      np.sum, whose pairwise summation regroups the terms)
"""

import math
from numbers import Real
from typing import Iterable, Tuple, Union
import numpy as np
from stockcorr.entities import PricePoint, TimeSeries
from stockcorr.errors import InsufficientDataError, InvalidInputError

PriceInput = Union[TimeSeries, Iterable[PricePoint], Iterable[float], np.ndarray]


def _is_price(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, (bool, np.bool_))


def as_price_array(series: PriceInput) -> np.ndarray:
    """
    Convert any supported series shape into a 1-D float64 array.

    Accepts a TimeSeries, a sequence of PricePoint, or a sequence of numbers.
    Order is preserved.

    Raises:
        InvalidInputError: If series is None, a string, not iterable, not
            one-dimensional, or contains non-numeric or non-finite values
    """
    if series is None:
        raise InvalidInputError("series cannot be None")
    if isinstance(series, (str, bytes)):
        raise InvalidInputError(f"series must be a sequence of prices, got {type(series).__name__}")

    if isinstance(series, TimeSeries):
        return series.prices()

    if isinstance(series, np.ndarray):
        if series.dtype.kind not in "iuf":
            raise InvalidInputError(f"series must contain numeric prices, got dtype {series.dtype}")
        values = series
    else:
        try:
            items = list(series)
        except TypeError as e:
            raise InvalidInputError(f"series must be a sequence of prices, got {type(series).__name__}") from e
        if items and all(isinstance(item, PricePoint) for item in items):
            items = [item.price for item in items]
        for item in items:
            if not _is_price(item) and not isinstance(item, (list, tuple, np.ndarray)):
                raise InvalidInputError(f"series must contain numeric prices, got {item!r}")
        values = items

    try:
        prices = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"series must contain numeric prices: {e}") from e

    if prices.ndim != 1:
        raise InvalidInputError(f"series must be one-dimensional, got {prices.ndim} dimensions")
    if not np.isfinite(prices).all():
        raise InvalidInputError("series must not contain NaN or infinite prices")

    return prices


def _sum(values: np.ndarray) -> float:
    """Left-to-right sum; 0.0 for an empty array."""
    if len(values) == 0:
        return 0.0
    return float(np.cumsum(values)[-1])


def mean(series: PriceInput) -> float:
    """
    Arithmetic mean of the full series.

    Raises:
        InsufficientDataError: If the series is empty
    """
    prices = as_price_array(series)
    if len(prices) == 0:
        raise InsufficientDataError("mean is undefined for an empty series")
    return _sum(prices) / len(prices)


def variance(series: PriceInput) -> float:
    """
    Population variance: mean squared deviation from the mean (divisor n).

    Preconditions:
        - series has at least one observation

    Postconditions:
        - Returns a value >= 0
        - A single-point series has variance 0.0

    Raises:
        InsufficientDataError: If the series is empty
    """
    prices = as_price_array(series)
    if len(prices) == 0:
        raise InsufficientDataError("variance is undefined for an empty series")
    deviations = prices - mean(prices)
    return _sum(deviations * deviations) / len(prices)


def std_dev(series: PriceInput) -> float:
    """
    Population standard deviation, sqrt(variance(series)).

    Raises:
        InsufficientDataError: If the series is empty
    """
    return float(np.sqrt(variance(series)))


def _aligned_deviations(
    series_a: PriceInput,
    series_b: PriceInput
) -> Tuple[np.ndarray, np.ndarray]:
    """Truncate both series to the shorter length and subtract their truncated means."""
    prices_a = as_price_array(series_a)
    prices_b = as_price_array(series_b)
    n = min(len(prices_a), len(prices_b))
    truncated_a = prices_a[:n]
    truncated_b = prices_b[:n]
    if n == 0:
        return truncated_a, truncated_b
    return truncated_a - _sum(truncated_a) / n, truncated_b - _sum(truncated_b) / n


def covariance(series_a: PriceInput, series_b: PriceInput) -> float:
    """
    Sample covariance of two position-aligned series (divisor n - 1).

    Both series are truncated to their first n = min(len(a), len(b))
    observations. Fewer than two aligned observations is not an error:
    the covariance is 0.0 so that a matrix stays total over instruments
    that have not traded yet.

    Args:
        series_a: First series
        series_b: Second series

    Returns:
        Sum of (a_i - mean_a)(b_i - mean_b) over the aligned prefix, / (n - 1)

    Example:
        >>> covariance([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
        5.0
    """
    dev_a, dev_b = _aligned_deviations(series_a, series_b)
    n = len(dev_a)
    if n < 2:
        return 0.0
    return _sum(dev_a * dev_b) / (n - 1)


def correlation(series_a: PriceInput, series_b: PriceInput) -> float:
    """
    Pearson correlation of two position-aligned series.

    Uses raw deviation sums, so the n - 1 scale of covariance cancels:
    sum(da * db) / sqrt(sum(da^2) * sum(db^2)).

    Degenerate inputs resolve to 0.0 rather than raising:
        - fewer than two aligned observations
        - a constant series (zero denominator)

    Postconditions:
        - -1 <= result <= 1 up to floating-point rounding

    Example:
        >>> correlation([3, 3, 3], [1, 2, 3])
        0.0
    """
    dev_a, dev_b = _aligned_deviations(series_a, series_b)
    if len(dev_a) < 2:
        return 0.0

    numerator = _sum(dev_a * dev_b)
    denominator = math.sqrt(_sum(dev_a * dev_a) * _sum(dev_b * dev_b))
    if denominator == 0.0:
        return 0.0
    return numerator / denominator
