"""
Pairwise correlation matrix construction.

This module composes the statistics functions over every unordered pair
of instruments (self-pairs included) and summarizes the result for the
dashboard's summary cards and heatmap legend.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, List, Optional
import numpy as np
from stockcorr.entities import CorrelationMatrix, PairStatistics
from stockcorr.analytics.statistics import (
    as_price_array,
    correlation,
    covariance,
    std_dev,
)
from stockcorr.errors import InvalidInputError

logger = logging.getLogger(__name__)

STRONG_THRESHOLD = 0.7
MODERATE_THRESHOLD = 0.3


@dataclass(frozen=True)
class MatrixSummary:
    """
    Headline numbers over the distinct-symbol pairs of a matrix.

    Attributes:
        strong_count: Pairs with |correlation| > 0.7
        average_abs_correlation: Mean |correlation| (0.0 when there are no pairs)
        total_pairs: Number of distinct-symbol pairs, N(N-1)/2
    """
    strong_count: int
    average_abs_correlation: float
    total_pairs: int


class CorrelationMatrixBuilder:
    """
    Builds a CorrelationMatrix from a symbol -> series mapping.

    Symbols are enumerated in the mapping's iteration order and every pair
    (i, j) with i <= j produces one PairStatistics record. Nothing is cached
    between calls; each build recomputes everything from the supplied series.

    Degenerate series (empty, single point, constant) never raise here; they
    resolve to 0.0 correlation and covariance. Only malformed input does.
    """

    def build(self, series_by_symbol: Mapping) -> CorrelationMatrix:
        """
        Compute statistics for every unordered pair of symbols.

        Preconditions:
            - series_by_symbol maps non-empty string symbols to a TimeSeries,
              a sequence of PricePoint, or a sequence of prices
            - each series is already restricted to the requested window

        Postconditions:
            - Returns a matrix with exactly N(N+1)/2 records
            - For every record, symbol_a is not later than symbol_b in
              the input's iteration order
            - Identical inputs give bit-identical records

        Args:
            series_by_symbol: Mapping from symbol to its price series

        Returns:
            CorrelationMatrix over the mapping's symbols

        Raises:
            InvalidInputError: If the mapping is not a mapping, a symbol is
                blank, or a series is None or non-numeric
        """
        if not isinstance(series_by_symbol, Mapping):
            raise InvalidInputError(
                f"series_by_symbol must be a mapping, got {type(series_by_symbol).__name__}"
            )

        symbols = list(series_by_symbol.keys())
        prices: Dict[str, np.ndarray] = {}
        for symbol in symbols:
            if not isinstance(symbol, str) or not symbol.strip():
                raise InvalidInputError(f"invalid symbol: {symbol!r}")
            series = series_by_symbol[symbol]
            if series is None:
                raise InvalidInputError(f"missing series for symbol {symbol}")
            prices[symbol] = as_price_array(series)

        # Empty series contribute a 0.0 std-dev so the matrix stays total
        std_devs = {
            symbol: std_dev(values) if len(values) > 0 else 0.0
            for symbol, values in prices.items()
        }

        records = []
        for i, symbol_a in enumerate(symbols):
            for symbol_b in symbols[i:]:
                records.append(self._pair_statistics(
                    symbol_a, symbol_b, prices, std_devs
                ))

        logger.debug("Built correlation matrix: %d symbols, %d records", len(symbols), len(records))
        return CorrelationMatrix(symbols, records)

    @staticmethod
    def _pair_statistics(
        symbol_a: str,
        symbol_b: str,
        prices: Dict[str, np.ndarray],
        std_devs: Dict[str, float]
    ) -> PairStatistics:
        values_a = prices[symbol_a]
        values_b = prices[symbol_b]

        if symbol_a == symbol_b:
            # Self-correlation is 1.0 by convention unless the series is degenerate.
            # Zero variance means exactly 0.0; rounding noise such as [0.1, 0.1, 0.1]
            # leaves a tiny positive std-dev and counts as varying.
            cov = covariance(values_a, values_a)
            corr = 1.0 if len(values_a) >= 2 and std_devs[symbol_a] > 0.0 else 0.0
        else:
            cov = covariance(values_a, values_b)
            corr = correlation(values_a, values_b)

        return PairStatistics(
            symbol_a=symbol_a,
            symbol_b=symbol_b,
            correlation=corr,
            covariance=cov,
            std_dev_a=std_devs[symbol_a],
            std_dev_b=std_devs[symbol_b],
        )


_default_builder = CorrelationMatrixBuilder()


def build_correlation_matrix(series_by_symbol: Mapping) -> CorrelationMatrix:
    """
    Build the full pairwise statistics matrix for a symbol -> series mapping.

    See CorrelationMatrixBuilder.build for the contract.
    """
    return _default_builder.build(series_by_symbol)


def classify_strength(corr: float) -> str:
    """Return "strong", "moderate" or "weak" by |correlation|."""
    magnitude = abs(corr)
    if magnitude > STRONG_THRESHOLD:
        return "strong"
    if magnitude > MODERATE_THRESHOLD:
        return "moderate"
    return "weak"


def classify_band(corr: float) -> str:
    """
    Return the heatmap legend band for a correlation.

    Bands: strong_positive (> 0.7), moderate_positive (> 0.3),
    weak (> -0.3), moderate_negative (> -0.7), strong_negative.
    """
    if corr > STRONG_THRESHOLD:
        return "strong_positive"
    if corr > MODERATE_THRESHOLD:
        return "moderate_positive"
    if corr > -MODERATE_THRESHOLD:
        return "weak"
    if corr > -STRONG_THRESHOLD:
        return "moderate_negative"
    return "strong_negative"


def summarize_matrix(matrix: CorrelationMatrix) -> MatrixSummary:
    """
    Compute the summary cards over distinct-symbol pairs.

    Self-pairs are excluded from every figure.
    """
    pairs = matrix.off_diagonal()
    if not pairs:
        return MatrixSummary(strong_count=0, average_abs_correlation=0.0, total_pairs=0)

    magnitudes = [abs(p.correlation) for p in pairs]
    return MatrixSummary(
        strong_count=sum(1 for m in magnitudes if m > STRONG_THRESHOLD),
        average_abs_correlation=float(sum(magnitudes) / len(magnitudes)),
        total_pairs=len(pairs),
    )


def strongest_pairs(matrix: CorrelationMatrix, n: Optional[int] = 10) -> List[PairStatistics]:
    """
    Return distinct-symbol pairs sorted by |correlation| descending.

    Ties keep build order. n=None returns every pair.
    """
    ranked = sorted(matrix.off_diagonal(), key=lambda p: abs(p.correlation), reverse=True)
    return ranked if n is None else ranked[:n]
