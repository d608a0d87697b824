"""
Core entity classes (ADTs) for the correlation engine.

These classes represent the data flowing from the price service into the
statistics engine and out to the dashboard, with their representation
invariants checked on construction.
"""

import math
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
import numpy as np
import pandas as pd
from stockcorr.errors import InvalidInputError


@dataclass(frozen=True)
class PricePoint:
    """
    A single price observation.

    Attributes:
        price: Observed price
        observed_at: Timestamp of the observation

    Representation Invariants:
        - price is a finite real number
    """
    price: float
    observed_at: datetime

    def __post_init__(self):
        """Validate representation invariants."""
        if isinstance(self.price, bool) or not isinstance(self.price, (int, float, np.floating, np.integer)):
            raise InvalidInputError(f"price must be numeric, got {type(self.price).__name__}")
        if not math.isfinite(self.price):
            raise InvalidInputError(f"price must be finite, got {self.price}")
        object.__setattr__(self, "price", float(self.price))


class TimeSeries:
    """
    Chronologically ordered price observations for one instrument.

    Insertion order is chronological order (oldest first). The series may
    be empty: an instrument that has not traded in the window is still a
    valid input to the matrix builder.

    Attributes:
        symbol: Ticker symbol the series belongs to
        points: Tuple of PricePoint, oldest first

    Representation Invariants:
        - symbol is a non-empty string
        - every element of points is a PricePoint
        - observed_at is non-decreasing along points
    """

    def __init__(self, symbol: str, points: Iterable[PricePoint] = ()):
        """
        Initialize a TimeSeries.

        Preconditions:
            - points are already in chronological order

        Raises:
            InvalidInputError: If symbol is blank or points violate the invariants
        """
        if not isinstance(symbol, str) or not symbol.strip():
            raise InvalidInputError("symbol cannot be empty")

        self._symbol = symbol
        self._points = tuple(points)
        self._check_invariants()

    def _check_invariants(self):
        """Check representation invariants."""
        for point in self._points:
            if not isinstance(point, PricePoint):
                raise InvalidInputError(
                    f"{self._symbol}: expected PricePoint, got {type(point).__name__}"
                )
        for earlier, later in zip(self._points, self._points[1:]):
            if later.observed_at < earlier.observed_at:
                raise InvalidInputError(
                    f"{self._symbol}: observations must be in chronological order"
                )

    @classmethod
    def from_prices(
        cls,
        symbol: str,
        prices: Sequence[float],
        start: Optional[datetime] = None,
        freq: str = "1min"
    ) -> "TimeSeries":
        """
        Build a series from bare prices on a regular clock.

        Args:
            symbol: Ticker symbol
            prices: Prices, oldest first
            start: Timestamp of the first observation (defaults to the epoch)
            freq: pandas frequency string for the spacing between observations

        Returns:
            TimeSeries with evenly spaced timestamps
        """
        start = pd.Timestamp(start) if start is not None else pd.Timestamp("1970-01-01")
        stamps = pd.date_range(start, periods=len(prices), freq=freq)
        return cls(symbol, [
            PricePoint(price=p, observed_at=ts.to_pydatetime())
            for p, ts in zip(prices, stamps)
        ])

    @property
    def symbol(self) -> str:
        """Return the ticker symbol (read-only)."""
        return self._symbol

    @property
    def points(self) -> Tuple[PricePoint, ...]:
        """Return the observations (read-only)."""
        return self._points

    def prices(self) -> np.ndarray:
        """Return prices as a float64 array, oldest first."""
        return np.array([p.price for p in self._points], dtype=np.float64)

    def to_series(self) -> pd.Series:
        """Return prices as a pandas Series indexed by observation time."""
        index = pd.DatetimeIndex([p.observed_at for p in self._points], name="observed_at")
        return pd.Series(self.prices(), index=index, name=self._symbol)

    def __len__(self) -> int:
        """Return the number of observations."""
        return len(self._points)

    def __iter__(self) -> Iterator[PricePoint]:
        return iter(self._points)

    def __repr__(self) -> str:
        """String representation."""
        return f"TimeSeries({self._symbol}, {len(self)} obs)"


@dataclass(frozen=True)
class PairStatistics:
    """
    Statistics for one unordered pair of instruments.

    Attributes:
        symbol_a: First symbol (never later than symbol_b in input order)
        symbol_b: Second symbol
        correlation: Pearson correlation of the position-aligned prices
        covariance: Sample covariance (divisor n-1) of the aligned prices
        std_dev_a: Population standard deviation of the full series A
        std_dev_b: Population standard deviation of the full series B

    Representation Invariants:
        - std_dev_a >= 0 and std_dev_b >= 0
    """
    symbol_a: str
    symbol_b: str
    correlation: float
    covariance: float
    std_dev_a: float
    std_dev_b: float

    def __post_init__(self):
        if self.std_dev_a < 0 or self.std_dev_b < 0:
            raise InvalidInputError("standard deviations must be non-negative")

    @property
    def is_self_pair(self) -> bool:
        return self.symbol_a == self.symbol_b

    def to_dict(self) -> dict:
        """Return a JSON-friendly dict of the record."""
        return asdict(self)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"PairStatistics({self.symbol_a}-{self.symbol_b}, "
            f"corr={self.correlation:.3f}, cov={self.covariance:.4f})"
        )


class CorrelationMatrix:
    """
    The complete set of pairwise statistics for a symbol set.

    One physical record is stored per unordered pair, including self-pairs,
    so a matrix over N symbols holds exactly N(N+1)/2 records. Lookups are
    symmetric: get(a, b) and get(b, a) return the same record.

    Representation Invariants:
        - symbols contains no duplicates
        - len(records) == N(N+1)/2
        - every unordered pair of symbols has exactly one record
    """

    def __init__(self, symbols: Sequence[str], records: Iterable[PairStatistics]):
        self._symbols = tuple(symbols)
        self._records = tuple(records)
        self._index: Dict[Tuple[str, str], PairStatistics] = {}
        for record in self._records:
            key = (record.symbol_a, record.symbol_b)
            if key in self._index or key[::-1] in self._index:
                raise InvalidInputError(f"duplicate record for pair {key[0]}-{key[1]}")
            self._index[key] = record
        self._check_invariants()

    def _check_invariants(self):
        """Check representation invariants."""
        n = len(self._symbols)
        if len(set(self._symbols)) != n:
            raise InvalidInputError("symbols must be unique")
        if len(self._records) != n * (n + 1) // 2:
            raise InvalidInputError(
                f"expected {n * (n + 1) // 2} records for {n} symbols, got {len(self._records)}"
            )
        known = set(self._symbols)
        for a, b in self._index:
            if a not in known or b not in known:
                raise InvalidInputError(f"record {a}-{b} references an unknown symbol")

    @property
    def symbols(self) -> Tuple[str, ...]:
        """Return the symbols in enumeration order (read-only)."""
        return self._symbols

    @property
    def records(self) -> Tuple[PairStatistics, ...]:
        """Return the stored records in build order (read-only)."""
        return self._records

    def get(self, symbol_a: str, symbol_b: str) -> PairStatistics:
        """
        Look up the record for a pair in either order.

        Raises:
            KeyError: If either symbol is not part of the matrix
        """
        record = self._index.get((symbol_a, symbol_b))
        if record is None:
            record = self._index.get((symbol_b, symbol_a))
        if record is None:
            raise KeyError(f"no record for pair {symbol_a}-{symbol_b}")
        return record

    def correlation(self, symbol_a: str, symbol_b: str) -> float:
        return self.get(symbol_a, symbol_b).correlation

    def covariance(self, symbol_a: str, symbol_b: str) -> float:
        return self.get(symbol_a, symbol_b).covariance

    def off_diagonal(self) -> List[PairStatistics]:
        """Return records for distinct-symbol pairs only."""
        return [r for r in self._records if not r.is_self_pair]

    def to_frame(self, field: str = "correlation") -> pd.DataFrame:
        """
        Expand the records into a full symmetric N x N DataFrame.

        Args:
            field: "correlation" or "covariance"

        Returns:
            DataFrame indexed and columned by symbol
        """
        if field not in ["correlation", "covariance"]:
            raise ValueError(f"field must be 'correlation' or 'covariance', got {field}")

        frame = pd.DataFrame(
            np.zeros((len(self._symbols), len(self._symbols))),
            index=list(self._symbols),
            columns=list(self._symbols),
        )
        for record in self._records:
            value = getattr(record, field)
            frame.loc[record.symbol_a, record.symbol_b] = value
            frame.loc[record.symbol_b, record.symbol_a] = value
        return frame

    def to_records(self) -> List[dict]:
        """Return all records as plain dicts."""
        return [r.to_dict() for r in self._records]

    def __len__(self) -> int:
        """Return the number of stored records."""
        return len(self._records)

    def __iter__(self) -> Iterator[PairStatistics]:
        return iter(self._records)

    def __repr__(self) -> str:
        """String representation."""
        return f"CorrelationMatrix({len(self._symbols)} symbols, {len(self)} pairs)"
