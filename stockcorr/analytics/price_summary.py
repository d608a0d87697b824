"""Headline figures for a single instrument's price chart."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from stockcorr.entities import TimeSeries
from stockcorr.analytics.statistics import mean


@dataclass(frozen=True)
class PriceSummary:
    """
    Summary of one instrument over the requested window.

    Attributes:
        symbol: Ticker symbol
        count: Number of observations
        average_price: Mean price (0.0 for an empty series)
        price_change: Last price minus first price
        price_change_percent: price_change as a percentage of the first price
        first_observed_at: Timestamp of the oldest observation, if any
        last_observed_at: Timestamp of the newest observation, if any
    """
    symbol: str
    count: int
    average_price: float
    price_change: float
    price_change_percent: float
    first_observed_at: Optional[datetime]
    last_observed_at: Optional[datetime]


def summarize_prices(series: TimeSeries) -> PriceSummary:
    """
    Summarize a price series for display.

    Change figures are 0.0 with fewer than two observations; the percentage
    is also 0.0 when the first price is zero.
    """
    points = series.points
    if not points:
        return PriceSummary(series.symbol, 0, 0.0, 0.0, 0.0, None, None)

    first, last = points[0], points[-1]
    change = last.price - first.price if len(points) > 1 else 0.0
    change_percent = 0.0
    if len(points) > 1 and first.price != 0:
        change_percent = change / first.price * 100

    return PriceSummary(
        symbol=series.symbol,
        count=len(points),
        average_price=mean(series),
        price_change=change,
        price_change_percent=change_percent,
        first_observed_at=first.observed_at,
        last_observed_at=last.observed_at,
    )
