"""
Request-level orchestration: fetch every series, then build the matrix.

A CorrelationService is recomputed explicitly by its caller whenever the
selected window or instrument set changes. Each recompute fans out one
history fetch per symbol, waits for all of them, and only then runs the
synchronous matrix build. No state is kept between recomputes.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple
from stockcorr.cache import DataCache
from stockcorr.config import FETCH_ERROR_POLICIES, Settings
from stockcorr.data_sources.stocks import StockDataClient, normalize_symbol
from stockcorr.entities import CorrelationMatrix, TimeSeries
from stockcorr.analytics.correlation_matrix import (
    MatrixSummary,
    build_correlation_matrix,
    summarize_matrix,
)
from stockcorr.errors import DataError, InvalidInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorrelationRequest:
    """
    One (instrument set, window) selection.

    Attributes:
        window_minutes: Lookback window passed to the price service
        symbols: Symbols to include, in display order; None means every
            instrument in the catalog
    """
    window_minutes: int
    symbols: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if isinstance(self.window_minutes, bool) or not isinstance(self.window_minutes, int):
            raise InvalidInputError("window_minutes must be an integer")
        if self.window_minutes <= 0:
            raise InvalidInputError("window_minutes must be positive")
        if self.symbols is not None:
            symbols = tuple(normalize_symbol(s) for s in self.symbols)
            object.__setattr__(self, "symbols", tuple(dict.fromkeys(symbols)))


@dataclass(frozen=True)
class CorrelationResult:
    """The matrix produced for one request, with its summary."""
    request: CorrelationRequest
    matrix: CorrelationMatrix
    summary: MatrixSummary
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CorrelationService:
    """
    Fan-out/fan-in driver around the correlation matrix builder.

    Representation Invariants:
        - max_workers > 0
        - on_fetch_error is "abort" or "empty"
    """

    def __init__(
        self,
        client: StockDataClient,
        max_workers: int = 8,
        on_fetch_error: str = "abort"
    ):
        """
        Initialize the service.

        Args:
            client: Price data client
            max_workers: Maximum concurrent history fetches
            on_fetch_error: "abort" to fail the whole request on any fetch
                error, "empty" to treat a failed instrument as an empty series
        """
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")
        if on_fetch_error not in FETCH_ERROR_POLICIES:
            raise ValueError(f"on_fetch_error must be one of {FETCH_ERROR_POLICIES}")

        self.client = client
        self.max_workers = max_workers
        self.on_fetch_error = on_fetch_error

    @classmethod
    def from_settings(cls, settings: Settings) -> "CorrelationService":
        """Build a service and its client from Settings."""
        cache = None
        if settings.use_cache:
            cache = DataCache(settings.cache_dir, max_age_seconds=settings.cache_max_age_seconds)
        client = StockDataClient(settings.api_base, timeout=settings.request_timeout, cache=cache)
        return cls(client, max_workers=settings.max_workers, on_fetch_error=settings.on_fetch_error)

    def resolve_symbols(self, request: CorrelationRequest) -> Tuple[str, ...]:
        """Return the request's symbols, or every catalog symbol in catalog order."""
        if request.symbols is not None:
            return request.symbols
        catalog = self.client.get_instrument_catalog()
        return tuple(dict.fromkeys(normalize_symbol(s) for s in catalog.values()))

    def fetch_all(self, symbols: Tuple[str, ...], window_minutes: int) -> Dict[str, TimeSeries]:
        """
        Fetch every symbol's history concurrently.

        Postconditions:
            - Returned mapping iterates in the order of symbols
            - Under "empty", failed symbols map to an empty TimeSeries

        Raises:
            DataError: Under "abort", the first failure in symbol order
        """
        if not symbols:
            return {}

        workers = min(self.max_workers, len(symbols))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                symbol: executor.submit(self.client.get_price_history, symbol, window_minutes)
                for symbol in symbols
            }

            series_by_symbol = {}
            for symbol, future in futures.items():
                try:
                    series_by_symbol[symbol] = future.result()
                except DataError as e:
                    if self.on_fetch_error == "abort":
                        for pending in futures.values():
                            pending.cancel()
                        raise
                    logger.warning("Fetch failed for %s, using an empty series: %s", symbol, e)
                    series_by_symbol[symbol] = TimeSeries(symbol)

        return series_by_symbol

    def recompute(self, request: CorrelationRequest) -> CorrelationResult:
        """
        Fetch all series for the request and build a fresh matrix.

        Raises:
            DataError: If the catalog fetch fails, or a history fetch fails
                under the "abort" policy
            InvalidInputError: If the request contains malformed symbols
        """
        symbols = self.resolve_symbols(request)
        logger.info(
            "Recomputing correlation matrix for %d symbols over %d minutes",
            len(symbols), request.window_minutes
        )
        series_by_symbol = self.fetch_all(symbols, request.window_minutes)
        matrix = build_correlation_matrix(series_by_symbol)
        return CorrelationResult(
            request=request,
            matrix=matrix,
            summary=summarize_matrix(matrix),
        )
