"""
Stock catalog and price history download.

This module talks to the remote evaluation service that supplies the
instrument catalog and per-instrument price windows. It only fetches and
parses; all statistics happen in stockcorr.analytics.

Endpoints:
    GET {base}/stocks                       -> {"stocks": {name: ticker}}
    GET {base}/stocks/{ticker}?minutes=N    -> [{"price", "lastUpdatedAt"}, ...]
    GET {base}/stocks/{ticker}              -> {"stock": {"price", "lastUpdatedAt"}}
"""

import logging
import re
from typing import Any, Dict, Optional
import pandas as pd
import requests
from stockcorr.cache import DataCache
from stockcorr.entities import PricePoint, TimeSeries
from stockcorr.errors import CacheError, DataError, InvalidInputError

logger = logging.getLogger(__name__)

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9.\-]{1,10}$")


def normalize_symbol(symbol: str) -> str:
    """
    Clean and validate a ticker symbol.

    Allows alphanumerics, dots (BRK.A) and hyphens (BF-B), up to 10 characters.

    Raises:
        InvalidInputError: If the symbol is blank or malformed
    """
    if not isinstance(symbol, str):
        raise InvalidInputError(f"Invalid ticker: {symbol!r}")
    cleaned = symbol.strip().upper()
    if not SYMBOL_PATTERN.match(cleaned):
        raise InvalidInputError(f"Invalid ticker format: {symbol!r}")
    return cleaned


def parse_price_point(payload: Any) -> PricePoint:
    """
    Parse one {"price", "lastUpdatedAt"} object.

    Raises:
        DataError: If a field is missing or malformed
    """
    if not isinstance(payload, dict):
        raise DataError(f"expected a price object, got {type(payload).__name__}")
    try:
        observed_at = pd.to_datetime(payload["lastUpdatedAt"], utc=True)
        if observed_at is None or pd.isna(observed_at):
            raise DataError(f"price object has no timestamp: {payload!r}")
        return PricePoint(price=payload["price"], observed_at=observed_at)
    except KeyError as e:
        raise DataError(f"price object is missing field {e}") from e
    except (TypeError, ValueError) as e:
        raise DataError(f"malformed price object {payload!r}: {e}") from e


class StockDataClient:
    """
    HTTP client for the stock price service.

    Representation Invariants:
        - api_base has no trailing slash
        - timeout > 0
    """

    def __init__(
        self,
        api_base: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        cache: Optional[DataCache] = None
    ):
        """
        Initialize the client.

        Args:
            api_base: Base URL of the service, e.g. http://host/evaluation-service
            timeout: Per-request timeout in seconds
            session: Optional requests.Session (one is created if omitted)
            cache: Optional DataCache for price histories
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.cache = cache

    def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        url = f"{self.api_base}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise DataError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise DataError(f"Response from {url} is not valid JSON: {e}") from e

    def get_instrument_catalog(self) -> Dict[str, str]:
        """
        Fetch the instrument catalog.

        Returns:
            Mapping from display name to ticker symbol, in service order

        Raises:
            DataError: If the request fails or the payload is malformed
        """
        payload = self._get_json("/stocks")
        stocks = payload.get("stocks") if isinstance(payload, dict) else None
        if not isinstance(stocks, dict):
            raise DataError("catalog response has no 'stocks' mapping")

        catalog = {}
        for name, symbol in stocks.items():
            if not isinstance(symbol, str):
                raise DataError(f"catalog entry {name!r} has a non-string symbol")
            catalog[str(name)] = symbol
        logger.debug("Fetched catalog with %d instruments", len(catalog))
        return catalog

    def get_price_history(self, symbol: str, window_minutes: int) -> TimeSeries:
        """
        Fetch the price observations for the last window_minutes.

        Preconditions:
            - window_minutes > 0

        Postconditions:
            - Returns a TimeSeries sorted oldest first (may be empty)

        Raises:
            InvalidInputError: If the symbol or window is invalid
            DataError: If the request fails or the payload is malformed
        """
        symbol = normalize_symbol(symbol)
        if isinstance(window_minutes, bool) or not isinstance(window_minutes, int) or window_minutes <= 0:
            raise InvalidInputError(f"window_minutes must be a positive integer, got {window_minutes!r}")

        query_params = {"symbol": symbol, "minutes": window_minutes}
        if self.cache is not None:
            try:
                cached = self.cache.get(query_params)
            except CacheError as e:
                logger.warning("Ignoring unreadable cache entry for %s: %s", symbol, e)
                cached = None
            if cached is not None:
                return cached

        payload = self._get_json(f"/stocks/{symbol}", params={"minutes": window_minutes})
        if not isinstance(payload, list):
            raise DataError(f"history response for {symbol} is not a list")

        points = sorted((parse_price_point(item) for item in payload), key=lambda p: p.observed_at)
        series = TimeSeries(symbol, points)
        logger.debug("Fetched %d observations for %s over %d minutes", len(series), symbol, window_minutes)

        if self.cache is not None:
            try:
                self.cache.set(query_params, series)
            except CacheError as e:
                logger.warning("Could not cache history for %s: %s", symbol, e)
        return series

    def get_latest_price(self, symbol: str) -> PricePoint:
        """
        Fetch the most recent price for a symbol.

        Raises:
            InvalidInputError: If the symbol is invalid
            DataError: If the request fails or the payload is malformed
        """
        symbol = normalize_symbol(symbol)
        payload = self._get_json(f"/stocks/{symbol}")
        if not isinstance(payload, dict) or "stock" not in payload:
            raise DataError(f"price response for {symbol} has no 'stock' object")
        return parse_price_point(payload["stock"])
