"""
Tests for the stock data client and the disk cache.

Tests cover:
- Catalog, history and latest-price parsing (mocked HTTP session)
- Error mapping (HTTP failures, malformed payloads)
- Cache hit/miss/expiry behavior
"""

import os
import tempfile
import time
from pathlib import Path
from unittest.mock import MagicMock
import pytest
import pandas as pd
import requests
from stockcorr.cache import DataCache
from stockcorr.data_sources.stocks import (
    StockDataClient,
    normalize_symbol,
    parse_price_point,
)
from stockcorr.entities import TimeSeries
from stockcorr.errors import CacheError, DataError, InvalidInputError

API_BASE = "http://example.test/evaluation-service"


def mock_session(payload=None, exc=None, status_error=None):
    """Build a requests.Session stand-in returning payload from .json()."""
    response = MagicMock()
    response.json.return_value = payload
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    session = MagicMock(spec=requests.Session)
    if exc is not None:
        session.get.side_effect = exc
    else:
        session.get.return_value = response
    return session


class TestNormalizeSymbol:
    """Tests for symbol validation."""

    @pytest.mark.parametrize("raw,expected", [
        ("aapl", "AAPL"), (" nvda ", "NVDA"), ("BRK.A", "BRK.A"), ("bf-b", "BF-B"),
    ])
    def test_valid_symbols(self, raw, expected):
        """Test cleaning of valid tickers."""
        assert normalize_symbol(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "AAPL/../x", "TOOLONGSYMBOL", None])
    def test_invalid_symbols(self, raw):
        """Test rejection of malformed tickers."""
        with pytest.raises(InvalidInputError):
            normalize_symbol(raw)


class TestParsePricePoint:
    """Tests for parse_price_point."""

    def test_parse_valid(self):
        """Test parsing a service price object."""
        point = parse_price_point({
            "price": 231.95,
            "lastUpdatedAt": "2025-05-08T04:11:42.465706306Z",
        })
        assert point.price == 231.95
        assert point.observed_at == pd.Timestamp("2025-05-08T04:11:42.465706306Z")

    def test_parse_missing_field_raises(self):
        """Test that a missing field is a DataError."""
        with pytest.raises(DataError, match="missing field"):
            parse_price_point({"price": 1.0})

    def test_parse_bad_price_raises(self):
        """Test that a non-numeric price is a DataError."""
        with pytest.raises(DataError):
            parse_price_point({"price": "n/a", "lastUpdatedAt": "2025-05-08T04:11:42Z"})

    def test_parse_bad_timestamp_raises(self):
        """Test that an unparseable timestamp is a DataError."""
        with pytest.raises(DataError):
            parse_price_point({"price": 1.0, "lastUpdatedAt": "yesterday-ish"})

    def test_parse_non_dict_raises(self):
        """Test that a non-object payload is a DataError."""
        with pytest.raises(DataError):
            parse_price_point([1.0])


class TestStockDataClient:
    """Tests for StockDataClient with a mocked session."""

    def test_get_catalog(self):
        """Test fetching the instrument catalog."""
        session = mock_session({"stocks": {"Apple Inc.": "AAPL", "Nvidia Corporation": "NVDA"}})
        client = StockDataClient(API_BASE, session=session)

        catalog = client.get_instrument_catalog()

        assert catalog == {"Apple Inc.": "AAPL", "Nvidia Corporation": "NVDA"}
        assert list(catalog.values()) == ["AAPL", "NVDA"]
        session.get.assert_called_once_with(f"{API_BASE}/stocks", params=None, timeout=10.0)

    def test_get_catalog_malformed_raises(self):
        """Test that a payload without 'stocks' is a DataError."""
        client = StockDataClient(API_BASE, session=mock_session({"tickers": []}))
        with pytest.raises(DataError, match="stocks"):
            client.get_instrument_catalog()

    def test_get_price_history_sorted(self):
        """Test that history is parsed and sorted oldest first."""
        payload = [
            {"price": 666.66, "lastUpdatedAt": "2025-05-08T04:12:42Z"},
            {"price": 212.95, "lastUpdatedAt": "2025-05-08T04:11:42Z"},
        ]
        session = mock_session(payload)
        client = StockDataClient(API_BASE + "/", session=session)

        series = client.get_price_history("nvda", 30)

        assert isinstance(series, TimeSeries)
        assert series.symbol == "NVDA"
        assert list(series.prices()) == [212.95, 666.66]
        session.get.assert_called_once_with(
            f"{API_BASE}/stocks/NVDA", params={"minutes": 30}, timeout=10.0
        )

    def test_get_price_history_empty(self):
        """Test that an empty window gives an empty series."""
        client = StockDataClient(API_BASE, session=mock_session([]))
        series = client.get_price_history("AAPL", 10)
        assert len(series) == 0

    @pytest.mark.parametrize("minutes", [0, -5, 2.5, True])
    def test_get_price_history_invalid_window_raises(self, minutes):
        """Test that the window must be a positive integer."""
        client = StockDataClient(API_BASE, session=mock_session([]))
        with pytest.raises(InvalidInputError, match="window_minutes"):
            client.get_price_history("AAPL", minutes)

    def test_get_price_history_not_list_raises(self):
        """Test that a non-list history payload is a DataError."""
        client = StockDataClient(API_BASE, session=mock_session({"stock": {}}))
        with pytest.raises(DataError, match="not a list"):
            client.get_price_history("AAPL", 10)

    def test_get_latest_price(self):
        """Test fetching the latest price."""
        session = mock_session({
            "stock": {"price": 8.52, "lastUpdatedAt": "2025-05-08T04:26:27Z"}
        })
        client = StockDataClient(API_BASE, session=session)

        point = client.get_latest_price("PYPL")

        assert point.price == 8.52
        session.get.assert_called_once_with(f"{API_BASE}/stocks/PYPL", params=None, timeout=10.0)

    def test_get_latest_price_malformed_raises(self):
        """Test that a payload without 'stock' is a DataError."""
        client = StockDataClient(API_BASE, session=mock_session({"price": 1.0}))
        with pytest.raises(DataError, match="stock"):
            client.get_latest_price("PYPL")

    def test_network_error_raises_data_error(self):
        """Test that connection failures are wrapped in DataError."""
        session = mock_session(exc=requests.ConnectionError("refused"))
        client = StockDataClient(API_BASE, session=session)
        with pytest.raises(DataError, match="refused"):
            client.get_instrument_catalog()

    def test_http_error_raises_data_error(self):
        """Test that HTTP error statuses are wrapped in DataError."""
        session = mock_session(payload={}, status_error=requests.HTTPError("503 Server Error"))
        client = StockDataClient(API_BASE, session=session)
        with pytest.raises(DataError, match="503"):
            client.get_price_history("AAPL", 10)

    def test_invalid_json_raises_data_error(self):
        """Test that an unparseable body is a DataError."""
        session = mock_session()
        session.get.return_value.json.side_effect = ValueError("Expecting value")
        client = StockDataClient(API_BASE, session=session)
        with pytest.raises(DataError, match="not valid JSON"):
            client.get_instrument_catalog()

    def test_invalid_timeout_raises(self):
        """Test that the timeout must be positive."""
        with pytest.raises(ValueError, match="timeout must be positive"):
            StockDataClient(API_BASE, timeout=0)

    def test_history_cache_hit_skips_request(self):
        """Test that a cached history is served without a request."""
        with tempfile.TemporaryDirectory() as tmpdir:
            payload = [{"price": 10.0, "lastUpdatedAt": "2025-05-08T04:11:42Z"}]
            session = mock_session(payload)
            client = StockDataClient(API_BASE, session=session, cache=DataCache(tmpdir))

            first = client.get_price_history("AAPL", 30)
            second = client.get_price_history("AAPL", 30)

            assert session.get.call_count == 1
            assert list(second.prices()) == list(first.prices())

    def test_history_cache_write_failure_returns_series(self, caplog):
        """Test that a failed cache write still returns the fetched series."""
        cache = MagicMock(spec=DataCache)
        cache.get.return_value = None
        cache.set.side_effect = CacheError("disk full")
        payload = [{"price": 10.0, "lastUpdatedAt": "2025-05-08T04:11:42Z"}]
        client = StockDataClient(API_BASE, session=mock_session(payload), cache=cache)

        with caplog.at_level("WARNING", logger="stockcorr.data_sources.stocks"):
            series = client.get_price_history("AAPL", 30)

        assert list(series.prices()) == [10.0]
        cache.set.assert_called_once()
        assert "disk full" in caplog.text

    def test_history_cache_keyed_by_window(self):
        """Test that different windows are cached separately."""
        with tempfile.TemporaryDirectory() as tmpdir:
            session = mock_session([])
            client = StockDataClient(API_BASE, session=session, cache=DataCache(tmpdir))

            client.get_price_history("AAPL", 10)
            client.get_price_history("AAPL", 30)

            assert session.get.call_count == 2


class TestDataCache:
    """Tests for DataCache class."""

    def test_cache_init_creates_dir(self):
        """Test that cache creates directory if it doesn't exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            cache_dir = Path(tmpdir) / "test_cache"
            DataCache(str(cache_dir))
            assert cache_dir.is_dir()

    def test_cache_set_and_get(self):
        """Test storing and retrieving a series."""
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = DataCache(tmpdir)
            query_params = {"symbol": "AAPL", "minutes": 30}
            series = TimeSeries.from_prices("AAPL", [1.0, 2.0, 3.0])

            cache.set(query_params, series)
            retrieved = cache.get(query_params)

            assert retrieved is not None
            assert retrieved.symbol == "AAPL"
            assert list(retrieved.prices()) == [1.0, 2.0, 3.0]

    def test_cache_miss_returns_none(self):
        """Test that cache miss returns None."""
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = DataCache(tmpdir)
            assert cache.get({"symbol": "AAPL", "minutes": 30}) is None

    def test_cache_key_ignores_param_order(self):
        """Test that parameter order does not change the key."""
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = DataCache(tmpdir)
            cache.set({"symbol": "AAPL", "minutes": 30}, "value")
            assert cache.get({"minutes": 30, "symbol": "AAPL"}) == "value"

    def test_cache_exists_and_clear(self):
        """Test exists() and clear()."""
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = DataCache(tmpdir)
            for i in range(3):
                cache.set({"symbol": f"TICK{i}"}, i)

            assert cache.exists({"symbol": "TICK0"})
            cache.clear()
            assert not cache.exists({"symbol": "TICK0"})
            assert list(Path(tmpdir).glob("*.pkl")) == []

    def test_cache_expired_entry_is_miss(self):
        """Test that entries older than max_age_seconds are ignored."""
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = DataCache(tmpdir, max_age_seconds=5)
            query_params = {"symbol": "AAPL", "minutes": 10}
            cache.set(query_params, "stale")

            cache_file = next(Path(tmpdir).glob("*.pkl"))
            old = time.time() - 60
            os.utime(cache_file, (old, old))

            assert cache.get(query_params) is None
            assert not cache.exists(query_params)

    def test_cache_without_expiry(self):
        """Test that max_age_seconds=None never expires."""
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = DataCache(tmpdir, max_age_seconds=None)
            cache.set({"k": 1}, "v")
            cache_file = next(Path(tmpdir).glob("*.pkl"))
            os.utime(cache_file, (0, 0))
            assert cache.get({"k": 1}) == "v"

    def test_cache_corrupt_file_raises(self):
        """Test that an unreadable entry raises CacheError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = DataCache(tmpdir)
            cache.set({"k": 1}, "v")
            cache_file = next(Path(tmpdir).glob("*.pkl"))
            cache_file.write_bytes(b"not a pickle")

            with pytest.raises(CacheError, match="Failed to read"):
                cache.get({"k": 1})

    def test_cache_invalid_max_age_raises(self):
        """Test that max_age_seconds must be positive."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(ValueError):
                DataCache(tmpdir, max_age_seconds=0)
