"""
FastAPI JSON interface for the dashboard.

This module exposes the catalog, per-instrument price windows, and the
pairwise correlation matrix. Rendering is left to the dashboard frontend;
records carry the strength label and legend band it colours by.
"""

from datetime import datetime
from typing import Dict, List, Optional
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from stockcorr.analytics.correlation_matrix import classify_band, classify_strength
from stockcorr.analytics.price_summary import summarize_prices
from stockcorr.config import Settings, load_settings
from stockcorr.errors import DataError, InvalidInputError
from stockcorr.logging_utils import setup_logger
from stockcorr.service import CorrelationRequest, CorrelationService


class CatalogResponse(BaseModel):
    stocks: Dict[str, str]


class PricePointModel(BaseModel):
    price: float
    observed_at: datetime


class PriceSummaryModel(BaseModel):
    count: int
    average_price: float
    price_change: float
    price_change_percent: float


class LatestPriceResponse(BaseModel):
    symbol: str
    price: float
    observed_at: datetime


class HistoryResponse(BaseModel):
    symbol: str
    minutes: int
    prices: List[PricePointModel]
    summary: PriceSummaryModel


class PairStatisticsModel(BaseModel):
    symbol_a: str
    symbol_b: str
    correlation: float
    covariance: float
    std_dev_a: float
    std_dev_b: float
    strength: str
    band: str


class MatrixSummaryModel(BaseModel):
    strong_count: int
    average_abs_correlation: float
    total_pairs: int


class CorrelationResponse(BaseModel):
    minutes: int
    symbols: List[str]
    records: List[PairStatisticsModel]
    summary: MatrixSummaryModel
    computed_at: datetime


def _check_window(settings: Settings, minutes: Optional[int]) -> int:
    window = settings.default_window_minutes if minutes is None else minutes
    if window not in settings.window_choices:
        raise HTTPException(
            status_code=400,
            detail=f"minutes must be one of {settings.window_choices}"
        )
    return window


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[CorrelationService] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (loaded from config/settings.yaml if omitted)
        service: Pre-built service, mainly for tests
    """
    settings = settings if settings is not None else load_settings()
    service = service if service is not None else CorrelationService.from_settings(settings)
    setup_logger("stockcorr", level=settings.log_level)

    app = FastAPI(title="Stock Correlation Dashboard")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:8000"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/api/stocks", response_model=CatalogResponse)
    def list_stocks():
        """Return the instrument catalog."""
        try:
            return {"stocks": service.client.get_instrument_catalog()}
        except DataError as e:
            raise HTTPException(status_code=502, detail=str(e))

    @app.get("/api/stocks/{symbol}/latest", response_model=LatestPriceResponse)
    def latest_price(symbol: str):
        """Return the most recent price for one instrument."""
        try:
            point = service.client.get_latest_price(symbol)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except DataError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {
            "symbol": symbol.strip().upper(),
            "price": point.price,
            "observed_at": point.observed_at,
        }

    @app.get("/api/stocks/{symbol}", response_model=HistoryResponse)
    def stock_history(symbol: str, minutes: Optional[int] = Query(None)):
        """Return one instrument's price window and its headline figures."""
        window = _check_window(settings, minutes)
        try:
            series = service.client.get_price_history(symbol, window)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except DataError as e:
            raise HTTPException(status_code=502, detail=str(e))

        summary = summarize_prices(series)
        return {
            "symbol": series.symbol,
            "minutes": window,
            "prices": [
                {"price": float(price), "observed_at": observed_at}
                for observed_at, price in series.to_series().items()
            ],
            "summary": {
                "count": summary.count,
                "average_price": summary.average_price,
                "price_change": summary.price_change,
                "price_change_percent": summary.price_change_percent,
            },
        }

    @app.get("/api/correlation", response_model=CorrelationResponse)
    def correlation_matrix(
        minutes: Optional[int] = Query(None),
        symbols: Optional[str] = Query(None, description="Comma-separated symbols")
    ):
        """Recompute the pairwise matrix for the selected window and symbols."""
        window = _check_window(settings, minutes)
        symbol_list = None
        if symbols:
            symbol_list = [s for s in (part.strip() for part in symbols.split(",")) if s]
            if len(symbol_list) > 50:
                raise HTTPException(status_code=400, detail="Too many symbols (max 50)")

        try:
            request = CorrelationRequest(window_minutes=window, symbols=symbol_list)
            result = service.recompute(request)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except DataError as e:
            raise HTTPException(status_code=502, detail=str(e))

        return {
            "minutes": window,
            "symbols": list(result.matrix.symbols),
            "records": [
                {
                    **record.to_dict(),
                    "strength": classify_strength(record.correlation),
                    "band": classify_band(record.correlation),
                }
                for record in result.matrix
            ],
            "summary": {
                "strong_count": result.summary.strong_count,
                "average_abs_correlation": result.summary.average_abs_correlation,
                "total_pairs": result.summary.total_pairs,
            },
            "computed_at": result.computed_at,
        }

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
