"""
Command-line interface for the correlation engine.

This module provides CLI commands for listing the instrument catalog,
showing the latest price, summarizing one instrument's price window, and
printing the pairwise correlation matrix.
"""

import argparse
import sys
from typing import List, Optional
import pandas as pd

from stockcorr.analytics.correlation_matrix import classify_strength, strongest_pairs
from stockcorr.analytics.price_summary import summarize_prices
from stockcorr.config import FETCH_ERROR_POLICIES, Settings, load_settings
from stockcorr.errors import StockCorrError
from stockcorr.logging_utils import setup_logger
from stockcorr.service import CorrelationRequest, CorrelationService


def _parse_symbols(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    return [s for s in (part.strip() for part in raw.split(",")) if s]


def _check_window(settings: Settings, minutes: Optional[int]) -> int:
    window = settings.default_window_minutes if minutes is None else minutes
    if window <= 0:
        raise StockCorrError(f"--minutes must be positive, got {window}")
    return window


def catalog_command(args, settings: Settings):
    """List the instrument catalog."""
    service = CorrelationService.from_settings(settings)
    catalog = service.client.get_instrument_catalog()

    print(f"{len(catalog)} instruments:")
    for name, symbol in catalog.items():
        print(f"  {symbol:<8} {name}")


def price_command(args, settings: Settings):
    """Print the latest price of one instrument."""
    service = CorrelationService.from_settings(settings)
    point = service.client.get_latest_price(args.symbol)

    print(f"{args.symbol.strip().upper()}: ${point.price:.2f} (as of {point.observed_at:%Y-%m-%d %H:%M:%S})")


def history_command(args, settings: Settings):
    """Summarize one instrument's price window."""
    window = _check_window(settings, args.minutes)
    service = CorrelationService.from_settings(settings)

    print(f"Fetching {args.symbol} over the last {window} minutes...")
    series = service.client.get_price_history(args.symbol, window)
    summary = summarize_prices(series)

    if summary.count == 0:
        print("  No observations in window")
        return

    sign = "+" if summary.price_change >= 0 else ""
    print(f"  Observations: {summary.count}")
    print(f"  Latest price: ${series.points[-1].price:.2f}")
    print(f"  Change: {sign}${summary.price_change:.2f} ({summary.price_change_percent:.2f}%)")
    print(f"  Average price: ${summary.average_price:.2f}")


def matrix_command(args, settings: Settings):
    """Compute and print the pairwise matrix."""
    window = _check_window(settings, args.minutes)
    if args.on_fetch_error:
        settings.on_fetch_error = args.on_fetch_error

    service = CorrelationService.from_settings(settings)
    request = CorrelationRequest(window_minutes=window, symbols=_parse_symbols(args.symbols))

    print(f"Computing {args.field} matrix over the last {window} minutes...")
    result = service.recompute(request)
    matrix = result.matrix

    if not matrix.symbols:
        print("  No instruments to compare")
        return

    with pd.option_context("display.width", 200, "display.max_columns", None):
        print(matrix.to_frame(args.field).round(3).to_string())

    summary = result.summary
    print(f"\n  Strong correlations: {summary.strong_count}")
    print(f"  Avg |correlation|: {summary.average_abs_correlation:.3f}")
    print(f"  Total pairs: {summary.total_pairs}")

    top = strongest_pairs(matrix, n=args.top)
    if top:
        print("\n  Strongest pairs:")
        for pair in top:
            print(
                f"    {pair.symbol_a}-{pair.symbol_b}: {pair.correlation:+.3f} "
                f"({classify_strength(pair.correlation)})"
            )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stock Correlation Dashboard",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--config", help="Path to a settings YAML file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("catalog", help="List available instruments")

    price_parser = subparsers.add_parser("price", help="Show an instrument's latest price")
    price_parser.add_argument("symbol", help="Ticker symbol")

    history_parser = subparsers.add_parser("history", help="Summarize one instrument's prices")
    history_parser.add_argument("symbol", help="Ticker symbol")
    history_parser.add_argument("--minutes", type=int, help="Lookback window in minutes")

    matrix_parser = subparsers.add_parser("matrix", help="Print the pairwise correlation matrix")
    matrix_parser.add_argument("--minutes", type=int, help="Lookback window in minutes")
    matrix_parser.add_argument("--symbols", help="Comma-separated symbols (default: whole catalog)")
    matrix_parser.add_argument(
        "--field", choices=["correlation", "covariance"], default="correlation",
        help="Statistic to tabulate (default: correlation)"
    )
    matrix_parser.add_argument(
        "--on-fetch-error", choices=list(FETCH_ERROR_POLICIES),
        help="Abort the matrix or treat the instrument as empty when a fetch fails"
    )
    matrix_parser.add_argument("--top", type=int, default=5, help="Strongest pairs to list")

    return parser


COMMANDS = {
    "catalog": catalog_command,
    "price": price_command,
    "history": history_command,
    "matrix": matrix_command,
}


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        sys.exit(1)

    try:
        settings = load_settings(args.config)
        setup_logger("stockcorr", level="DEBUG" if args.verbose else settings.log_level)
        COMMANDS[args.command](args, settings)
    except StockCorrError as e:
        print(f"\n✗ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
