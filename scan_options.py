#!/usr/bin/env python3
"""
Options Income Scanner

Load option chains and quotes for a list of tickers, compute yield/risk
metrics, and write the puts and calls that pass the screen to CSV.

Usage:
    scan-options --expiration 2024-03-15 --tickers AAPL,MSFT,IBM
    scan-options --expiration 2024-03-15 --ticker-file options.csv
    scan-options --regenerate --ticker-file us_equities.csv
"""
import argparse
import logging
import sys
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from analysis.scanner import build_loader
from analysis.screener import OptionsScreener
from config import SKIP_LIST, data_config
from core.cache import CacheStore
from core.credentials import CredentialError, Credentials
from core.market_hours import (
    in_trading_hours,
    previous_trading_day,
    previous_weekday,
    time_since_close,
    MONDAY,
)
from core.options_chain import OptionsChain
from core.tickers import combine, options_file_for, read_ticker_file, write_ticker_file

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find cash-secured puts and covered calls worth writing")
    parser.add_argument("--expiration", help="Only options up to this expiration (YYYY-MM-DD)")
    parser.add_argument("--tickers", default="", help="Comma separated list of stocks to scan")
    parser.add_argument("--ticker-file", help="File with one ticker per line (first line is a header)")
    parser.add_argument("--skip", default="", help="Comma separated list of stocks to skip")
    parser.add_argument("--regenerate", action="store_true",
                        help="Write the tickers with weekly options to <ticker-file>.options.csv and exit")
    parser.add_argument("--no-cache", action="store_true", help="Always go to the network")
    parser.add_argument("--clear-cache", action="store_true", help="Delete every cached response first")
    parser.add_argument("--no-price-change", action="store_true", help="Skip the weekly price change lookup")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def regenerate(loader, tickers: List[str], ticker_file: str, today: date) -> int:
    """Write the subset of tickers with weekly options next to ticker_file."""
    horizon = (today + timedelta(days=data_config.weekly_horizon_days)).isoformat()
    weekly = loader.find_weekly_tickers(tickers, horizon)
    path = write_ticker_file(options_file_for(ticker_file), weekly)
    print(f"{len(weekly)} of {len(tickers)} tickers have weekly options, written to {path}")
    return 0


def scan(args: argparse.Namespace) -> int:
    if args.regenerate and not args.ticker_file:
        logger.error("--regenerate needs --ticker-file")
        return 2

    if not args.regenerate:
        if not args.expiration:
            logger.error("--expiration is required")
            return 2
        try:
            date.fromisoformat(args.expiration)
        except ValueError:
            logger.error(f"Expiration must be YYYY-MM-DD, got {args.expiration!r}")
            return 2

    try:
        credentials = Credentials.from_config()
    except CredentialError as e:
        logger.error(f"Cannot start: {e}")
        return 2

    tickers = []
    if args.ticker_file:
        try:
            tickers = read_ticker_file(args.ticker_file)
        except OSError as e:
            logger.error(f"Unable to read ticker file {args.ticker_file}: {e}")
            return 2

    skip = args.skip.split(",") + SKIP_LIST
    tickers = combine(tickers, args.tickers.split(","), skip)
    if not tickers:
        logger.error("No tickers to scan: use --tickers and/or --ticker-file")
        return 2

    cache = CacheStore()
    if args.clear_cache:
        cache.clear()

    use_cache = data_config.use_cache and not args.no_cache
    loader = build_loader(credentials, cache=cache, use_cache=use_cache)

    now = datetime.now(timezone.utc)
    today = now.date()

    if args.regenerate:
        return regenerate(loader, tickers, args.ticker_file, today)

    if in_trading_hours(now):
        logger.info("Market is open: quotes and bids may move while the scan runs")
    else:
        logger.info(f"Market closed {time_since_close(now)} ago")

    loader.load_earnings(today.isoformat(), args.expiration)

    change_window = None
    if not args.no_price_change:
        change_window = (previous_weekday(MONDAY, today).isoformat(),
                         previous_trading_day(today).isoformat())

    logger.info(f"Scanning {len(tickers)} tickers for options up to {args.expiration}")
    securities = loader.load_securities(tickers, args.expiration, change_window)

    summary = OptionsChain.from_securities(securities).summary()
    logger.info(f"Loaded {summary['puts']} puts and {summary['calls']} calls across "
                f"{summary['tickers']} tickers and {summary['expirations']} expirations "
                f"(median bid/strike {summary['median_bid_strike_ratio']:.2f}%)")

    screener = OptionsScreener()
    puts = screener.screen_puts(securities, args.expiration)
    calls = screener.screen_calls(securities, args.expiration)
    screener.write_csv(puts, f"options_puts_{args.expiration}.csv")
    screener.write_csv(calls, f"options_calls_{args.expiration}.csv")

    print(f"{len(securities)} of {len(tickers)} tickers loaded: "
          f"{len(puts)} puts, {len(calls)} calls pass the screen")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        return scan(args)
    except KeyboardInterrupt:
        print("\n\nScanning interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
