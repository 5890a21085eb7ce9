#!/usr/bin/env python3
"""
Precache last week's candles.

MarketData's daily quota is the bottleneck of a full scan. Running this
ahead of time (say, the night before) puts the start-of-week candles on disk
so the main run only spends quota on option chains.

Usage:
    precache --ticker-file options.csv
"""
import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

from config import SKIP_LIST
from core.cache import CacheStore
from core.credentials import CredentialError, Credentials
from core.fetcher import DataFetchError
from core.market_hours import previous_weekday, MONDAY
from core.tickers import combine, read_ticker_file
from providers import MarketDataProvider, ProviderParseError

logger = logging.getLogger(__name__)


def precache_candles(provider: MarketDataProvider, tickers: List[str], start_date: str) -> int:
    """Fetch the candle for start_date for every ticker. Returns how many succeeded."""
    loaded = 0
    for symbol in tickers:
        try:
            provider.candle(symbol, start_date)
            loaded += 1
        except (DataFetchError, ProviderParseError) as e:
            logger.error(f"Error getting {symbol} candle for {start_date}: {e}")
    return loaded


def run(args: argparse.Namespace) -> int:
    try:
        credentials = Credentials.from_config()
    except CredentialError as e:
        logger.error(f"Cannot start: {e}")
        return 2

    try:
        tickers = combine(read_ticker_file(args.ticker_file), args.tickers.split(","), SKIP_LIST)
    except OSError as e:
        logger.error(f"Unable to read ticker file {args.ticker_file}: {e}")
        return 2

    cache = CacheStore()
    provider = MarketDataProvider(credentials.marketdata_token, cache=cache, use_cache=True)

    start_date = previous_weekday(MONDAY, date.today()).isoformat()
    logger.info(f"Using start date {start_date} for the previous week's price change")

    loaded = precache_candles(provider, tickers, start_date)
    stats = cache.get_stats()
    print(f"{loaded} of {len(tickers)} candles cached ({stats['size']} entries in {stats['directory']})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Precache start-of-week candles")
    parser.add_argument("--ticker-file", required=True, help="File with one ticker per line (first line is a header)")
    parser.add_argument("--tickers", default="", help="Extra comma separated tickers")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        return run(args)
    except KeyboardInterrupt:
        print("\n\nPrecache interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
