"""
Security loader - the per-ticker pipeline and the batch loop.

For each ticker, one at a time:
1. Fetch the options chain (single provider, no failover)
2. Fetch the quote (Finnhub or TradeKing, with failover)
3. Fetch the PE metric (same failover)
4. Attach the earnings date and weekly price change
5. Compute the derived metrics

Tickers are processed strictly in sequence. The providers rate-limit per API
key, so fetching in parallel would only hit the limits sooner.
"""
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple
import logging

from core.cache import CacheStore
from core.credentials import Credentials
from core.failover import FailoverState, INITIAL_STATE, QuoteFailover, state_after
from core.fetcher import DataFetchError, RateLimitedFetcher
from core.security import EnrichedSecurity, Security
from providers import (
    FinnhubProvider,
    MarketDataProvider,
    ProviderParseError,
    TradeKingProvider,
)
from .metrics import enrich

logger = logging.getLogger(__name__)

# Days between expirations: 7 for weeklies, 8 across a Friday holiday
MAX_WEEKLY_PERIOD = 8


class SecurityLoader:
    """
    Load fully enriched securities for a list of tickers.

    A failure for one ticker is logged and that ticker skipped; the batch
    carries on with the next one.
    """

    def __init__(self, options: MarketDataProvider,
                 quotes: QuoteFailover,
                 earnings: Optional[FinnhubProvider] = None,
                 now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.options = options
        self.quotes = quotes
        self.earnings = earnings
        self.now = now
        self.earnings_dates: Dict[str, str] = {}

    def load_earnings(self, start: str, end: str) -> None:
        """Fetch the earnings calendar once for the whole run."""
        if self.earnings is None:
            return

        try:
            self.earnings_dates = self.earnings.earning_dates(start, end)
        except (DataFetchError, ProviderParseError) as e:
            logger.error(f"Could not load earnings dates, continuing without them: {e}")
            self.earnings_dates = {}

    def _price_change(self, ticker: str, window: Tuple[str, str]) -> Optional[float]:
        start, end = window
        try:
            return self.options.pct_change(ticker, start, end)
        except (DataFetchError, ProviderParseError) as e:
            logger.warning(f"No price change for {ticker} ({start} to {end}): {e}")
            return None

    def load_security(self, ticker: str, expiration: str,
                      state: FailoverState = INITIAL_STATE,
                      change_window: Optional[Tuple[str, str]] = None,
                      ) -> Tuple[EnrichedSecurity, FailoverState]:
        """
        Run the pipeline for one ticker.

        Args:
            ticker: Stock symbol
            expiration: Latest expiration to load, YYYY-MM-DD
            state: Current quote provider preference
            change_window: (start, end) dates for the price change, or None

        Returns:
            (enriched security, updated provider preference)

        Raises:
            DataFetchError: a fetch failed for good
            ProviderParseError: a provider sent something we can't read

            Errors from the quote providers carry the preference reached so
            far as failover_state.
        """
        security = Security(ticker=ticker)

        self.options.get_options(security, expiration)
        if not security.has_options():
            # Not usable downstream; don't spend quote quota on it
            return enrich(security, self.now()), state

        _, state = self.quotes.fetch(state, lambda provider: provider.get_quote(security))
        _, state = self.quotes.fetch(state, lambda provider: provider.get_metrics(security))

        security.earnings_date = self.earnings_dates.get(ticker)

        if change_window is not None:
            security.price_change_pct = self._price_change(ticker, change_window)

        return enrich(security, self.now()), state

    def load_securities(self, tickers: List[str], expiration: str,
                        change_window: Optional[Tuple[str, str]] = None,
                        state: FailoverState = INITIAL_STATE) -> List[EnrichedSecurity]:
        """
        Load every ticker, skipping failures and securities without options.

        Returns:
            Enriched securities in ticker order
        """
        securities = []

        for ticker in tickers:
            logger.info(f"Loading {ticker}")
            try:
                enriched, state = self.load_security(ticker, expiration, state, change_window)
            except (DataFetchError, ProviderParseError) as e:
                state = state_after(e, state)
                logger.error(f"Error getting security data for {ticker}: {e}")
                continue

            if not enriched.has_options():
                logger.info(f"{ticker} has no options up to {expiration}")
                continue

            securities.append(enriched)

        logger.info(f"{len(securities)} of {len(tickers)} tickers loaded")
        return securities

    def find_weekly_tickers(self, tickers: List[str], latest_expiration: str) -> List[str]:
        """
        Tickers that have weekly (or more frequent) options.

        Only the options chain is loaded, no quotes. A holiday Friday moves
        expiration to Thursday, so a period of up to 8 days still counts
        as weekly.

        Args:
            tickers: Candidate symbols
            latest_expiration: Load expirations up to this date (YYYY-MM-DD);
                far enough out to cover MIN_EXPIRATIONS_FOR_PERIOD of them

        Returns:
            Matching tickers, in input order
        """
        weekly = []

        for ticker in tickers:
            security = Security(ticker=ticker)
            try:
                self.options.get_options(security, latest_expiration)
            except (DataFetchError, ProviderParseError) as e:
                logger.error(f"Error getting options for {ticker}: {e}")
                continue

            if not security.has_options():
                logger.info(f"{ticker} does not have options")
                continue

            try:
                period = security.expiration_period()
            except ValueError as e:
                logger.info(str(e))
                continue

            if period > MAX_WEEKLY_PERIOD:
                logger.info(f"{ticker} expiration period is {period} days")
                continue

            weekly.append(ticker)

        logger.info(f"{len(weekly)} of {len(tickers)} tickers have weekly options")
        return weekly


def build_loader(credentials: Credentials,
                 fetcher: Optional[RateLimitedFetcher] = None,
                 cache: Optional[CacheStore] = None,
                 use_cache: Optional[bool] = None) -> SecurityLoader:
    """Wire up the providers behind one shared fetcher and cache."""
    fetcher = fetcher or RateLimitedFetcher()
    cache = cache or CacheStore()
    shared = dict(fetcher=fetcher, cache=cache, use_cache=use_cache)

    finnhub = FinnhubProvider(credentials.finnhub_token, **shared)
    tradeking = TradeKingProvider(credentials.tradeking_consumer_key,
                                  credentials.tradeking_oauth_token, **shared)
    marketdata = MarketDataProvider(credentials.marketdata_token, **shared)

    return SecurityLoader(
        options=marketdata,
        quotes=QuoteFailover(primary=finnhub, secondary=tradeking),
        earnings=finnhub,
    )
