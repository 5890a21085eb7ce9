"""
Finnhub adapter: stock quotes, PE metric, earnings calendar.

Finnhub is the primary quote source. Its 429 carries an absolute reset
timestamp in X-Ratelimit-Reset.
"""
from datetime import date
from typing import Any, Dict, List
import logging

from pydantic import BaseModel

from core.fetcher import RateLimitRule
from core.security import Security
from .base import Provider, ProviderParseError, from_unix

logger = logging.getLogger(__name__)

BASE_URL = "https://finnhub.io/api/v1"

# Preferred PE figures, best first
PE_KEYS = ("peTTM", "peBasicExclExtraTTM", "peExclExtraTTM")


class Quote(BaseModel):
    c: float  # Current price
    t: int  # Quote time, UNIX seconds


class Metrics(BaseModel):
    metric: Dict[str, Any]


class EarningsEntry(BaseModel):
    symbol: str
    date: str


class EarningsCalendar(BaseModel):
    earningsCalendar: List[EarningsEntry]


class FinnhubProvider(Provider):
    """Quotes and fundamentals from finnhub.io."""

    name = "finnhub"
    rate_limit = RateLimitRule(header="X-Ratelimit-Reset", kind='reset')

    def __init__(self, token: str, **kwargs):
        super().__init__(**kwargs)
        self.token = token

    def _authenticate(self, url: str) -> str:
        return f"{url}&token={self.token}"

    def get_quote(self, security: Security) -> None:
        """
        Set security.price from the latest quote.

        A stale or zero quote leaves the price at 0 rather than failing.
        """
        url = f"{BASE_URL}/quote?symbol={security.ticker}"

        def parse(document) -> float:
            quote = self.decode(Quote, document)
            return self.checked_price(security, quote.c, from_unix(quote.t))

        # Only cache quotes that gave us a usable price
        security.price = self.cached_request(url, parse, keep=lambda price: price > 0)

    def get_metrics(self, security: Security) -> None:
        """Set security.pe (0 when Finnhub has no PE for the ticker)."""
        url = f"{BASE_URL}/stock/metric?symbol={security.ticker}&metric=all"

        def parse(document) -> float:
            metrics = self.decode(Metrics, document).metric
            return self._pe(metrics, security.ticker)

        security.pe = self.cached_request(url, parse)

    def _pe(self, metrics: Dict[str, Any], ticker: str) -> float:
        for key in PE_KEYS:
            value = metrics.get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ProviderParseError(self.name, f"{key} for {ticker} is not a number: {value!r}")
            return float(value)
        return 0.0

    def earning_dates(self, start: str, end: str) -> Dict[str, str]:
        """
        Earnings announcement dates between start and end (YYYY-MM-DD).

        Returns:
            {symbol: date}
        """
        # Validates the dates before they go into a URL
        date.fromisoformat(start)
        date.fromisoformat(end)

        url = f"{BASE_URL}/calendar/earnings?from={start}&to={end}"

        def parse(document) -> Dict[str, str]:
            calendar = self.decode(EarningsCalendar, document)
            return {entry.symbol: entry.date for entry in calendar.earningsCalendar}

        dates = self.cached_request(url, parse)
        logger.info(f"Loaded {len(dates)} earnings dates between {start} and {end}")
        return dates
