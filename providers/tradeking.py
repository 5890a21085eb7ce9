"""
TradeKing (Ally Invest) adapter: extended stock quotes.

The secondary quote source. Requests carry OAuth 1.0 query parameters and
a 429 carries a relative wait in X-Ratelimit-Retry-After. Anything over
five seconds is treated as a hard throttle so we fail over to Finnhub
instead of sitting on it.
"""
from datetime import datetime, timezone
from typing import Optional, Union
import logging
import time

from pydantic import BaseModel, Field, field_validator

from core.fetcher import RateLimitRule
from core.security import Security
from .base import Provider, ProviderParseError

logger = logging.getLogger(__name__)

BASE_URL = "https://api.tradeking.com/v1"


class ExtQuote(BaseModel):
    """TradeKing sends every value as a string; blanks mean 'not available'."""
    last: float
    pe: Optional[float] = None
    quote_time: Optional[str] = Field(None, alias="datetime")

    @field_validator('pe', mode='before')
    @classmethod
    def blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Quotes(BaseModel):
    quote: Union[ExtQuote, list]


class QuoteResponse(BaseModel):
    error: str
    quotes: Quotes


class ExtQuoteDocument(BaseModel):
    response: QuoteResponse


class TradeKingProvider(Provider):
    """Quotes from api.tradeking.com."""

    name = "tradeking"
    rate_limit = RateLimitRule(header="X-Ratelimit-Retry-After", kind='retry_after', max_local_wait=5.0)

    def __init__(self, consumer_key: str, oauth_token: str,
                 clock=time.time, **kwargs):
        super().__init__(**kwargs)
        self.consumer_key = consumer_key
        self.oauth_token = oauth_token
        self.clock = clock

    def _authenticate(self, url: str) -> str:
        return (f"{url}"
                f"&oauth_consumer_key={self.consumer_key}"
                f"&oauth_signature_method=HMAC-SHA1"
                f"&oauth_timestamp={int(self.clock())}"
                f"&oauth_token={self.oauth_token}"
                f"&oauth_version=1.0")

    def _ext_quote(self, document, ticker: str) -> ExtQuote:
        response = self.decode(ExtQuoteDocument, document).response

        if response.error != "Success":
            raise ProviderParseError(self.name, f"error fetching {ticker}: {response.error}")

        quote = response.quotes.quote
        if isinstance(quote, list):
            raise ProviderParseError(self.name, f"expected one quote for {ticker}, got {len(quote)}")

        logger.debug(f"{ticker}: last {quote.last}, pe {quote.pe}, at {quote.quote_time}")
        return quote

    def _quote_time(self, quote: ExtQuote, ticker: str) -> Optional[datetime]:
        if not quote.quote_time:
            return None
        try:
            stamp = datetime.fromisoformat(quote.quote_time)
        except ValueError:
            raise ProviderParseError(self.name, f"bad quote datetime {quote.quote_time!r} for {ticker}")
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return stamp

    def _url(self, ticker: str) -> str:
        return f"{BASE_URL}/market/ext/quotes.json?symbols={ticker}"

    def get_quote(self, security: Security) -> None:
        """Set security.price from the extended quote (0 if stale)."""

        def parse(document) -> float:
            quote = self._ext_quote(document, security.ticker)
            return self.checked_price(security, quote.last, self._quote_time(quote, security.ticker))

        security.price = self.cached_request(self._url(security.ticker), parse,
                                             keep=lambda price: price > 0)

    def get_metrics(self, security: Security) -> None:
        """
        Set security.pe from the extended quote.

        Same URL as get_quote, so on the same day this is a cache hit.
        """

        def parse(document) -> float:
            quote = self._ext_quote(document, security.ticker)
            return quote.pe or 0.0

        # get_quote decides whether this URL's document is worth caching
        security.pe = self.cached_request(self._url(security.ticker), parse,
                                          keep=lambda pe: False)
