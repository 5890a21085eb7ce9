"""
Base class for provider adapters.

An adapter knows three things about its provider: how to build and
authenticate URLs, how the provider signals rate limits, and what its
payloads look like. Everything else (HTTP, backoff, caching) is shared.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Type, TypeVar
import logging

from pydantic import BaseModel, ValidationError

from config import data_config
from core.cache import CacheStore, fingerprint
from core.fetcher import RateLimitedFetcher, RateLimitRule
from core.market_hours import is_stale
from core.security import Security

logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)
R = TypeVar('R')


class ProviderParseError(Exception):
    """A provider payload did not have the shape we expected."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


def _describe(error: ValidationError) -> str:
    """Short 'key: problem' summary of a pydantic error."""
    problems = []
    for item in error.errors():
        key = '.'.join(str(part) for part in item['loc']) or '<root>'
        problems.append(f"{key}: {item['msg']}")
    return '; '.join(problems)


def zero_if_none(value: Optional[float]) -> float:
    return 0.0 if value is None else value


def from_unix(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


class Provider:
    """
    Shared plumbing for one data provider.

    Subclasses set name and rate_limit and implement _authenticate().
    """

    name = "provider"
    rate_limit: RateLimitRule = RateLimitRule(header="Retry-After", kind='retry_after')
    request_headers: Dict[str, str] = {}

    def __init__(self, fetcher: Optional[RateLimitedFetcher] = None,
                 cache: Optional[CacheStore] = None,
                 use_cache: Optional[bool] = None,
                 now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.fetcher = fetcher or RateLimitedFetcher()
        self.cache = cache or CacheStore()
        self.use_cache = data_config.use_cache if use_cache is None else use_cache
        self.now = now

    def _authenticate(self, url: str) -> str:
        """Append this provider's credentials to a request URL."""
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()

    def request(self, url: str) -> Dict[str, Any]:
        """Fetch a URL from the network, no cache involved."""
        return self.fetcher.fetch(
            self._authenticate(url),
            self.rate_limit,
            headers=self.request_headers,
            label=f"{self.name} {url}"
        )

    def cached_request(self, url: str, parse: Callable[[Dict[str, Any]], R],
                       keep: Callable[[R], bool] = lambda result: True,
                       day_scoped: bool = True) -> R:
        """
        Fetch and parse a URL, going through the cache.

        The document is parsed before it is cached, so only payloads we could
        use end up on disk. A cached document that no longer parses is
        treated as a miss.

        Args:
            url: Request URL without credentials (so no token lands on disk)
            parse: Turns the raw document into a result
            keep: Decides whether a freshly parsed result is worth caching
            day_scoped: Prefix the key with today's date so it expires tonight

        Returns:
            Whatever parse returned
        """
        key = fingerprint(url, self.today()) if day_scoped else url

        if self.use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                try:
                    return parse(cached)
                except ProviderParseError as e:
                    logger.warning(f"Discarding cached {self.name} response: {e}")

        document = self.request(url)
        result = parse(document)

        if self.use_cache and keep(result):
            self.cache.put(key, document)

        return result

    def decode(self, model: Type[M], document: Dict[str, Any]) -> M:
        """
        Validate a raw document against a payload schema.

        Raises:
            ProviderParseError: naming the missing or malformed keys
        """
        try:
            return model.model_validate(document)
        except ValidationError as e:
            raise ProviderParseError(self.name, f"unexpected {model.__name__} payload ({_describe(e)})")

    def checked_price(self, security: Security, price: float,
                      quote_time: Optional[datetime]) -> float:
        """
        Apply the freshness rules to a quoted price.

        A zero price, a zero timestamp, or a quote older than the last close
        plus the grace window all give 0 - the ticker keeps its other data.
        """
        if price == 0:
            logger.warning(f"{self.name}: {security.ticker} quote has a zero price")
            return 0.0

        if quote_time is None:
            return price

        if quote_time.timestamp() == 0:
            logger.warning(f"{self.name}: {security.ticker} quote has a zero timestamp, ignoring price {price}")
            return 0.0

        now = self.now()
        grace = timedelta(hours=data_config.stale_quote_grace_hours)
        if is_stale(quote_time, now, grace):
            logger.warning(f"{self.name}: {security.ticker} price {price} is stale "
                           f"(quoted {quote_time.isoformat()}, {now - quote_time} ago)")
            return 0.0

        return price
