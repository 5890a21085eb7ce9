"""
MarketData.app adapter: option chains and daily candles.

This is the only options source, so it has no failover partner. Its 429
means the daily quota is spent and carries the absolute reset time; we
sleep until then rather than give up, which is why precache.py exists -
to spend the quota ahead of the big run.
"""
from datetime import date
from typing import List, Optional, Tuple
import logging

from pydantic import BaseModel, model_validator

from config import data_config
from core.fetcher import RateLimitRule
from core.security import Contract, Security
from .base import Provider, ProviderParseError, from_unix, zero_if_none

logger = logging.getLogger(__name__)

BASE_URL = "https://api.marketdata.app/v1"


class Expirations(BaseModel):
    s: str
    expirations: List[str]


class OptionChain(BaseModel):
    """Column-oriented chain: element i of every list describes contract i."""
    s: str
    side: List[str]
    strike: List[float]
    bid: List[Optional[float]]
    ask: List[Optional[float]]
    last: List[Optional[float]]
    expiration: List[int]
    updated: List[Optional[int]]
    openInterest: List[Optional[int]]
    delta: List[Optional[float]]
    iv: List[Optional[float]]
    underlyingPrice: List[Optional[float]]

    @model_validator(mode='after')
    def columns_line_up(self) -> 'OptionChain':
        rows = len(self.side)
        for name in ('strike', 'bid', 'ask', 'last', 'expiration', 'updated',
                     'openInterest', 'delta', 'iv', 'underlyingPrice'):
            if len(getattr(self, name)) != rows:
                raise ValueError(f"{name} has {len(getattr(self, name))} rows, side has {rows}")
        return self


class Candles(BaseModel):
    s: str
    o: List[float]
    c: List[float]


class MarketDataProvider(Provider):
    """Options chains and candles from api.marketdata.app."""

    name = "marketdata"
    rate_limit = RateLimitRule(header="X-Api-Ratelimit-Reset", kind='reset', max_local_wait=None)

    def __init__(self, token: str, strike_limit: Optional[int] = None, **kwargs):
        super().__init__(**kwargs)
        self.token = token
        self.strike_limit = strike_limit or data_config.strike_limit

    def _authenticate(self, url: str) -> str:
        # A URL ending in '/' has no query string yet
        separator = '?' if url.endswith('/') else '&'
        return f"{url}{separator}token={self.token}"

    def _parse_expirations(self, document) -> List[str]:
        return self.decode(Expirations, document).expirations

    def expirations_up_to(self, ticker: str, latest: str) -> List[str]:
        """
        Expiration dates for ticker that are still ahead of us and no later than latest.

        Args:
            ticker: Underlying symbol
            latest: Cutoff date, YYYY-MM-DD
        """
        url = f"{BASE_URL}/options/expirations/{ticker}/"
        dates = self.cached_request(url, self._parse_expirations)

        cutoff = date.fromisoformat(latest)
        today = self.today()

        expirations = []
        for expiration in dates:
            try:
                day = date.fromisoformat(expiration)
            except ValueError:
                raise ProviderParseError(self.name, f"bad expiration date {expiration!r} for {ticker}")
            if today < day <= cutoff:
                expirations.append(expiration)

        return expirations

    def _parse_chain(self, document) -> OptionChain:
        return self.decode(OptionChain, document)

    def get_options(self, security: Security, latest_expiration: str) -> None:
        """
        Load puts and calls for every expiration up to latest_expiration.

        Also sets the security price from the chain's underlying price;
        the quote providers overwrite it with a fresher one later.
        """
        for expiration in self.expirations_up_to(security.ticker, latest_expiration):
            url = (f"{BASE_URL}/options/chain/{security.ticker}/"
                   f"?expiration={expiration}&strikeLimit={self.strike_limit}")
            chain = self.cached_request(url, self._parse_chain)
            self._merge_chain(chain, security)

        logger.debug(f"{security.ticker}: {len(security.puts)} puts, {len(security.calls)} calls")

    def _merge_chain(self, chain: OptionChain, security: Security) -> None:
        if chain.underlyingPrice:
            security.price = zero_if_none(chain.underlyingPrice[0])

        for i, side in enumerate(chain.side):
            updated = chain.updated[i]
            contract = Contract(
                strike=chain.strike[i],
                bid=zero_if_none(chain.bid[i]),
                ask=zero_if_none(chain.ask[i]),
                last=zero_if_none(chain.last[i]),
                expiration=from_unix(chain.expiration[i]).strftime("%Y-%m-%d"),
                last_trade_date=from_unix(updated or 0),
                open_interest=chain.openInterest[i] or 0,
                delta=zero_if_none(chain.delta[i]),
                iv=zero_if_none(chain.iv[i]),
            )

            if side == "put":
                security.puts.append(contract)
            elif side == "call":
                security.calls.append(contract)
            else:
                raise ProviderParseError(self.name, f"unknown side {side!r} for {security.ticker}")

    def _parse_candles(self, document) -> Candles:
        candles = self.decode(Candles, document)
        if candles.s != "ok":
            raise ProviderParseError(self.name, f"non-ok candle status {candles.s!r}")
        if not candles.o or not candles.c:
            raise ProviderParseError(self.name, "empty candle")
        return candles

    def candle(self, symbol: str, day: str) -> Tuple[float, float]:
        """Open and close for symbol on day (YYYY-MM-DD)."""
        url = f"{BASE_URL}/stocks/bulkcandles/D/?symbols={symbol}&date={day}"
        # Past candles never change, so they are not scoped to today
        candles = self.cached_request(url, self._parse_candles, day_scoped=False)
        return candles.o[0], candles.c[0]

    def pct_change(self, symbol: str, start: str, end: str) -> float:
        """% change from the open on start to the close on end."""
        open_price, _ = self.candle(symbol, start)
        _, close_price = self.candle(symbol, end)
        if open_price == 0:
            raise ProviderParseError(self.name, f"zero open price for {symbol} on {start}")
        return 100.0 * (close_price - open_price) / open_price
