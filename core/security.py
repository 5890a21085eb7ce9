"""
Canonical data model: a security, its option contracts, and their metrics.

Received data (what providers told us) and derived data (what we computed
from it) live on separate types. A Contract never carries metrics, so
there is no way to mistake a stale computed value for fresh input.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

UNKNOWN_LOT_SIZE = -1

# Need this many expirations to trust the gap between them
MIN_EXPIRATIONS_FOR_PERIOD = 5

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass
class Contract:
    """One put or call at a specific strike and expiration."""
    strike: float
    bid: float
    ask: float
    last: float
    expiration: str  # YYYY-MM-DD
    last_trade_date: datetime = _EPOCH
    lot_size: int = UNKNOWN_LOT_SIZE
    open_interest: int = 0
    delta: float = 0.0
    iv: float = 0.0


@dataclass
class Security:
    """
    An underlying ticker with its price and option chain.

    Built up field by field by the provider adapters: options first, then
    the quote, then the PE metric. A price of zero means unknown or stale.
    """
    ticker: str
    price: float = 0.0
    pe: float = 0.0
    earnings_date: Optional[str] = None
    price_change_pct: Optional[float] = None
    puts: List[Contract] = field(default_factory=list)
    calls: List[Contract] = field(default_factory=list)

    def has_options(self) -> bool:
        """A security is only useful if it has both puts and calls."""
        return len(self.puts) > 0 and len(self.calls) > 0

    def expirations(self) -> List[str]:
        """Sorted unique expiration dates across puts and calls."""
        return sorted({c.expiration for c in self.puts + self.calls})

    def call_spread(self, expiration: str) -> float:
        """
        Relative distance to the highest strike call that still has a bid.

        Only calls at or above the share price count. Returns a percentage,
        or 0 if no call for that expiration qualifies.
        """
        if self.price <= 0:
            return 0.0

        max_strike = 0.0
        for call in self.calls:
            if call.expiration != expiration:
                continue
            if call.strike >= self.price and call.bid > 0 and call.strike > max_strike:
                max_strike = call.strike

        if max_strike == 0:
            return 0.0

        return 100.0 * (max_strike - self.price) / self.price

    def expiration_period(self) -> int:
        """
        Largest gap in days between the first few put expirations.

        Weekly options give 7 (or 8 when a Friday holiday moves expiration
        to Thursday).

        Raises:
            ValueError: too few expirations to tell
        """
        expirations = sorted({put.expiration for put in self.puts})

        if len(expirations) < MIN_EXPIRATIONS_FOR_PERIOD:
            raise ValueError(
                f"Not enough expirations to determine period {self.ticker} {expirations}"
            )

        dates = [date.fromisoformat(e) for e in expirations[:MIN_EXPIRATIONS_FOR_PERIOD]]
        return max((b - a).days for a, b in zip(dates, dates[1:]))


@dataclass(frozen=True)
class ContractMetrics:
    """Per-contract economics. Recomputed every run, never cached."""
    price_basis_delta: float  # Share price minus cost basis if assigned
    last_trade_days: int  # Age of last trade in days
    bid_strike_ratio: float  # Premium yield on the strike, in %
    bid_price_ratio: float  # Premium yield on the share price, in %
    safety_spread: float  # Share price to cost basis distance, in %
    call_spread: float  # Room to the furthest call still bid, in %


@dataclass(frozen=True)
class EnrichedContract:
    """A contract with the metrics computed for it (None if inputs were invalid)."""
    contract: Contract
    metrics: Optional[ContractMetrics]


@dataclass(frozen=True)
class EnrichedSecurity:
    """A fully loaded security, ready for screening."""
    security: Security
    puts: List[EnrichedContract]
    calls: List[EnrichedContract]

    @property
    def ticker(self) -> str:
        return self.security.ticker

    def has_options(self) -> bool:
        return self.security.has_options()
