"""
Provider adapters.

Each adapter turns one provider's raw JSON into Security/Contract fields.
Options come from MarketData; quotes and PE come from Finnhub (primary)
or TradeKing (secondary); earnings dates come from Finnhub.
"""

from .base import Provider, ProviderParseError
from .finnhub import FinnhubProvider
from .marketdata import MarketDataProvider
from .tradeking import TradeKingProvider

__all__ = [
    "Provider",
    "ProviderParseError",
    "FinnhubProvider",
    "MarketDataProvider",
    "TradeKingProvider",
]
