"""
Core data layer for the options scanner.

This module handles fetching, caching, failover, and the data model.
Reliable data is the foundation of everything else.
"""

from .cache import CacheStore
from .failover import FailoverState, QuoteFailover
from .fetcher import DataFetchError, RateLimitedFetcher, RateLimitRule, ThrottledError
from .options_chain import OptionsChain
from .security import Contract, ContractMetrics, EnrichedContract, EnrichedSecurity, Security

__all__ = [
    "CacheStore",
    "FailoverState",
    "QuoteFailover",
    "DataFetchError",
    "RateLimitedFetcher",
    "RateLimitRule",
    "ThrottledError",
    "OptionsChain",
    "Contract",
    "ContractMetrics",
    "EnrichedContract",
    "EnrichedSecurity",
    "Security",
]
