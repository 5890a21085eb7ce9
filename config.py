"""
Configuration settings for the Options Income Scanner.

Centralized config makes it easy to modify behavior without touching core logic.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List
import os
from dotenv import load_dotenv

load_dotenv()


@dataclass
class DataConfig:
    """Data source configuration."""
    timeout: int = 30  # Seconds per HTTP request
    strike_limit: int = 11  # Strikes per expiration requested from MarketData
    stale_quote_grace_hours: float = 30.5  # Close-to-close (24h) plus 6.5h grace
    weekly_horizon_days: int = 42  # How far out --regenerate loads expirations
    use_cache: bool = True

    # API tokens - treated as opaque strings
    marketdata_token: Optional[str] = os.getenv("MARKETDATA_TOKEN")
    finnhub_token: Optional[str] = os.getenv("FINNHUB_TOKEN")
    tradeking_consumer_key: Optional[str] = os.getenv("TRADEKING_CONSUMER_KEY")
    tradeking_oauth_token: Optional[str] = os.getenv("TRADEKING_OAUTH_TOKEN")


@dataclass
class ThrottleConfig:
    """Backoff intervals used when a provider pushes back."""
    fallback_wait: float = 5.0  # 429 without a usable header
    bandwidth_wait: float = 6.0  # 509 bandwidth exceeded
    failover_cooldown: float = 6.0  # Pause before retrying via the other provider
    max_local_wait: float = 10.0  # Longer waits are handed to the failover layer
    sleep_chunk: float = 60.0  # Long quota waits re-check the clock this often


@dataclass
class RetryPolicy:
    """
    Bounds on retrying a throttled request.

    None means "no bound": keep going until the provider answers.
    """
    max_attempts: Optional[int] = 25  # In-place retries inside one fetch
    max_failovers: Optional[int] = 20  # Provider switches inside one quote fetch


@dataclass
class ScreeningConfig:
    """Put/call screening thresholds."""
    max_strike: float = 50.0
    min_yield: float = 1.5  # Bid/strike % for puts, bid/price % for calls
    min_safety_spread: float = 10.0
    min_call_spread: float = 20.0
    min_if_called: float = 0.0
    include_itm: bool = True


@dataclass
class Paths:
    """File system paths."""
    base_dir: Path = Path(__file__).parent
    cache_dir: Path = Path(__file__).parent / "web-request-cache"
    output_dir: Path = Path(__file__).parent / "output"

    def __post_init__(self):
        # Create directories if they don't exist
        self.cache_dir.mkdir(exist_ok=True)
        self.output_dir.mkdir(exist_ok=True)


# Symbols we do not want to trade in
SKIP_LIST: List[str] = [
    # Cannabis
    "ACB", "CGC", "MSOS", "SNDL", "TLRY",
    # Leveraged ETFs
    "ERX", "FAS", "JNUG", "LABD", "LABU", "NUGT", "SDS", "SLV", "SPXU",
    "SQQQ", "TNA", "TQQQ", "UCO", "UPRO", "UVXY", "VIXY", "VXX", "YINN",
    # Indexes
    "DJX", "MRUT", "MXACW", "MXEA", "MXEF", "MXUSA", "MXWLD", "NANOS",
    "OEX", "RUT", "SPX", "VIX", "XEO", "XSP", "ZS",
]


# Global config instances
data_config = DataConfig()
throttle_config = ThrottleConfig()
retry_policy = RetryPolicy()
screening_config = ScreeningConfig()
paths = Paths()
