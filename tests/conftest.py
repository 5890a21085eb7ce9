"""Shared pytest fixtures for the options income scanner tests."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from requests.structures import CaseInsensitiveDict

from config import RetryPolicy, ThrottleConfig
from core.cache import CacheStore
from core.fetcher import RateLimitedFetcher
from core.security import Contract, Security


class FakeClock:
    """
    Wall clock that only moves when something sleeps.

    Pass clock.time as the clock and clock.sleep as the sleeper; every
    sleep is recorded in clock.sleeps.
    """

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_response(status_code=200, body=None, headers=None):
    """A requests.Response stand-in with a JSON body."""
    response = Mock()
    response.status_code = status_code
    response.headers = CaseInsensitiveDict(headers or {})
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = {} if body is None else body
    return response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    """A requests.Session double; script it with session.get.side_effect."""
    return Mock()


@pytest.fixture
def fetcher(session, clock):
    return RateLimitedFetcher(
        session=session,
        policy=RetryPolicy(max_attempts=10, max_failovers=5),
        throttle=ThrottleConfig(),
        timeout=5,
        sleep=clock.sleep,
        clock=clock.time,
    )


@pytest.fixture
def cache(tmp_path):
    """A cache store in a fresh temporary directory."""
    return CacheStore(tmp_path / "cache")


@pytest.fixture
def now():
    # Tuesday 2022-01-04, 10:00 Eastern
    return datetime(2022, 1, 4, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_security():
    """
    A $100 stock with one expiration of puts and calls.

    The 130 call has no bid, so the furthest call still bid is 120.
    """
    expiration = "2022-01-21"
    traded = datetime(2022, 1, 1, 15, 0, tzinfo=timezone.utc)

    security = Security(ticker="XYZ", price=100.0, pe=15.0)
    security.puts = [
        Contract(strike=95.0, bid=6.0, ask=6.5, last=6.2, expiration=expiration, last_trade_date=traded),
        Contract(strike=80.0, bid=1.0, ask=1.2, last=1.1, expiration=expiration, last_trade_date=traded),
    ]
    security.calls = [
        Contract(strike=110.0, bid=3.0, ask=3.4, last=3.1, expiration=expiration, last_trade_date=traded),
        Contract(strike=120.0, bid=0.5, ask=0.7, last=0.6, expiration=expiration, last_trade_date=traded),
        Contract(strike=130.0, bid=0.0, ask=0.1, last=0.05, expiration=expiration, last_trade_date=traded),
    ]
    return security
