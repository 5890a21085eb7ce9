"""Unit tests for the Security data model."""

import pytest

from core.security import Contract, Security


def put(expiration, strike=10.0, bid=0.5):
    return Contract(strike=strike, bid=bid, ask=bid + 0.1, last=bid, expiration=expiration)


class TestHasOptions:

    def test_puts_and_calls(self, sample_security):
        assert sample_security.has_options() is True

    def test_puts_only(self):
        security = Security(ticker="XYZ", puts=[put("2022-01-21")])
        assert security.has_options() is False

    def test_calls_only(self):
        security = Security(ticker="XYZ", calls=[put("2022-01-21")])
        assert security.has_options() is False

    def test_empty(self):
        assert Security(ticker="XYZ").has_options() is False


class TestChainViews:

    def test_expirations(self, sample_security):
        sample_security.puts.append(put("2022-01-14"))
        assert sample_security.expirations() == ["2022-01-14", "2022-01-21"]


class TestCallSpread:

    def test_furthest_call_still_bid(self, sample_security):
        # 130 has no bid, so 120 is the furthest
        assert sample_security.call_spread("2022-01-21") == pytest.approx(20.0)

    def test_other_expiration(self, sample_security):
        assert sample_security.call_spread("2022-02-18") == 0.0

    def test_calls_below_price_do_not_count(self):
        security = Security(ticker="XYZ", price=100.0,
                            calls=[put("2022-01-21", strike=90.0, bid=11.0)])
        assert security.call_spread("2022-01-21") == 0.0

    def test_call_at_the_money_counts(self):
        security = Security(ticker="XYZ", price=100.0,
                            calls=[put("2022-01-21", strike=100.0, bid=2.0)])
        assert security.call_spread("2022-01-21") == 0.0

    def test_unknown_price(self, sample_security):
        sample_security.price = 0.0
        assert sample_security.call_spread("2022-01-21") == 0.0


class TestExpirationPeriod:

    def test_weekly(self):
        security = Security(ticker="XYZ", puts=[
            put(day) for day in ("2022-01-07", "2022-01-14", "2022-01-21", "2022-01-28", "2022-02-04")
        ])
        assert security.expiration_period() == 7

    def test_holiday_week(self):
        # Good Friday 2022 moved expiration to Thursday the 14th
        security = Security(ticker="XYZ", puts=[
            put(day) for day in ("2022-04-08", "2022-04-14", "2022-04-22", "2022-04-29", "2022-05-06")
        ])
        assert security.expiration_period() == 8

    def test_monthly(self):
        security = Security(ticker="XYZ", puts=[
            put(day) for day in ("2022-01-21", "2022-02-18", "2022-03-18", "2022-04-14", "2022-05-20",
                                 "2023-01-20")
        ])
        # Only the first five expirations are considered
        assert security.expiration_period() == 36

    def test_too_few_expirations(self):
        security = Security(ticker="XYZ", puts=[put("2022-01-07"), put("2022-01-14")])

        with pytest.raises(ValueError, match="Not enough expirations"):
            security.expiration_period()
