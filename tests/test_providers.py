"""
Unit tests for the provider adapters.

The fetcher is mocked so these tests cover URL building, authentication,
payload decoding, freshness rules and the cache write policy.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from core.cache import fingerprint
from core.security import Security
from providers import (
    FinnhubProvider,
    MarketDataProvider,
    ProviderParseError,
    TradeKingProvider,
)


def unix(dt):
    return int(dt.timestamp())


@pytest.fixture
def fetcher():
    return Mock()


@pytest.fixture
def finnhub(fetcher, cache, now):
    return FinnhubProvider("fh-token", fetcher=fetcher, cache=cache, use_cache=True, now=lambda: now)


@pytest.fixture
def marketdata(fetcher, cache, now):
    return MarketDataProvider("md-token", strike_limit=5, fetcher=fetcher, cache=cache,
                              use_cache=True, now=lambda: now)


@pytest.fixture
def tradeking(fetcher, cache, now):
    return TradeKingProvider("tk-key", "tk-oauth", clock=lambda: 1641308400.0,
                             fetcher=fetcher, cache=cache, use_cache=True, now=lambda: now)


def requested_url(fetcher, call=0):
    return fetcher.fetch.call_args_list[call][0][0]


class TestFinnhubQuote:

    URL = "https://finnhub.io/api/v1/quote?symbol=IBM"

    def test_fresh_quote(self, finnhub, fetcher, cache, now):
        document = {"c": 143.5, "t": unix(now - timedelta(hours=1))}
        fetcher.fetch.return_value = document
        security = Security(ticker="IBM")

        finnhub.get_quote(security)

        assert security.price == 143.5
        assert requested_url(fetcher) == self.URL + "&token=fh-token"
        assert "fh-token" not in fetcher.fetch.call_args[1]['label']
        assert cache.get(fingerprint(self.URL, now.date())) == document

    def test_stale_quote_zeroes_price(self, finnhub, fetcher, cache, now):
        fetcher.fetch.return_value = {"c": 143.5, "t": unix(now - timedelta(hours=49))}
        security = Security(ticker="IBM")

        finnhub.get_quote(security)

        assert security.price == 0.0
        assert cache.get(fingerprint(self.URL, now.date())) is None

    def test_zero_price(self, finnhub, fetcher, cache, now):
        fetcher.fetch.return_value = {"c": 0, "t": unix(now)}
        security = Security(ticker="IBM")

        finnhub.get_quote(security)

        assert security.price == 0.0
        assert cache.get_stats()['size'] == 0

    def test_zero_timestamp(self, finnhub, fetcher):
        fetcher.fetch.return_value = {"c": 143.5, "t": 0}
        security = Security(ticker="IBM")

        finnhub.get_quote(security)

        assert security.price == 0.0

    def test_cache_hit_skips_network(self, finnhub, fetcher, cache, now):
        cache.put(fingerprint(self.URL, now.date()), {"c": 150.0, "t": unix(now)})
        security = Security(ticker="IBM")

        finnhub.get_quote(security)

        assert security.price == 150.0
        fetcher.fetch.assert_not_called()

    def test_yesterdays_entry_is_not_used(self, finnhub, fetcher, cache, now):
        cache.put(fingerprint(self.URL, now.date() - timedelta(days=1)), {"c": 150.0, "t": unix(now)})
        fetcher.fetch.return_value = {"c": 143.5, "t": unix(now)}
        security = Security(ticker="IBM")

        finnhub.get_quote(security)

        assert security.price == 143.5

    def test_unusable_cache_entry_is_refetched(self, finnhub, fetcher, cache, now):
        cache.put(fingerprint(self.URL, now.date()), {"price": 150.0})
        fetcher.fetch.return_value = {"c": 143.5, "t": unix(now)}
        security = Security(ticker="IBM")

        finnhub.get_quote(security)

        assert security.price == 143.5
        assert cache.get(fingerprint(self.URL, now.date()))["c"] == 143.5

    def test_cache_disabled(self, fetcher, cache, now):
        provider = FinnhubProvider("fh-token", fetcher=fetcher, cache=cache, use_cache=False, now=lambda: now)
        fetcher.fetch.return_value = {"c": 143.5, "t": unix(now)}

        provider.get_quote(Security(ticker="IBM"))

        assert cache.get_stats()['size'] == 0

    def test_missing_key(self, finnhub, fetcher):
        fetcher.fetch.return_value = {"t": 1641308400}

        with pytest.raises(ProviderParseError) as excinfo:
            finnhub.get_quote(Security(ticker="IBM"))

        assert excinfo.value.provider == "finnhub"
        assert "c" in str(excinfo.value)


class TestFinnhubMetrics:

    def test_first_available_pe(self, finnhub, fetcher):
        fetcher.fetch.return_value = {"metric": {"peTTM": None, "peBasicExclExtraTTM": 12.5}}
        security = Security(ticker="IBM")

        finnhub.get_metrics(security)

        assert security.pe == 12.5
        assert requested_url(fetcher) == (
            "https://finnhub.io/api/v1/stock/metric?symbol=IBM&metric=all&token=fh-token"
        )

    def test_no_pe(self, finnhub, fetcher):
        fetcher.fetch.return_value = {"metric": {}}
        security = Security(ticker="IBM", pe=99.0)

        finnhub.get_metrics(security)

        assert security.pe == 0.0

    def test_pe_not_a_number(self, finnhub, fetcher):
        fetcher.fetch.return_value = {"metric": {"peTTM": "n/a"}}

        with pytest.raises(ProviderParseError, match="peTTM"):
            finnhub.get_metrics(Security(ticker="IBM"))


class TestFinnhubEarnings:

    def test_calendar(self, finnhub, fetcher):
        fetcher.fetch.return_value = {"earningsCalendar": [
            {"symbol": "IBM", "date": "2022-01-24", "hour": "amc"},
            {"symbol": "F", "date": "2022-02-03", "hour": "amc"},
        ]}

        dates = finnhub.earning_dates("2022-01-04", "2022-02-18")

        assert dates == {"IBM": "2022-01-24", "F": "2022-02-03"}
        assert requested_url(fetcher).startswith(
            "https://finnhub.io/api/v1/calendar/earnings?from=2022-01-04&to=2022-02-18"
        )

    def test_bad_dates(self, finnhub, fetcher):
        with pytest.raises(ValueError):
            finnhub.earning_dates("next week", "2022-02-18")
        fetcher.fetch.assert_not_called()


def chain_document(expiration, underlying=100.0):
    traded = datetime(2022, 1, 3, 20, 0, tzinfo=timezone.utc)
    return {
        "s": "ok",
        "side": ["put", "call"],
        "strike": [95.0, 110.0],
        "bid": [6.0, None],
        "ask": [6.5, 3.4],
        "last": [6.2, None],
        "expiration": [unix(expiration), unix(expiration)],
        "updated": [unix(traded), None],
        "openInterest": [120, None],
        "delta": [-0.31, None],
        "iv": [0.27, None],
        "underlyingPrice": [underlying, underlying],
    }


class TestMarketDataOptions:

    EXPIRATIONS = {"s": "ok", "expirations": ["2022-01-04", "2022-01-07", "2022-01-14", "2022-02-18"]}

    def test_expirations_up_to(self, marketdata, fetcher):
        fetcher.fetch.return_value = self.EXPIRATIONS

        # Today (2022-01-04) has already expired for our purposes
        assert marketdata.expirations_up_to("XYZ", "2022-01-14") == ["2022-01-07", "2022-01-14"]
        assert requested_url(fetcher) == (
            "https://api.marketdata.app/v1/options/expirations/XYZ/?token=md-token"
        )

    def test_get_options(self, marketdata, fetcher, cache, now):
        expiration = datetime(2022, 1, 7, 21, 0, tzinfo=timezone.utc)

        def fetch(url, rule, headers=None, label=None):
            if "/expirations/" in url:
                return self.EXPIRATIONS
            return chain_document(expiration)

        fetcher.fetch.side_effect = fetch
        security = Security(ticker="XYZ")

        marketdata.get_options(security, "2022-01-07")

        assert requested_url(fetcher, 1) == (
            "https://api.marketdata.app/v1/options/chain/XYZ/"
            "?expiration=2022-01-07&strikeLimit=5&token=md-token"
        )
        assert security.price == 100.0
        assert len(security.puts) == 1
        assert len(security.calls) == 1

        put = security.puts[0]
        assert (put.strike, put.bid, put.ask, put.last) == (95.0, 6.0, 6.5, 6.2)
        assert put.expiration == "2022-01-07"
        assert put.open_interest == 120
        assert put.delta == -0.31

        # Nulls in the columns default to zero
        call = security.calls[0]
        assert (call.bid, call.last, call.open_interest, call.delta, call.iv) == (0, 0, 0, 0, 0)
        assert call.last_trade_date.timestamp() == 0

        assert cache.get_stats()['size'] == 2

    def test_columns_must_line_up(self, marketdata, fetcher):
        document = chain_document(datetime(2022, 1, 7, 21, 0, tzinfo=timezone.utc))
        document["bid"] = [6.0]
        fetcher.fetch.side_effect = [self.EXPIRATIONS, document]

        with pytest.raises(ProviderParseError, match="bid"):
            marketdata.get_options(Security(ticker="XYZ"), "2022-01-07")

    def test_unknown_side(self, marketdata, fetcher):
        document = chain_document(datetime(2022, 1, 7, 21, 0, tzinfo=timezone.utc))
        document["side"] = ["put", "straddle"]
        fetcher.fetch.side_effect = [self.EXPIRATIONS, document]

        with pytest.raises(ProviderParseError, match="straddle"):
            marketdata.get_options(Security(ticker="XYZ"), "2022-01-07")

    def test_no_expirations_in_range(self, marketdata, fetcher):
        fetcher.fetch.return_value = self.EXPIRATIONS
        security = Security(ticker="XYZ")

        marketdata.get_options(security, "2022-01-05")

        assert security.has_options() is False
        assert fetcher.fetch.call_count == 1


class TestMarketDataCandles:

    def test_pct_change(self, marketdata, fetcher):
        fetcher.fetch.side_effect = [
            {"s": "ok", "o": [100.0], "c": [101.0]},
            {"s": "ok", "o": [103.0], "c": [105.0]},
        ]

        assert marketdata.pct_change("XYZ", "2022-01-03", "2022-01-07") == pytest.approx(5.0)

    def test_candles_are_not_day_scoped(self, marketdata, fetcher, cache):
        fetcher.fetch.return_value = {"s": "ok", "o": [100.0], "c": [101.0]}

        assert marketdata.candle("XYZ", "2022-01-03") == (100.0, 101.0)

        url = "https://api.marketdata.app/v1/stocks/bulkcandles/D/?symbols=XYZ&date=2022-01-03"
        assert requested_url(fetcher) == url + "&token=md-token"
        assert cache.get(url) == {"s": "ok", "o": [100.0], "c": [101.0]}

    def test_no_data(self, marketdata, fetcher):
        fetcher.fetch.return_value = {"s": "no_data", "o": [], "c": []}

        with pytest.raises(ProviderParseError, match="no_data"):
            marketdata.candle("XYZ", "2022-01-03")


def ext_quote(last="143.50", pe="21.3", when="2022-01-04T09:59:00-05:00", error="Success"):
    return {"response": {"error": error, "quotes": {"quote": {
        "symbol": "IBM", "last": last, "pe": pe, "datetime": when,
    }}}}


class TestTradeKing:

    URL = "https://api.tradeking.com/v1/market/ext/quotes.json?symbols=IBM"

    def test_oauth_parameters(self, tradeking, fetcher):
        fetcher.fetch.return_value = ext_quote()

        tradeking.get_quote(Security(ticker="IBM"))

        assert requested_url(fetcher) == (
            self.URL
            + "&oauth_consumer_key=tk-key&oauth_signature_method=HMAC-SHA1"
            + "&oauth_timestamp=1641308400&oauth_token=tk-oauth&oauth_version=1.0"
        )

    def test_quote_then_metrics_share_one_request(self, tradeking, fetcher):
        fetcher.fetch.return_value = ext_quote()
        security = Security(ticker="IBM")

        tradeking.get_quote(security)
        tradeking.get_metrics(security)

        assert security.price == 143.5
        assert security.pe == 21.3
        assert fetcher.fetch.call_count == 1

    def test_blank_pe(self, tradeking, fetcher):
        fetcher.fetch.return_value = ext_quote(pe="")
        security = Security(ticker="IBM", pe=5.0)

        tradeking.get_metrics(security)

        assert security.pe == 0.0

    def test_stale_quote(self, tradeking, fetcher, cache):
        fetcher.fetch.return_value = ext_quote(when="2021-12-28T15:59:00-05:00")
        security = Security(ticker="IBM")

        tradeking.get_quote(security)

        assert security.price == 0.0
        assert cache.get_stats()['size'] == 0

    def test_error_response(self, tradeking, fetcher):
        fetcher.fetch.return_value = ext_quote(error="Invalid symbol")

        with pytest.raises(ProviderParseError, match="Invalid symbol"):
            tradeking.get_quote(Security(ticker="IBM"))

    def test_bad_datetime(self, tradeking, fetcher):
        fetcher.fetch.return_value = ext_quote(when="yesterday")

        with pytest.raises(ProviderParseError, match="yesterday"):
            tradeking.get_quote(Security(ticker="IBM"))
