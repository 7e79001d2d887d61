"""Unit tests for MarketDataService: read-through caching, batching,
aggregation and cache administration, against recording fake sources."""
from datetime import datetime, timezone

import pytest

from src.core.data.cache.keys import EntityType
from src.core.data.models import CompanyProfile, EtfHolding, IndexQuote, NewsArticle, SearchResult, TopMovers
from src.core.data.universe.holdings import static_holdings
from conftest import make_bars, make_quote


def index_quote(symbol: str, price: float) -> IndexQuote:
    return IndexQuote(
        symbol=symbol, name=symbol, price=price, change=10.0, change_percent=0.2, previous_close=price - 10,
    )


# ── Quotes ───────────────────────────────────────────────────────────────


class TestQuotes:

    @pytest.mark.asyncio
    async def test_second_read_is_served_from_cache(self, service, alpaca):
        alpaca.quotes["AAPL"] = make_quote("AAPL", 190.5)
        first = await service.get_quote("AAPL")
        second = await service.get_quote("aapl")
        assert first == second
        assert second.price == 190.5
        assert alpaca.quote_calls == ["AAPL"]

    @pytest.mark.asyncio
    async def test_refetch_after_ttl(self, service, alpaca, clock):
        alpaca.quotes["AAPL"] = make_quote("AAPL")
        await service.get_quote("AAPL")
        clock.advance(59)
        await service.get_quote("AAPL")
        assert len(alpaca.quote_calls) == 1
        clock.advance(2)
        await service.get_quote("AAPL")
        assert len(alpaca.quote_calls) == 2

    @pytest.mark.asyncio
    async def test_missing_quote_is_not_cached(self, service, alpaca, redis_client):
        assert await service.get_quote("ZZZZ") is None
        assert await service.get_quote("ZZZZ") is None
        assert alpaca.quote_calls == ["ZZZZ", "ZZZZ"]
        assert redis_client.data == {}

    @pytest.mark.asyncio
    async def test_blank_symbol_rejected(self, service):
        with pytest.raises(ValueError, match="Symbol is required"):
            await service.get_quote("  ")

    @pytest.mark.asyncio
    async def test_batch_drops_failures(self, service, alpaca):
        alpaca.quotes["AAPL"] = make_quote("AAPL", 190.0)
        alpaca.quotes["MSFT"] = make_quote("MSFT", 420.0)
        alpaca.quotes["BOOM"] = RuntimeError("upstream exploded")
        quotes = await service.get_quotes(["AAPL", "BADSYMBOL", "BOOM", "MSFT"])
        assert [q.symbol for q in quotes] == ["AAPL", "MSFT"]

    @pytest.mark.asyncio
    async def test_batch_dedupes_symbols(self, service, alpaca):
        alpaca.quotes["AAPL"] = make_quote("AAPL")
        quotes = await service.get_quotes(["aapl", "AAPL", " aapl ", ""])
        assert len(quotes) == 1
        assert alpaca.quote_calls == ["AAPL"]

    @pytest.mark.asyncio
    async def test_batch_limit(self, service):
        with pytest.raises(ValueError, match="Maximum 50 symbols"):
            await service.get_quotes([f"S{i}" for i in range(51)])

    @pytest.mark.asyncio
    async def test_cache_outage_degrades_to_passthrough(self, service, alpaca, redis_client):
        redis_client.down = True
        alpaca.quotes["AAPL"] = make_quote("AAPL")
        assert (await service.get_quote("AAPL")).symbol == "AAPL"
        assert (await service.get_quote("AAPL")).symbol == "AAPL"
        assert len(alpaca.quote_calls) == 2


# ── Bars & reference data ────────────────────────────────────────────────


class TestBarsAndReference:

    @pytest.mark.asyncio
    async def test_bars_cached_per_query(self, service, alpaca, redis_client):
        alpaca.bars["1Day"] = make_bars(30)
        bars = await service.get_bars("aapl", "1day", 30)
        again = await service.get_bars("AAPL", "1Day", 30)
        assert len(bars) == 30
        assert bars == again
        assert len(alpaca.bar_calls) == 1
        assert "stock:bars:AAPL:1Day:30" in redis_client.data

    @pytest.mark.asyncio
    async def test_bars_bad_arguments(self, service):
        with pytest.raises(ValueError):
            await service.get_bars("AAPL", "1Day", 0)
        with pytest.raises(ValueError, match="Unknown resolution"):
            await service.get_bars("AAPL", "7Fortnight", 10)

    @pytest.mark.asyncio
    async def test_profile_cached(self, service, finnhub):
        finnhub.profiles["AAPL"] = CompanyProfile(symbol="AAPL", name="Apple Inc", market_cap=3e12)
        await service.get_profile("aapl")
        profile = await service.get_profile("AAPL")
        assert profile.market_cap == 3e12
        assert finnhub.profile_calls == ["AAPL"]

    @pytest.mark.asyncio
    async def test_search_normalises_query(self, service, yahoo):
        yahoo.results = [SearchResult(symbol="AAPL", name="Apple Inc.", type="EQUITY", exchange="NMS")]
        await service.search_symbols("Apple")
        results = await service.search_symbols(" apple ")
        assert [r.symbol for r in results] == ["AAPL"]
        assert yahoo.search_calls == ["Apple"]

    @pytest.mark.asyncio
    async def test_blank_search_skips_source(self, service, yahoo):
        assert await service.search_symbols("   ") == []
        assert yahoo.search_calls == []

    @pytest.mark.asyncio
    async def test_news_cached_per_category(self, service, finnhub, redis_client):
        finnhub.news = [NewsArticle(id=1, headline="Stocks rally")]
        await service.get_market_news("General")
        await service.get_market_news("general")
        assert finnhub.news_calls == ["general"]
        assert "news:general" in redis_client.data

    @pytest.mark.asyncio
    async def test_market_status_is_live(self, service, redis_client):
        status = await service.get_market_status()
        assert status.is_open is True
        assert redis_client.data == {}

    @pytest.mark.asyncio
    async def test_movers_count_clamped_and_cached(self, service, alpaca, sample_movers, redis_client):
        alpaca.movers = sample_movers
        await service.get_top_movers(500)
        movers = await service.get_top_movers(500)
        assert movers.gainers[0].symbol == "XYZ"
        assert alpaca.mover_calls == 1
        assert "movers:50" in redis_client.data

    @pytest.mark.asyncio
    async def test_empty_movers_not_cached(self, service, alpaca, redis_client):
        alpaca.movers = TopMovers()
        assert (await service.get_top_movers()).is_empty()
        assert redis_client.data == {}


# ── Stock details ────────────────────────────────────────────────────────


class TestDetails:

    @pytest.mark.asyncio
    async def test_details_assembled_and_cached(self, service, alpaca, finnhub, redis_client):
        finnhub.profiles["AAPL"] = CompanyProfile(symbol="AAPL", name="Apple Inc")
        alpaca.quotes["AAPL"] = make_quote("AAPL", 190.0)
        alpaca.bars["1Day"] = make_bars(30)

        details = await service.get_details("aapl", "1Day", 30)
        assert details.profile.name == "Apple Inc"
        assert details.quote.price == 190.0
        assert details.history.resolution == "1Day"
        assert len(details.history.bars) == 30
        assert "details:AAPL:1Day:30" in redis_client.data

        calls = (len(finnhub.profile_calls), len(alpaca.quote_calls), len(alpaca.bar_calls))
        again = await service.get_details("AAPL", "1day", 30)
        assert again == details
        assert (len(finnhub.profile_calls), len(alpaca.quote_calls), len(alpaca.bar_calls)) == calls

    @pytest.mark.asyncio
    async def test_partial_details(self, service, alpaca):
        alpaca.quotes["AAPL"] = make_quote("AAPL")
        details = await service.get_details("AAPL", "1Day", 30)
        assert details.profile is None
        assert details.quote is not None
        assert details.history.is_empty()

    @pytest.mark.asyncio
    async def test_empty_details_not_cached(self, service, redis_client):
        details = await service.get_details("ZZZZ", "1Day", 30)
        assert not details.has_data()
        assert redis_client.data == {}

    @pytest.mark.asyncio
    async def test_short_view_falls_back_when_closed(self, service, alpaca, clock):
        clock.now = datetime(2024, 6, 15, 16, 0, tzinfo=timezone.utc)
        alpaca.range_bars = make_bars(78, start="2024-06-14T13:30:00Z", step_minutes=5)
        details = await service.get_details("AAPL", "1Hour", 24)
        assert details.history.resolution == "5Min"
        assert len(details.history.bars) == 78

    @pytest.mark.asyncio
    async def test_long_view_has_no_fallback(self, service, alpaca):
        alpaca.range_bars = make_bars(78, step_minutes=5)
        details = await service.get_details("AAPL", "1Day", 30)
        assert details.history.is_empty()
        assert all(c[3] is None for c in alpaca.bar_calls)


# ── Indices ──────────────────────────────────────────────────────────────


class TestIndexSnapshots:

    @pytest.mark.asyncio
    async def test_always_four_snapshots(self, service, redis_client):
        snapshots = await service.get_index_snapshots()
        assert [s.symbol for s in snapshots] == ["^GSPC", "^IXIC", "^DJI", "^RUT"]
        assert [s.proxy_symbol for s in snapshots] == ["SPY", "QQQ", "DIA", "IWM"]
        assert not any(s.has_data() for s in snapshots)
        assert "indices" not in redis_client.data

    @pytest.mark.asyncio
    async def test_display_figures_prefer_proxy(self, service, alpaca, yahoo):
        yahoo.index_quotes["^GSPC"] = index_quote("^GSPC", 5421.0)
        yahoo.index_quotes["^IXIC"] = index_quote("^IXIC", 17600.0)
        alpaca.quotes["SPY"] = make_quote("SPY", 541.0)
        snapshots = await service.get_index_snapshots()
        spx, ndx, dji, _ = snapshots
        assert spx.display_price == 541.0
        assert spx.index_quote.price == 5421.0
        assert ndx.display_price == 17600.0
        assert dji.display_price is None
        assert spx.up

    @pytest.mark.asyncio
    async def test_charts_come_from_the_ladder(self, service, alpaca):
        alpaca.bars["1Min"] = make_bars(390)
        snapshots = await service.get_index_snapshots()
        for s in snapshots:
            assert len(s.chart) == 390
            assert s.chart[0].time == "2024-06-12T13:30:00Z"
            assert s.chart[0].value == 100.5
        assert sorted({c[0] for c in alpaca.bar_calls}) == ["DIA", "IWM", "QQQ", "SPY"]

    @pytest.mark.asyncio
    async def test_bundle_cached_and_refreshed(self, service, yahoo, redis_client):
        yahoo.index_quotes["^DJI"] = index_quote("^DJI", 38700.0)
        await service.get_index_snapshots()
        cached = await service.get_index_snapshots()
        assert cached[2].index_quote.price == 38700.0
        assert len(yahoo.index_calls) == 4
        assert "indices" in redis_client.data

        await service.refresh_index_snapshots()
        assert len(yahoo.index_calls) == 8


# ── Holdings & constituents ──────────────────────────────────────────────


class TestHoldings:

    @pytest.mark.asyncio
    async def test_live_holdings_ranked_by_weight(self, service, yahoo, redis_client):
        yahoo.holdings["SPY"] = [
            EtfHolding(symbol="AAPL", name="Apple", weight=6.5),
            EtfHolding(symbol="CASH", name="Cash"),
            EtfHolding(symbol="MSFT", name="Microsoft", weight=7.1),
        ]
        holdings = await service.get_etf_holdings("spy")
        assert [h.symbol for h in holdings] == ["MSFT", "AAPL", "CASH"]
        await service.get_etf_holdings("SPY")
        assert yahoo.holding_calls == ["SPY"]
        assert "holdings:SPY" in redis_client.data

    @pytest.mark.asyncio
    async def test_static_fallback_not_cached(self, service, yahoo, redis_client):
        holdings = await service.get_etf_holdings("QQQ")
        assert holdings == static_holdings("QQQ")
        assert len(holdings) == 20
        assert all(h.weight is None for h in holdings)
        assert redis_client.data == {}

    @pytest.mark.asyncio
    async def test_constituents_paging(self, service):
        page = await service.get_index_constituents("gspc", limit=5, offset=5)
        assert (page.index, page.etf, page.total) == ("^GSPC", "SPY", 20)
        assert page.constituents == static_holdings("SPY")[5:10]

    @pytest.mark.asyncio
    async def test_constituents_limits_clamped(self, service):
        page = await service.get_index_constituents("^RUT", limit=1000, offset=-3)
        assert len(page.constituents) == 20
        assert page.constituents[0].symbol == static_holdings("IWM")[0].symbol
        past_end = await service.get_index_constituents("^RUT", offset=40)
        assert past_end.constituents == []

    @pytest.mark.asyncio
    async def test_unknown_index(self, service):
        assert await service.get_index_constituents("^FTSE") is None


# ── Cache administration ─────────────────────────────────────────────────


class TestInvalidation:

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, service, alpaca):
        alpaca.quotes["AAPL"] = make_quote("AAPL")
        await service.get_quote("AAPL")
        key = await service.invalidate("quote", symbol="aapl")
        assert key == "stock:quote:AAPL"
        await service.get_quote("AAPL")
        assert len(alpaca.quote_calls) == 2

    @pytest.mark.asyncio
    async def test_invalidate_bars_by_enum(self, service, alpaca, redis_client):
        alpaca.bars["1Day"] = make_bars(5)
        await service.get_bars("AAPL", "1Day", 5)
        key = await service.invalidate(EntityType.BARS, symbol="AAPL", resolution="1Day", limit=5)
        assert key == "stock:bars:AAPL:1Day:5"
        assert redis_client.data == {}

    @pytest.mark.asyncio
    async def test_invalidate_unknown_entity(self, service):
        with pytest.raises(ValueError, match="Unknown cache entity"):
            await service.invalidate("weather", city="Oslo")

    @pytest.mark.asyncio
    async def test_flush_all(self, service, alpaca, redis_client):
        alpaca.quotes["AAPL"] = make_quote("AAPL")
        alpaca.quotes["MSFT"] = make_quote("MSFT")
        await service.get_quotes(["AAPL", "MSFT"])
        assert len(redis_client.data) == 2
        await service.flush_all()
        assert redis_client.data == {}


# ── Cache outage ─────────────────────────────────────────────────────────


def _seed(alpaca, finnhub, yahoo):
    alpaca.quotes["AAPL"] = make_quote("AAPL")
    alpaca.bars["1Day"] = make_bars(30)
    finnhub.profiles["AAPL"] = CompanyProfile(symbol="AAPL", name="Apple Inc")
    yahoo.index_quotes["^GSPC"] = index_quote("^GSPC", 5421.0)
    yahoo.holdings["SPY"] = [EtfHolding(symbol="MSFT", name="Microsoft", weight=7.1)]
    yahoo.results = [SearchResult(symbol="AAPL", name="Apple Inc.", type="EQUITY", exchange="NMS")]


# operation, source call log, source calls per operation
OUTAGE_CASES = {
    "bars": (lambda s: s.get_bars("AAPL", "1Day", 30), lambda a, f, y: a.bar_calls, 1),
    "profile": (lambda s: s.get_profile("AAPL"), lambda a, f, y: f.profile_calls, 1),
    "details": (lambda s: s.get_details("AAPL", "1Day", 30), lambda a, f, y: a.quote_calls, 1),
    "indices": (lambda s: s.get_index_snapshots(), lambda a, f, y: y.index_calls, 4),
    "holdings": (lambda s: s.get_etf_holdings("SPY"), lambda a, f, y: y.holding_calls, 1),
    "search": (lambda s: s.search_symbols("apple"), lambda a, f, y: y.search_calls, 1),
}


class TestCacheOutage:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", sorted(OUTAGE_CASES))
    async def test_reads_pass_through_while_cache_is_down(
        self, name, service, alpaca, finnhub, yahoo, redis_client
    ):
        call, log_of, per_call = OUTAGE_CASES[name]
        _seed(alpaca, finnhub, yahoo)
        redis_client.down = True

        first = await call(service)
        second = await call(service)

        assert first == second
        assert first
        assert len(log_of(alpaca, finnhub, yahoo)) == 2 * per_call
        assert redis_client.data == {}
