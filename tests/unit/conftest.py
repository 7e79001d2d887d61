"""Shared fakes: an in-memory Redis client with a controllable clock and
recording stand-ins for the three upstream sources."""
from datetime import datetime, timedelta, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from src.core.data.cache.store import CacheStore
from src.core.data.models import (
    Bar,
    CompanyProfile,
    EtfHolding,
    IndexQuote,
    MarketClock,
    Mover,
    NewsArticle,
    Quote,
    SearchResult,
    TopMovers,
)
from src.core.data.service import MarketDataService


class Clock:

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for CacheStore."""

    def __init__(self, clock: Clock):
        self._clock = clock
        self.data: dict[str, tuple[bytes, float]] = {}
        self.down = False
        self.wrong_type: set[str] = set()
        self.pings = 0

    def _check(self, key=None):
        if self.down:
            raise RedisConnectionError("Connection refused")
        if key in self.wrong_type:
            raise ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")

    def _ts(self) -> float:
        return self._clock().timestamp()

    async def ping(self):
        self.pings += 1
        self._check()
        return True

    async def get(self, key):
        self._check(key)
        item = self.data.get(key)
        if item is None:
            return None
        raw, expires = item
        if self._ts() >= expires:
            del self.data[key]
            return None
        return raw

    async def setex(self, key, ttl, value):
        self._check(key)
        self.data[key] = (value, self._ts() + ttl)

    async def delete(self, key):
        self._check()
        self.data.pop(key, None)

    async def flushdb(self):
        self._check()
        self.data.clear()

    async def aclose(self):
        pass


def make_quote(symbol: str, price: float = 100.0) -> Quote:
    return Quote(
        symbol=symbol, price=price, change=1.0, change_percent=1.01,
        open=99.0, high=101.0, low=98.5, close=price, volume=1_000_000,
        timestamp="2024-06-12T15:00:00Z",
    )


def make_bars(n: int, start: str = "2024-06-12T13:30:00Z", step_minutes: int = 1) -> list[Bar]:
    t0 = datetime.fromisoformat(start.replace("Z", "+00:00"))
    return [
        Bar(
            timestamp=(t0 + timedelta(minutes=i * step_minutes)).isoformat().replace("+00:00", "Z"),
            open=100.0 + i, high=101.0 + i, low=99.0 + i, close=100.5 + i, volume=1000 + i,
        )
        for i in range(n)
    ]


class FakeAlpaca:

    def __init__(self):
        self.quotes: dict[str, Quote | None | Exception] = {}
        self.bars: dict[str, list[Bar]] = {}           # resolution -> bars for "latest N"
        self.range_bars: list[Bar] = []                # bars for explicit-range requests
        self.movers = TopMovers()
        self.clock = MarketClock(
            timestamp="2024-06-12T15:00:00Z", is_open=True,
            next_open="2024-06-13T13:30:00Z", next_close="2024-06-12T20:00:00Z",
        )
        self.quote_calls: list[str] = []
        self.bar_calls: list[tuple] = []
        self.mover_calls = 0

    async def fetch_quote(self, symbol):
        self.quote_calls.append(symbol)
        result = self.quotes.get(symbol)
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_bars(self, symbol, resolution="1Day", limit=100, start=None, end=None):
        self.bar_calls.append((symbol, resolution, limit, start, end))
        if start is not None:
            return list(self.range_bars)
        return list(self.bars.get(resolution, []))

    async def fetch_movers(self, top=5):
        self.mover_calls += 1
        return self.movers

    async def fetch_clock(self):
        return self.clock


class FakeFinnhub:

    def __init__(self):
        self.profiles: dict[str, CompanyProfile] = {}
        self.news: list[NewsArticle] = []
        self.profile_calls: list[str] = []
        self.news_calls: list[str] = []

    async def fetch_profile(self, symbol):
        self.profile_calls.append(symbol)
        return self.profiles.get(symbol)

    async def fetch_news(self, category="general"):
        self.news_calls.append(category)
        return list(self.news)


class FakeYahoo:

    def __init__(self):
        self.index_quotes: dict[str, IndexQuote] = {}
        self.results: list[SearchResult] = []
        self.holdings: dict[str, list[EtfHolding]] = {}
        self.index_calls: list[str] = []
        self.search_calls: list[str] = []
        self.holding_calls: list[str] = []

    async def fetch_index_quote(self, symbol):
        self.index_calls.append(symbol)
        return self.index_quotes.get(symbol)

    async def search(self, query):
        self.search_calls.append(query)
        return list(self.results)

    async def fetch_holdings(self, etf):
        self.holding_calls.append(etf)
        return list(self.holdings.get(etf, []))


# Wednesday, mid-session
WEDNESDAY = datetime(2024, 6, 12, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return Clock(WEDNESDAY)


@pytest.fixture
def redis_client(clock):
    return FakeRedis(clock)


@pytest.fixture
def store(redis_client, clock):
    return CacheStore(client=redis_client, reconnect_interval=30, clock=lambda: clock().timestamp())


@pytest.fixture
def alpaca():
    return FakeAlpaca()


@pytest.fixture
def finnhub():
    return FakeFinnhub()


@pytest.fixture
def yahoo():
    return FakeYahoo()


@pytest.fixture
def service(store, alpaca, finnhub, yahoo, clock):
    return MarketDataService(store, alpaca, finnhub, yahoo, clock=clock)


@pytest.fixture
def sample_movers():
    return TopMovers(
        gainers=[Mover(symbol="XYZ", price=12.5, change=2.5, percent_change=25.0)],
        losers=[Mover(symbol="ABC", price=8.0, change=-2.0, percent_change=-20.0)],
    )
