"""MarketDataService — read-through cache in front of the upstream sources.

Every query follows the same path: derive the cache key, return the cached
value on a hit, otherwise fan out to the source(s), assemble, write back
with the entity's TTL and return. "No data" results are returned but never
cached, so an upstream outage is not pinned for a whole TTL.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

import structlog

from src.core.data.cache.codec import decode, encode
from src.core.data.cache.keys import (
    EntityType,
    cache_key,
    details_key,
    holdings_key,
    indices_key,
    movers_key,
    news_key,
    profile_key,
    quote_key,
    search_key,
    ttl_for,
)
from src.core.data.cache.store import CacheStore
from src.core.data.indices import INDEX_PROXIES, find_proxy
from src.core.data.models import (
    Bar,
    ChartPoint,
    CompanyProfile,
    EtfHolding,
    EtfHoldingsPage,
    IndexSnapshot,
    MarketClock,
    NewsArticle,
    Quote,
    SearchResult,
    StockDetails,
    TopMovers,
)
from src.core.data.providers.alpaca import AlpacaSource
from src.core.data.providers.finnhub import FinnhubSource
from src.core.data.providers.yahoo import YahooSource
from src.core.data.resolution import normalize_resolution
from src.core.data.series import INDEX_LADDER, Rung, SeriesResolver, last_session_window
from src.core.data.universe.holdings import static_holdings

logger = structlog.get_logger()

# Short views that fall back to the previous session when the market is closed
SHORT_VIEWS = frozenset({("1Hour", 24), ("1Day", 1)})

MAX_MOVERS = 50
MAX_CONSTITUENTS = 100


class IndexState(str, Enum):
    FETCHING_QUOTES = "FetchingQuotes"
    ASSEMBLED = "Assembled"
    ASSEMBLED_EMPTY = "AssembledEmpty"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, list):
        return not value
    if hasattr(value, "has_data"):
        return not value.has_data()
    if hasattr(value, "is_empty"):
        return value.is_empty()
    return False


def _symbol(symbol: str) -> str:
    s = (symbol or "").strip().upper()
    if not s:
        raise ValueError("Symbol is required")
    return s


class MarketDataService:

    def __init__(
        self,
        cache: CacheStore,
        alpaca: AlpacaSource,
        finnhub: FinnhubSource,
        yahoo: YahooSource,
        clock: Callable[[], datetime] = _utcnow,
        max_batch_symbols: int = 50,
    ):
        self.cache = cache
        self._alpaca = alpaca
        self._finnhub = finnhub
        self._yahoo = yahoo
        self._clock = clock
        self._max_batch = max_batch_symbols
        self._series = SeriesResolver(cache, alpaca, clock)

    async def _read_through(
        self,
        key: str,
        tp,
        entity: EntityType,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        cached = decode(await self.cache.get(key), tp)
        if cached is not None:
            logger.info("cache.hit", key=key)
            return cached
        logger.info("cache.miss", key=key)
        value = await loader()
        if not _is_blank(value):
            await self.cache.set(key, encode(value), ttl_for(entity))
            logger.info("cache.stored", key=key)
        return value

    # ── quotes ───────────────────────────────────────────────────────────

    async def get_quote(self, symbol: str) -> Quote | None:
        symbol = _symbol(symbol)
        return await self._read_through(
            quote_key(symbol), Quote, EntityType.QUOTE, lambda: self._alpaca.fetch_quote(symbol)
        )

    async def get_quotes(self, symbols: list[str]) -> list[Quote]:
        """Quotes for every symbol that resolved; failures are dropped, never raised."""
        unique = list(dict.fromkeys(s.strip().upper() for s in symbols if s and s.strip()))
        if len(unique) > self._max_batch:
            raise ValueError(f"Maximum {self._max_batch} symbols allowed, got {len(unique)}")
        results = await asyncio.gather(*(self.get_quote(s) for s in unique), return_exceptions=True)
        quotes = []
        for symbol, result in zip(unique, results):
            if isinstance(result, Exception):
                logger.warning("quotes.symbol_failed", symbol=symbol, error=repr(result))
            elif result is not None:
                quotes.append(result)
        return quotes

    # ── bars ─────────────────────────────────────────────────────────────

    async def get_bars(
        self,
        symbol: str,
        resolution: str = "1Day",
        limit: int = 100,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Bar]:
        symbol = _symbol(symbol)
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        series = await self._series.fetch(symbol, resolution, limit, start, end)
        return series.bars

    # ── reference data ───────────────────────────────────────────────────

    async def get_profile(self, symbol: str) -> CompanyProfile | None:
        symbol = _symbol(symbol)
        return await self._read_through(
            profile_key(symbol), CompanyProfile, EntityType.PROFILE,
            lambda: self._finnhub.fetch_profile(symbol),
        )

    async def search_symbols(self, query: str) -> list[SearchResult]:
        q = (query or "").strip()
        if not q:
            return []
        return await self._read_through(
            search_key(q), list[SearchResult], EntityType.SEARCH, lambda: self._yahoo.search(q)
        )

    async def get_market_news(self, category: str = "general") -> list[NewsArticle]:
        category = (category or "general").strip().lower()
        return await self._read_through(
            news_key(category), list[NewsArticle], EntityType.NEWS,
            lambda: self._finnhub.fetch_news(category),
        )

    async def get_market_status(self) -> MarketClock | None:
        return await self._alpaca.fetch_clock()

    async def get_top_movers(self, count: int = 5) -> TopMovers:
        count = min(max(count, 1), MAX_MOVERS)
        return await self._read_through(
            movers_key(count), TopMovers, EntityType.MOVERS, lambda: self._alpaca.fetch_movers(count)
        )

    # ── aggregates ───────────────────────────────────────────────────────

    async def get_details(self, symbol: str, resolution: str = "1Day", limit: int = 100) -> StockDetails:
        """Profile, quote and history for one symbol, fetched concurrently."""
        symbol = _symbol(symbol)
        resolution = normalize_resolution(resolution)
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")

        async def assemble() -> StockDetails:
            fallback = last_session_window if (resolution, limit) in SHORT_VIEWS else None
            profile, quote, history = await asyncio.gather(
                self._finnhub.fetch_profile(symbol),
                self._alpaca.fetch_quote(symbol),
                self._series.resolve(symbol, [Rung(resolution, limit)], fallback),
            )
            return StockDetails(profile=profile, quote=quote, history=history)

        return await self._read_through(
            details_key(symbol, resolution, limit), StockDetails, EntityType.DETAILS, assemble
        )

    # ── indices ──────────────────────────────────────────────────────────

    async def get_index_snapshots(self) -> list[IndexSnapshot]:
        """One snapshot per supported index, in table order, charts from the ETF proxies."""
        key = indices_key()
        cached = decode(await self.cache.get(key), list[IndexSnapshot])
        if cached:
            logger.info("cache.hit", key=key)
            return cached
        logger.info("cache.miss", key=key)
        snapshots = await self._build_index_snapshots()
        # An all-empty bundle is returned but not cached
        if any(s.has_data() for s in snapshots):
            await self.cache.set(key, encode(snapshots), ttl_for(EntityType.INDICES))
            logger.info("cache.stored", key=key)
        return snapshots

    async def refresh_index_snapshots(self) -> list[IndexSnapshot]:
        await self.cache.delete(indices_key())
        return await self.get_index_snapshots()

    async def _build_index_snapshots(self) -> list[IndexSnapshot]:
        logger.info(
            "index.state", indices=[p.index for p in INDEX_PROXIES], state=IndexState.FETCHING_QUOTES.value
        )
        # Quotes and charts for every index are in flight before anything is awaited
        index_quotes, proxy_quotes, charts = await asyncio.gather(
            asyncio.gather(*(self._yahoo.fetch_index_quote(p.index) for p in INDEX_PROXIES)),
            self.get_quotes([p.etf for p in INDEX_PROXIES]),
            asyncio.gather(*(
                self._series.resolve(p.etf, INDEX_LADDER, last_session_window) for p in INDEX_PROXIES
            )),
        )
        by_symbol = {q.symbol: q for q in proxy_quotes}

        snapshots = []
        for proxy, index_quote, series in zip(INDEX_PROXIES, index_quotes, charts):
            chart = [ChartPoint(time=b.timestamp, value=b.close) for b in series.bars]
            state = IndexState.ASSEMBLED if chart else IndexState.ASSEMBLED_EMPTY
            logger.info(
                "index.state", index=proxy.index, etf=proxy.etf, state=state.value,
                resolution=series.resolution, points=len(chart),
            )
            snapshots.append(IndexSnapshot(
                id=proxy.index,
                name=proxy.name,
                symbol=proxy.index,
                proxy_symbol=proxy.etf,
                index_quote=index_quote,
                proxy_quote=by_symbol.get(proxy.etf),
                chart=chart,
            ))
        return snapshots

    # ── ETF holdings ─────────────────────────────────────────────────────

    async def get_etf_holdings(self, proxy_symbol: str) -> list[EtfHolding]:
        """Live holdings ranked by weight; the bundled list when the live source is empty."""
        etf = _symbol(proxy_symbol)
        key = holdings_key(etf)
        cached = decode(await self.cache.get(key), list[EtfHolding])
        if cached:
            logger.info("cache.hit", key=key)
            return cached

        live = await self._yahoo.fetch_holdings(etf)
        if live:
            ranked = sorted(live, key=lambda h: (h.weight is None, -(h.weight or 0)))
            await self.cache.set(key, encode(ranked), ttl_for(EntityType.HOLDINGS))
            logger.info("cache.stored", key=key, rows=len(ranked))
            return ranked

        logger.info("holdings.static_fallback", etf=etf)
        return static_holdings(etf)

    async def get_index_constituents(
        self, index_symbol: str, limit: int = 20, offset: int = 0
    ) -> EtfHoldingsPage | None:
        proxy = find_proxy(index_symbol)
        if proxy is None:
            logger.warning("index.unknown", symbol=index_symbol)
            return None
        limit = min(max(limit, 1), MAX_CONSTITUENTS)
        offset = max(offset, 0)
        holdings = await self.get_etf_holdings(proxy.etf)
        return EtfHoldingsPage(
            index=proxy.index,
            etf=proxy.etf,
            total=len(holdings),
            constituents=holdings[offset:offset + limit],
        )

    # ── cache administration ─────────────────────────────────────────────

    async def invalidate(self, entity_type: EntityType | str, **params) -> str:
        key = cache_key(entity_type, **params)
        await self.cache.delete(key)
        logger.info("cache.invalidated", key=key)
        return key

    async def flush_all(self) -> None:
        await self.cache.flush()
        logger.info("cache.flushed")
