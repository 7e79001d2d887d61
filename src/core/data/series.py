"""Best-available bar series: resolution ladder plus last-session fallback.

A ladder is tried finest to coarsest; each rung is a read-through on its own
bars key and the first non-empty rung wins. When every rung comes back empty
(market closed, holiday) an optional fallback fetches 5-minute bars bounded
to the previous regular session. An empty series is a valid result.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Sequence

import structlog

from src.core.data.cache.codec import decode, encode
from src.core.data.cache.keys import EntityType, bars_key, ttl_for
from src.core.data.cache.store import CacheStore
from src.core.data.models import BarSeries
from src.core.data.resolution import normalize_resolution, to_utc_iso
from src.core.markets.registry import MarketConfig, get_market

logger = structlog.get_logger()


@dataclass(frozen=True)
class Rung:
    resolution: str
    limit: int


# One trading day (6.5h) at each intraday resolution, then a single daily bar
INDEX_LADDER: tuple[Rung, ...] = (
    Rung("1Min", 390),
    Rung("5Min", 78),
    Rung("15Min", 26),
    Rung("1Hour", 6),
    Rung("1Day", 1),
)

FALLBACK_RUNG = Rung("5Min", 78)

WindowCalculator = Callable[[datetime], tuple[datetime, datetime] | None]


def last_session_day(now: datetime, market: MarketConfig) -> date:
    """Most recent weekday whose regular session has closed, in the exchange's local calendar."""
    local = now.astimezone(market.timezone)
    today = local.date()
    if today.weekday() < 5 and local.time() >= time.fromisoformat(market.session_close):
        return today
    back = {0: 3, 5: 1, 6: 2}.get(today.weekday(), 1)  # Mon -> Fri, Sat -> Fri, Sun -> Fri
    return today - timedelta(days=back)


def last_session_window(
    now: datetime, market: MarketConfig = get_market("US")
) -> tuple[datetime, datetime]:
    """Regular hours (09:30-16:00 local) of the last completed session, in UTC."""
    return market.session_window(last_session_day(now, market))


class SeriesResolver:

    def __init__(self, cache: CacheStore, source, clock: Callable[[], datetime]):
        self._cache = cache
        self._source = source
        self._clock = clock

    async def fetch(
        self,
        symbol: str,
        resolution: str,
        limit: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> BarSeries:
        """Read-through for one (symbol, resolution, limit[, range]) query."""
        symbol = symbol.strip().upper()
        resolution = normalize_resolution(resolution)
        key = bars_key(symbol, resolution, limit, start, end)

        cached = decode(await self._cache.get(key), BarSeries)
        if cached is not None and not cached.is_empty():
            logger.info("cache.hit", key=key, rows=len(cached.bars))
            return cached

        logger.info("cache.miss", key=key)
        bars = await self._source.fetch_bars(symbol, resolution, limit, start, end)
        series = BarSeries(symbol=symbol, resolution=resolution, bars=bars)
        if not series.is_empty():
            await self._cache.set(key, encode(series), ttl_for(EntityType.BARS))
            logger.info("cache.stored", key=key, rows=len(bars))
        return series

    async def resolve(
        self,
        symbol: str,
        ladder: Sequence[Rung],
        fallback: WindowCalculator | None = None,
    ) -> BarSeries:
        symbol = symbol.strip().upper()
        for i, rung in enumerate(ladder):
            logger.debug("series.fetching", symbol=symbol, rung=i, resolution=rung.resolution)
            series = await self.fetch(symbol, rung.resolution, rung.limit)
            if not series.is_empty():
                return series
            logger.info("series.rung_empty", symbol=symbol, rung=i, resolution=rung.resolution)

        if fallback is not None:
            window = fallback(self._clock())
            if window is not None:
                start, end = window
                logger.info("series.fallback", symbol=symbol, start=to_utc_iso(start), end=to_utc_iso(end))
                series = await self.fetch(symbol, FALLBACK_RUNG.resolution, FALLBACK_RUNG.limit, start, end)
                if not series.is_empty():
                    return series

        resolution = ladder[-1].resolution if ladder else FALLBACK_RUNG.resolution
        return BarSeries(symbol=symbol, resolution=normalize_resolution(resolution), bars=[])
