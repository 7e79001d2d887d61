"""Alpaca provider — US equity quotes, bars, movers and market clock (Data API v2)."""
from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Callable

from aiolimiter import AsyncLimiter
from pydantic import BaseModel, Field

from src.core.data.models import Bar, MarketClock, Mover, Quote, TopMovers
from src.core.data.providers.base import HttpSource
from src.core.data.resolution import default_start, normalize_resolution, to_utc_iso

ALPACA_DATA_BASE = "https://data.alpaca.markets"
ALPACA_API_BASE = "https://api.alpaca.markets/v2"


# ── Alpaca response shapes ───────────────────────────────────────────────


class _Trade(BaseModel):
    t: str
    p: float


class _Bar(BaseModel):
    t: str
    o: float
    h: float
    l: float
    c: float
    v: float
    vw: float | None = None


class _Snapshot(BaseModel):
    latestTrade: _Trade | None = None
    dailyBar: _Bar | None = None
    prevDailyBar: _Bar | None = None


class _Bars(BaseModel):
    bars: list[_Bar] | None = None


class _Mover(BaseModel):
    symbol: str
    price: float
    change: float
    percent_change: float
    volume: float = 0


class _Movers(BaseModel):
    gainers: list[_Mover] = Field(default_factory=list)
    losers: list[_Mover] = Field(default_factory=list)


class _Clock(BaseModel):
    timestamp: str
    is_open: bool
    next_open: str
    next_close: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlpacaSource(HttpSource):

    def __init__(
        self,
        api_key: str | None = None,
        secret_key: str | None = None,
        data_url: str = ALPACA_DATA_BASE,
        api_url: str = ALPACA_API_BASE,
        timeout: float = 10.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(timeout=timeout, limiter=AsyncLimiter(200, 60))  # free tier: 200 req/min
        self._api_key = api_key or os.environ.get("ALPACA_API_KEY", "")
        self._secret_key = secret_key or os.environ.get("ALPACA_SECRET_KEY", "")
        self._data_url = data_url.rstrip("/")
        self._api_url = api_url.rstrip("/")
        self._clock = clock

    @property
    def name(self) -> str:
        return "alpaca"

    def _headers(self) -> dict[str, str]:
        return {
            "APCA-API-KEY-ID": self._api_key,
            "APCA-API-SECRET-KEY": self._secret_key,
        }

    async def fetch_quote(self, symbol: str) -> Quote | None:
        symbol = symbol.upper()
        payload = await self._get_json(f"{self._data_url}/v2/stocks/{symbol}/snapshot", symbol=symbol)
        snap = self._decode(_Snapshot, payload, symbol=symbol)
        if snap is None:
            return None
        return snapshot_to_quote(symbol, snap, self._clock())

    async def fetch_bars(
        self,
        symbol: str,
        resolution: str = "1Day",
        limit: int = 100,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Bar]:
        symbol = symbol.upper()
        resolution = normalize_resolution(resolution)
        if start is None:
            start = default_start(resolution, limit, self._clock())
        params = {
            "timeframe": resolution,
            "limit": str(limit),
            "start": to_utc_iso(start),
        }
        if end is not None:
            params["end"] = to_utc_iso(end)

        payload = await self._get_json(
            f"{self._data_url}/v2/stocks/{symbol}/bars", params, symbol=symbol, resolution=resolution
        )
        decoded = self._decode(_Bars, payload, symbol=symbol)
        if decoded is None or not decoded.bars:
            return []
        bars = [
            Bar(timestamp=b.t, open=b.o, high=b.h, low=b.l, close=b.c, volume=b.v, vwap=b.vw)
            for b in decoded.bars
        ]
        return sorted(bars, key=lambda b: b.timestamp)

    async def fetch_movers(self, top: int = 5) -> TopMovers:
        payload = await self._get_json(
            f"{self._data_url}/v1beta1/screener/stocks/movers", {"top": str(top)}
        )
        decoded = self._decode(_Movers, payload)
        if decoded is None:
            return TopMovers()
        return TopMovers(
            gainers=[Mover(**m.model_dump()) for m in decoded.gainers],
            losers=[Mover(**m.model_dump()) for m in decoded.losers],
        )

    async def fetch_clock(self) -> MarketClock | None:
        payload = await self._get_json(f"{self._api_url}/clock")
        decoded = self._decode(_Clock, payload)
        if decoded is None:
            return None
        return MarketClock(**decoded.model_dump())


def snapshot_to_quote(symbol: str, snap: _Snapshot, now: datetime) -> Quote | None:
    """Collapse an Alpaca snapshot into a Quote; ``None`` when it carries no price."""
    daily = snap.dailyBar
    price = snap.latestTrade.p if snap.latestTrade else None
    if not price and daily is not None:
        price = daily.c
    if not price:
        return None
    prev = snap.prevDailyBar.c if snap.prevDailyBar and snap.prevDailyBar.c else price
    change = price - prev
    change_pct = (change / prev) * 100 if prev else 0.0
    return Quote(
        symbol=symbol.upper(),
        price=price,
        change=round(change, 2),
        change_percent=round(change_pct, 2),
        open=daily.o if daily and daily.o else price,
        high=daily.h if daily and daily.h else price,
        low=daily.l if daily and daily.l else price,
        close=daily.c if daily and daily.c else price,
        volume=daily.v if daily else 0,
        timestamp=snap.latestTrade.t if snap.latestTrade else to_utc_iso(now),
    )
