"""Canonical market-data entities returned by the data layer.

Everything here is a transient snapshot rebuilt from upstream sources on a
cache miss. Field names are snake_case in Python and camelCase on the wire
(``change_percent`` <-> ``changePercent``); both spellings are accepted on
decode so values read back from the cache validate either way.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Entity(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ── Quotes & bars ────────────────────────────────────────────────────────


class Quote(Entity):
    symbol: str
    price: float
    change: float
    change_percent: float
    open: float
    high: float
    low: float
    close: float
    volume: float
    timestamp: str


class Bar(Entity):
    timestamp: str
    open: float
    high: float
    low: float
    close: float
    volume: float
    vwap: float | None = None


class BarSeries(Entity):
    symbol: str
    resolution: str
    bars: list[Bar] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.bars


# ── Reference data ───────────────────────────────────────────────────────


class CompanyProfile(Entity):
    symbol: str
    name: str
    logo: str = ""
    industry: str = ""
    country: str = ""
    exchange: str = ""
    currency: str = ""
    market_cap: float = 0      # absolute units
    shares_outstanding: float = 0
    website: str = ""
    ipo: str = ""


class SearchResult(Entity):
    symbol: str
    name: str
    type: str
    exchange: str = ""


class NewsArticle(Entity):
    id: int
    category: str = ""
    datetime: int = 0          # epoch seconds
    headline: str
    image: str = ""
    related: str = ""
    source: str = ""
    summary: str = ""
    url: str = ""


class MarketClock(Entity):
    timestamp: str
    is_open: bool
    next_open: str
    next_close: str


# ── Movers ───────────────────────────────────────────────────────────────


class Mover(Entity):
    symbol: str
    price: float
    change: float
    percent_change: float
    volume: float = 0


class TopMovers(Entity):
    gainers: list[Mover] = Field(default_factory=list)
    losers: list[Mover] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.gainers and not self.losers


# ── Indices ──────────────────────────────────────────────────────────────


class IndexQuote(Entity):
    """Raw (non-tradable) index figures as published by the index provider."""
    symbol: str
    name: str
    price: float
    change: float
    change_percent: float
    previous_close: float
    day_high: float | None = None
    day_low: float | None = None
    timestamp: int | None = None


class ChartPoint(Entity):
    time: str
    value: float


class IndexSnapshot(Entity):
    id: str
    name: str
    symbol: str
    proxy_symbol: str
    index_quote: IndexQuote | None = None
    proxy_quote: Quote | None = None
    chart: list[ChartPoint] = Field(default_factory=list)

    # The proxy trades continuously while the raw index may lag, so display
    # figures come from the proxy whenever it resolved.
    @property
    def display_price(self) -> float | None:
        if self.proxy_quote is not None:
            return self.proxy_quote.price
        return self.index_quote.price if self.index_quote else None

    @property
    def display_change(self) -> float | None:
        if self.proxy_quote is not None:
            return self.proxy_quote.change
        return self.index_quote.change if self.index_quote else None

    @property
    def display_change_percent(self) -> float | None:
        if self.proxy_quote is not None:
            return self.proxy_quote.change_percent
        return self.index_quote.change_percent if self.index_quote else None

    @property
    def up(self) -> bool:
        return (self.display_change_percent or 0) >= 0

    def has_data(self) -> bool:
        return self.index_quote is not None or self.proxy_quote is not None or bool(self.chart)


class EtfHolding(Entity):
    symbol: str
    name: str
    weight: float | None = None        # percent of fund
    shares: float | None = None
    market_value: float | None = None


class EtfHoldingsPage(Entity):
    index: str
    etf: str
    total: int
    constituents: list[EtfHolding] = Field(default_factory=list)


# ── Aggregates ───────────────────────────────────────────────────────────


class StockDetails(Entity):
    profile: CompanyProfile | None = None
    quote: Quote | None = None
    history: BarSeries

    def has_data(self) -> bool:
        return self.profile is not None or self.quote is not None or not self.history.is_empty()
