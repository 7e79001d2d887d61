"""Cache-key policy and TTL table.

Every key is a pure function of the query that produced the value. Symbols
are uppercased and search queries lowercased, so ``AAPL`` and ``aapl`` share
an entry.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from src.core.config import settings
from src.core.data.resolution import normalize_resolution, to_utc_iso


class EntityType(str, Enum):
    QUOTE = "quote"
    PROFILE = "profile"
    BARS = "bars"
    SEARCH = "search"
    DETAILS = "details"
    MOVERS = "movers"
    INDICES = "indices"
    HOLDINGS = "holdings"
    NEWS = "news"


def _sym(symbol: str) -> str:
    return symbol.strip().upper()


def quote_key(symbol: str) -> str:
    return f"stock:quote:{_sym(symbol)}"


def profile_key(symbol: str) -> str:
    return f"stock:profile:{_sym(symbol)}"


def bars_key(
    symbol: str,
    resolution: str,
    limit: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> str:
    key = f"stock:bars:{_sym(symbol)}:{normalize_resolution(resolution)}:{int(limit)}"
    if start is None and end is None:
        return key
    # Caller-supplied ranges must never share an entry with "latest N"
    lo = to_utc_iso(start) if start else ""
    hi = to_utc_iso(end) if end else ""
    return f"{key}:range:{lo}:{hi}"


def search_key(query: str) -> str:
    return f"search:{query.strip().lower()}"


def details_key(symbol: str, resolution: str, limit: int) -> str:
    return f"details:{_sym(symbol)}:{normalize_resolution(resolution)}:{int(limit)}"


def movers_key(count: int) -> str:
    return f"movers:{int(count)}"


def indices_key() -> str:
    return "indices"


def holdings_key(etf: str) -> str:
    return f"holdings:{_sym(etf)}"


def news_key(category: str) -> str:
    return f"news:{category.strip().lower()}"


_BUILDERS = {
    EntityType.QUOTE: quote_key,
    EntityType.PROFILE: profile_key,
    EntityType.BARS: bars_key,
    EntityType.SEARCH: search_key,
    EntityType.DETAILS: details_key,
    EntityType.MOVERS: movers_key,
    EntityType.INDICES: indices_key,
    EntityType.HOLDINGS: holdings_key,
    EntityType.NEWS: news_key,
}


def cache_key(entity: EntityType | str, **params) -> str:
    """Dispatch on entity type, e.g. ``cache_key("bars", symbol="AAPL", resolution="1Day", limit=30)``."""
    try:
        builder = _BUILDERS[EntityType(entity)]
    except ValueError:
        valid = [e.value for e in EntityType]
        raise ValueError(f"Unknown cache entity {entity!r}. Valid: {valid}")
    try:
        return builder(**params)
    except TypeError as e:
        raise ValueError(f"Bad parameters for {EntityType(entity).value} key: {e}")


def ttl_for(entity: EntityType) -> int:
    return {
        EntityType.QUOTE: settings.ttl_quote,
        EntityType.PROFILE: settings.ttl_profile,
        EntityType.BARS: settings.ttl_bars,
        EntityType.SEARCH: settings.ttl_search,
        EntityType.DETAILS: settings.ttl_details,
        EntityType.MOVERS: settings.ttl_movers,
        EntityType.INDICES: settings.ttl_indices,
        EntityType.HOLDINGS: settings.ttl_holdings,
        EntityType.NEWS: settings.ttl_news,
    }[entity]
