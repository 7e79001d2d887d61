"""Index -> tradable ETF proxy table.

Every supported index has exactly one proxy. Charts and display prices for
an index come from its proxy, which trades continuously.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class IndexProxy:
    index: str      # raw index symbol, e.g. "^GSPC"
    etf: str        # proxy symbol, e.g. "SPY"
    name: str


INDEX_PROXIES: tuple[IndexProxy, ...] = (
    IndexProxy(index="^GSPC", etf="SPY", name="S&P 500"),        # broad market
    IndexProxy(index="^IXIC", etf="QQQ", name="NASDAQ"),         # tech heavy
    IndexProxy(index="^DJI",  etf="DIA", name="Dow Jones"),      # industrial
    IndexProxy(index="^RUT",  etf="IWM", name="Russell 2000"),   # small cap
)

_BY_INDEX = {p.index: p for p in INDEX_PROXIES}

INDEX_NAMES: dict[str, str] = {p.index: p.name for p in INDEX_PROXIES}


def find_proxy(symbol: str) -> IndexProxy | None:
    """Look up by index symbol, with or without the leading ``^``, any case."""
    s = symbol.strip().upper()
    if not s:
        return None
    return _BY_INDEX.get(s) or _BY_INDEX.get(f"^{s.lstrip('^')}")
