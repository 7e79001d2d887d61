"""Yahoo Finance provider — raw index quotes, symbol search and ETF holdings.

No API key required, but Yahoo rejects requests without a browser User-Agent.
"""
from __future__ import annotations

import structlog
from aiolimiter import AsyncLimiter
from pydantic import BaseModel, Field

from src.core.data.indices import INDEX_NAMES
from src.core.data.models import EtfHolding, IndexQuote, SearchResult
from src.core.data.providers.base import HttpSource

logger = structlog.get_logger()

YAHOO_BASE = "https://query1.finance.yahoo.com"

# US listings only; raw index symbols are not searchable as stocks
US_EXCHANGES = frozenset({
    "NYQ", "NYE", "NMS", "NAS", "NGM", "NCM", "ASE", "AMEX", "PCX", "ARCX", "ARCA", "BTS", "BATS",
})
SEARCHABLE_TYPES = frozenset({"EQUITY", "ETF"})


# ── Yahoo response shapes ────────────────────────────────────────────────


class _ChartMeta(BaseModel):
    symbol: str
    shortName: str | None = None
    longName: str | None = None
    regularMarketPrice: float
    chartPreviousClose: float
    regularMarketDayHigh: float | None = None
    regularMarketDayLow: float | None = None
    regularMarketTime: int | None = None


class _ChartResult(BaseModel):
    meta: _ChartMeta


class _Chart(BaseModel):
    result: list[_ChartResult] | None = None
    error: dict | None = None


class _ChartEnvelope(BaseModel):
    chart: _Chart


class _SearchQuote(BaseModel):
    symbol: str
    shortname: str | None = None
    longname: str | None = None
    quoteType: str = ""
    exchange: str = ""


class _Search(BaseModel):
    quotes: list[_SearchQuote] = Field(default_factory=list)


class _Raw(BaseModel):
    raw: float | None = None


class _Holding(BaseModel):
    symbol: str = ""
    holdingName: str = ""
    holdingPercent: _Raw | None = None


class _TopHoldings(BaseModel):
    holdings: list[_Holding] = Field(default_factory=list)


class _SummaryResult(BaseModel):
    topHoldings: _TopHoldings | None = None


class _Summary(BaseModel):
    result: list[_SummaryResult] | None = None


class _SummaryEnvelope(BaseModel):
    quoteSummary: _Summary


class YahooSource(HttpSource):

    def __init__(self, base_url: str = YAHOO_BASE, timeout: float = 10.0):
        super().__init__(timeout=timeout, limiter=AsyncLimiter(100, 60))
        self._base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "yahoo"

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"}

    async def fetch_index_quote(self, symbol: str) -> IndexQuote | None:
        payload = await self._get_json(
            f"{self._base_url}/v8/finance/chart/{symbol}",
            {"interval": "1d", "range": "5d"},
            symbol=symbol,
        )
        envelope = self._decode(_ChartEnvelope, payload, symbol=symbol)
        if envelope is None:
            return None
        chart = envelope.chart
        if chart.error or not chart.result:
            logger.warning("yahoo.chart_error", symbol=symbol, error=chart.error)
            return None
        meta = chart.result[0].meta
        change = meta.regularMarketPrice - meta.chartPreviousClose
        change_pct = (change / meta.chartPreviousClose) * 100 if meta.chartPreviousClose else 0.0
        return IndexQuote(
            symbol=meta.symbol,
            name=INDEX_NAMES.get(meta.symbol) or meta.shortName or meta.longName or meta.symbol,
            price=meta.regularMarketPrice,
            change=round(change, 2),
            change_percent=round(change_pct, 2),
            previous_close=meta.chartPreviousClose,
            day_high=meta.regularMarketDayHigh,
            day_low=meta.regularMarketDayLow,
            timestamp=meta.regularMarketTime,
        )

    async def search(self, query: str) -> list[SearchResult]:
        payload = await self._get_json(
            f"{self._base_url}/v1/finance/search",
            {
                "q": query,
                "quotesCount": "10",
                "newsCount": "0",
                "enableFuzzyQuery": "false",
                "quotesQueryId": "tss_match_phrase_query",
            },
            query=query,
        )
        decoded = self._decode(_Search, payload, query=query)
        if decoded is None:
            return []
        return [
            SearchResult(
                symbol=q.symbol,
                name=q.shortname or q.longname or q.symbol,
                type=q.quoteType,
                exchange=q.exchange,
            )
            for q in decoded.quotes
            if q.quoteType in SEARCHABLE_TYPES
            and q.exchange.upper() in US_EXCHANGES
            and q.symbol not in INDEX_NAMES
        ]

    async def fetch_holdings(self, etf: str) -> list[EtfHolding]:
        etf = etf.upper()
        payload = await self._get_json(
            f"{self._base_url}/v10/finance/quoteSummary/{etf}",
            {"modules": "topHoldings"},
            symbol=etf,
        )
        envelope = self._decode(_SummaryEnvelope, payload, symbol=etf)
        if envelope is None or not envelope.quoteSummary.result:
            return []
        top = envelope.quoteSummary.result[0].topHoldings
        if top is None:
            return []
        return [
            EtfHolding(
                symbol=h.symbol,
                name=h.holdingName or h.symbol,
                weight=round(h.holdingPercent.raw * 100, 4)
                if h.holdingPercent and h.holdingPercent.raw is not None else None,
            )
            for h in top.holdings
            if h.symbol
        ]
