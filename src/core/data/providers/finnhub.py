"""Finnhub provider — company profiles and market news.

Finnhub reports market capitalisation and shares outstanding in millions;
profiles leave this module in absolute units.
"""
from __future__ import annotations

import os

import structlog
from aiolimiter import AsyncLimiter
from pydantic import BaseModel, ValidationError

from src.core.data.models import CompanyProfile, NewsArticle
from src.core.data.providers.base import HttpSource

logger = structlog.get_logger()

FINNHUB_BASE = "https://finnhub.io/api/v1"
MILLION = 1_000_000


class _Profile(BaseModel):
    name: str = ""
    ticker: str = ""
    logo: str = ""
    finnhubIndustry: str = ""
    country: str = ""
    exchange: str = ""
    currency: str = ""
    marketCapitalization: float = 0
    shareOutstanding: float = 0
    weburl: str = ""
    ipo: str = ""


class _Article(BaseModel):
    id: int
    category: str = ""
    datetime: int = 0
    headline: str
    image: str = ""
    related: str = ""
    source: str = ""
    summary: str = ""
    url: str = ""


class FinnhubSource(HttpSource):

    def __init__(self, api_key: str | None = None, base_url: str = FINNHUB_BASE, timeout: float = 10.0):
        super().__init__(timeout=timeout, limiter=AsyncLimiter(60, 60))  # 60 requests per minute (free tier)
        self._api_key = api_key or os.environ.get("FINNHUB_API_KEY", "")
        self._base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "finnhub"

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def fetch_profile(self, symbol: str) -> CompanyProfile | None:
        symbol = symbol.upper()
        if not self.configured:
            logger.warning("finnhub.unconfigured", detail="FINNHUB_API_KEY not set - company profiles unavailable")
            return None
        payload = await self._get_json(
            f"{self._base_url}/stock/profile2",
            {"symbol": symbol, "token": self._api_key},
            symbol=symbol,
        )
        raw = self._decode(_Profile, payload, symbol=symbol)
        if raw is None:
            return None
        # Unsupported symbols come back as an empty object
        if not raw.name:
            logger.info("finnhub.not_found", symbol=symbol)
            return None
        return profile_from_finnhub(symbol, raw)

    async def fetch_news(self, category: str = "general") -> list[NewsArticle]:
        if not self.configured:
            logger.warning("finnhub.unconfigured", detail="FINNHUB_API_KEY not set - news unavailable")
            return []
        payload = await self._get_json(
            f"{self._base_url}/news",
            {"category": category, "token": self._api_key},
            category=category,
        )
        if payload is None:
            return []
        if not isinstance(payload, list):
            logger.warning("finnhub.bad_payload", model="news", detail="expected a list")
            return []
        articles, dropped = [], 0
        for item in payload:
            try:
                articles.append(_Article.model_validate(item))
            except ValidationError:
                dropped += 1
        if dropped:
            logger.warning("finnhub.bad_payload", model="news", dropped=dropped, kept=len(articles))
        return [NewsArticle(**a.model_dump()) for a in articles]


def profile_from_finnhub(symbol: str, raw: _Profile) -> CompanyProfile:
    return CompanyProfile(
        symbol=(raw.ticker or symbol).upper(),
        name=raw.name,
        logo=raw.logo,
        industry=raw.finnhubIndustry,
        country=raw.country,
        exchange=raw.exchange,
        currency=raw.currency,
        market_cap=raw.marketCapitalization * MILLION,
        shares_outstanding=raw.shareOutstanding * MILLION,
        website=raw.weburl,
        ipo=raw.ipo,
    )
