"""Data layer — cache-first market data access.

Design: ALL data access goes through get_service(), which returns a
MarketDataService sitting in front of the upstream sources (Alpaca for
prices, Finnhub for fundamentals and news, Yahoo for indices, search and
ETF holdings). The Redis cache is checked first; only on a miss does it hit
the remote APIs. This means:
  • Repeated dashboard loads within a TTL never touch the providers.
  • A Redis outage degrades to "always miss", never to an error.
  • Upstream failures surface as missing data, never as exceptions.
"""

from src.core.config import settings
from src.core.data.cache.store import CacheStore
from src.core.data.providers.alpaca import AlpacaSource
from src.core.data.providers.finnhub import FinnhubSource
from src.core.data.providers.yahoo import YahooSource
from src.core.data.service import MarketDataService

_service: MarketDataService | None = None


def build_service() -> MarketDataService:
    """Construct a service wired from settings."""
    timeout = settings.http_timeout_seconds
    return MarketDataService(
        cache=CacheStore(settings.redis_url, reconnect_interval=settings.cache_reconnect_interval),
        alpaca=AlpacaSource(
            settings.alpaca_api_key or None,
            settings.alpaca_secret_key or None,
            data_url=settings.alpaca_data_url,
            api_url=settings.alpaca_api_url,
            timeout=timeout,
        ),
        finnhub=FinnhubSource(settings.finnhub_api_key or None, base_url=settings.finnhub_base_url, timeout=timeout),
        yahoo=YahooSource(base_url=settings.yahoo_base_url, timeout=timeout),
        max_batch_symbols=settings.max_batch_symbols,
    )


def get_service() -> MarketDataService:
    """Return the process-wide market data service."""
    global _service
    if _service is None:
        _service = build_service()
    return _service
