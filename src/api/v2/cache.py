"""Cache administration — invalidate one entry or flush everything."""
import structlog
from fastapi import APIRouter, Depends, Query

from src.core.data import get_service
from src.core.data.service import MarketDataService

router = APIRouter(prefix="/cache", tags=["Cache"])
logger = structlog.get_logger()


@router.delete("/{entity}")
async def invalidate(
    entity: str,
    symbol: str | None = Query(None),
    resolution: str | None = Query(None),
    limit: int | None = Query(None),
    query: str | None = Query(None),
    count: int | None = Query(None),
    etf: str | None = Query(None),
    category: str | None = Query(None),
    service: MarketDataService = Depends(get_service),
):
    """Delete the cache entry for one query, e.g. ``DELETE /cache/quote?symbol=AAPL``."""
    params = {
        "symbol": symbol, "resolution": resolution, "limit": limit, "query": query,
        "count": count, "etf": etf, "category": category,
    }
    key = await service.invalidate(entity, **{k: v for k, v in params.items() if v is not None})
    return {"deleted": key}


@router.delete("")
async def flush(service: MarketDataService = Depends(get_service)):
    """Flush the whole cache database."""
    await service.flush_all()
    logger.warning("cache.flush_requested")
    return {"flushed": True}
