"""Stock endpoints — quotes, history, profiles, indices, movers and search (cache-first)."""
from datetime import datetime

from fastapi import APIRouter, Depends, Query

from src.api.v2.errors import not_found
from src.api.v2.models import QuotesRequest
from src.core.data import get_service
from src.core.data.service import MarketDataService

router = APIRouter(prefix="/stocks", tags=["Stocks"])


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value.replace("Z", "+00:00")) if value else None


@router.get("/market-status")
async def market_status(service: MarketDataService = Depends(get_service)):
    """Current market clock (open/closed, next open/close)."""
    return await service.get_market_status()


@router.get("/search")
async def search(q: str = Query(""), service: MarketDataService = Depends(get_service)):
    """Search US-listed stocks and ETFs."""
    return await service.search_symbols(q)


@router.get("/movers")
async def movers(top: int = Query(5), service: MarketDataService = Depends(get_service)):
    """Top gainers and losers."""
    return await service.get_top_movers(top)


def _index_view(snapshot) -> dict:
    return {
        **snapshot.model_dump(mode="json", by_alias=True),
        "displayPrice": snapshot.display_price,
        "displayChange": snapshot.display_change,
        "displayChangePercent": snapshot.display_change_percent,
        "up": snapshot.up,
    }


@router.get("/indices")
async def indices(service: MarketDataService = Depends(get_service)):
    """Major index snapshots with charts drawn from their ETF proxies."""
    snapshots = await service.get_index_snapshots()
    return {"indices": [_index_view(s) for s in snapshots]}


@router.post("/indices/refresh")
async def refresh_indices(service: MarketDataService = Depends(get_service)):
    """Drop the cached index bundle and rebuild it."""
    snapshots = await service.refresh_index_snapshots()
    return {"indices": [_index_view(s) for s in snapshots]}


@router.get("/indices/{symbol}/constituents")
async def constituents(
    symbol: str,
    limit: int = Query(20),
    offset: int = Query(0),
    service: MarketDataService = Depends(get_service),
):
    """Top holdings of the index's ETF proxy, paged."""
    page = await service.get_index_constituents(symbol, limit=limit, offset=offset)
    if page is None:
        return not_found(f"Unknown index symbol: {symbol}")
    return page


@router.post("/quotes")
async def quotes(body: QuotesRequest, service: MarketDataService = Depends(get_service)):
    """Batch quotes; symbols that fail to resolve are left out."""
    if not body.symbols:
        raise ValueError("Symbols array is required")
    return {"quotes": await service.get_quotes(body.symbols)}


@router.get("/{symbol}/profile")
async def profile(symbol: str, service: MarketDataService = Depends(get_service)):
    """Company profile, or null when unavailable."""
    return await service.get_profile(symbol)


@router.get("/{symbol}/history")
async def history(
    symbol: str,
    timeframe: str = Query("1Day"),
    limit: int = Query(100),
    start: str | None = Query(None),
    end: str | None = Query(None),
    service: MarketDataService = Depends(get_service),
):
    """Historical bars for a symbol."""
    bars = await service.get_bars(symbol, timeframe, limit, _parse_ts(start), _parse_ts(end))
    return {"symbol": symbol.upper(), "timeframe": timeframe, "bars": bars}


@router.get("/{symbol}/details")
async def details(
    symbol: str,
    timeframe: str = Query("1Day"),
    limit: int = Query(100),
    service: MarketDataService = Depends(get_service),
):
    """Profile, quote and history in one call."""
    return await service.get_details(symbol, timeframe, limit)


@router.get("/{symbol}")
async def quote(symbol: str, service: MarketDataService = Depends(get_service)):
    """Latest quote for a symbol."""
    result = await service.get_quote(symbol)
    if result is None:
        return not_found(f"Stock {symbol.upper()} not found")
    return result
