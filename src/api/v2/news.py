"""Market news endpoint."""
from fastapi import APIRouter, Depends, Query

from src.core.data import get_service
from src.core.data.service import MarketDataService

router = APIRouter(tags=["News"])


@router.get("/news")
async def market_news(category: str = Query("general"), service: MarketDataService = Depends(get_service)):
    """General market news, cached for 15 minutes."""
    return await service.get_market_news(category)
