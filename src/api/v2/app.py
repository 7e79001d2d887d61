"""FastAPI application — market snapshot API v2."""
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.v2 import cache, news, stocks
from src.api.v2.errors import value_error_handler
from src.core.config import settings
from src.core.data import get_service
from src.core.data.service import MarketDataService
from src.core.log import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    service = get_service()
    await service.cache.connect()
    logger.info("startup", version="2.0.0", cache=service.cache.state.value)
    yield
    await service.cache.close()
    logger.info("shutdown")


app = FastAPI(
    title="Market Snapshot API",
    version="2.0.0",
    description="Cached quotes, bars, indices and company data for the market dashboard",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(stocks.router, prefix="/api/v2")
app.include_router(news.router, prefix="/api/v2")
app.include_router(cache.router, prefix="/api/v2")

app.add_exception_handler(ValueError, value_error_handler)


@app.get("/health")
async def health(service: MarketDataService = Depends(get_service)):
    return {"status": "ok", "version": "2.0.0", "cache": service.cache.state.value}
