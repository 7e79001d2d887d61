#!/usr/bin/env python3
"""Clear the market-data cache.

    python scripts/clear_cache.py --all
    python scripts/clear_cache.py --indices
    python scripts/clear_cache.py --entity quote --symbol AAPL
    python scripts/clear_cache.py --entity bars --symbol SPY --resolution 1Min --limit 390
"""
import argparse
import asyncio
import sys

import structlog

from src.core.config import settings
from src.core.data import build_service
from src.core.data.cache.keys import EntityType
from src.core.log import configure_logging

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    mode = p.add_mutually_exclusive_group(required=True)
    mode.add_argument("--all", action="store_true", help="flush the whole cache database")
    mode.add_argument("--indices", action="store_true", help="drop the cached index bundle")
    mode.add_argument("--entity", choices=[e.value for e in EntityType], help="drop one entry")
    p.add_argument("--symbol")
    p.add_argument("--resolution")
    p.add_argument("--limit", type=int)
    p.add_argument("--query")
    p.add_argument("--count", type=int)
    p.add_argument("--etf")
    p.add_argument("--category")
    return p.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    service = build_service()
    if not await service.cache.connect():
        logger.error("clear_cache.unavailable", url=settings.redis_url)
        return 2
    try:
        if args.all:
            await service.flush_all()
        elif args.indices:
            await service.invalidate(EntityType.INDICES)
        else:
            params = {
                k: getattr(args, k)
                for k in ("symbol", "resolution", "limit", "query", "count", "etf", "category")
                if getattr(args, k) is not None
            }
            await service.invalidate(args.entity, **params)
    except ValueError as e:
        logger.error("clear_cache.bad_arguments", error=str(e))
        return 1
    finally:
        await service.cache.close()
    return 0


if __name__ == "__main__":
    configure_logging(settings.log_level)
    sys.exit(asyncio.run(run(parse_args())))
