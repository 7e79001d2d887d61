"""Base class for upstream market-data sources.

Sources are fail-soft: transport errors, timeouts, non-2xx responses and
payloads that do not match the provider's documented shape are logged and
turned into ``None`` / ``[]``. Nothing raises past a source.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, TypeVar

import aiohttp
import structlog
from aiolimiter import AsyncLimiter
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

# Statuses that mean "valid request, nothing there" rather than an outage
NOT_FOUND_STATUSES = frozenset({404, 422})


class HttpSource(ABC):

    def __init__(self, timeout: float = 10.0, limiter: AsyncLimiter | None = None):
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._limiter = limiter

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique key: 'alpaca', 'finnhub', 'yahoo'"""
        ...

    def _headers(self) -> dict[str, str]:
        return {}

    async def _get_json(self, url: str, params: dict | None = None, **context) -> Any | None:
        """GET ``url`` and return the decoded JSON body, or ``None`` on any failure."""
        try:
            if self._limiter is not None:
                async with self._limiter:
                    return await self._request(url, params, **context)
            return await self._request(url, params, **context)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"{self.name}.failed", url=url, error=repr(e), **context)
            return None

    async def _request(self, url: str, params: dict | None, **context) -> Any | None:
        async with aiohttp.ClientSession(headers=self._headers(), timeout=self._timeout) as session:
            async with session.get(url, params=params) as resp:
                if resp.status in NOT_FOUND_STATUSES:
                    logger.info(f"{self.name}.not_found", url=url, status=resp.status, **context)
                    return None
                if resp.status >= 400:
                    body = await resp.text()
                    logger.warning(
                        f"{self.name}.http_error", url=url, status=resp.status, body=body[:200], **context
                    )
                    return None
                return await resp.json(content_type=None)

    def _decode(self, model: type[M], payload: Any, **context) -> M | None:
        """Validate ``payload`` against the provider's response shape."""
        if payload is None:
            return None
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"{self.name}.bad_payload", model=model.__name__, errors=e.error_count(), **context)
            return None
