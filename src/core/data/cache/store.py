"""Redis-backed key-value cache with per-key TTL and MessagePack serialisation.

The store tolerates a missing or flapping server: while disconnected every
operation is a no-op (``get`` returns ``None``) so callers simply see cache
misses. Connection state is tracked explicitly and each transition is
logged once, not per failed operation.
"""
from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, Callable

import msgpack
import redis.asyncio as redis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

logger = structlog.get_logger()

# Errors that mean the server is gone, as opposed to one bad command or key
_FAILURES = (RedisConnectionError, RedisTimeoutError, OSError, asyncio.TimeoutError)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


Listener = Callable[[ConnectionState, ConnectionState], None]


class CacheStore:

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        client=None,
        reconnect_interval: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client or redis.from_url(
            redis_url, socket_connect_timeout=2, socket_timeout=2
        )
        self._reconnect_interval = reconnect_interval
        self._clock = clock
        self._state = ConnectionState.DISCONNECTED
        self._last_attempt: float | None = None
        self._outage = False
        self._listeners: list[Listener] = []

    # ── connection state ─────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def on_transition(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _transition(self, new: ConnectionState, error: Exception | None = None) -> None:
        old = self._state
        if old is new:
            return
        self._state = new
        if new is ConnectionState.CONNECTING:
            logger.debug("cache.state", old=old.value, new=new.value)
        elif new is ConnectionState.CONNECTED:
            self._outage = False
            logger.info("cache.state", old=old.value, new=new.value)
        elif error is None:
            logger.info("cache.state", old=old.value, new=new.value)
        elif not self._outage:
            # Failed reconnect attempts during an outage stay quiet
            self._outage = True
            logger.warning("cache.unavailable", error=str(error), detail="running without cache")
        for listener in self._listeners:
            listener(old, new)

    async def connect(self) -> bool:
        """Ping the server; returns whether the cache is usable."""
        self._last_attempt = self._clock()
        self._transition(ConnectionState.CONNECTING)
        try:
            await self.client.ping()
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            self._transition(ConnectionState.DISCONNECTED, e)
            return False
        self._transition(ConnectionState.CONNECTED)
        return True

    async def _ready(self) -> bool:
        if self._state is ConnectionState.CONNECTED:
            return True
        if self._state is ConnectionState.CONNECTING:
            return False
        due = (
            self._last_attempt is None
            or self._clock() - self._last_attempt >= self._reconnect_interval
        )
        return await self.connect() if due else False

    # ── operations ───────────────────────────────────────────────────────

    async def get(self, key: str) -> Any | None:
        if not await self._ready():
            return None
        try:
            raw = await self.client.get(key)
        except _FAILURES as e:
            self._transition(ConnectionState.DISCONNECTED, e)
            return None
        except RedisError as e:
            logger.warning("cache.command_failed", op="get", key=key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return msgpack.unpackb(raw)
        except (ValueError, TypeError) as e:
            logger.warning("cache.undecodable", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if not await self._ready():
            return
        try:
            await self.client.setex(key, ttl_seconds, msgpack.packb(value, use_bin_type=True))
        except _FAILURES as e:
            self._transition(ConnectionState.DISCONNECTED, e)
        except RedisError as e:
            logger.warning("cache.command_failed", op="set", key=key, error=str(e))

    async def delete(self, key: str) -> None:
        if not await self._ready():
            return
        try:
            await self.client.delete(key)
        except _FAILURES as e:
            self._transition(ConnectionState.DISCONNECTED, e)
        except RedisError as e:
            logger.warning("cache.command_failed", op="delete", key=key, error=str(e))

    async def flush(self) -> None:
        """Drop every key in the current database."""
        if not await self._ready():
            return
        try:
            await self.client.flushdb()
        except _FAILURES as e:
            self._transition(ConnectionState.DISCONNECTED, e)
        except RedisError as e:
            logger.warning("cache.command_failed", op="flush", error=str(e))

    async def close(self) -> None:
        await self.client.aclose()
        self._transition(ConnectionState.DISCONNECTED)
