"""
cache/client.py -- Redis cache client with an explicit connectivity state.

The cache is optional and best-effort. Nothing in the request path may fail
because Redis is slow, down, or flapping, so this module never raises from
get/set_ttl/delete. Every operation returns a CacheResult: a value on success
or a CacheFault describing what went wrong. cache/aside.py inspects the
result and decides what to do; there is no control flow by exception.

Connectivity state machine (ConnectionState):

    disconnected -> connecting -> connected <-> reconnecting -> connected
                                                             -> disconnected

  - start() launches a supervisor task. The initial connection is attempted
    in the background; its failure never blocks or fails process startup.
  - A connection-level fault during an operation (or a failed health-check
    ping) moves connected -> reconnecting and wakes the supervisor.
  - The supervisor retries with capped linear backoff:
        delay(n) = min(n * 50ms, 500ms)   for attempt n = 1, 2, ...
  - While not connected, operations return an "unavailable" fault
    immediately. They are never retried inline.
  - max_reconnect_attempts > 0 gives up after that many consecutive failed
    attempts (-> disconnected). 0 retries forever.
  - close() stops the supervisor and moves to disconnected. The supervisor
    also checks a closing flag after every await: on Python < 3.12,
    asyncio.wait_for can drop a cancellation that races a completed wait.

Every Redis call is bounded by op_timeout (asyncio.wait_for on top of the
redis socket timeouts) so a hanging cache costs at most that much latency.

CacheClient is a Protocol so tests can substitute an in-memory fake
(tests/fakes.py) without touching Redis.

Layer rule: cache/ imports only stdlib + third-party libraries.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

logger = logging.getLogger("todolist.cache")

_BACKOFF_STEP_MS = 50
_BACKOFF_CAP_MS = 500

# Errors that mean the connection itself is unusable, not just this command.
_CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, asyncio.TimeoutError, OSError)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True)
class CacheFault:
    """Why a cache operation did not complete.

    reason is "unavailable" when the client was not connected and the
    operation was skipped without touching Redis.
    """

    operation: str  # "get" | "set" | "delete"
    reason: str


@dataclass(frozen=True)
class CacheResult:
    """Outcome of one cache operation: a value, or a fault. Never both.

    For get, value None with no fault is a miss.
    """

    value: Any = None
    fault: Optional[CacheFault] = None

    @property
    def ok(self) -> bool:
        return self.fault is None


def unavailable(operation: str) -> CacheResult:
    return CacheResult(fault=CacheFault(operation=operation, reason="unavailable"))


class CacheClient(Protocol):
    """What the cache-aside controller needs from a cache backend."""

    def is_connected(self) -> bool: ...

    async def get(self, key: str) -> CacheResult: ...

    async def set_ttl(self, key: str, value: str, ttl_seconds: int) -> CacheResult: ...

    async def delete(self, key: str) -> CacheResult: ...


def reconnect_delay(attempt: int) -> float:
    """Seconds to wait before reconnect attempt number `attempt` (1-based)."""
    return min(attempt * _BACKOFF_STEP_MS, _BACKOFF_CAP_MS) / 1000


# ---------------------------------------------------------------------------
# Redis implementation
# ---------------------------------------------------------------------------


class RedisCacheClient:
    """CacheClient backed by redis.asyncio with a supervised connection.

    Usage (inside a running event loop):
        client = RedisCacheClient("redis://localhost:6379/0", op_timeout=0.25)
        await client.start()          # returns immediately
        result = await client.get("tasks:all")
        await client.close()
    """

    def __init__(
        self,
        redis_url: str,
        op_timeout: float,
        health_check_interval: float = 5.0,
        max_reconnect_attempts: int = 0,
        redis_client: Optional[redis.Redis] = None,
    ) -> None:
        self._op_timeout = op_timeout
        self._health_check_interval = health_check_interval
        self._max_reconnect_attempts = max_reconnect_attempts
        # Retry(NoBackoff(), 0): reconnection is the supervisor's job. The
        # redis client must not retry a command inline behind our back.
        self._redis = redis_client or redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=op_timeout,
            socket_connect_timeout=op_timeout,
            retry=Retry(NoBackoff(), 0),
        )
        self._state = ConnectionState.DISCONNECTED
        self._lost = asyncio.Event()
        self._supervisor: Optional[asyncio.Task] = None
        self._closing = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state is not self._state:
            logger.info("Redis cache %s -> %s", self._state.value, new_state.value)
            self._state = new_state

    def _mark_lost(self, exc: BaseException) -> None:
        """Record a connection-level failure seen by an operation."""
        if self._state is ConnectionState.CONNECTED:
            logger.warning("Redis connection lost: %r", exc)
            self._set_state(ConnectionState.RECONNECTING)
            self._lost.set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Begin connecting in the background. Never raises, never blocks."""
        if self._supervisor is None or self._supervisor.done():
            self._closing = False
            self._set_state(ConnectionState.CONNECTING)
            self._supervisor = asyncio.create_task(self._supervise(), name="redis-cache-supervisor")

    async def close(self) -> None:
        self._closing = True
        self._lost.set()
        if self._supervisor is not None:
            supervisor, self._supervisor = self._supervisor, None
            supervisor.cancel()
            # wait() does not re-raise the supervisor's CancelledError, so a
            # cancellation of the caller itself still propagates.
            await asyncio.wait({supervisor})
        self._set_state(ConnectionState.DISCONNECTED)
        try:
            await self._redis.aclose()
        except (RedisError, OSError) as exc:
            logger.warning("Error closing Redis client: %r", exc)

    async def _supervise(self) -> None:
        """Connect, watch the connection, and reconnect with capped backoff."""
        attempt = 0
        while not self._closing:
            connected = await self._ping()
            if self._closing:
                return
            if connected:
                attempt = 0
                self._lost.clear()
                self._set_state(ConnectionState.CONNECTED)
                await self._watch()
                if self._closing:
                    return
                self._set_state(ConnectionState.RECONNECTING)

            attempt += 1
            if self._max_reconnect_attempts and attempt > self._max_reconnect_attempts:
                logger.error("Giving up on Redis after %d attempts; cache disabled", attempt - 1)
                self._set_state(ConnectionState.DISCONNECTED)
                return
            self._set_state(ConnectionState.RECONNECTING)
            delay = reconnect_delay(attempt)
            logger.info("Reconnecting to Redis in %.0fms (attempt %d)", delay * 1000, attempt)
            await asyncio.sleep(delay)

    async def _watch(self) -> None:
        """Return once the connection is considered lost."""
        while not self._closing:
            try:
                await asyncio.wait_for(self._lost.wait(), timeout=self._health_check_interval)
                return
            except asyncio.TimeoutError:
                if not await self._ping():
                    return

    async def _ping(self) -> bool:
        try:
            await asyncio.wait_for(self._redis.ping(), timeout=self._op_timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("Redis ping failed: %r", exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def _run(self, operation: str, call: Callable[[], Awaitable[Any]]) -> CacheResult:
        if not self.is_connected():
            return unavailable(operation)
        try:
            value = await asyncio.wait_for(call(), timeout=self._op_timeout)
        except _CONNECTION_ERRORS as exc:
            self._mark_lost(exc)
            return CacheResult(fault=CacheFault(operation=operation, reason=f"connection error: {exc!r}"))
        except RedisError as exc:
            return CacheResult(fault=CacheFault(operation=operation, reason=repr(exc)))
        except Exception as exc:
            # e.g. UnicodeDecodeError from decode_responses on a foreign value.
            # The connection itself is fine.
            return CacheResult(fault=CacheFault(operation=operation, reason=repr(exc)))
        return CacheResult(value=value)

    async def get(self, key: str) -> CacheResult:
        return await self._run("get", lambda: self._redis.get(key))

    async def set_ttl(self, key: str, value: str, ttl_seconds: int) -> CacheResult:
        return await self._run("set", lambda: self._redis.set(key, value, ex=ttl_seconds))

    async def delete(self, key: str) -> CacheResult:
        return await self._run("delete", lambda: self._redis.delete(key))
