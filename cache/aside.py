"""
cache/aside.py -- Cache-aside controller: read-through with post-write invalidation.

Read path (get_collection):
  1. Client not connected -> skip the cache entirely, query the store.
  2. Cache hit            -> deserialize and return. The store is NOT queried.
  3. Cache miss           -> query the store, serialize, set with TTL, return.
  4. Any fault (read, write, undecodable entry) -> log it and return the
     store result. A cache fault never fails the caller.

Write path (invalidate):
  Called and awaited after every successful store commit, before the write's
  response is returned. Connected -> delete the key. Not connected -> log
  and defer; reads go to the store until the client reconnects. A fault is
  logged and swallowed: the store commit is authoritative regardless.
  Deferred or faulted keys are deleted again before the next cached read
  of that key, so a snapshot from before an outage is never served after it.

Consistency: this is cache-aside, not write-through. A reader racing a
writer between commit and invalidation can see the previous snapshot; the
window is bounded by one request's latency and never exceeds the TTL.
Concurrent misses for the same key may each populate it. Cached values are
whole snapshots, so the last writer wins harmlessly.

Layer rule: cache/ imports only stdlib + third-party libraries.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from cache.client import CacheClient, CacheFault

logger = logging.getLogger("todolist.cache")

DEFAULT_TTL_SECONDS = 300


class CacheAside:
    """Orchestrates reads through a CacheClient with fallback to a loader.

    Usage:
        aside = CacheAside(client, ttl_seconds=300)
        tasks = await aside.get_collection("tasks:all", lambda: [t.to_dict() for t in store.list_tasks()])
        ...
        store.create_task("buy milk")
        await aside.invalidate("tasks:all")
    """

    def __init__(self, client: CacheClient, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds
        # Keys whose invalidation was skipped or faulted. Redis may still hold
        # a snapshot from before the write, so it is deleted before the key is
        # served from the cache again.
        self._pending_invalidations: set[str] = set()

    async def get_collection(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the value for key from the cache, or from loader() on miss/fault.

        loader must return a JSON-serializable value. It is called at most
        once per invocation and never on a cache hit.
        """
        if not self.client.is_connected():
            logger.debug("Cache unavailable; reading %s from store", key)
            return loader()

        if key in self._pending_invalidations and not await self._delete(key):
            return loader()

        cached = await self.client.get(key)
        if cached.fault is not None:
            _log_fault(key, cached.fault)
            return loader()

        if cached.value is not None:
            try:
                data = json.loads(cached.value)
            except ValueError as exc:
                logger.warning("Cache entry %s is not valid JSON (%s); reloading from store", key, exc)
            else:
                logger.debug("Cache HIT %s", key)
                return data
        else:
            logger.debug("Cache MISS %s", key)

        data = loader()
        stored = await self.client.set_ttl(key, json.dumps(data), self.ttl_seconds)
        if stored.fault is not None:
            _log_fault(key, stored.fault)
        return data

    async def invalidate(self, key: str) -> bool:
        """Delete key from the cache. Returns True only if the delete was confirmed.

        Never raises. False means the cache was unavailable or faulted; the
        key is then deleted before its next cached read.
        """
        if not self.client.is_connected():
            logger.info("Cache unavailable; deferring invalidation of %s", key)
            self._pending_invalidations.add(key)
            return False
        return await self._delete(key)

    async def _delete(self, key: str) -> bool:
        result = await self.client.delete(key)
        if result.fault is not None:
            _log_fault(key, result.fault)
            self._pending_invalidations.add(key)
            return False
        self._pending_invalidations.discard(key)
        logger.debug("Cache invalidated %s", key)
        return True


def _log_fault(key: str, fault: CacheFault) -> None:
    logger.warning("Cache %s failed for %s: %s", fault.operation, key, fault.reason)
