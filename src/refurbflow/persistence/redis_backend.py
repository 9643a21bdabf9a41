"""Redis backend implementing IUnitLock for multi-process deployments."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import redis
from redis.lock import Lock

from refurbflow.core.exceptions import ConflictError, LockError

logger = logging.getLogger(__name__)


class RedisUnitLock:
    """Per-unit mutual exclusion on top of redis-py's ``Lock``.

    Acquire is ``SET key token NX PX ttl``; release is a Lua compare-and-delete,
    so a holder whose TTL lapsed never deletes the next holder's key.
    """

    KEY_PREFIX = "refurbflow:lock:"

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0,
                 ttl_ms: int = 10_000, blocking_timeout: float = 2.0,
                 poll_interval: float = 0.05) -> None:
        self._host = host
        self._port = port
        self._db = db
        self._ttl_ms = ttl_ms
        self._blocking_timeout = blocking_timeout
        self._poll_interval = poll_interval
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def _key(self, qlid: str) -> str:
        return f"{self.KEY_PREFIX}{qlid}"

    def _lock(self, qlid: str) -> Lock:
        return self._client.lock(
            self._key(qlid),
            timeout=self._ttl_ms / 1000,
            sleep=self._poll_interval,
            blocking_timeout=self._blocking_timeout,
        )

    def _release(self, lock: Lock) -> None:
        try:
            lock.release()
        except redis.exceptions.LockNotOwnedError as exc:
            raise LockError(f"Lock {lock.name!r} expired before release; another writer may own it") from exc
        except redis.RedisError as exc:
            raise LockError(f"Redis release failed for key={lock.name!r}: {exc}") from exc

    @contextmanager
    def hold(self, qlid: str) -> Iterator[None]:
        lock = self._lock(qlid)
        try:
            acquired = lock.acquire()
        except redis.RedisError as exc:
            raise LockError(f"Redis acquire failed for key={lock.name!r}: {exc}") from exc
        if not acquired:
            raise ConflictError(qlid, f"Unit {qlid} is locked by another writer")
        logger.debug("Acquired lock %s", lock.name)
        try:
            yield
        finally:
            self._release(lock)
