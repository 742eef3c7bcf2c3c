"""Redis-backed blob storage for cart snapshots with in-memory fallback."""
from __future__ import annotations

import os
import time
from typing import Any, Protocol

import redis

from cartengine.core.constants import CART_EXPIRY_SECONDS

try:
    from logging_config import logger
except ImportError:
    import logging

    logger = logging.getLogger(__name__)


class SnapshotStorage(Protocol):
    """Opaque key/value blob store used for cart snapshots and item preferences."""

    def load(self, key: str) -> str | None: ...

    def save(self, key: str, blob: str) -> None: ...

    def delete(self, key: str) -> None: ...


class RedisSnapshotStorage:
    """Key/value blob store persisted in Redis with a sliding TTL.

    Any Redis failure switches the instance to a process-local dict so the
    cart keeps working; reads and writes never raise.
    """

    def __init__(self, redis_url: str | None = None, expiry_seconds: int = CART_EXPIRY_SECONDS):
        self._redis_url = redis_url or os.getenv("REDIS_URL")
        self._expiry_seconds = int(expiry_seconds)
        self._client = self._init_client()
        self._memory: dict[str, str] = {}
        self._memory_last_access: dict[str, float] = {}

    @property
    def is_redis_backed(self) -> bool:
        return self._client is not None

    def _switch_to_memory_fallback(self, reason: Exception | str) -> None:
        logger.warning("Redis snapshot storage fallback to memory mode: %s", reason)
        self._client = None

    def _init_client(self) -> Any:
        if not self._redis_url:
            logger.warning("REDIS_URL is not set; cart snapshots use in-memory fallback")
            return None

        try:
            client = redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            client.ping()
            logger.info("Redis snapshot storage enabled")
            return client
        except Exception as exc:
            logger.warning("Redis snapshot init failed, fallback to in-memory: %s", exc)
            return None

    def _cleanup_memory_expired(self) -> None:
        now = time.time()
        expired = [
            key
            for key, last_access in self._memory_last_access.items()
            if now - last_access > self._expiry_seconds
        ]
        for key in expired:
            self._memory.pop(key, None)
            self._memory_last_access.pop(key, None)

    def _memory_load(self, key: str) -> str | None:
        self._cleanup_memory_expired()
        value = self._memory.get(key)
        if value is not None:
            self._memory_last_access[key] = time.time()
        return value

    def _memory_save(self, key: str, blob: str) -> None:
        self._memory[key] = blob
        self._memory_last_access[key] = time.time()

    def _memory_delete(self, key: str) -> None:
        self._memory.pop(key, None)
        self._memory_last_access.pop(key, None)

    def load(self, key: str) -> str | None:
        if not self._client:
            return self._memory_load(key)
        try:
            raw = self._client.get(key)
        except Exception as exc:
            self._switch_to_memory_fallback(exc)
            return self._memory_load(key)
        if raw is None:
            return None
        return raw if isinstance(raw, str) else raw.decode("utf-8", errors="replace")

    def save(self, key: str, blob: str) -> None:
        if self._client:
            try:
                self._client.setex(key, self._expiry_seconds, blob)
                return
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory_save(key, blob)

    def delete(self, key: str) -> None:
        if self._client:
            try:
                self._client.delete(key)
                return
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory_delete(key)
