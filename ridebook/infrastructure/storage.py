"""
Persisted client state.

Two independent entries live in a key-value store: the auth credential with
its user snapshot, and the booking session snapshot.  Each entry is written
as ``{"version": n, "state": {...}}``.  Storage is never assumed to be
available: a failed read behaves like an empty entry and a failed write is
logged and dropped.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol

import redis.asyncio as aioredis

from ridebook.config import settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryStore:
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class RedisStore:
    def __init__(self, client: aioredis.Redis, namespace: str = "ridebook"):
        self.redis = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._key(key))


class PersistedEntry:
    """One versioned snapshot under a fixed key."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        version: int = settings.storage_schema_version,
    ):
        self.store = store
        self.key = key
        self.version = version

    async def load(self) -> Optional[dict[str, Any]]:
        try:
            raw = await self.store.get(self.key)
        except Exception:
            logger.warning("Could not read %s from storage", self.key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            envelope = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding corrupt snapshot for %s", self.key)
            return None
        if not isinstance(envelope, dict) or envelope.get("version") != self.version:
            logger.info("Discarding %s snapshot with foreign schema version", self.key)
            return None
        state = envelope.get("state")
        return state if isinstance(state, dict) else None

    async def save(self, state: dict[str, Any]) -> None:
        payload = json.dumps({"version": self.version, "state": state})
        try:
            await self.store.set(self.key, payload)
        except Exception:
            logger.warning("Could not write %s to storage", self.key, exc_info=True)

    async def clear(self) -> None:
        try:
            await self.store.delete(self.key)
        except Exception:
            logger.warning("Could not delete %s from storage", self.key, exc_info=True)
