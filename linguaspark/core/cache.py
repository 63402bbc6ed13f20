"""
Single-use TTL store for extracted page content handed from the extension to the popup
"""
from __future__ import annotations

from collections import OrderedDict
from typing import Any, Optional, Dict, Tuple
import json
import time

from redis.asyncio import Redis
from redis.exceptions import RedisError

from linguaspark.config import settings
from linguaspark.core.exceptions import PersistenceError
from linguaspark.core.logging import get_logger

logger = get_logger(__name__)


class _InMemoryTTL:
    """Bounded in-process TTL map, oldest entry evicted first."""

    def __init__(self, max_entries: int):
        self._max_entries = max(1, max_entries)
        self._store: "OrderedDict[str, Tuple[float, str]]" = OrderedDict()

    def _purge_expired(self, now: float):
        expired = [key for key, (exp, _) in self._store.items() if exp <= now]
        for key in expired:
            del self._store[key]

    async def setex(self, key: str, ttl: int, value: str):
        now = time.time()
        self._purge_expired(now)
        self._store.pop(key, None)
        self._store[key] = (now + max(1, int(ttl)), value)
        while len(self._store) > self._max_entries:
            evicted, _ = self._store.popitem(last=False)
            logger.warning("Extraction store full, evicted oldest entry", key=evicted)

    async def getdel(self, key: str) -> Optional[str]:
        # pop happens without an await in between, so only one caller gets the entry
        entry = self._store.pop(key, None)
        if entry is None:
            return None
        exp, value = entry
        if exp <= time.time():
            return None
        return value

    def __len__(self) -> int:
        self._purge_expired(time.time())
        return len(self._store)


class ExtractionStore:
    """Keyed handoff store with TTL and single-consumer retrieval."""

    KEY_PREFIX = "linguaspark:extraction:"

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        max_entries: Optional[int] = None,
        redis_client: Optional[Redis] = None,
    ):
        self.ttl_seconds = int(ttl_seconds or settings.extraction_ttl_seconds)
        self._client = redis_client
        self._mem = _InMemoryTTL(max_entries or settings.extraction_max_entries)

    @property
    def backend(self) -> str:
        return "redis" if self._client is not None else "memory"

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    async def store(self, session_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Save a payload under session_id, stamping the storage time in ms."""
        entry = dict(data)
        entry["timestamp"] = int(time.time() * 1000)
        raw = json.dumps(entry, ensure_ascii=False)
        try:
            if self._client is not None:
                await self._client.set(self._key(session_id), raw, ex=self.ttl_seconds)
            else:
                await self._mem.setex(self._key(session_id), self.ttl_seconds, raw)
        except RedisError as e:
            logger.error("Extraction store write failed", session_id=session_id, error=str(e))
            raise PersistenceError("Failed to store extracted content", {"session_id": session_id})

        logger.info("Stored extracted content", session_id=session_id, backend=self.backend, size=len(raw))
        return entry

    async def retrieve(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return and remove the payload; None when missing, expired or already taken."""
        try:
            if self._client is not None:
                raw = await self._client.getdel(self._key(session_id))
            else:
                raw = await self._mem.getdel(self._key(session_id))
        except RedisError as e:
            logger.error("Extraction store read failed", session_id=session_id, error=str(e))
            raise PersistenceError("Failed to retrieve extracted content", {"session_id": session_id})

        if not raw:
            logger.info("No extracted content found", session_id=session_id)
            return None

        logger.info("Retrieved extracted content", session_id=session_id, backend=self.backend)
        return json.loads(raw)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()


_store_singleton: Optional[ExtractionStore] = None


def get_extraction_store() -> ExtractionStore:
    global _store_singleton
    if _store_singleton is None:
        client = None
        if settings.redis_url:
            client = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
            logger.info("Redis extraction store initialized")
        else:
            logger.warning("REDIS_URL not configured. Using in-memory extraction store (non-persistent)")
        _store_singleton = ExtractionStore(redis_client=client)
    return _store_singleton
