from __future__ import annotations

import asyncio
import json
import logging
from typing import List, Optional

import redis

from persona_memory.storage.base import Payload

log = logging.getLogger(__name__)


class RedisSnapshotStore:
    """One JSON document per persona under ``persona-memory:<id>``.

    The blocking redis client runs in the default executor so the event loop
    is never stalled by a slow server.
    """

    _PREFIX = "persona-memory:"

    def __init__(self, url: str, ttl_sec: Optional[int] = None) -> None:
        self._client = redis.Redis.from_url(url, decode_responses=True)
        self._ttl_sec = ttl_sec

    async def load(self, persona_id: str) -> Optional[Payload]:
        loop = asyncio.get_running_loop()
        raw = await loop.run_in_executor(None, lambda: self._client.get(self._key(persona_id)))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            log.warning("Stored document for persona %s is not valid JSON: %s", persona_id, exc)
            return None

    async def persist(self, persona_id: str, payload: Payload) -> None:
        data = json.dumps(payload)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, lambda: self._client.set(self._key(persona_id), data, ex=self._ttl_sec)
        )

    async def persona_ids(self) -> List[str]:
        loop = asyncio.get_running_loop()
        keys = await loop.run_in_executor(
            None, lambda: list(self._client.scan_iter(match=f"{self._PREFIX}*"))
        )
        return sorted(k[len(self._PREFIX):] for k in keys)

    @classmethod
    def _key(cls, persona_id: str) -> str:
        return f"{cls._PREFIX}{persona_id}"
