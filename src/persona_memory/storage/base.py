from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Optional, Protocol

Payload = Dict[str, Any]


class SnapshotStore(Protocol):
    """External persistence for persona memory documents.

    ``load`` returns ``None`` for a persona with no stored document; both
    methods raise on backend failure.
    """

    async def load(self, persona_id: str) -> Optional[Payload]:
        ...

    async def persist(self, persona_id: str, payload: Payload) -> None:
        ...


class InMemorySnapshotStore:
    """Process-local store.  Documents are round-tripped through JSON on write."""

    def __init__(self, documents: Optional[Dict[str, Payload]] = None) -> None:
        self._documents: Dict[str, str] = {}
        for persona_id, payload in (documents or {}).items():
            self._documents[persona_id] = json.dumps(payload)
        self.writes = 0

    async def load(self, persona_id: str) -> Optional[Payload]:
        raw = self._documents.get(persona_id)
        return json.loads(raw) if raw is not None else None

    async def persist(self, persona_id: str, payload: Payload) -> None:
        self._documents[persona_id] = json.dumps(copy.deepcopy(payload))
        self.writes += 1

    async def persona_ids(self) -> List[str]:
        return sorted(self._documents)
