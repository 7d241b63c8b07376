"""Registry of persona memory snapshots with per-persona serialization.

Every mutation of a persona's tiers (turn pushes, summary upserts, retrieval
with access feedback, maintenance sweeps) runs while holding that persona's
:class:`asyncio.Lock`.  Mid-term truncation and archive eviction are not
order-independent, so at most one mutation per persona is in flight; distinct
personas proceed concurrently.

Usage::

    registry = PersonaRegistry(InMemorySnapshotStore())
    await registry.record_turn("ada", Turn(role="user", content="hi"))
    async with registry.acquire("ada") as memory:
        print(memory.sizes())
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence

from persona_memory.config import MemorySettings, get_settings
from persona_memory.errors import PersistenceFailure
from persona_memory.memory.models import MidTermSlot, SlotCandidate, Turn
from persona_memory.memory.retrieval import RetrievalEngine, RetrievalResult
from persona_memory.memory.short_term import TurnLike
from persona_memory.memory.snapshot import PersonaMemory
from persona_memory.storage.base import SnapshotStore

log = logging.getLogger(__name__)


class _PersonaHandle:
    __slots__ = ("persona_id", "lock", "memory", "dirty")

    def __init__(self, persona_id: str) -> None:
        self.persona_id = persona_id
        self.lock = asyncio.Lock()
        self.memory: Optional[PersonaMemory] = None
        # Set while the cached snapshot holds changes the store has not accepted.
        self.dirty = False


class PersonaRegistry:
    """Maps persona ids to independently owned memory snapshots.

    Snapshots are loaded lazily from the store on first :meth:`acquire`.  A
    failed load raises :class:`PersistenceFailure` and leaves nothing cached,
    so a transient outage never gets an empty snapshot written over real data.
    """

    def __init__(
        self,
        store: SnapshotStore,
        settings: Optional[MemorySettings] = None,
        clock: Callable[[], float] = time.time,
        retrieval: Optional[RetrievalEngine] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._store = store
        self._clock = clock
        self._retrieval = retrieval or RetrievalEngine(
            top_k=self.settings.TOP_K,
            relevance_floor=self.settings.RELEVANCE_FLOOR,
            clock=clock,
        )
        self._handles: Dict[str, _PersonaHandle] = {}

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def register(self, persona_id: str) -> None:
        self._handle(persona_id)

    def persona_ids(self) -> List[str]:
        return list(self._handles)

    async def discover(self) -> List[str]:
        """Register every persona the store knows about, when it can list them."""
        lister = getattr(self._store, "persona_ids", None)
        if lister is None:
            return self.persona_ids()
        for persona_id in await lister():
            self.register(persona_id)
        return self.persona_ids()

    def __contains__(self, persona_id: object) -> bool:
        return persona_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def _handle(self, persona_id: str) -> _PersonaHandle:
        if not persona_id:
            raise ValueError("persona_id must be a non-empty string")
        handle = self._handles.get(persona_id)
        if handle is None:
            handle = _PersonaHandle(persona_id)
            self._handles[persona_id] = handle
        return handle

    # ------------------------------------------------------------------
    # Serialization point
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def acquire(self, persona_id: str) -> AsyncIterator[PersonaMemory]:
        """Hold *persona_id* exclusively and yield its memory snapshot."""
        handle = self._handle(persona_id)
        async with handle.lock:
            if handle.memory is None:
                handle.memory = await self._load(persona_id)
            yield handle.memory

    async def persist(self, persona_id: str, memory: PersonaMemory) -> None:
        """Write *memory* to the store.  The caller must hold it via :meth:`acquire`.

        A rejected write marks the persona dirty until a later write succeeds.

        Raises:
            PersistenceFailure: If the store rejects the write.
        """
        handle = self._handle(persona_id)
        try:
            await self._store.persist(persona_id, memory.to_payload())
        except Exception as exc:
            handle.dirty = True
            raise PersistenceFailure(persona_id, f"persist failed: {exc}") from exc
        handle.dirty = False

    def is_dirty(self, persona_id: str) -> bool:
        """True when the last write for *persona_id* failed and none has succeeded since."""
        handle = self._handles.get(persona_id)
        return handle is not None and handle.dirty

    async def _load(self, persona_id: str) -> PersonaMemory:
        try:
            payload = await self._store.load(persona_id)
        except Exception as exc:
            raise PersistenceFailure(persona_id, f"load failed: {exc}") from exc
        if payload is None:
            log.debug("No stored memory for persona %s; starting empty", persona_id)
        return PersonaMemory.from_payload(payload, settings=self.settings, clock=self._clock)

    # ------------------------------------------------------------------
    # Turn-driven operations
    # ------------------------------------------------------------------

    async def record_turn(self, persona_id: str, turn: TurnLike) -> Turn:
        async with self.acquire(persona_id) as memory:
            return memory.short_term.push(turn)

    async def history(self, persona_id: str) -> List[Turn]:
        async with self.acquire(persona_id) as memory:
            return memory.short_term.read()

    async def remember(self, persona_id: str, candidate: SlotCandidate) -> MidTermSlot:
        """Probe mid-term memory for a similar slot and merge or insert."""
        async with self.acquire(persona_id) as memory:
            return memory.mid_term.merge_or_insert(candidate, now=self._clock())

    async def retrieve(
        self,
        persona_id: str,
        query_embedding: Optional[Sequence[float]],
        top_k: Optional[int] = None,
        relevance_floor: Optional[float] = None,
        feedback: bool = True,
    ) -> RetrievalResult:
        async with self.acquire(persona_id) as memory:
            return self._retrieval.retrieve(
                query_embedding,
                memory.mid_term,
                memory.long_term,
                top_k=top_k,
                relevance_floor=relevance_floor,
                feedback=feedback,
                now=self._clock(),
            )

    async def save(self, persona_id: str) -> None:
        async with self.acquire(persona_id) as memory:
            await self.persist(persona_id, memory)
