"""Top-K retrieval across the mid-term and long-term tiers.

Each tier is ranked independently by cosine similarity against the query,
filtered by the relevance floor and cut to ``top_k``.  With feedback enabled,
every returned entry records the access so frequently retrieved memories
reinforce themselves toward promotion and retention.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from persona_memory.memory.long_term import LongTermArchive
from persona_memory.memory.mid_term import MidTermStore
from persona_memory.memory.models import LongTermItem, MidTermSlot
from persona_memory.memory.vector import rank_by_similarity

log = logging.getLogger(__name__)


@dataclass
class RetrievedSlot:
    slot: MidTermSlot
    similarity: float
    index: int


@dataclass
class RetrievedItem:
    item: LongTermItem
    similarity: float
    index: int


@dataclass
class RetrievalResult:
    mid_term: List[RetrievedSlot] = field(default_factory=list)
    long_term: List[RetrievedItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.mid_term and not self.long_term


class RetrievalEngine:
    def __init__(
        self,
        top_k: int = 3,
        relevance_floor: float = 0.5,
        clock: Callable[[], float] = time.time,
        relevance_growth: float = 1.05,
        max_base_relevance: float = 2.0,
    ) -> None:
        self.top_k = top_k
        self.relevance_floor = relevance_floor
        self.relevance_growth = relevance_growth
        self.max_base_relevance = max_base_relevance
        self._clock = clock

    def retrieve(
        self,
        query_embedding: Optional[Sequence[float]],
        mid_term: MidTermStore,
        long_term: LongTermArchive,
        top_k: Optional[int] = None,
        relevance_floor: Optional[float] = None,
        feedback: bool = True,
        now: Optional[float] = None,
    ) -> RetrievalResult:
        k = self.top_k if top_k is None else top_k
        floor = self.relevance_floor if relevance_floor is None else relevance_floor

        mid_ranked = [
            RetrievedSlot(slot=slot, similarity=sim, index=idx)
            for idx, slot, sim in rank_by_similarity(query_embedding, mid_term.slots(), lambda s: s.embedding)
            if sim >= floor
        ][:max(0, k)]
        long_ranked = [
            RetrievedItem(item=item, similarity=sim, index=idx)
            for idx, item, sim in rank_by_similarity(query_embedding, long_term.items(), lambda i: i.embedding)
            if sim >= floor
        ][:max(0, k)]
        result = RetrievalResult(mid_term=mid_ranked, long_term=long_ranked)

        if feedback and not result.is_empty:
            now = self._clock() if now is None else now
            for hit in result.mid_term:
                hit.slot.touch(now)
                hit.slot.base_relevance = min(self.max_base_relevance,
                                              hit.slot.base_relevance * self.relevance_growth)
            for hit in result.long_term:
                hit.item.touch(now)
        log.debug("Retrieved %d mid-term and %d long-term memories (floor=%.2f, k=%d)",
                  len(result.mid_term), len(result.long_term), floor, k)
        return result
