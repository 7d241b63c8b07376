"""Mid-term memory: a bounded set of summarized topic slots.

New summaries either merge into the most similar existing slot (growing its
cluster) or open a new slot.  Capacity is enforced lazily after an insert by
recomputing priorities and truncating to the best ``capacity`` slots.  The
maintenance sweep calls :meth:`MidTermStore.evaluate_for_promotion` to move
important slots into the long-term archive and prune the rest.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from persona_memory.memory.models import LongTermItem, MidTermSlot, SlotCandidate
from persona_memory.memory.priority import PriorityEngine
from persona_memory.memory.promotion import PromotionPolicy
from persona_memory.memory.vector import cosine_similarity

log = logging.getLogger(__name__)


@dataclass
class SlotMatch:
    """Result of a similarity probe against the store."""
    slot: MidTermSlot
    index: int
    similarity: float


@dataclass
class PromotionResult:
    retained: List[MidTermSlot] = field(default_factory=list)
    promoted: List[LongTermItem] = field(default_factory=list)
    evicted: List[MidTermSlot] = field(default_factory=list)


@dataclass(frozen=True)
class MidTermStats:
    total_slots: int
    avg_priority: float
    oldest_slot_age_min: int
    newest_slot_age_min: int
    decayed_slots: int
    healthy_slots: int
    pinned_slots: int


MatchHint = Union[SlotMatch, MidTermSlot, None]


class MidTermStore:
    def __init__(
        self,
        capacity: int = 20,
        merge_threshold: float = 0.85,
        engine: Optional[PriorityEngine] = None,
        policy: Optional[PromotionPolicy] = None,
        clock: Callable[[], float] = time.time,
        slots: Optional[Iterable[MidTermSlot]] = None,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.merge_threshold = merge_threshold
        self.engine = engine or PriorityEngine()
        self.policy = policy or PromotionPolicy()
        self._clock = clock
        self._slots: List[MidTermSlot] = list(slots or [])

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def slots(self) -> Tuple[MidTermSlot, ...]:
        return tuple(self._slots)

    def size(self) -> int:
        return len(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[MidTermSlot]:
        return iter(tuple(self._slots))

    def __contains__(self, slot: object) -> bool:
        return any(s is slot for s in self._slots)

    # ------------------------------------------------------------------
    # Similarity probe and merge-or-insert
    # ------------------------------------------------------------------

    def find_best_match(self, embedding: Optional[Sequence[float]],
                        threshold: Optional[float] = None) -> Optional[SlotMatch]:
        """Return the most similar slot if it reaches *threshold*.

        Linear scan; on equal similarity the earlier slot wins.
        """
        threshold = self.merge_threshold if threshold is None else threshold
        best: Optional[SlotMatch] = None
        for idx, slot in enumerate(self._slots):
            sim = cosine_similarity(embedding, slot.embedding)
            if best is None or sim > best.similarity:
                best = SlotMatch(slot=slot, index=idx, similarity=sim)
        if best is None or best.similarity < threshold:
            return None
        return best

    def upsert(self, candidate: SlotCandidate, match_hint: MatchHint = None,
               merge_threshold: Optional[float] = None, now: Optional[float] = None) -> MidTermSlot:
        """Merge *candidate* into the slot named by *match_hint*, or insert it.

        A :class:`SlotMatch` hint is honoured only when its similarity meets
        *merge_threshold*; a bare slot hint is honoured when that slot is still
        in the store.  Returns the merged or newly created slot.
        """
        now = self._clock() if now is None else now
        threshold = self.merge_threshold if merge_threshold is None else merge_threshold
        target = self._resolve_hint(match_hint, threshold)
        if target is not None:
            target.summary = candidate.summary
            target.embedding = list(candidate.embedding)
            target.access_count += 1
            target.last_accessed = now
            target.cluster_size += 1
            target.user_pinned = target.user_pinned or candidate.user_pinned
            target.priority = self.engine(target, now)
            log.debug("Merged summary into mid-term slot (cluster=%d, access=%d)",
                      target.cluster_size, target.access_count)
            return target

        slot = MidTermSlot(
            summary=candidate.summary,
            embedding=list(candidate.embedding),
            base_relevance=1.0,
            access_count=0,
            last_accessed=now,
            created_at=now,
            category=candidate.category,
            user_pinned=candidate.user_pinned,
            cluster_size=1,
        )
        slot.priority = self.engine(slot, now)
        self._slots.append(slot)
        log.debug("Added new mid-term slot (%d/%d)", len(self._slots), self.capacity)
        if len(self._slots) > self.capacity:
            self._truncate(now)
        return slot

    def merge_or_insert(self, candidate: SlotCandidate, now: Optional[float] = None) -> MidTermSlot:
        """Probe for a similar slot and upsert *candidate* against it."""
        match = self.find_best_match(candidate.embedding)
        return self.upsert(candidate, match_hint=match, now=now)

    def _resolve_hint(self, hint: MatchHint, threshold: float) -> Optional[MidTermSlot]:
        if hint is None:
            return None
        if isinstance(hint, SlotMatch):
            if hint.similarity < threshold:
                return None
            hint = hint.slot
        if hint in self:
            return hint
        log.debug("Match hint no longer present in mid-term store; inserting instead")
        return None

    def _truncate(self, now: float) -> List[MidTermSlot]:
        self.recompute_priorities(now)
        # Equal priorities favour the most recently touched, then the later inserted.
        order = sorted(
            range(len(self._slots)),
            key=lambda i: (self._slots[i].priority, self._slots[i].last_accessed, i),
            reverse=True,
        )
        ranked = [self._slots[i] for i in order]
        self._slots = ranked[:self.capacity]
        evicted = ranked[self.capacity:]
        for slot in evicted:
            log.debug("Evicted mid-term slot over capacity (priority=%.3f)", slot.priority)
        return evicted

    # ------------------------------------------------------------------
    # Priority, pinning and promotion
    # ------------------------------------------------------------------

    def restore(self, slots: Iterable[MidTermSlot]) -> None:
        """Replace the store contents as loaded; capacity is enforced on the next insert."""
        self._slots = list(slots)

    def recompute_priorities(self, now: Optional[float] = None) -> None:
        now = self._clock() if now is None else now
        for slot in self._slots:
            slot.priority = self.engine(slot, now)

    def pin(self, slot: MidTermSlot) -> bool:
        if slot not in self:
            return False
        slot.user_pinned = True
        return True

    def unpin(self, slot: MidTermSlot) -> bool:
        if slot not in self:
            return False
        slot.user_pinned = False
        return True

    def evaluate_for_promotion(self, now: Optional[float] = None) -> PromotionResult:
        """Promote qualifying slots, prune sub-threshold ones, keep the rest.

        Promoted slots are removed from the store and returned as archive
        items.  Capacity grace is judged on the slot count before promotion.
        """
        now = self._clock() if now is None else now
        store_size = len(self._slots)
        result = PromotionResult()
        for slot in self._slots:
            slot.priority = self.engine(slot, now)
            if self.policy.should_promote(slot):
                result.promoted.append(LongTermItem.from_slot(slot, promoted_at=now))
            elif self.policy.should_retain(slot, slot.priority, store_size):
                result.retained.append(slot)
            else:
                result.evicted.append(slot)
        self._slots = list(result.retained)
        if result.promoted or result.evicted:
            log.debug("Mid-term evaluation: %d promoted, %d evicted, %d retained",
                      len(result.promoted), len(result.evicted), len(result.retained))
        return result

    def stats(self, now: Optional[float] = None) -> MidTermStats:
        now = self._clock() if now is None else now
        if not self._slots:
            return MidTermStats(0, 0.0, 0, 0, 0, 0, 0)
        priorities = [s.priority for s in self._slots]
        oldest = min(s.created_at for s in self._slots)
        newest = max(s.created_at for s in self._slots)
        decayed = sum(1 for p in priorities if p < 0.5)
        return MidTermStats(
            total_slots=len(self._slots),
            avg_priority=sum(priorities) / len(priorities),
            oldest_slot_age_min=round((now - oldest) / 60.0),
            newest_slot_age_min=round((now - newest) / 60.0),
            decayed_slots=decayed,
            healthy_slots=len(priorities) - decayed,
            pinned_slots=sum(1 for s in self._slots if s.user_pinned),
        )
