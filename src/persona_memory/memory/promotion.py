from __future__ import annotations

from dataclasses import dataclass

from persona_memory.memory.models import MidTermSlot


@dataclass
class PromotionPolicy:
    """Thresholds deciding which mid-term slots move to the archive or stay.

    ``capacity_grace`` is a hysteresis knob: while the store holds at most that
    many slots, unpinned low-priority slots are retained instead of pruned.
    """
    min_access_count: int = 5
    min_cluster_size: int = 3
    retention_min_priority: float = 0.2
    capacity_grace: int = 15

    def should_promote(self, slot: MidTermSlot) -> bool:
        return (
            slot.access_count >= self.min_access_count
            or slot.user_pinned
            or slot.cluster_size >= self.min_cluster_size
        )

    def should_retain(self, slot: MidTermSlot, priority: float, store_size: int) -> bool:
        return (
            slot.user_pinned
            or priority >= self.retention_min_priority
            or store_size <= self.capacity_grace
        )
