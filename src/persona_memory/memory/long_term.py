from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from persona_memory.memory.models import LongTermItem

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchiveStats:
    total_items: int
    oldest_item: Optional[LongTermItem]
    newest_item: Optional[LongTermItem]
    average_embedding_size: float


class LongTermArchive:
    """Bounded archive of promoted summaries.

    Items are never merged.  When an insert pushes the archive over capacity
    the newest items by promotion time (falling back to creation time) are
    kept and the rest are dropped without error.
    """

    def __init__(self, capacity: int = 100, items: Optional[Iterable[LongTermItem]] = None) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._items: List[LongTermItem] = []
        if items:
            self.insert_many(items)

    def insert_many(self, items: Iterable[LongTermItem],
                    max_items: Optional[int] = None) -> List[LongTermItem]:
        """Append *items* and enforce the size bound.  Returns dropped items."""
        limit = self.capacity if max_items is None else max_items
        if limit < 1:
            raise ValueError(f"max_items must be >= 1, got {limit}")
        self._items.extend(items)
        if len(self._items) <= limit:
            return []
        ranked = sorted(self._items, key=lambda i: i.retention_time, reverse=True)
        self._items = ranked[:limit]
        dropped = ranked[limit:]
        log.debug("Long-term archive dropped %d oldest item(s) over capacity %d", len(dropped), limit)
        return dropped

    def insert(self, item: LongTermItem) -> List[LongTermItem]:
        return self.insert_many([item])

    def items(self) -> Tuple[LongTermItem, ...]:
        return tuple(self._items)

    def size(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[LongTermItem]:
        return iter(tuple(self._items))

    def stats(self) -> ArchiveStats:
        if not self._items:
            return ArchiveStats(0, None, None, 0.0)
        ordered = sorted(self._items, key=lambda i: i.retention_time)
        total_dims = sum(len(i.embedding or ()) for i in self._items)
        return ArchiveStats(
            total_items=len(self._items),
            oldest_item=ordered[0],
            newest_item=ordered[-1],
            average_embedding_size=total_dims / len(self._items),
        )
