"""Persona memory snapshot and its persisted JSON document.

One document per persona::

    {
      "shortTermHistory": [{role, content, ts}],
      "midTermSlots": [{summary, embedding, priority, baseRelevance, accessCount,
                        lastAccessed, createdAt, ts, category,
                        userMarkedImportant, semanticClusterSize}],
      "longTermStore": {"items": [{id, summary, embedding,
                                   meta: {timestamp, date, messageCount, ...}}]}
    }

All instants in the document are milliseconds since the epoch.  Decoding is
forgiving: missing sections load as empty tiers and malformed records are
skipped with a warning so one bad entry never blocks the rest.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from persona_memory.config import MemorySettings, get_settings
from persona_memory.errors import InvalidTurn
from persona_memory.memory.long_term import LongTermArchive
from persona_memory.memory.mid_term import MidTermStore
from persona_memory.memory.models import Category, LongTermItem, MidTermSlot, Turn
from persona_memory.memory.priority import PriorityEngine
from persona_memory.memory.promotion import PromotionPolicy
from persona_memory.memory.short_term import ShortTermQueue

log = logging.getLogger(__name__)


@dataclass
class PersonaMemory:
    """The three memory tiers owned by a single persona."""
    short_term: ShortTermQueue
    mid_term: MidTermStore
    long_term: LongTermArchive

    @classmethod
    def empty(cls, settings: Optional[MemorySettings] = None,
              clock: Callable[[], float] = time.time) -> "PersonaMemory":
        settings = settings or get_settings()
        return cls(
            short_term=ShortTermQueue(max_size=settings.SHORT_TERM_LIMIT, clock=clock),
            mid_term=MidTermStore(
                capacity=settings.MID_TERM_LIMIT,
                merge_threshold=settings.MERGE_THRESHOLD,
                engine=PriorityEngine(),
                policy=PromotionPolicy(
                    min_access_count=settings.PROMOTION_ACCESS_COUNT,
                    min_cluster_size=settings.PROMOTION_CLUSTER_SIZE,
                    retention_min_priority=settings.RETENTION_MIN_PRIORITY,
                    capacity_grace=settings.CAPACITY_GRACE_SLOTS,
                ),
                clock=clock,
            ),
            long_term=LongTermArchive(capacity=settings.LONG_TERM_LIMIT),
        )

    def sizes(self) -> Tuple[int, int, int]:
        return self.short_term.size(), self.mid_term.size(), self.long_term.size()

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def to_payload(self) -> Dict[str, Any]:
        return {
            "shortTermHistory": [turn.to_dict() for turn in self.short_term.read()],
            "midTermSlots": [_encode_slot(slot) for slot in self.mid_term.slots()],
            "longTermStore": {"items": [_encode_item(item) for item in self.long_term.items()]},
        }

    def to_json(self) -> str:
        return json.dumps(self.to_payload())

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]],
                     settings: Optional[MemorySettings] = None,
                     clock: Callable[[], float] = time.time) -> "PersonaMemory":
        memory = cls.empty(settings, clock=clock)
        if not isinstance(payload, Mapping):
            if payload is not None:
                log.warning("Ignoring persona payload of type %s", type(payload).__name__)
            return memory

        now = clock()
        for raw in _as_list(payload.get("shortTermHistory")):
            try:
                memory.short_term.push(Turn.from_dict(raw))
            except (InvalidTurn, TypeError, ValueError, AttributeError) as exc:
                log.warning("Skipping malformed short-term turn: %s", exc)

        slots: List[MidTermSlot] = []
        for raw in _as_list(payload.get("midTermSlots")):
            try:
                slots.append(_decode_slot(raw, now))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                log.warning("Skipping malformed mid-term slot: %s", exc)
        memory.mid_term.restore(slots)

        store = payload.get("longTermStore")
        raw_items = store.get("items") if isinstance(store, Mapping) else None
        items: List[LongTermItem] = []
        for raw in _as_list(raw_items):
            try:
                items.append(_decode_item(raw, now))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                log.warning("Skipping malformed long-term item: %s", exc)
        memory.long_term.insert_many(items)
        return memory

    @classmethod
    def from_json(cls, text: str, settings: Optional[MemorySettings] = None,
                  clock: Callable[[], float] = time.time) -> "PersonaMemory":
        try:
            payload = json.loads(text) if text else None
        except json.JSONDecodeError as exc:
            log.warning("Persona document is not valid JSON, starting empty: %s", exc)
            payload = None
        return cls.from_payload(payload, settings=settings, clock=clock)


# ---------------------------------------------------------------------------
# Record codecs
# ---------------------------------------------------------------------------


def _encode_slot(slot: MidTermSlot) -> Dict[str, Any]:
    return {
        "summary": slot.summary,
        "embedding": list(slot.embedding),
        "priority": slot.priority,
        "baseRelevance": slot.base_relevance,
        "accessCount": slot.access_count,
        "lastAccessed": _ms(slot.last_accessed),
        "createdAt": _ms(slot.created_at),
        "ts": _ms(slot.last_accessed),
        "category": slot.category.value,
        "userMarkedImportant": slot.user_pinned,
        "semanticClusterSize": slot.cluster_size,
    }


def _decode_slot(raw: Mapping[str, Any], now: float) -> MidTermSlot:
    ts = _seconds(raw.get("ts"))
    created = _first(_seconds(raw.get("createdAt")), ts, now)
    return MidTermSlot(
        summary=_summary(raw),
        embedding=_embedding(raw.get("embedding")),
        priority=float(_get(raw, "priority", 1.0)),
        base_relevance=float(_get(raw, "baseRelevance", 1.0)),
        access_count=int(_get(raw, "accessCount", 0)),
        last_accessed=_first(_seconds(raw.get("lastAccessed")), ts, created),
        created_at=created,
        category=_category(raw.get("category")),
        user_pinned=bool(_get(raw, "userMarkedImportant", False)),
        cluster_size=int(_get(raw, "semanticClusterSize", 1)),
    )


def _encode_item(item: LongTermItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "summary": item.summary,
        "embedding": list(item.embedding),
        "meta": {
            "timestamp": _ms(item.retention_time),
            "date": datetime.fromtimestamp(item.retention_time, tz=timezone.utc).isoformat(),
            "messageCount": item.message_count,
            "category": item.category.value,
            "createdAt": _ms(item.created_at),
            "promotedAt": _ms(item.promoted_at),
            "accessCount": item.access_count,
            "lastAccessed": _ms(item.last_accessed),
            "userMarkedImportant": item.user_pinned,
            "semanticClusterSize": item.cluster_size,
        },
    }


def _decode_item(raw: Mapping[str, Any], now: float) -> LongTermItem:
    meta = raw.get("meta") if isinstance(raw.get("meta"), Mapping) else {}
    stamp = _seconds(meta.get("timestamp"))
    kwargs: Dict[str, Any] = {}
    if raw.get("id"):
        kwargs["id"] = str(raw["id"])
    return LongTermItem(
        summary=_summary(raw),
        embedding=_embedding(raw.get("embedding")),
        category=_category(meta.get("category")),
        created_at=_first(_seconds(meta.get("createdAt")), stamp, now),
        promoted_at=_first(_seconds(meta.get("promotedAt")), stamp),
        access_count=int(_get(meta, "accessCount", 0)),
        last_accessed=_seconds(meta.get("lastAccessed")),
        user_pinned=bool(_get(meta, "userMarkedImportant", False)),
        cluster_size=int(_get(meta, "semanticClusterSize", 1)),
        message_count=int(_get(meta, "messageCount", 0)),
        **kwargs,
    )


def _summary(raw: Mapping[str, Any]) -> str:
    summary = raw["summary"]
    if summary is None:
        raise ValueError("summary is null")
    return str(summary)


def _get(raw: Mapping[str, Any], key: str, default: Any) -> Any:
    """``raw[key]``, or *default* when the key is missing or null."""
    value = raw.get(key)
    return default if value is None else value


def _first(*values: Optional[float]) -> Optional[float]:
    for value in values:
        if value is not None:
            return value
    return None


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, list) else []


def _embedding(value: Any) -> List[float]:
    # A vector with a non-numeric element loads empty and compares as 0.
    if not isinstance(value, list):
        return []
    try:
        return [float(x) for x in value]
    except (TypeError, ValueError):
        return []


def _category(value: Any) -> Category:
    try:
        return Category.coerce(value)
    except ValueError:
        return Category.GENERAL


def _ms(seconds: Optional[float]) -> Optional[int]:
    return int(round(seconds * 1000)) if seconds is not None else None


def _seconds(ms: Any) -> Optional[float]:
    if ms is None:
        return None
    return float(ms) / 1000.0
