"""Priority scoring for mid-term slots.

Priority is recomputed on demand from slot state and the current time, never
maintained incrementally, so the same state always yields the same value::

    age_days        = max(1, (now - created_at) / 1 day)
    access_freq     = access_count / age_days
    hours_idle      = max(1, (now - last_accessed) / 1 hour)
    recency_boost   = clamp(1.5 - hours_idle / 72, 0.5, 1.5)
    cluster_boost   = min(1.5, 1.0 + 0.1 * cluster_size)
    priority        = clamp(base_relevance * (1 + access_freq) * category_weight
                            * pin_boost * recency_boost * cluster_boost, 0, 10)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping

from persona_memory.memory.models import Category, MidTermSlot

SECONDS_PER_DAY = 86400.0
SECONDS_PER_HOUR = 3600.0

CATEGORY_WEIGHTS: Dict[Category, float] = {
    Category.PERSONAL: 2.0,
    Category.TECHNICAL: 1.8,
    Category.PROJECT: 1.7,
    Category.CASUAL: 1.0,
    Category.GENERAL: 1.0,
}


@dataclass(frozen=True)
class PriorityBreakdown:
    """Every factor that went into one priority computation."""
    age_days: float
    access_freq: float
    category_weight: float
    pin_boost: float
    hours_idle: float
    recency_boost: float
    cluster_boost: float
    priority: float


@dataclass(frozen=True)
class PriorityEngine:
    category_weights: Mapping[Category, float] = field(default_factory=lambda: dict(CATEGORY_WEIGHTS))
    pin_boost: float = 2.0
    max_priority: float = 10.0
    recency_window_hours: float = 72.0
    max_recency_boost: float = 1.5
    min_recency_boost: float = 0.5
    cluster_step: float = 0.1
    max_cluster_boost: float = 1.5

    def explain(self, slot: MidTermSlot, now: float) -> PriorityBreakdown:
        age_days = max(1.0, (now - slot.created_at) / SECONDS_PER_DAY)
        access_freq = slot.access_count / age_days
        category_weight = self.category_weights.get(slot.category, 1.0)
        pin_boost = self.pin_boost if slot.user_pinned else 1.0
        hours_idle = max(1.0, (now - slot.last_accessed) / SECONDS_PER_HOUR)
        recency_boost = _clamp(
            self.max_recency_boost - hours_idle / self.recency_window_hours,
            self.min_recency_boost,
            self.max_recency_boost,
        )
        cluster_boost = min(self.max_cluster_boost, 1.0 + self.cluster_step * slot.cluster_size)
        raw = (slot.base_relevance * (1.0 + access_freq) * category_weight
               * pin_boost * recency_boost * cluster_boost)
        return PriorityBreakdown(
            age_days=age_days,
            access_freq=access_freq,
            category_weight=category_weight,
            pin_boost=pin_boost,
            hours_idle=hours_idle,
            recency_boost=recency_boost,
            cluster_boost=cluster_boost,
            priority=_clamp(raw, 0.0, self.max_priority),
        )

    def compute(self, slot: MidTermSlot, now: float) -> float:
        return self.explain(slot, now).priority

    __call__ = compute


DEFAULT_ENGINE = PriorityEngine()


def compute_priority(slot: MidTermSlot, now: float) -> float:
    return DEFAULT_ENGINE.compute(slot, now)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
