from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional

from persona_memory.errors import InvalidTurn


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Category(str, Enum):
    PERSONAL = "personal"
    TECHNICAL = "technical"
    PROJECT = "project"
    CASUAL = "casual"
    GENERAL = "general"

    @classmethod
    def coerce(cls, value: Any) -> "Category":
        if isinstance(value, Category):
            return value
        if value is None:
            return cls.GENERAL
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown memory category: {value!r}") from None


@dataclass(frozen=True)
class Turn:
    """One dialogue exchange entry.  Immutable once created."""
    role: Role
    content: str
    timestamp: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.role:
            raise InvalidTurn("Turn must have a role")
        if not isinstance(self.role, Role):
            try:
                object.__setattr__(self, "role", Role(str(self.role).lower()))
            except ValueError:
                raise InvalidTurn(f"Unknown turn role: {self.role!r}") from None
        if not isinstance(self.content, str) or not self.content:
            raise InvalidTurn("Turn must have non-empty text content")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Turn":
        """Build a turn from a ``{role, content, ts}`` mapping.

        ``ts`` is in milliseconds; a ``timestamp`` key in seconds is accepted
        when ``ts`` is absent.
        """
        ts = data.get("ts")
        if ts is not None:
            timestamp: Optional[float] = float(ts) / 1000.0
        else:
            seconds = data.get("timestamp")
            timestamp = float(seconds) if seconds is not None else None
        return cls(
            role=data.get("role"),  # type: ignore[arg-type]
            content=data.get("content"),  # type: ignore[arg-type]
            timestamp=timestamp,
        )

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "content": self.content,
            "ts": _to_ms(self.timestamp),
        }


@dataclass(frozen=True)
class SlotCandidate:
    """A freshly condensed summary offered to mid-term memory."""
    summary: str
    embedding: List[float]
    category: Category = Category.GENERAL
    user_pinned: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", Category.coerce(self.category))


@dataclass
class MidTermSlot:
    summary: str
    embedding: List[float]
    priority: float = 1.0
    base_relevance: float = 1.0
    access_count: int = 0
    last_accessed: float = field(default_factory=time.time)
    created_at: float = field(default_factory=time.time)
    category: Category = Category.GENERAL
    user_pinned: bool = False
    cluster_size: int = 1

    def __post_init__(self) -> None:
        self.category = Category.coerce(self.category)
        if self.priority < 0:
            raise ValueError(f"priority must be >= 0, got {self.priority}")
        if self.base_relevance < 0:
            raise ValueError(f"base_relevance must be >= 0, got {self.base_relevance}")
        if self.access_count < 0:
            raise ValueError(f"access_count must be >= 0, got {self.access_count}")
        if self.cluster_size < 1:
            raise ValueError(f"cluster_size must be >= 1, got {self.cluster_size}")

    def touch(self, now: float) -> None:
        self.access_count += 1
        self.last_accessed = now


@dataclass
class LongTermItem:
    summary: str
    embedding: List[float]
    category: Category = Category.GENERAL
    created_at: float = field(default_factory=time.time)
    promoted_at: Optional[float] = None
    access_count: int = 0
    last_accessed: Optional[float] = None
    user_pinned: bool = False
    cluster_size: int = 1
    message_count: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        self.category = Category.coerce(self.category)
        if self.access_count < 0:
            raise ValueError(f"access_count must be >= 0, got {self.access_count}")
        if self.cluster_size < 1:
            raise ValueError(f"cluster_size must be >= 1, got {self.cluster_size}")

    @property
    def retention_time(self) -> float:
        """Ordering key for archive eviction: promotion time, else creation."""
        return self.promoted_at if self.promoted_at is not None else self.created_at

    def touch(self, now: float) -> None:
        self.access_count += 1
        self.last_accessed = now

    @classmethod
    def from_slot(cls, slot: MidTermSlot, promoted_at: float) -> "LongTermItem":
        return cls(
            summary=slot.summary,
            embedding=slot.embedding,
            category=slot.category,
            created_at=slot.created_at,
            promoted_at=promoted_at,
            access_count=slot.access_count,
            last_accessed=slot.last_accessed,
            user_pinned=slot.user_pinned,
            cluster_size=slot.cluster_size,
            message_count=slot.cluster_size,
        )


def _to_ms(seconds: Optional[float]) -> Optional[int]:
    return int(round(seconds * 1000)) if seconds is not None else None
