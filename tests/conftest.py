"""Shared fixtures for the persona memory test suite."""

import pytest

from persona_memory.config import MemorySettings, get_settings
from persona_memory.memory.models import Category, MidTermSlot

BASE_TIME = 1_700_000_000.0


class FakeClock:
    """Injectable clock; call it for "now", advance it explicitly."""

    def __init__(self, start: float = BASE_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(monkeypatch):
    """Default settings, isolated from any MEMORY_* variables in the environment."""
    import os

    for key in list(os.environ):
        if key.startswith("MEMORY_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield MemorySettings()
    get_settings.cache_clear()


@pytest.fixture
def axis():
    """One-hot vector factory: ``axis(2)`` -> [0, 0, 1, 0, ...] of length 8."""

    def _axis(index: int, dim: int = 8) -> list:
        vec = [0.0] * dim
        vec[index] = 1.0
        return vec

    return _axis


@pytest.fixture
def make_slot(clock):
    """Factory for mid-term slots whose timestamps are relative to the clock."""

    def _make(summary: str = "topic", embedding=None, age_sec: float = 0.0,
              idle_sec: float = None, **overrides) -> MidTermSlot:
        created = clock.now - age_sec
        last = clock.now - (age_sec if idle_sec is None else idle_sec)
        fields = dict(
            summary=summary,
            embedding=list(embedding) if embedding is not None else [1.0, 0.0, 0.0, 0.0],
            created_at=created,
            last_accessed=last,
            category=Category.GENERAL,
        )
        fields.update(overrides)
        return MidTermSlot(**fields)

    return _make
