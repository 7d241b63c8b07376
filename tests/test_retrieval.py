"""Tests for top-K retrieval with access feedback."""

import pytest

from persona_memory.memory.long_term import LongTermArchive
from persona_memory.memory.mid_term import MidTermStore
from persona_memory.memory.models import LongTermItem
from persona_memory.memory.retrieval import RetrievalEngine


@pytest.fixture
def engine(clock):
    return RetrievalEngine(top_k=3, relevance_floor=0.5, clock=clock)


@pytest.fixture
def stores(clock):
    return MidTermStore(clock=clock), LongTermArchive()


def test_exact_match_among_orthogonal_slots(engine, stores, make_slot, axis, clock):
    mid, archive = stores
    slots = [make_slot(f"topic {i}", embedding=axis(i)) for i in range(5)]
    mid.restore(slots)

    result = engine.retrieve(axis(2), mid, archive)

    assert len(result.mid_term) == 1
    hit = result.mid_term[0]
    assert hit.slot is slots[2]
    assert hit.index == 2
    assert hit.similarity == pytest.approx(1.0)
    assert hit.slot.access_count == 1
    assert hit.slot.base_relevance == pytest.approx(1.05)
    assert hit.slot.last_accessed == clock.now
    assert result.long_term == []
    assert all(s.access_count == 0 for i, s in enumerate(slots) if i != 2)


def test_results_sorted_and_cut_to_top_k(engine, stores, make_slot):
    mid, archive = stores
    mid.restore([
        make_slot("0.6", embedding=[0.6, 0.8]),
        make_slot("1.0", embedding=[1.0, 0.0]),
        make_slot("0.8", embedding=[0.8, 0.6]),
        make_slot("0.0", embedding=[0.0, 1.0]),
    ])
    result = engine.retrieve([1.0, 0.0], mid, archive, top_k=2, feedback=False)
    assert [h.slot.summary for h in result.mid_term] == ["1.0", "0.8"]
    assert [h.index for h in result.mid_term] == [1, 2]


def test_relevance_floor_is_inclusive(engine, stores, make_slot):
    mid, archive = stores
    mid.restore([make_slot(embedding=[3.0, 4.0])])
    assert len(engine.retrieve([1.0, 0.0], mid, archive, relevance_floor=0.6).mid_term) == 1
    assert engine.retrieve([1.0, 0.0], mid, archive, relevance_floor=0.61).is_empty


def test_base_relevance_capped(engine, stores, make_slot, axis):
    mid, archive = stores
    slot = make_slot(embedding=axis(0), base_relevance=1.99)
    mid.restore([slot])
    engine.retrieve(axis(0), mid, archive)
    assert slot.base_relevance == 2.0
    engine.retrieve(axis(0), mid, archive)
    assert slot.base_relevance == 2.0
    assert slot.access_count == 2


def test_feedback_disabled_leaves_state_untouched(engine, stores, make_slot, axis):
    mid, archive = stores
    slot = make_slot(embedding=axis(0), idle_sec=100.0)
    mid.restore([slot])
    before = (slot.access_count, slot.base_relevance, slot.last_accessed)
    result = engine.retrieve(axis(0), mid, archive, feedback=False)
    assert len(result.mid_term) == 1
    assert (slot.access_count, slot.base_relevance, slot.last_accessed) == before


def test_long_term_hits_record_access(engine, stores, axis, clock):
    mid, archive = stores
    item = LongTermItem(summary="archived", embedding=axis(1), promoted_at=1.0)
    archive.insert(item)
    result = engine.retrieve(axis(1), mid, archive)
    assert [h.item for h in result.long_term] == [item]
    assert item.access_count == 1
    assert item.last_accessed == clock.now


def test_top_k_zero_returns_nothing(engine, stores, make_slot, axis):
    mid, archive = stores
    slot = make_slot(embedding=axis(0))
    mid.restore([slot])
    assert engine.retrieve(axis(0), mid, archive, top_k=0).is_empty
    assert slot.access_count == 0


def test_mismatched_query_dimensions_return_nothing(engine, stores, make_slot, axis):
    mid, archive = stores
    mid.restore([make_slot(embedding=axis(0, dim=8))])
    assert engine.retrieve(axis(0, dim=4), mid, archive).is_empty
    assert engine.retrieve(None, mid, archive).is_empty


def test_top_k_applies_per_tier(engine, stores, make_slot, axis):
    mid, archive = stores
    mid.restore([make_slot(f"m{i}", embedding=axis(0)) for i in range(4)])
    archive.insert_many([LongTermItem(summary=f"l{i}", embedding=axis(0), promoted_at=float(i))
                         for i in range(4)])
    result = engine.retrieve(axis(0), mid, archive, top_k=2)
    assert len(result.mid_term) == 2
    assert len(result.long_term) == 2
