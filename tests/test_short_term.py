"""Tests for the bounded short-term turn queue."""

import pytest

from persona_memory.errors import InvalidTurn
from persona_memory.memory.models import Role, Turn
from persona_memory.memory.short_term import ShortTermQueue


@pytest.fixture
def queue(clock):
    return ShortTermQueue(max_size=10, clock=clock)


def test_fifteen_pushes_keep_last_ten(queue):
    for i in range(15):
        queue.push(Turn(role=Role.USER, content=f"turn {i}"))
    assert queue.size() == 10
    assert queue.read()[0].content == "turn 5"
    assert queue.read()[-1].content == "turn 14"


def test_size_bounded_after_every_push(queue):
    pushed = []
    for i in range(25):
        role = Role.USER if i % 2 == 0 else Role.ASSISTANT
        pushed.append(queue.push(Turn(role=role, content=f"m{i}")))
        assert queue.size() <= 10
        assert queue.read() == pushed[-10:]


def test_per_call_max_size_overrides_default(queue):
    for i in range(6):
        queue.push({"role": "user", "content": f"x{i}"}, max_size=3)
    assert [t.content for t in queue.read()] == ["x3", "x4", "x5"]


def test_missing_timestamp_is_set_from_clock(queue, clock):
    stored = queue.push(Turn(role="user", content="hello"))
    assert stored.timestamp == clock.now


def test_caller_timestamp_is_kept(queue):
    stored = queue.push(Turn(role="assistant", content="hi", timestamp=42.0))
    assert stored.timestamp == 42.0


def test_mapping_timestamp_is_milliseconds(queue):
    stored = queue.push({"role": "user", "content": "hello", "ts": 1500})
    assert stored.timestamp == 1.5



def test_mapping_timestamp_in_seconds_is_kept(queue):
    stored = queue.push({"role": "user", "content": "hi", "timestamp": 42.0})
    assert stored.timestamp == 42.0


def test_mapping_ts_wins_over_timestamp(queue):
    stored = queue.push({"role": "user", "content": "hi", "ts": 1500, "timestamp": 42.0})
    assert stored.timestamp == 1.5

@pytest.mark.parametrize("raw", [
    {"content": "no role"},
    {"role": "user"},
    {"role": "user", "content": ""},
    {"role": "narrator", "content": "unknown role"},
])
def test_invalid_turns_are_rejected(queue, raw):
    with pytest.raises(InvalidTurn):
        queue.push(raw)
    assert queue.size() == 0


def test_invalid_turn_is_a_value_error():
    with pytest.raises(ValueError):
        Turn(role=None, content="x")


def test_clear_empties_queue(queue):
    queue.push(Turn(role="user", content="a"))
    queue.push(Turn(role="assistant", content="b"))
    queue.clear()
    assert queue.size() == 0
    assert queue.read() == []


def test_turns_are_immutable():
    turn = Turn(role="user", content="a")
    with pytest.raises(AttributeError):
        turn.content = "b"
