"""Tests for token-aware prompt assembly."""

from persona_memory.memory.context import (
    build_prompt_context,
    estimate_tokens,
    truncate_to_token_budget,
)
from persona_memory.memory.models import LongTermItem, Turn
from persona_memory.memory.retrieval import RetrievalResult, RetrievedItem, RetrievedSlot


def _turns(*contents):
    roles = ["user", "assistant"]
    return [Turn(role=roles[i % 2], content=c) for i, c in enumerate(contents)]


def test_estimate_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens(None) == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens("abcdef", chars_per_token=3) == 2


def test_truncate_keeps_newest_whole_turns():
    turns = _turns("a" * 40, "b" * 40, "c" * 40)
    kept, truncated = truncate_to_token_budget(turns, max_tokens=25)
    assert [m["content"][0] for m in kept] == ["b", "c"]
    assert kept[0]["role"] == "assistant"
    assert truncated is False


def test_truncate_cuts_turn_when_budget_allows():
    turns = _turns("x" * 400)
    kept, truncated = truncate_to_token_budget(turns, max_tokens=60)
    assert truncated is True
    assert kept[0]["content"] == "x" * 240 + "..."


def test_build_prompt_context_includes_relevant_notes(make_slot):
    retrieval = RetrievalResult(
        mid_term=[
            RetrievedSlot(slot=make_slot("Enjoys hiking"), similarity=0.9, index=0),
            RetrievedSlot(slot=make_slot("Dislikes rain"), similarity=0.3, index=1),
        ],
        long_term=[
            RetrievedItem(item=LongTermItem(summary="Lives in Porto", embedding=[1.0]), similarity=0.7, index=0),
        ],
    )
    ctx = build_prompt_context("You are Ada.", "any plans?", retrieval=retrieval,
                               history=_turns("hi", "hello!"))

    system = ctx.messages[0]
    assert system["role"] == "system"
    assert system["content"] == "You are Ada.\n\n[Context Notes]\n- Enjoys hiking\n- Lives in Porto"
    assert ctx.messages[1:] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello!"},
        {"role": "user", "content": "any plans?"},
    ]
    assert ctx.included_mid_term == 1
    assert ctx.included_long_term == 1
    assert ctx.included_short_term == 2
    assert ctx.truncated is False


def test_build_prompt_context_without_retrieval():
    ctx = build_prompt_context("System.", "question")
    assert ctx.messages == [
        {"role": "system", "content": "System."},
        {"role": "user", "content": "question"},
    ]
    assert ctx.tokens_used == estimate_tokens("System.") + estimate_tokens("question")


def test_build_prompt_context_limits_history():
    history = _turns(*[f"turn {i}" for i in range(6)])
    ctx = build_prompt_context("S", "now", history=history, max_history=2)
    assert [m["content"] for m in ctx.messages[1:-1]] == ["turn 4", "turn 5"]


def test_build_prompt_context_truncates_long_history():
    ctx = build_prompt_context("s" * 40, "q" * 40, history=_turns("h" * 800), max_tokens=150)
    assert ctx.truncated is True
    assert ctx.messages[1]["content"] == "h" * 520 + "..."
    assert ctx.messages[-1] == {"role": "user", "content": "q" * 40}
