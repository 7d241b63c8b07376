from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from persona_memory.memory.models import Role, Turn
from persona_memory.memory.retrieval import RetrievalResult

log = logging.getLogger(__name__)

# A partially fitting history turn is only included when at least this many
# tokens of budget remain.
MIN_TRUNCATION_TOKENS = 50


@dataclass
class PromptContext:
    """Chat messages assembled for the next model call, with budget accounting."""
    messages: List[Dict[str, str]] = field(default_factory=list)
    tokens_used: int = 0
    truncated: bool = False
    included_mid_term: int = 0
    included_long_term: int = 0
    included_short_term: int = 0


def estimate_tokens(text: Optional[str], chars_per_token: int = 4) -> int:
    """Rough estimate: 1 token ~ ``chars_per_token`` characters."""
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


def truncate_to_token_budget(turns: Sequence[Turn], max_tokens: int,
                             chars_per_token: int = 4) -> Tuple[List[Dict[str, str]], bool]:
    """Keep the newest turns that fit in *max_tokens*, oldest first.

    The first turn that does not fit is cut down and suffixed with ``...``
    when enough budget remains; everything older is dropped.  Returns the
    messages and whether a cut happened.
    """
    kept: List[Dict[str, str]] = []
    used = 0
    truncated = False
    for turn in reversed(turns):
        cost = estimate_tokens(turn.content, chars_per_token)
        if used + cost <= max_tokens:
            kept.append({"role": turn.role.value, "content": turn.content})
            used += cost
            continue
        remaining = max_tokens - used
        if remaining > MIN_TRUNCATION_TOKENS:
            kept.append({
                "role": turn.role.value,
                "content": turn.content[:remaining * chars_per_token] + "...",
            })
            truncated = True
        break
    kept.reverse()
    return kept, truncated


def build_prompt_context(
    system_prompt: str,
    current_message: str,
    retrieval: Optional[RetrievalResult] = None,
    history: Sequence[Turn] = (),
    max_tokens: int = 3500,
    relevance_floor: float = 0.5,
    top_k: int = 3,
    max_history: int = 10,
    chars_per_token: int = 4,
) -> PromptContext:
    """Build the message list: system prompt with context notes, history, user turn.

    Budget is spent in order: system prompt, current message, retrieved
    mid-term then long-term summaries, and finally recent history.
    """
    ctx = PromptContext()
    budget = max_tokens

    for text in (system_prompt, current_message):
        cost = estimate_tokens(text, chars_per_token)
        budget -= cost
        ctx.tokens_used += cost

    notes: List[str] = []
    if retrieval is not None:
        for hit in retrieval.mid_term[:top_k]:
            if hit.similarity < relevance_floor:
                continue
            cost = estimate_tokens(hit.slot.summary, chars_per_token)
            if budget >= cost:
                notes.append(f"- {hit.slot.summary}")
                budget -= cost
                ctx.tokens_used += cost
                ctx.included_mid_term += 1
        for hit in retrieval.long_term[:top_k]:
            if hit.similarity < relevance_floor:
                continue
            cost = estimate_tokens(hit.item.summary, chars_per_token)
            if budget >= cost:
                notes.append(f"- {hit.item.summary}")
                budget -= cost
                ctx.tokens_used += cost
                ctx.included_long_term += 1

    system = system_prompt
    if notes:
        system += "\n\n[Context Notes]\n" + "\n".join(notes)
    ctx.messages.append({"role": "system", "content": system})

    recent = list(history)[-max_history:] if max_history > 0 else []
    trimmed, truncated = truncate_to_token_budget(recent, budget, chars_per_token)
    ctx.messages.extend(trimmed)
    ctx.included_short_term = len(trimmed)
    ctx.tokens_used += sum(estimate_tokens(m["content"], chars_per_token) for m in trimmed)
    ctx.truncated = truncated

    ctx.messages.append({"role": Role.USER.value, "content": current_message})
    if truncated:
        log.debug("Prompt history truncated to fit %d-token budget", max_tokens)
    return ctx
