"""Memory tiers for persona conversations."""

from .vector import cosine_similarity, rank_by_similarity
from .models import Category, LongTermItem, MidTermSlot, Role, SlotCandidate, Turn
from .short_term import ShortTermQueue
from .priority import CATEGORY_WEIGHTS, PriorityBreakdown, PriorityEngine, compute_priority
from .promotion import PromotionPolicy
from .mid_term import MidTermStats, MidTermStore, PromotionResult, SlotMatch
from .long_term import ArchiveStats, LongTermArchive
from .retrieval import RetrievalEngine, RetrievalResult, RetrievedItem, RetrievedSlot
from .snapshot import PersonaMemory
from .embeddings import Embedder, HashEmbedder, OllamaEmbedder, OpenRouterEmbedder, ResilientEmbedder, build_embedder
from .context import PromptContext, build_prompt_context, estimate_tokens, truncate_to_token_budget

__all__ = [
    "cosine_similarity",
    "rank_by_similarity",
    "Category",
    "LongTermItem",
    "MidTermSlot",
    "Role",
    "SlotCandidate",
    "Turn",
    "ShortTermQueue",
    "CATEGORY_WEIGHTS",
    "PriorityBreakdown",
    "PriorityEngine",
    "compute_priority",
    "PromotionPolicy",
    "MidTermStats",
    "MidTermStore",
    "PromotionResult",
    "SlotMatch",
    "ArchiveStats",
    "LongTermArchive",
    "RetrievalEngine",
    "RetrievalResult",
    "RetrievedItem",
    "RetrievedSlot",
    "PersonaMemory",
    "Embedder",
    "HashEmbedder",
    "OllamaEmbedder",
    "OpenRouterEmbedder",
    "ResilientEmbedder",
    "build_embedder",
    "PromptContext",
    "build_prompt_context",
    "estimate_tokens",
    "truncate_to_token_budget",
]
