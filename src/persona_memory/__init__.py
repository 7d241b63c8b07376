"""Tiered per-persona conversational memory.

Short-term turn queue, mid-term summarized slots and a long-term archive,
with similarity retrieval, priority-driven promotion and a maintenance sweep.
"""

from persona_memory.config import MemorySettings, get_settings
from persona_memory.errors import EmbeddingError, InvalidTurn, MemoryCoreError, PersistenceFailure

__version__ = "0.1.0"

__all__ = [
    "MemorySettings",
    "get_settings",
    "EmbeddingError",
    "InvalidTurn",
    "MemoryCoreError",
    "PersistenceFailure",
]
