"""Exception taxonomy for the persona memory core.

Only structural problems are raised to callers.  Dimension mismatches and
capacity overflow are *not* errors: the former degrades to similarity ``0.0``
and the latter is resolved by the documented eviction rules.
"""

from __future__ import annotations


class MemoryCoreError(Exception):
    """Base class for every error raised by :mod:`persona_memory`."""


class InvalidTurn(MemoryCoreError, ValueError):
    """A dialogue turn is missing its role or content, or the role is unknown."""


class PersistenceFailure(MemoryCoreError):
    """Loading or persisting a persona snapshot failed in the external store."""

    def __init__(self, persona_id: str, message: str) -> None:
        super().__init__(f"{persona_id}: {message}")
        self.persona_id = persona_id


class EmbeddingError(MemoryCoreError):
    """Raised when an embedding backend cannot produce a vector.

    Common causes include an unreachable backend, an HTTP error status, or a
    response payload without an embedding.
    """
