"""Central configuration for the persona memory core.

All settings are loaded from environment variables prefixed with ``MEMORY_``
(with ``.env`` file support via *python-dotenv*).  Validation and type
coercion are handled by ``pydantic-settings``.

Usage::

    from persona_memory.config import get_settings, load_env

    load_env()
    settings = get_settings()
    print(settings.MID_TERM_LIMIT)

The :func:`get_settings` helper creates the :class:`MemorySettings` singleton
lazily so that importing this module never triggers validation before the
caller has had a chance to load a ``.env`` file or populate the environment.
"""

from __future__ import annotations

import functools
import logging
import sys
from pathlib import Path
from typing import ClassVar

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Canonical .env locations (checked in order of priority).
ENV_PATHS: list[str] = ["config/.env", ".env"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

# ---------------------------------------------------------------------------
# Settings model
# ---------------------------------------------------------------------------


class MemorySettings(BaseSettings):
    """Validated configuration for the memory tiers and their collaborators.

    Every setting carries a default, so an empty environment yields a working
    in-process configuration with the deterministic hash embedder.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEMORY_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Tier capacities
    # ------------------------------------------------------------------
    SHORT_TERM_LIMIT: int = Field(
        default=10,
        ge=1,
        description="Maximum dialogue turns kept in the short-term queue.",
    )
    MID_TERM_LIMIT: int = Field(
        default=20,
        ge=1,
        description="Maximum summarized slots kept in mid-term memory.",
    )
    LONG_TERM_LIMIT: int = Field(
        default=100,
        ge=1,
        description="Maximum promoted items kept in the long-term archive.",
    )

    # ------------------------------------------------------------------
    # Similarity and retrieval
    # ------------------------------------------------------------------
    MERGE_THRESHOLD: float = Field(
        default=0.85,
        ge=-1.0,
        le=1.0,
        description="Cosine similarity at which a new summary merges into an existing slot.",
    )
    RELEVANCE_FLOOR: float = Field(
        default=0.5,
        ge=-1.0,
        le=1.0,
        description="Minimum cosine similarity for a retrieval result to be returned.",
    )
    TOP_K: int = Field(
        default=3,
        ge=0,
        description="Results returned per tier by a retrieval call.",
    )

    # ------------------------------------------------------------------
    # Promotion and retention
    # ------------------------------------------------------------------
    PROMOTION_ACCESS_COUNT: int = Field(
        default=5,
        ge=1,
        description="Access count at which a mid-term slot is promoted.",
    )
    PROMOTION_CLUSTER_SIZE: int = Field(
        default=3,
        ge=1,
        description="Cluster size at which a mid-term slot is promoted.",
    )
    RETENTION_MIN_PRIORITY: float = Field(
        default=0.2,
        ge=0.0,
        description="Priority below which an unpinned slot may be pruned.",
    )
    CAPACITY_GRACE_SLOTS: int = Field(
        default=15,
        ge=0,
        description=(
            "While the mid-term store holds at most this many slots, "
            "low-priority slots are retained rather than pruned."
        ),
    )
    MAINTENANCE_INTERVAL: float = Field(
        default=600.0,
        gt=0.0,
        description="Seconds between maintenance sweeps.",
    )

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------
    EMBEDDING_DIMENSIONS: int = Field(
        default=1536,
        ge=1,
        description="Dimensionality of every embedding compared by the core.",
    )
    EMBEDDING_BACKEND: str = Field(
        default="hash",
        description="Embedding backend: 'hash', 'openrouter' or 'ollama'.",
    )
    EMBEDDING_MODEL: str = Field(
        default="openai/text-embedding-3-small",
        description="Model identifier passed to the embedding backend.",
    )
    EMBEDDING_RETRIES: int = Field(
        default=3,
        ge=1,
        description="Attempts made against the embedding backend before falling back.",
    )
    EMBEDDING_CACHE_SIZE: int = Field(
        default=1000,
        ge=0,
        description="Entries kept in the embedding LRU cache.",
    )
    OPENROUTER_API_KEY: str | None = Field(
        default=None,
        description="API key for OpenRouter (https://openrouter.ai).",
    )
    OLLAMA_BASE_URL: str = Field(
        default="http://localhost:11434",
        description="Base URL for a local Ollama instance.",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for persisted persona snapshots.",
    )

    # ------------------------------------------------------------------
    # Prompt context
    # ------------------------------------------------------------------
    MAX_PROMPT_TOKENS: int = Field(
        default=3500,
        ge=1,
        description="Token budget for an assembled prompt context.",
    )
    CHARS_PER_TOKEN: int = Field(
        default=4,
        ge=1,
        description="Characters per token used for rough token estimates.",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level used by configure_logging().",
    )

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("EMBEDDING_BACKEND", mode="before")
    @classmethod
    def _normalise_backend(cls, value: object) -> str:
        backend = str(value).strip().lower()
        if backend in {"hash", "openrouter", "ollama"}:
            return backend
        raise ValueError(
            f"EMBEDDING_BACKEND must be 'hash', 'openrouter' or 'ollama', got {value!r}"
        )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        level = str(value).strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown LOG_LEVEL {value!r}")
        return level

    # ------------------------------------------------------------------
    # Repr safety -- redact secrets in logs / debug output
    # ------------------------------------------------------------------

    _SENSITIVE_FIELDS: ClassVar[set[str]] = {"OPENROUTER_API_KEY"}

    def __repr__(self) -> str:
        fields = []
        for name in type(self).model_fields:
            val = getattr(self, name)
            if name in self._SENSITIVE_FIELDS:
                val = "***" if val else None
            fields.append(f"{name}={val!r}")
        return f"MemorySettings({', '.join(fields)})"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def load_env() -> bool:
    """Load ``.env`` files from the canonical locations into the environment.

    Values already present in the environment win.  Returns ``True`` when at
    least one file was found.
    """
    loaded = False
    for candidate in ENV_PATHS:
        if Path(candidate).is_file():
            loaded = load_dotenv(candidate) or loaded
    return loaded


def configure_logging(settings: MemorySettings | None = None) -> None:
    """Install a stdout handler on the root logger at the configured level."""
    level = (settings or get_settings()).LOG_LEVEL
    logging.basicConfig(
        level=getattr(logging, level),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


# ---------------------------------------------------------------------------
# Lazy singleton accessor
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=1)
def get_settings() -> MemorySettings:
    """Return the global :class:`MemorySettings` singleton.

    Raises:
        pydantic.ValidationError: If any environment value fails validation.
    """
    logger.debug("Initialising MemorySettings from environment.")
    return MemorySettings()
