"""Embedding backends consumed at the boundary of the memory core.

The tiers never call these themselves; callers embed summaries and queries
and hand the vectors in.  :class:`ResilientEmbedder` guarantees a vector of
the configured dimensionality even when the remote backend is down, by
falling back to the deterministic :class:`HashEmbedder`.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from collections import OrderedDict
from typing import Callable, List, Optional, Protocol

import requests

from persona_memory.config import MemorySettings, get_settings
from persona_memory.errors import EmbeddingError

log = logging.getLogger(__name__)


class Embedder(Protocol):
    def embed(self, text: str) -> List[float]:
        ...


class HashEmbedder:
    """Deterministic unit vectors derived from SHA-256 digests of the text."""

    def __init__(self, dim: int = 1536) -> None:
        self._dim = dim

    @property
    def dimensions(self) -> int:
        return self._dim

    def embed(self, text: str) -> List[float]:
        values: List[float] = []
        counter = 0
        while len(values) < self._dim:
            digest = hashlib.sha256(f"{counter}:{text}".encode("utf-8")).digest()
            values.extend((b / 127.5) - 1.0 for b in digest)
            counter += 1
        values = values[:self._dim]
        norm = math.sqrt(sum(v * v for v in values)) or 1.0
        return [v / norm for v in values]


class OllamaEmbedder:
    def __init__(self, base_url: str, model: str, timeout: float = 60.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout

    def embed(self, text: str) -> List[float]:
        url = f"{self._base_url}/api/embeddings"
        resp = requests.post(url, json={"model": self._model, "prompt": text}, timeout=self._timeout)
        resp.raise_for_status()
        data = resp.json()
        try:
            return [float(x) for x in data["embedding"]]
        except (KeyError, TypeError, ValueError) as exc:
            raise EmbeddingError(f"Unexpected Ollama embedding payload: {exc}") from exc


class OpenRouterEmbedder:
    """Embedding via OpenRouter's /api/v1/embeddings endpoint."""

    def __init__(self, api_key: str, model: str, timeout: float = 30.0) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._url = "https://openrouter.ai/api/v1/embeddings"

    def embed(self, text: str) -> List[float]:
        resp = requests.post(
            self._url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            json={"input": text, "model": self._model},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        try:
            return [float(x) for x in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise EmbeddingError(f"Unexpected OpenRouter embedding payload: {exc}") from exc


class ResilientEmbedder:
    """Retrying, caching wrapper that never fails to return a vector.

    Each text is tried up to ``retries`` times with exponential backoff.  When
    every attempt fails the deterministic fallback vector is returned and
    cached as well, so a dead backend is not hammered for the same text.
    """

    def __init__(
        self,
        backend: Embedder,
        dimensions: int = 1536,
        retries: int = 3,
        cache_size: int = 1000,
        backoff_sec: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._backend = backend
        self._fallback = HashEmbedder(dimensions)
        self._dimensions = dimensions
        self._retries = max(1, retries)
        self._cache_size = cache_size
        self._backoff_sec = backoff_sec
        self._sleep = sleep
        self._cache: "OrderedDict[str, List[float]]" = OrderedDict()
        self.fallback_count = 0

    def embed(self, text: str) -> List[float]:
        if not text:
            return self._fallback.embed("")
        cached = self._cache.get(text)
        if cached is not None:
            self._cache.move_to_end(text)
            return cached

        last_error: Optional[Exception] = None
        for attempt in range(self._retries):
            try:
                vector = self._backend.embed(text)
                if not vector:
                    raise EmbeddingError("Backend returned an empty embedding")
                if len(vector) != self._dimensions:
                    log.warning(
                        "Embedding backend returned %d dims, expected %d; similarity against it will be 0",
                        len(vector), self._dimensions,
                    )
                self._remember(text, vector)
                return vector
            except (requests.RequestException, EmbeddingError, ValueError) as exc:
                last_error = exc
                log.warning("Embedding attempt %d/%d failed: %s", attempt + 1, self._retries, exc)
                if attempt < self._retries - 1:
                    self._sleep(self._backoff_sec * (2 ** attempt))

        log.warning("All embedding retries failed, using fallback vector: %s", last_error)
        self.fallback_count += 1
        vector = self._fallback.embed(text)
        self._remember(text, vector)
        return vector

    def _remember(self, text: str, vector: List[float]) -> None:
        if self._cache_size <= 0:
            return
        self._cache[text] = vector
        self._cache.move_to_end(text)
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)

    def clear_cache(self) -> None:
        self._cache.clear()


def build_embedder(settings: Optional[MemorySettings] = None) -> Embedder:
    settings = settings or get_settings()
    backend = settings.EMBEDDING_BACKEND
    if backend == "hash":
        return HashEmbedder(settings.EMBEDDING_DIMENSIONS)
    if backend == "openrouter":
        if not settings.OPENROUTER_API_KEY:
            raise EmbeddingError("OPENROUTER_API_KEY is required for the openrouter backend")
        remote: Embedder = OpenRouterEmbedder(settings.OPENROUTER_API_KEY, settings.EMBEDDING_MODEL)
    else:
        remote = OllamaEmbedder(settings.OLLAMA_BASE_URL, settings.EMBEDDING_MODEL)
    return ResilientEmbedder(
        remote,
        dimensions=settings.EMBEDDING_DIMENSIONS,
        retries=settings.EMBEDDING_RETRIES,
        cache_size=settings.EMBEDDING_CACHE_SIZE,
    )
