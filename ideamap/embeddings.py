"""Embedding providers: text -> vector.

Providers:
1. SentenceTransformerProvider - local sentence-transformers model
2. OpenAIProvider - OpenAI embeddings API
3. KeywordFallbackEmbedder - deterministic, offline, keyword-biased vectors

ResilientEmbedder tries providers in order and drops to the fallback on any
failure, so an idea is always placed. Fallback vectors are flagged.
"""

import hashlib
import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

import torch

from .vectors import as_vector

logger = logging.getLogger(__name__)

# Optional imports - graceful degradation
SENTENCE_TRANSFORMERS_AVAILABLE = False
try:
    from sentence_transformers import SentenceTransformer
    SENTENCE_TRANSFORMERS_AVAILABLE = True
except ImportError:
    pass


class LocalModel(Enum):
    """Supported local models (all 384 dims)."""
    MINILM = "sentence-transformers/all-MiniLM-L6-v2"   # General purpose
    BGE_SMALL = "BAAI/bge-small-en-v1.5"                # English only, fast
    GTE_SMALL = "thenlper/gte-small"                    # Similarity tuned


class EmbeddingProvider(ABC):
    """Abstract embedding provider interface."""

    @abstractmethod
    def embed(self, text: str) -> torch.Tensor:
        """Embed one text into a 1-D vector."""
        ...

    @abstractmethod
    def dimensions(self) -> int:
        ...

    @abstractmethod
    def model_name(self) -> str:
        ...


class SentenceTransformerProvider(EmbeddingProvider):
    """Embed text with a local sentence-transformers model, loaded on first use."""

    def __init__(self, model: LocalModel = LocalModel.MINILM, dims: int = 384,
                 use_gpu: bool = False):
        self._model_name = model.value
        self._dims = dims
        self._use_gpu = use_gpu
        self._model = None
        self._lock = threading.RLock()

    def _load_model(self):
        with self._lock:
            if self._model is not None:
                return
            if not SENTENCE_TRANSFORMERS_AVAILABLE:
                raise RuntimeError(
                    "sentence-transformers required: pip install sentence-transformers"
                )
            device = "cuda" if self._use_gpu and torch.cuda.is_available() else "cpu"
            self._model = SentenceTransformer(self._model_name, device=device)
            self._dims = self._model.get_sentence_embedding_dimension()

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def embed(self, text: str) -> torch.Tensor:
        self._load_model()
        with self._lock:
            emb = self._model.encode(
                text, convert_to_tensor=True, normalize_embeddings=True,
                show_progress_bar=False,
            )
        return as_vector(emb)

    def dimensions(self) -> int:
        return self._dims

    def model_name(self) -> str:
        return self._model_name

    def unload(self) -> None:
        with self._lock:
            self._model = None


class OpenAIProvider(EmbeddingProvider):
    """Embed text with OpenAI's text-embedding API."""

    def __init__(self, model: str = "text-embedding-3-small", dims: int = 1536,
                 api_key: Optional[str] = None):
        self._model = model
        self._dims = dims
        self._api_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        if not self._api_key:
            raise ValueError("OPENAI_API_KEY environment variable not set")
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                import openai
            except ImportError:
                raise ImportError("openai package required: pip install openai")
            self._client = openai.OpenAI(api_key=self._api_key)
        return self._client

    def embed(self, text: str) -> torch.Tensor:
        response = self._get_client().embeddings.create(
            model=self._model,
            input=text.lower().strip(),
            dimensions=self._dims,
        )
        return as_vector(response.data[0].embedding)

    def dimensions(self) -> int:
        return self._dims

    def model_name(self) -> str:
        return self._model


# Keyword bands for the offline fallback. Texts containing a keyword get a
# bias over that category's band, so related ideas still land near each other.
FALLBACK_CATEGORIES: Dict[str, Sequence[str]] = {
    "tech": ["code", "programming", "software", "app", "web", "api", "database",
             "server", "typescript", "javascript", "react", "node"],
    "game": ["game", "play", "level", "score", "player", "character", "enemy",
             "boss", "rpg", "idle", "clicker"],
    "graphics": ["art", "visual", "design", "color", "pixel", "2d", "3d",
                 "animation", "sprite", "texture", "shader"],
    "mechanics": ["mechanic", "system", "feature", "combat", "skill", "ability",
                  "upgrade", "progression", "achievement"],
    "audio": ["sound", "music", "audio", "sfx", "soundtrack", "voice", "ambient"],
    "resource": ["mining", "ore", "gold", "wood", "stone", "iron", "copper",
                 "resource", "gather", "farm", "harvest"],
    "craft": ["craft", "build", "create", "recipe", "item", "equipment",
              "weapon", "armor", "tool"],
    "economy": ["market", "trade", "auction", "buy", "sell", "price", "currency",
                "shop", "store", "economy"],
}


class KeywordFallbackEmbedder(EmbeddingProvider):
    """Deterministic pseudo-random vectors, biased by keyword category.

    Same text -> same vector. Low fidelity: only keyword overlap carries
    meaning.
    """

    def __init__(self, dims: int = 384, band_width: int = 48, bias: float = 0.5):
        self._dims = dims
        self.band_width = band_width
        self.bias = bias

    def _seed(self, text: str) -> int:
        seed = 0
        for ch in text:
            seed = ((seed << 5) - seed + ord(ch)) & 0xFFFFFFFF
        return seed

    def embed(self, text: str) -> torch.Tensor:
        t = text.lower().strip()
        seed = self._seed(t)

        values: List[float] = []
        for _ in range(self._dims):
            seed = (seed * 1103515245 + 12345) & 0x7FFFFFFF
            values.append((seed / 0x7FFFFFFF) * 2 - 1)
        vec = torch.tensor(values, dtype=torch.float64)

        for cat_index, keywords in enumerate(FALLBACK_CATEGORIES.values()):
            if any(k in t for k in keywords):
                for i in range(self.band_width):
                    vec[(cat_index * self.band_width + i) % self._dims] += self.bias

        norm = torch.linalg.vector_norm(vec)
        return vec / norm if norm > 0 else vec

    def dimensions(self) -> int:
        return self._dims

    def model_name(self) -> str:
        return "keyword-fallback"


class CachedEmbeddingProvider(EmbeddingProvider):
    """In-memory cache in front of another provider, keyed by normalized text."""

    def __init__(self, inner: EmbeddingProvider, max_entries: int = 10000):
        self.inner = inner
        self.max_entries = max_entries
        self._cache: Dict[str, torch.Tensor] = {}
        self._lock = threading.RLock()

    def _cache_key(self, text: str) -> str:
        return hashlib.md5(text.lower().strip().encode()).hexdigest()

    def embed(self, text: str) -> torch.Tensor:
        key = self._cache_key(text)
        with self._lock:
            if key in self._cache:
                return self._cache[key].clone()

        vec = self.inner.embed(text)

        with self._lock:
            if len(self._cache) >= self.max_entries:
                # Dicts keep insertion order: evict the oldest
                del self._cache[next(iter(self._cache))]
            self._cache[key] = vec.clone()
        return vec

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def dimensions(self) -> int:
        return self.inner.dimensions()

    def model_name(self) -> str:
        return self.inner.model_name()


@dataclass
class EmbeddingResult:
    """A vector plus where it came from."""
    vector: torch.Tensor
    provider: str
    is_fallback: bool = False


class ResilientEmbedder:
    """Tries each provider in order; never fails.

    Any provider exception is logged and the next one is tried. When all of
    them fail the keyword fallback is used and the result is flagged.
    """

    def __init__(self, providers: Optional[Sequence[EmbeddingProvider]] = None,
                 fallback: Optional[EmbeddingProvider] = None):
        self.providers = list(providers or [])
        self.fallback = fallback or KeywordFallbackEmbedder()
        self._lock = threading.Lock()
        self.fallback_count = 0

    def embed(self, text: str) -> EmbeddingResult:
        for provider in self.providers:
            try:
                vec = as_vector(provider.embed(text))
            except Exception as exc:
                logger.warning("Embedding provider %s failed: %s", provider.model_name(), exc)
                continue
            if vec.numel() == 0:
                logger.warning("Embedding provider %s returned an empty vector", provider.model_name())
                continue
            return EmbeddingResult(vector=vec, provider=provider.model_name())

        with self._lock:
            self.fallback_count += 1
        logger.warning("Using fallback embedding for %r", text)
        return EmbeddingResult(
            vector=as_vector(self.fallback.embed(text)),
            provider=self.fallback.model_name(),
            is_fallback=True,
        )


def create_embedder(provider: str = "local", fallback_dim: int = 384,
                    cache: bool = True) -> ResilientEmbedder:
    """Factory for the usual provider chains.

    Args:
        provider: "local" (sentence-transformers, then fallback),
            "openai" (OpenAI, then fallback) or "fallback" (offline only)
        fallback_dim: Dimension of the fallback vectors
        cache: Whether to cache provider results
    """
    providers: List[EmbeddingProvider] = []
    if provider == "local":
        providers.append(SentenceTransformerProvider())
    elif provider == "openai":
        try:
            providers.append(OpenAIProvider())
        except ValueError as exc:
            logger.warning("OpenAI provider unavailable: %s", exc)
    elif provider != "fallback":
        raise ValueError(f"Unknown embedding provider: {provider}")

    if cache:
        providers = [CachedEmbeddingProvider(p) for p in providers]
    return ResilientEmbedder(providers, KeywordFallbackEmbedder(dims=fallback_dim))
