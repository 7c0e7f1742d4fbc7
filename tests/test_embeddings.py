"""Tests for embedding providers and the resilient embedder."""

import pytest
import torch

from ideamap import (
    CachedEmbeddingProvider,
    EmbeddingProvider,
    KeywordFallbackEmbedder,
    OpenAIProvider,
    ResilientEmbedder,
    create_embedder,
)
from ideamap.embeddings import FALLBACK_CATEGORIES

from conftest import FailingProvider, StaticProvider


class EmptyProvider(EmbeddingProvider):
    def embed(self, text):
        return torch.zeros(0, dtype=torch.float64)

    def dimensions(self):
        return 0

    def model_name(self):
        return "empty"


class TestKeywordFallback:

    def test_deterministic(self):
        """Test same text gives the same vector."""
        embedder = KeywordFallbackEmbedder()
        assert torch.equal(embedder.embed("idle game"), embedder.embed("idle game"))
        assert torch.equal(embedder.embed("Idle Game "), embedder.embed("idle game"))

    def test_unit_norm_and_dims(self):
        """Test fallback vector size and norm."""
        v = KeywordFallbackEmbedder().embed("anything at all")
        assert v.shape == (384,)
        assert torch.linalg.vector_norm(v).item() == pytest.approx(1.0)

    def test_keyword_band_is_biased(self):
        """Test keyword band bias."""
        band = list(FALLBACK_CATEGORIES).index("resource")
        v = KeywordFallbackEmbedder().embed("mining")
        lo, hi = band * 48, (band + 1) * 48
        in_band = v[lo:hi].mean().item()
        rest = torch.cat([v[:lo], v[hi:]]).mean().item()
        assert in_band > rest

    def test_small_dims_wrap(self):
        """Test bands wrap for small dimensions."""
        v = KeywordFallbackEmbedder(dims=16).embed("combat game")
        assert v.shape == (16,)


class TestCachedProvider:

    def test_normalized_text_hits_cache(self):
        """Test cache key normalization."""
        inner = StaticProvider({"Foo": (1.0, 0.0, 0.0)})
        cached = CachedEmbeddingProvider(inner)
        first = cached.embed("Foo")
        second = cached.embed(" foo ")
        assert inner.calls == 1
        assert torch.equal(first, second)

    def test_cached_vector_not_aliased(self):
        """Test cached vectors are copied out."""
        cached = CachedEmbeddingProvider(StaticProvider({"a": (1.0, 0.0, 0.0)}))
        cached.embed("a")[0] = 99.0
        assert cached.embed("a")[0].item() == 1.0

    def test_eviction(self):
        """Test cache eviction."""
        inner = StaticProvider({"a": (1.0, 0.0, 0.0), "b": (0.0, 1.0, 0.0)})
        cached = CachedEmbeddingProvider(inner, max_entries=1)
        cached.embed("a")
        cached.embed("b")
        assert len(cached) == 1
        cached.embed("a")
        assert inner.calls == 3


class TestResilientEmbedder:

    def test_first_working_provider_wins(self):
        """Test provider order."""
        embedder = ResilientEmbedder([FailingProvider(), StaticProvider({"x": (1.0, 0.0, 0.0)})])
        result = embedder.embed("x")
        assert result.provider == "static"
        assert not result.is_fallback
        assert embedder.fallback_count == 0

    def test_empty_vector_skipped(self):
        """Test empty vectors fall through."""
        embedder = ResilientEmbedder([EmptyProvider()], KeywordFallbackEmbedder(dims=8))
        result = embedder.embed("x")
        assert result.is_fallback
        assert result.vector.shape == (8,)

    def test_all_fail_uses_fallback(self, caplog):
        """Test fallback when every provider fails."""
        embedder = ResilientEmbedder([FailingProvider()])
        result = embedder.embed("idle game")
        assert result.is_fallback
        assert result.provider == "keyword-fallback"
        assert embedder.fallback_count == 1
        assert "provider unreachable" in caplog.text


class TestProviderFactory:

    def test_openai_requires_key(self, monkeypatch):
        """Test OpenAI provider needs an API key."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            OpenAIProvider()

    def test_openai_chain_without_key_falls_back(self, monkeypatch):
        """Test OpenAI chain without a key."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        embedder = create_embedder("openai", fallback_dim=32)
        result = embedder.embed("market")
        assert result.is_fallback
        assert result.vector.shape == (32,)

    def test_fallback_only(self):
        """Test the offline-only chain."""
        embedder = create_embedder("fallback")
        assert embedder.providers == []
        assert embedder.embed("x").vector.shape == (384,)

    def test_unknown_provider(self):
        """Test an unknown provider name."""
        with pytest.raises(ValueError):
            create_embedder("telepathy")
