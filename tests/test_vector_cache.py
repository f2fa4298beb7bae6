"""
Tests for the embedding cache: incremental refresh, chunking, failure
isolation and cosine search.
"""

import math

import pytest

from conftest import FakeEmbedder
from polyscope.cache.vector_cache import VectorCache, chunked, cosine_similarity


ITEMS = [("m1", "bitcoin price"), ("m2", "fed rate cut"), ("m3", "super bowl winner")]
VECTORS = {
    "bitcoin price": [1.0, 0.0, 0.0],
    "fed rate cut": [0.0, 1.0, 0.0],
    "super bowl winner": [0.0, 0.0, 1.0],
    "btc": [0.9, 0.1, 0.0],
}


class TestCosine:
    def test_identical_vectors(self):
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)

    def test_zero_vector_is_nan(self):
        assert math.isnan(cosine_similarity([0, 0], [1, 1]))

    def test_shape_mismatch_is_nan(self):
        assert math.isnan(cosine_similarity([1, 0, 0], [1, 0]))


class TestRefresh:
    @pytest.mark.asyncio
    async def test_unchanged_items_are_not_reembedded(self):
        embedder = FakeEmbedder(VECTORS)
        cache = VectorCache(embedder)

        await cache.refresh(ITEMS)
        await cache.refresh(ITEMS)

        assert len(embedder.batch_calls) == 1
        assert len(cache) == 3

    @pytest.mark.asyncio
    async def test_only_changed_text_is_embedded(self):
        embedder = FakeEmbedder(VECTORS)
        cache = VectorCache(embedder)
        await cache.refresh(ITEMS)

        await cache.refresh([("m1", "bitcoin price"), ("m2", "fed rate hike"), ("m4", "btc")])

        assert embedder.batch_calls[-1] == ["fed rate hike", "btc"]
        assert [e.item_id for e in cache.entries] == ["m1", "m2", "m4"]

    @pytest.mark.asyncio
    async def test_absent_items_are_dropped(self):
        embedder = FakeEmbedder(VECTORS)
        cache = VectorCache(embedder)
        await cache.refresh(ITEMS)

        await cache.refresh(ITEMS[:1])
        assert [e.item_id for e in cache.entries] == ["m1"]
        assert len(embedder.batch_calls) == 1

    @pytest.mark.asyncio
    async def test_embeds_in_chunks_of_max_batch_size(self):
        embedder = FakeEmbedder(max_batch_size=2)
        cache = VectorCache(embedder)

        await cache.refresh([(f"m{i}", f"title {i}") for i in range(5)])

        assert [len(c) for c in embedder.batch_calls] == [2, 2, 1]
        assert len(cache) == 5

    @pytest.mark.asyncio
    async def test_failed_chunk_keeps_previous_cache(self):
        embedder = FakeEmbedder(VECTORS)
        cache = VectorCache(embedder)
        await cache.refresh(ITEMS)
        before = cache.entries

        embedder.fail = True
        await cache.refresh(ITEMS + [("m9", "new market")])

        assert cache.entries == before

    @pytest.mark.asyncio
    async def test_short_batch_keeps_previous_cache(self):
        embedder = FakeEmbedder(VECTORS)
        cache = VectorCache(embedder)
        await cache.refresh(ITEMS[:1])

        embedder.short = True
        await cache.refresh(ITEMS)

        assert [e.item_id for e in cache.entries] == ["m1"]


class TestSearch:
    @pytest.mark.asyncio
    async def test_ranks_by_similarity(self):
        cache = VectorCache(FakeEmbedder(VECTORS))
        await cache.refresh(ITEMS)

        assert await cache.search("btc", 2) == ["m1", "m2"]

    @pytest.mark.asyncio
    async def test_zero_vectors_are_skipped(self):
        embedder = FakeEmbedder({**VECTORS, "blank": [0.0, 0.0, 0.0]})
        cache = VectorCache(embedder)
        await cache.refresh(ITEMS + [("m0", "blank")])

        assert "m0" not in await cache.search("btc", 10)

    @pytest.mark.asyncio
    async def test_empty_cache_does_not_embed_query(self):
        embedder = FakeEmbedder()
        cache = VectorCache(embedder)

        assert await cache.search("anything", 5) == []
        assert embedder.embed_calls == []


def test_chunked_handles_zero_size():
    assert chunked([1, 2, 3], 0) == [[1], [2], [3]]
