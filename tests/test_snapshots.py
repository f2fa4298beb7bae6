"""
Tests for catalog snapshots and the semantic matcher built on them.
"""

import json

import pytest

from conftest import FakeEmbedder, group, make_settings, market, node
from polyscope.cache.snapshots import CatalogSnapshots
from polyscope.cache.vector_cache import VectorCache
from polyscope.errors import UpstreamFetchError
from polyscope.search.semantic import SemanticMatcher


@pytest.fixture
def live_catalog(catalog):
    catalog.active_groups = [
        group("e1", "Fed", [market("f1", question="Fed cuts in March?", volume=10)]),
        group("e2", "Closed", [market("c1", live=False)]),
        group("e3", "Gold", [market("g1", question="Gold above $3k?", volume=50)]),
    ]
    return catalog


class TestCatalogSnapshots:
    @pytest.mark.asyncio
    async def test_only_groups_with_live_items(self, live_catalog, clock):
        snapshots = CatalogSnapshots(live_catalog, make_settings(), clock=clock)
        assert [g.id for g in await snapshots.live_groups()] == ["e1", "e3"]
        assert [m.id for m in await snapshots.live_items()] == ["g1", "f1"]

    @pytest.mark.asyncio
    async def test_refetch_after_ttl(self, live_catalog, clock):
        settings = make_settings()
        snapshots = CatalogSnapshots(live_catalog, settings, clock=clock)
        await snapshots.live_groups()
        clock.advance(settings.group_cache_seconds - 1)
        await snapshots.live_groups()
        assert live_catalog.count("get_all_active_groups") == 1

        clock.advance(1)
        await snapshots.live_groups()
        assert live_catalog.count("get_all_active_groups") == 2

    @pytest.mark.asyncio
    async def test_status_reports_every_cache(self, live_catalog, clock):
        snapshots = CatalogSnapshots(live_catalog, make_settings(), clock=clock)
        await snapshots.live_items()
        status = snapshots.status()
        assert status["events"]["entries"] == 2
        assert status["markets"]["fresh"] is True
        assert status["tags"] == {"entries": 0, "age_seconds": None, "fresh": False}

    @pytest.mark.asyncio
    async def test_tag_snapshot_archived(self, catalog, tmp_path):
        catalog.nodes = [node("1", "Fed"), node("2", "NBA")]
        snapshots = CatalogSnapshots(catalog, make_settings(taxonomy_snapshot_dir=str(tmp_path / "snaps")))
        await snapshots.taxonomy_nodes()

        files = list((tmp_path / "snaps").glob("tags-*.json"))
        assert len(files) == 1
        payload = json.loads(files[0].read_text())
        assert payload["total_tags"] == 2
        assert [t["label"] for t in payload["tags"]] == ["Fed", "NBA"]


class TestSemanticMatcher:
    @pytest.mark.asyncio
    async def test_closest_titles_first(self, live_catalog):
        embedder = FakeEmbedder({
            "gold": [1.0, 0.0],
            "Gold above $3k?": [0.9, 0.1],
            "Fed cuts in March?": [0.1, 0.9],
        })
        matcher = SemanticMatcher(CatalogSnapshots(live_catalog, make_settings()), VectorCache(embedder))
        matched = await matcher.match("gold", top_n=1)
        assert [m.id for m in matched] == ["g1"]

    @pytest.mark.asyncio
    async def test_catalog_failure_is_empty(self, catalog):
        catalog.active_groups = UpstreamFetchError("down")
        matcher = SemanticMatcher(CatalogSnapshots(catalog, make_settings()), VectorCache(FakeEmbedder()))
        assert await matcher.match("gold") == []
