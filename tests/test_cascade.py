"""
Tests for the four-tier cascading search.
"""

import pytest

from conftest import FakeCatalog, group, make_settings, market
from polyscope.errors import QueryValidationError, UpstreamFetchError
from polyscope.search import cascade as cascade_module
from polyscope.search.cascade import CascadingSearch, text_search
from polyscope.search.keywords import KeywordMapping


def items_of(*groups):
    return [m for g in groups for m in g.live_items()]


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def cascade(catalog):
    return CascadingSearch(catalog, make_settings())


class TestDirectTier:
    @pytest.mark.asyncio
    async def test_enough_direct_matches_short_circuit(self, cascade, catalog):
        direct = items_of(group("e1", "Gold", [market(f"d{i}") for i in range(5)]))

        outcome = await cascade.search("gold", direct)

        assert outcome.source == "direct"
        assert [m.id for m in outcome.items] == [m.id for m in direct]
        assert sum(catalog.calls.values()) == 0

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self, cascade):
        with pytest.raises(QueryValidationError):
            await cascade.search("   ")


class TestSynonymTier:
    @pytest.mark.asyncio
    async def test_two_direct_plus_synonyms(self, cascade, catalog):
        direct = items_of(group("e1", "Gold", [market("d1", volume=10), market("d2", volume=20)]))
        catalog.text_results["commodity"] = [
            group("e2", "Commodities", [market("s1", volume=500), market("s2", volume=400), market("s3", volume=300)]),
        ]

        outcome = await cascade.search("gold", direct)

        ids = [m.id for m in outcome.items]
        assert outcome.source == "synonym"
        assert len(ids) >= 5
        assert {"d1", "d2"} <= set(ids)
        assert ids[:3] == ["s1", "s2", "s3"]
        assert '"gold"' in outcome.message
        assert outcome.suggested_queries[0] == "commodity"

    @pytest.mark.asyncio
    async def test_failing_synonym_is_skipped(self, cascade, catalog):
        catalog.text_results["commodity"] = UpstreamFetchError("boom")
        catalog.text_results["silver"] = [group("e3", "Silver", [market("s9")])]

        outcome = await cascade.search("gold")

        assert outcome.source == "synonym"
        assert [m.id for m in outcome.items] == ["s9"]

    @pytest.mark.asyncio
    async def test_synonym_results_deduplicated(self, cascade, catalog):
        shared = group("e2", "Metals", [market("s1")])
        catalog.text_results["commodity"] = [shared]
        catalog.text_results["metal"] = [shared]

        outcome = await cascade.search("gold")
        assert [m.id for m in outcome.items] == ["s1"]


class TestTagTier:
    @pytest.mark.asyncio
    async def test_falls_back_to_category_search(self, cascade, catalog):
        catalog.text_results["weather"] = [group("e4", "Hurricanes", [market("w1")])]

        outcome = await cascade.search("climate")

        assert outcome.source == "tag"
        assert [m.id for m in outcome.items] == ["w1"]
        assert "weather" in outcome.message

    @pytest.mark.asyncio
    async def test_mapped_node_fetched_and_merged(self, cascade, catalog, monkeypatch):
        mapping = KeywordMapping(keywords=["climate"], synonyms=["weather"], category="weather", node_id="87")
        monkeypatch.setattr(cascade_module, "find_keyword_mapping", lambda query: mapping)
        catalog.node_groups["87"] = [group("e4", "Hurricanes", [market("w1", volume=50), market("w2", volume=5)])]
        direct = items_of(group("e1", "Heat", [market("d1", volume=20)]))

        outcome = await cascade.search("climate", direct)

        assert outcome.source == "tag"
        assert [m.id for m in outcome.items] == ["w1", "d1", "w2"]
        assert catalog.count("get_groups_by_taxonomy_node", "87") == 1
        assert catalog.count("search_by_text", "weather") == 0

    @pytest.mark.asyncio
    async def test_failed_node_fetch_falls_back_to_category(self, cascade, catalog, monkeypatch):
        mapping = KeywordMapping(keywords=["climate"], synonyms=["weather"], category="weather", node_id="87")
        monkeypatch.setattr(cascade_module, "find_keyword_mapping", lambda query: mapping)
        catalog.node_groups["87"] = UpstreamFetchError("gamma down")
        catalog.text_results["weather"] = [group("e5", "Storms", [market("s1")])]

        outcome = await cascade.search("climate")

        assert outcome.source == "tag"
        assert [m.id for m in outcome.items] == ["s1"]


class TestPopularTier:
    @pytest.mark.asyncio
    async def test_unknown_query_gets_popular(self, cascade, catalog):
        catalog.popular = [group("p", "Popular", [market("p1", volume=9e6), market("p2", live=False)])]

        outcome = await cascade.search("xyzzy")

        assert outcome.source == "popular"
        assert [m.id for m in outcome.items] == ["p1"]
        assert outcome.suggested_queries == ["bitcoin", "election", "inflation"]

    @pytest.mark.asyncio
    async def test_popular_failure_degrades_to_direct(self, cascade, catalog):
        catalog.popular = UpstreamFetchError("gamma down")
        direct = items_of(group("e1", "Event", [market("d1")]))

        outcome = await cascade.search("xyzzy", direct)

        assert outcome.source == "direct"
        assert [m.id for m in outcome.items] == ["d1"]
        assert outcome.message.startswith("Only found 1 related markets")


@pytest.mark.asyncio
async def test_text_search_returns_live_items_by_volume(catalog):
    catalog.text_results["fed"] = [
        group("e1", "Fed", [market("a", volume=1), market("b", volume=5), market("c", live=False)]),
    ]
    assert [m.id for m in await text_search(catalog, "fed")] == ["b", "a"]
