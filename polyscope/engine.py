"""
Engine facade: one object that owns the client, the caches and the search
strategies, and exposes the operations the API layer serves.

    engine = PolyscopeEngine.from_settings(get_settings())
    result = await engine.hybrid_search("fed rate cut")
    report, items = await engine.insights("fed rate cut", result.all_relevant_items)
    await engine.aclose()

Only QueryValidationError leaves these methods; upstream and provider
failures are absorbed by the layer that hit them.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .analytics.correlation import InsightAnalyzer
from .analytics.enrichment import Enricher
from .cache.dead_nodes import DeadNodeCache
from .cache.snapshots import CatalogSnapshots
from .cache.vector_cache import VectorCache
from .config import Settings, get_settings
from .errors import QueryValidationError, UpstreamFetchError
from .schemas import (
    EnrichedItem, HybridSearchResult, InsightReport, PricePoint, SmartSearchResult, TaxonomyNode,
)
from .search.cascade import CascadingSearch, text_search, validate_query
from .search.dimensions import DimensionPool
from .search.hybrid import HybridSearch
from .search.ranking import flatten_live_items, merge_ranked, sort_and_cap
from .search.semantic import SemanticMatcher
from .search.taxonomy import TaxonomySearch
from .tools.embeddings import EmbeddingTool
from .tools.polymarket_client import PolymarketClient
from .tools.provider_manager import ProviderManager
from .tools.ranker import LLMRanker

logger = logging.getLogger(__name__)


class PolyscopeEngine:
    def __init__(
        self,
        settings: Settings,
        client,
        snapshots: CatalogSnapshots,
        dead_nodes: DeadNodeCache,
        ranker,
        semantic: SemanticMatcher,
        enricher: Enricher,
        embedder=None,
    ):
        self.settings = settings
        self.client = client
        self.snapshots = snapshots
        self.dead_nodes = dead_nodes
        self.ranker = ranker
        self.semantic = semantic
        self.enricher = enricher
        self.embedder = embedder

        self.cascade = CascadingSearch(client, settings)
        self.taxonomy = TaxonomySearch(client, snapshots, dead_nodes, ranker, settings)
        self.dimensions = DimensionPool(snapshots, settings)
        self.hybrid = HybridSearch(
            client, snapshots, self.taxonomy, self.dimensions, ranker, enricher, settings,
        )
        self.analyzer = InsightAnalyzer(enricher, settings)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PolyscopeEngine":
        settings = settings or get_settings()
        client = PolymarketClient(settings)
        snapshots = CatalogSnapshots(client, settings)
        embedder = EmbeddingTool(settings)
        ranker = LLMRanker(settings, ProviderManager(settings))
        return cls(
            settings=settings,
            client=client,
            snapshots=snapshots,
            dead_nodes=DeadNodeCache(settings.dead_nodes_path),
            ranker=ranker,
            semantic=SemanticMatcher(snapshots, VectorCache(embedder, name="market-titles")),
            enricher=Enricher(client),
            embedder=embedder,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    # ── search ──

    async def smart_search(self, query: str) -> SmartSearchResult:
        """Embedding matches first, then the cascading fallback tiers."""
        query = validate_query(query)
        direct = await self.semantic.match(query, self.settings.semantic_top_n)
        if len(direct) < self.settings.direct_min_results:
            # Free-text hits count as direct matches too
            try:
                direct = merge_ranked(direct, await text_search(self.client, query), limit=self.settings.result_limit)
            except UpstreamFetchError as e:
                logger.warning(f"Smart search '{query[:40]}': text search failed: {e}")
        outcome = await self.cascade.search(query, direct)
        return SmartSearchResult(
            items=await self.enricher.enrich(outcome.items),
            source=outcome.source,
            message=outcome.message,
            suggested_queries=outcome.suggested_queries,
        )

    async def hybrid_search(self, query: str) -> HybridSearchResult:
        return await self.hybrid.run(query)

    # ── insights ──

    async def insights(
        self,
        query: str,
        items: Optional[Sequence[EnrichedItem]] = None,
    ) -> Tuple[InsightReport, List[EnrichedItem]]:
        """Relationship report over `items`, or over the query's top text matches."""
        query = validate_query(query)
        if not items:
            logger.info(f"Insights '{query[:40]}': no items supplied, using text search results")
            try:
                found = await text_search(self.client, query)
            except UpstreamFetchError as e:
                logger.warning(f"Insights '{query[:40]}': text search failed: {e}")
                found = []
            items = await self.enricher.enrich(found[: self.settings.insight_fallback_items])
        return await self.analyzer.run(items)

    # ── taxonomy / prices ──

    async def taxonomy_nodes(self) -> Tuple[List[TaxonomyNode], int]:
        """(live tags, number of known-dead tags)."""
        try:
            nodes = await self.snapshots.taxonomy_nodes()
        except UpstreamFetchError as e:
            logger.warning(f"Tag list unavailable: {e}")
            nodes = []
        return self.dead_nodes.filter_live(nodes), len(self.dead_nodes)

    async def node_items(self, node_id: str, limit: int = 30) -> List[EnrichedItem]:
        node_id = (node_id or "").strip()
        if not node_id:
            raise QueryValidationError("node id must be a non-empty string")
        if node_id in self.dead_nodes:
            return []
        try:
            groups = await self.client.get_groups_by_taxonomy_node(node_id, self.settings.taxonomy_groups_per_node)
        except UpstreamFetchError as e:
            logger.warning(f"Tag {node_id} markets unavailable: {e}")
            return []
        items = flatten_live_items(groups)
        if not items:
            self.dead_nodes.mark_dead(node_id)
            return []
        return await self.enricher.enrich(sort_and_cap(items, limit))

    async def price_history(self, token_id: str, interval: Optional[str] = None) -> List[PricePoint]:
        if not (token_id or "").strip():
            raise QueryValidationError("token id must be a non-empty string")
        try:
            return await self.client.get_price_history(token_id.strip(), interval)
        except UpstreamFetchError as e:
            logger.warning(f"Price history for {token_id[:16]}... unavailable: {e}")
            return []

    # ── status ──

    async def provider_status(self) -> Dict[str, bool]:
        providers = getattr(self.ranker, "provider_manager", None)
        return await providers.get_provider_status() if providers else {}

    def status(self) -> Dict[str, Any]:
        providers = getattr(self.ranker, "provider_manager", None)
        return {
            "caches": self.snapshots.status(),
            "dead_tags": len(self.dead_nodes),
            "vector_cache_entries": len(self.semantic.vectors),
            "embedding_provider": getattr(self.embedder, "active_provider", None),
            "ranker_configured": self.ranker.is_configured(),
            "ranker_providers": providers.get_provider_names() if providers else [],
        }
