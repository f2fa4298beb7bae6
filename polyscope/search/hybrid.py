"""
Hybrid search: direct match + taxonomy-first search + dimension picks.

The three branches run concurrently and each one absorbs its own failures,
so a dead tag API or an unavailable ranker only thins the result out.

Output:
  direct_match        markets from the plain text search (the "hard match")
  consortium          "smart-search"       → direct_match
                      "semantic-<dim>"     → ranker picks per topical dimension
                      "<tag id>"           → markets under each valid tag
  all_relevant_items  deduplicated union, direct matches first; this is the
                      input for relationship analysis
  direct_search_tags  up to 3 tags whose label contains the query (or vice versa)
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from ..analytics.enrichment import Enricher
from ..cache.snapshots import CatalogSnapshots
from ..config import Settings, get_settings
from ..errors import PolyscopeError
from ..schemas import CatalogItem, EnrichedItem, HybridSearchResult, NodeRef, TaxonomyNode
from .cascade import text_search, validate_query
from .dimensions import DimensionPool, PoolEntry
from .ranking import dedupe_by_id
from .taxonomy import TaxonomySearch

logger = logging.getLogger(__name__)

DIRECT_KEY = "smart-search"
DIRECT_LABEL = "Hard Match"
MAX_DIRECT_TAGS = 3


def semantic_key(dimension: str) -> str:
    return f"semantic-{dimension}"


def matching_tags(query: str, nodes: List[TaxonomyNode], limit: int = MAX_DIRECT_TAGS) -> List[NodeRef]:
    q = query.lower()
    hits = []
    for node in nodes:
        label = node.label.lower()
        if label and (q in label or label in q):
            hits.append(NodeRef(id=node.id, label=node.label))
            if len(hits) >= limit:
                break
    return hits


class HybridSearch:
    def __init__(
        self,
        client,
        snapshots: CatalogSnapshots,
        taxonomy: TaxonomySearch,
        dimensions: DimensionPool,
        ranker,
        enricher: Enricher,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.snapshots = snapshots
        self.taxonomy = taxonomy
        self.dimensions = dimensions
        self.ranker = ranker
        self.enricher = enricher
        self.settings = settings or get_settings()

    async def run(self, query: str) -> HybridSearchResult:
        query = validate_query(query)

        outcomes = await asyncio.gather(
            self._direct_branch(query),
            self._taxonomy_branch(query),
            self._dimension_branch(query),
            return_exceptions=True,
        )
        for name, outcome in zip(("direct", "taxonomy", "dimensions"), outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Hybrid '{query[:40]}': {name} branch crashed", exc_info=outcome)
        direct, tags = outcomes[0] if not isinstance(outcomes[0], BaseException) else ([], [])
        nodes, by_node = outcomes[1] if not isinstance(outcomes[1], BaseException) else ([], {})
        by_dimension = outcomes[2] if not isinstance(outcomes[2], BaseException) else {}

        consortium: Dict[str, List[EnrichedItem]] = {DIRECT_KEY: direct}
        nodes_used = [NodeRef(id=DIRECT_KEY, label=DIRECT_LABEL)]
        for dimension, items in by_dimension.items():
            consortium[semantic_key(dimension)] = items
            nodes_used.append(NodeRef(id=semantic_key(dimension), label=dimension))
        for node in nodes:
            consortium[node.id] = by_node.get(node.id, [])
            nodes_used.append(NodeRef(id=node.id, label=node.label))

        all_items: List[EnrichedItem] = list(direct)
        for items in by_dimension.values():
            all_items.extend(items)
        for node in nodes:
            all_items.extend(by_node.get(node.id, []))
        all_relevant = dedupe_by_id(all_items)

        logger.info(
            f"Hybrid '{query[:40]}': {len(direct)} direct, {len(nodes)} tags, "
            f"{sum(len(v) for v in by_dimension.values())} dimension picks → {len(all_relevant)} unique markets"
        )
        return HybridSearchResult(
            direct_match=direct,
            consortium=consortium,
            nodes_used=nodes_used,
            all_relevant_items=all_relevant,
            direct_search_tags=tags,
        )

    # ── branches ──

    async def _direct_branch(self, query: str) -> Tuple[List[EnrichedItem], List[NodeRef]]:
        try:
            items = (await text_search(self.client, query))[: self.settings.hybrid_direct_limit]
        except PolyscopeError as e:
            logger.warning(f"Hybrid: direct search failed: {e}")
            items = []
        try:
            tags = matching_tags(query, await self.snapshots.taxonomy_nodes())
        except PolyscopeError as e:
            logger.warning(f"Hybrid: tag list unavailable for direct tag match: {e}")
            tags = []
        return await self.enricher.enrich(items), tags

    async def _taxonomy_branch(self, query: str) -> Tuple[List[TaxonomyNode], Dict[str, List[EnrichedItem]]]:
        try:
            result = await self.taxonomy.search(query)
        except PolyscopeError as e:
            logger.warning(f"Hybrid: taxonomy search failed: {e}")
            return [], {}
        # One price batch for every tag's markets
        unique = dedupe_by_id(item for items in result.items_by_node.values() for item in items)
        enriched = {e.id: e for e in await self.enricher.enrich(unique)}
        by_node = {
            node_id: [enriched[m.id] for m in items if m.id in enriched]
            for node_id, items in result.items_by_node.items()
        }
        return result.nodes_used, by_node

    async def _dimension_branch(self, query: str) -> Dict[str, List[EnrichedItem]]:
        try:
            pools = await self.dimensions.pools()
        except PolyscopeError as e:
            logger.warning(f"Hybrid: dimension pools unavailable: {e}")
            return {}
        dims = list(pools.keys())
        results = await asyncio.gather(*[self._pick_dimension(query, d, pools[d]) for d in dims])
        return dict(zip(dims, results))

    async def _pick_dimension(self, query: str, dimension: str, pool: List[PoolEntry]) -> List[EnrichedItem]:
        if not pool:
            return []
        try:
            picks = await self.ranker.pick_with_reasoning(
                query, pool, self.settings.dimension_pick_count, hint=dimension,
            )
            if not picks:
                return []
            groups = await self.client.get_groups_by_ids([p.id for p in picks])
        except PolyscopeError as e:
            logger.warning(f"Hybrid: dimension '{dimension}' failed: {e}")
            return []

        reasoning = {p.id: p.reasoning for p in picks if p.reasoning}
        representatives: List[CatalogItem] = []
        for group in groups:
            top = group.top_live_item()
            if top is not None:
                representatives.append(top)
        return await self.enricher.enrich(representatives, reasoning=reasoning)
