"""
Taxonomy-first search.

1. All tags, minus known-dead ones.
2. The ranker picks the top-K most query-relevant tags. K is deliberately
   larger than the number of tags we want, so discovering dead tags along
   the way does not starve the result.
3. Candidates are validated lazily and sequentially: fetch the tag's events,
   keep live markets; a tag with none is marked dead and skipped, a fetch
   error skips the tag without marking it. The consumer stops pulling once
   it has enough valid tags, so untouched candidates cost nothing.
4. Per-tag lists are ranked by volume then end date and capped; the overall
   list is merged, deduped and capped again.
"""

import logging
from typing import AsyncIterator, List, Optional, Sequence, Tuple

from ..cache.dead_nodes import DeadNodeCache
from ..cache.snapshots import CatalogSnapshots
from ..config import Settings, get_settings
from ..errors import UpstreamFetchError
from ..schemas import CatalogItem, TaxonomyNode, TaxonomySearchResult
from .ranking import flatten_live_items, merge_ranked, sort_and_cap

logger = logging.getLogger(__name__)

ValidatedNode = Tuple[TaxonomyNode, List[CatalogItem]]


class TaxonomySearch:
    def __init__(
        self,
        client,
        snapshots: CatalogSnapshots,
        dead_nodes: DeadNodeCache,
        ranker,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.snapshots = snapshots
        self.dead_nodes = dead_nodes
        self.ranker = ranker
        self.settings = settings or get_settings()

    async def candidate_nodes(self, query: str) -> List[TaxonomyNode]:
        """Ranker's top-K live tags for the query, best first."""
        nodes = self.dead_nodes.filter_live(await self.snapshots.taxonomy_nodes())
        if not nodes:
            return []
        indices = await self.ranker.rank_top_indices(
            query, [n.ranking_text() for n in nodes], self.settings.taxonomy_candidate_count,
        )
        return [nodes[i] for i in indices if 0 <= i < len(nodes)]

    async def validated_nodes(self, candidates: Sequence[TaxonomyNode]) -> AsyncIterator[ValidatedNode]:
        """Yield (tag, ranked live markets) for each candidate that has any."""
        s = self.settings
        for node in candidates:
            if node.id in self.dead_nodes:
                continue
            try:
                groups = await self.client.get_groups_by_taxonomy_node(node.id, s.taxonomy_groups_per_node)
            except UpstreamFetchError as e:
                logger.warning(f"Tag {node.id} ({node.label}) fetch failed, skipping: {e}")
                continue
            items = flatten_live_items(groups)
            if not items:
                self.dead_nodes.mark_dead(node.id)
                continue
            yield node, sort_and_cap(items, s.taxonomy_items_per_node)

    async def search(self, query: str, target: Optional[int] = None) -> TaxonomySearchResult:
        target = target or self.settings.taxonomy_target_nodes
        try:
            candidates = await self.candidate_nodes(query)
        except UpstreamFetchError as e:
            logger.warning(f"Taxonomy search '{query[:40]}': tag list unavailable: {e}")
            return TaxonomySearchResult()

        result = TaxonomySearchResult()
        stream = self.validated_nodes(candidates)
        try:
            async for node, items in stream:
                result.nodes_used.append(node)
                result.items_by_node[node.id] = items
                if len(result.nodes_used) >= target:
                    break
        finally:
            await stream.aclose()

        result.items = merge_ranked(*result.items_by_node.values(), limit=self.settings.result_limit)
        logger.info(
            f"Taxonomy search '{query[:40]}': {len(candidates)} candidates → "
            f"{len(result.nodes_used)} valid tags, {len(result.items)} markets"
        )
        return result
