"""
Cascading search: four tiers, each tried only if every earlier tier came up empty.

  1. direct   caller-supplied semantic matches; enough of them (>= 5) → done
  2. synonym  static synonym table, one text search per synonym (<= 5, concurrent)
  3. tag      the query's mapped category, fetched via its taxonomy node
              (falls back to a text search on the category name)
  4. popular  most-traded live markets, regardless of the query

Tiers 2 and 3 merge with the tier-1 results, dedupe, rank by volume then
end date and cap. A failure inside a tier counts as "nothing found" and
the cascade moves on; only a failure of tier 4 is absorbed, returning the
tier-1 results with a degraded-service message.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from ..config import Settings, get_settings
from ..errors import QueryValidationError, UpstreamFetchError
from ..schemas import CatalogItem, SearchOutcome
from .keywords import KeywordMapping, find_keyword_mapping, suggested_queries, synonyms_for
from .ranking import by_volume, flatten_live_items, merge_ranked

logger = logging.getLogger(__name__)


def validate_query(query: Optional[str]) -> str:
    cleaned = (query or "").strip()
    if not cleaned:
        raise QueryValidationError("query must be a non-empty string")
    return cleaned


async def text_search(client, query: str) -> List[CatalogItem]:
    """Live markets from a free-text search, highest volume first."""
    return by_volume(flatten_live_items(await client.search_by_text(query)))


class CascadingSearch:
    """
    Usage:
        cascade = CascadingSearch(client)
        outcome = await cascade.search("gold", direct_results=semantic_hits)
        outcome.source  # "direct" | "synonym" | "tag" | "popular"
    """

    def __init__(self, client, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()

    async def search(self, query: str, direct_results: Sequence[CatalogItem] = ()) -> SearchOutcome:
        query = validate_query(query)
        direct = list(direct_results)
        s = self.settings

        # 1. Direct matches
        if len(direct) >= s.direct_min_results:
            logger.info(f"Cascade '{query[:40]}': {len(direct)} direct matches")
            return SearchOutcome(items=direct, source="direct")

        # 2. Synonym expansion
        synonym_items = await self._synonym_tier(query)
        if synonym_items:
            merged = merge_ranked(direct, synonym_items, limit=s.result_limit)
            logger.info(f"Cascade '{query[:40]}': synonym tier → {len(merged)} markets")
            return SearchOutcome(
                items=merged,
                source="synonym",
                message=f'No exact match for "{query}". Showing markets on related topics:',
                suggested_queries=synonyms_for(query),
            )

        # 3. Taxonomy tag for the mapped category
        mapping = find_keyword_mapping(query)
        if mapping:
            tag_items = await self._tag_tier(mapping)
            if tag_items:
                merged = merge_ranked(direct, tag_items, limit=s.result_limit)
                logger.info(f"Cascade '{query[:40]}': tag tier ({mapping.category}) → {len(merged)} markets")
                return SearchOutcome(
                    items=merged,
                    source="tag",
                    message=f'Nothing directly about "{query}". Showing {mapping.category or "related"} markets:',
                    suggested_queries=list(mapping.synonyms[:3]),
                )

        # 4. Popular markets (terminal)
        try:
            popular = flatten_live_items(await self.client.get_popular(s.popular_limit))[: s.popular_limit]
        except UpstreamFetchError as e:
            logger.warning(f"Cascade '{query[:40]}': popular tier failed, returning direct results: {e}")
            return SearchOutcome(
                items=direct,
                source="direct",
                message=f"Only found {len(direct)} related markets. Try a different search term.",
            )
        logger.info(f"Cascade '{query[:40]}': popular fallback → {len(popular)} markets")
        return SearchOutcome(
            items=popular,
            source="popular",
            message=f'No markets found for "{query}". Here are the most active prediction markets right now:',
            suggested_queries=suggested_queries(query),
        )

    async def _synonym_tier(self, query: str) -> List[CatalogItem]:
        synonyms = synonyms_for(query)[: self.settings.synonym_fanout]
        if not synonyms:
            return []
        results = await asyncio.gather(
            *[text_search(self.client, syn) for syn in synonyms],
            return_exceptions=True,
        )
        items: List[CatalogItem] = []
        for synonym, result in zip(synonyms, results):
            if isinstance(result, UpstreamFetchError):
                logger.warning(f"Synonym search '{synonym}' failed, skipping: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            items.extend(result)
        return items

    async def _tag_tier(self, mapping: KeywordMapping) -> List[CatalogItem]:
        if mapping.node_id:
            try:
                groups = await self.client.get_groups_by_taxonomy_node(mapping.node_id, self.settings.result_limit)
                items = flatten_live_items(groups)
                if items:
                    return items
            except UpstreamFetchError as e:
                logger.warning(f"Tag {mapping.node_id} fetch failed, falling back to category search: {e}")

        if mapping.category:
            try:
                return await text_search(self.client, mapping.category)
            except UpstreamFetchError as e:
                logger.warning(f"Category search '{mapping.category}' failed: {e}")
        return []
