"""
Embedding-based matcher: the producer of tier-1 ("direct") results.

Keeps a VectorCache in line with the live-market snapshot and returns the
markets whose titles sit closest to the query. Any failure (catalog fetch,
embedding backend) yields an empty list so the cascade moves on.
"""

import logging
from typing import List

from ..cache.snapshots import CatalogSnapshots
from ..cache.vector_cache import VectorCache
from ..errors import EmbeddingBatchError, UpstreamFetchError
from ..schemas import CatalogItem

logger = logging.getLogger(__name__)


class SemanticMatcher:
    def __init__(self, snapshots: CatalogSnapshots, vectors: VectorCache):
        self.snapshots = snapshots
        self.vectors = vectors

    async def match(self, query: str, top_n: int = 50) -> List[CatalogItem]:
        try:
            items = await self.snapshots.live_items()
            await self.vectors.refresh([(m.id, m.question) for m in items])
            ids = await self.vectors.search(query, top_n)
        except (UpstreamFetchError, EmbeddingBatchError) as e:
            logger.warning(f"Semantic match unavailable for '{query[:40]}': {e}")
            return []
        by_id = {m.id: m for m in items}
        matched = [by_id[i] for i in ids if i in by_id]
        logger.info(f"Semantic match '{query[:40]}': {len(matched)} markets")
        return matched
