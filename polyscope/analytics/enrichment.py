"""
Turns raw catalog markets into EnrichedItems.

One batched CLOB price lookup covers every market's first ("Yes") token.
A failed lookup does not fail the search: probabilities come back as 0 and
the failure is logged.
"""

import asyncio
import logging
from typing import Dict, List, Mapping, Optional, Sequence

from ..errors import UpstreamFetchError
from ..schemas import CatalogItem, EnrichedItem
from ..search.ranking import dedupe_by_id

logger = logging.getLogger(__name__)


def format_volume(volume: float) -> str:
    """2_400_000 → "$2.4M", 12_000 → "$12.0K", 950 → "$950"."""
    volume = volume or 0.0
    if volume >= 1_000_000:
        return f"${volume / 1_000_000:.1f}M"
    if volume >= 1_000:
        return f"${volume / 1_000:.1f}K"
    return f"${volume:.0f}"


def to_probability(price: float) -> float:
    """CLOB price (0-1) → percentage with two decimals."""
    return round(price * 100, 2)


def to_enriched(item: CatalogItem, price: float = 0.0, reasoning: Optional[str] = None) -> EnrichedItem:
    return EnrichedItem(
        id=item.id,
        title=item.question,
        outcome=item.outcomes[0] if item.outcomes else "Yes",
        probability=to_probability(price),
        volume=format_volume(item.volume),
        volume_value=item.volume,
        image=item.image,
        slug=item.display_slug,
        outcomes=list(item.outcomes),
        token_id=item.first_token_id,
        group_id=item.group_id,
        group_title=item.group_title,
        end_date=item.end_date,
        reasoning=reasoning,
    )


class Enricher:
    def __init__(self, client):
        self.client = client

    async def prices_for(self, items: Sequence[CatalogItem]) -> Dict[str, float]:
        token_ids = [m.first_token_id for m in items if m.first_token_id]
        if not token_ids:
            return {}
        try:
            return await self.client.get_batch_prices(token_ids)
        except UpstreamFetchError as e:
            logger.warning(f"Batch price lookup failed for {len(token_ids)} tokens, using 0: {e}")
            return {}

    async def enrich(
        self,
        items: Sequence[CatalogItem],
        reasoning: Optional[Mapping[str, str]] = None,
    ) -> List[EnrichedItem]:
        """EnrichedItem per market, input order preserved.

        `reasoning` maps market id or group id → ranker explanation.
        """
        if not items:
            return []
        prices = await self.prices_for(items)
        reasoning = reasoning or {}
        enriched = []
        for item in items:
            price = prices.get(item.first_token_id, 0.0) if item.first_token_id else 0.0
            why = reasoning.get(item.id) or (reasoning.get(item.group_id) if item.group_id else None)
            enriched.append(to_enriched(item, price, why))
        return enriched

    async def _with_history(self, item: EnrichedItem) -> EnrichedItem:
        if item.chart_data or not item.token_id:
            return item
        try:
            history = await self.client.get_price_history(item.token_id)
        except UpstreamFetchError as e:
            logger.warning(f"Price history for market {item.id} unavailable: {e}")
            return item
        return item.model_copy(update={"chart_data": history})

    async def attach_histories(self, items: Sequence[EnrichedItem], limit: int) -> List[EnrichedItem]:
        """Dedupe, then fetch histories for the first `limit` items carrying a token id."""
        unique = dedupe_by_id(items)
        targets = [i for i, item in enumerate(unique) if item.token_id][:limit]
        fetched = await asyncio.gather(*[self._with_history(unique[i]) for i in targets])
        result = list(unique)
        for i, item in zip(targets, fetched):
            result[i] = item
        logger.info(f"Attached price histories to {sum(1 for f in fetched if f.chart_data)}/{len(targets)} markets")
        return result
