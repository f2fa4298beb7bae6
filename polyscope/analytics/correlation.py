"""
Relationship analysis over price histories.

Given a caller-ranked list of enriched markets:
  1. dedupe (first-seen order)
  2. core = first K markets
  3. pairs over the first M candidates:
       same event       → "same-group", always recorded (coefficient 0 if no data)
       different events → "cross-group", recorded iff |pearson| >= threshold
  4. groups = markets bucketed by event, buckets with >=2 members only

Pearson aligns on the most recent shared window: with series of different
length only the last min(len) samples of each are compared.
"""

import logging
from itertools import combinations
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..config import Settings, get_settings
from ..schemas import CorrelationPair, EnrichedItem, GroupBucket, InsightReport
from ..search.ranking import dedupe_by_id
from .enrichment import Enricher

logger = logging.getLogger(__name__)

DEFAULT_CORE_COUNT = 5
DEFAULT_CANDIDATE_COUNT = 20
DEFAULT_THRESHOLD = 0.7


def dedupe_items(items: Sequence[EnrichedItem]) -> List[EnrichedItem]:
    return dedupe_by_id(items)


def pearson_correlation(a: Sequence[float], b: Sequence[float]) -> float:
    """Pearson r over the last min(len(a), len(b)) samples. 0 when undefined or non-finite."""
    n = min(len(a), len(b))
    if n < 2:
        return 0.0
    x = np.asarray(a[-n:], dtype=float)
    y = np.asarray(b[-n:], dtype=float)
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        return 0.0
    # A constant window has zero variance; r is undefined there
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return 0.0

    num = n * np.sum(x * y) - np.sum(x) * np.sum(y)
    den_sq = (n * np.sum(x * x) - np.sum(x) ** 2) * (n * np.sum(y * y) - np.sum(y) ** 2)
    if den_sq <= 0:
        return 0.0
    r = float(num / np.sqrt(den_sq))
    # Float error can push |r| a hair past 1
    return max(-1.0, min(1.0, r))


def find_pairs(candidates: Sequence[EnrichedItem], threshold: float = DEFAULT_THRESHOLD) -> List[CorrelationPair]:
    pairs: List[CorrelationPair] = []
    for item_a, item_b in combinations(candidates, 2):
        same_group = bool(item_a.group_id and item_b.group_id and item_a.group_id == item_b.group_id)
        coefficient = pearson_correlation(item_a.price_series(), item_b.price_series())
        if same_group:
            pairs.append(CorrelationPair(item_a=item_a, item_b=item_b, coefficient=coefficient, relation="same-group"))
        elif abs(coefficient) >= threshold:
            pairs.append(CorrelationPair(item_a=item_a, item_b=item_b, coefficient=coefficient, relation="cross-group"))
    return pairs


def group_items(items: Sequence[EnrichedItem]) -> List[GroupBucket]:
    buckets: Dict[str, GroupBucket] = {}
    for item in items:
        if not (item.group_id and item.group_title):
            continue
        bucket = buckets.get(item.group_id)
        if bucket is None:
            bucket = buckets[item.group_id] = GroupBucket(group_id=item.group_id, group_title=item.group_title)
        bucket.items.append(item)
    return [b for b in buckets.values() if len(b.items) >= 2]


def analyze(
    items: Sequence[EnrichedItem],
    core_count: int = DEFAULT_CORE_COUNT,
    candidate_count: int = DEFAULT_CANDIDATE_COUNT,
    threshold: float = DEFAULT_THRESHOLD,
) -> InsightReport:
    unique = dedupe_items(items)
    candidates = unique[:candidate_count]
    pairs = find_pairs(candidates, threshold)
    report = InsightReport(core=unique[:core_count], pairs=pairs, groups=group_items(unique))
    same = sum(1 for p in pairs if p.relation == "same-group")
    logger.info(
        f"Insights: {len(unique)} markets, {len(candidates)} candidates → "
        f"{same} same-group / {len(pairs) - same} cross-group pairs, {len(report.groups)} groups"
    )
    return report


class InsightAnalyzer:
    """Fetches missing price histories for the leading candidates, then runs `analyze`."""

    def __init__(self, enricher: Enricher, settings: Optional[Settings] = None):
        self.enricher = enricher
        self.settings = settings or get_settings()

    async def run(self, items: Sequence[EnrichedItem]) -> Tuple[InsightReport, List[EnrichedItem]]:
        s = self.settings
        with_history = await self.enricher.attach_histories(items, s.insight_candidate_count)
        report = analyze(
            with_history,
            core_count=s.insight_core_count,
            candidate_count=s.insight_candidate_count,
            threshold=s.correlation_threshold,
        )
        return report, with_history
