"""
Schemas package: all data models for Polyscope.

Models are organized by domain in submodules:
  - catalog.py: CatalogItem, Group, TaxonomyNode, PricePoint (upstream mirrors)
  - insights.py: EnrichedItem, CorrelationPair, GroupBucket, InsightReport
  - search.py: VectorEntry, SearchOutcome, SmartSearchResult, TaxonomySearchResult, HybridSearchResult
"""

from polyscope.schemas.catalog import (
    DEFAULT_OUTCOMES, CatalogItem, Group, TaxonomyNode, PricePoint,
)
from polyscope.schemas.insights import (
    EnrichedItem, CorrelationPair, GroupBucket, InsightReport,
)
from polyscope.schemas.search import (
    VectorEntry, SearchOutcome, SmartSearchResult, NodeRef, TaxonomySearchResult, HybridSearchResult,
)

__all__ = [
    # catalog
    "DEFAULT_OUTCOMES", "CatalogItem", "Group", "TaxonomyNode", "PricePoint",
    # insights
    "EnrichedItem", "CorrelationPair", "GroupBucket", "InsightReport",
    # search
    "VectorEntry", "SearchOutcome", "SmartSearchResult", "NodeRef", "TaxonomySearchResult", "HybridSearchResult",
]
