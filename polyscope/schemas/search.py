"""
Search result models for the cascading, taxonomy-first and hybrid strategies.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .catalog import CatalogItem, TaxonomyNode
from .insights import EnrichedItem

SearchSource = Literal["direct", "synonym", "tag", "popular"]


class VectorEntry(BaseModel):
    """Cached embedding. Reused across refreshes iff id and text are unchanged."""
    item_id: str
    text: str
    vector: List[float]


class SearchOutcome(BaseModel):
    """Result of one pass through the cascading tiers."""
    items: List[CatalogItem] = Field(default_factory=list)
    source: SearchSource = "direct"
    message: Optional[str] = None
    suggested_queries: List[str] = Field(default_factory=list)


class NodeRef(BaseModel):
    id: str
    label: str


class TaxonomySearchResult(BaseModel):
    items: List[CatalogItem] = Field(default_factory=list)
    nodes_used: List[TaxonomyNode] = Field(default_factory=list)
    items_by_node: Dict[str, List[CatalogItem]] = Field(default_factory=dict)


class HybridSearchResult(BaseModel):
    direct_match: List[EnrichedItem] = Field(default_factory=list)
    # Keys: "smart-search", "semantic-<dimension>", or a taxonomy node id
    consortium: Dict[str, List[EnrichedItem]] = Field(default_factory=dict)
    nodes_used: List[NodeRef] = Field(default_factory=list)
    all_relevant_items: List[EnrichedItem] = Field(default_factory=list)
    direct_search_tags: List[NodeRef] = Field(default_factory=list)


class SmartSearchResult(BaseModel):
    """Cascade outcome with enriched items, as served to callers."""
    items: List[EnrichedItem] = Field(default_factory=list)
    source: SearchSource = "direct"
    message: Optional[str] = None
    suggested_queries: List[str] = Field(default_factory=list)
