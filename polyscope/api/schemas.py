"""API request/response schemas."""

from typing import List, Optional

from pydantic import BaseModel, Field

from polyscope.schemas import (
    CorrelationPair, EnrichedItem, GroupBucket, PricePoint, TaxonomyNode,
)


# -- Search --

class SearchRequest(BaseModel):
    query: str


# -- Insights --

class InsightsRequest(BaseModel):
    query: str
    # Pre-filtered markets (usually hybrid search's all_relevant_items)
    items: List[EnrichedItem] = Field(default_factory=list)


class InsightsResponse(BaseModel):
    query: str
    core: List[EnrichedItem] = Field(default_factory=list)
    pairs: List[CorrelationPair] = Field(default_factory=list)
    groups: List[GroupBucket] = Field(default_factory=list)
    all_items: List[EnrichedItem] = Field(default_factory=list)


# -- Tags --

class TagListResponse(BaseModel):
    count: int
    dead_count: int
    tags: List[TaxonomyNode] = Field(default_factory=list)


class TagMarketsResponse(BaseModel):
    tag_id: str
    count: int
    markets: List[EnrichedItem] = Field(default_factory=list)


# -- Prices --

class PriceHistoryResponse(BaseModel):
    token_id: str
    interval: Optional[str] = None
    history: List[PricePoint] = Field(default_factory=list)
