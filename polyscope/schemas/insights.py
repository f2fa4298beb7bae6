"""
Enriched item and relationship-analysis models.

EnrichedItem is what every search path hands back to callers and what the
correlation analyzer consumes. CorrelationPair / GroupBucket / InsightReport
are ephemeral: recomputed per analysis request, never cached.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .catalog import PricePoint

Relation = Literal["same-group", "cross-group"]


class EnrichedItem(BaseModel):
    """A CatalogItem plus current probability, formatted volume and history."""

    id: str
    title: str
    outcome: str = "Yes"
    probability: float = 0.0  # 0-100, two decimals
    volume: str = "$0"
    volume_value: float = 0.0
    chart_data: List[PricePoint] = Field(default_factory=list)
    image: Optional[str] = None
    slug: str = ""
    outcomes: List[str] = Field(default_factory=lambda: ["Yes", "No"])
    token_id: Optional[str] = None
    group_id: Optional[str] = None
    group_title: Optional[str] = None
    end_date: Optional[str] = None
    reasoning: Optional[str] = None

    def price_series(self) -> List[float]:
        return [p.price for p in self.chart_data]


class CorrelationPair(BaseModel):
    item_a: EnrichedItem
    item_b: EnrichedItem
    coefficient: float = Field(ge=-1.0, le=1.0)
    relation: Relation


class GroupBucket(BaseModel):
    """Items sharing one parent event. Only buckets with >=2 members survive."""
    group_id: str
    group_title: str
    items: List[EnrichedItem] = Field(default_factory=list)


class InsightReport(BaseModel):
    core: List[EnrichedItem] = Field(default_factory=list)
    pairs: List[CorrelationPair] = Field(default_factory=list)
    groups: List[GroupBucket] = Field(default_factory=list)
