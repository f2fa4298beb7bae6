"""
Catalog data models: mirrors of the upstream Gamma API shapes.

Hierarchy: TaxonomyNode (tag) → Group (event) → CatalogItem (market)

The upstream sends several list-valued fields as JSON-encoded strings
(clobTokenIds, outcomes) and numbers as strings (volume). Validators
normalize those on the way in so the rest of the engine never sees raw
strings. Records are read-only mirrors; nothing here writes back upstream.
"""

import json
import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

DEFAULT_OUTCOMES = ["Yes", "No"]


def _parse_json_list(value: Any) -> Optional[List[str]]:
    """Decode a JSON-encoded list string. Returns None when unparseable."""
    if value is None:
        return None
    if isinstance(value, list):
        return [str(v) for v in value]
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return None
        if isinstance(parsed, list):
            return [str(v) for v in parsed]
    return None


def to_float(value: Any) -> float:
    """Coerce upstream numeric-or-string values, treating garbage and NaN/inf as 0."""
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


class CatalogItem(BaseModel):
    """A single tradable market."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    question: str = ""
    token_ids: List[str] = Field(default_factory=list, alias="clobTokenIds")
    volume: float = 0.0
    end_date: Optional[str] = Field(default=None, alias="endDate")
    image: Optional[str] = None
    slug: str = ""
    outcomes: List[str] = Field(default_factory=lambda: list(DEFAULT_OUTCOMES))
    active: bool = False
    closed: bool = False
    enable_order_book: bool = Field(default=False, alias="enableOrderBook")

    # Parent context, copied from the owning Group
    group_id: Optional[str] = None
    group_title: Optional[str] = None
    group_slug: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        if v is None or v == "":
            raise ValueError("market id is required")
        return str(v)

    @field_validator("question", "slug", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v or ""

    @field_validator("token_ids", mode="before")
    @classmethod
    def _parse_token_ids(cls, v):
        return _parse_json_list(v) or []

    @field_validator("outcomes", mode="before")
    @classmethod
    def _parse_outcomes(cls, v):
        parsed = _parse_json_list(v)
        return parsed if parsed else list(DEFAULT_OUTCOMES)

    @field_validator("active", "closed", "enable_order_book", mode="before")
    @classmethod
    def _none_to_false(cls, v):
        return False if v is None else v

    @field_validator("volume", mode="before")
    @classmethod
    def _parse_volume(cls, v):
        return to_float(v)

    @property
    def is_live(self) -> bool:
        """Only active, open, order-book-enabled markets are surfaced."""
        return self.active and not self.closed and self.enable_order_book

    @property
    def first_token_id(self) -> Optional[str]:
        return self.token_ids[0] if self.token_ids else None

    @property
    def display_slug(self) -> str:
        """Group slug builds the correct public URL; fall back to our own."""
        return self.group_slug or self.slug


class Group(BaseModel):
    """An event: a cluster of markets sharing one parent context."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    slug: str = ""
    volume: float = 0.0
    end_date: Optional[str] = Field(default=None, alias="endDate")
    image: Optional[str] = None
    markets: List[CatalogItem] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        if v is None or v == "":
            raise ValueError("event id is required")
        return str(v)

    @field_validator("title", "slug", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v or ""

    @field_validator("volume", mode="before")
    @classmethod
    def _parse_volume(cls, v):
        return to_float(v)

    @field_validator("markets", mode="before")
    @classmethod
    def _skip_malformed_markets(cls, v):
        if not isinstance(v, list):
            return []
        # One bad market must not fail the whole event
        markets = []
        for m in v:
            if isinstance(m, CatalogItem):
                markets.append(m)
            elif isinstance(m, dict) and m.get("id"):
                try:
                    markets.append(CatalogItem.model_validate(m))
                except ValidationError:
                    continue
        return markets

    @model_validator(mode="after")
    def _stamp_parent(self):
        for market in self.markets:
            market.group_id = self.id
            market.group_title = self.title
            market.group_slug = self.slug
        return self

    def live_items(self) -> List[CatalogItem]:
        return [m for m in self.markets if m.is_live]

    def top_live_item(self) -> Optional[CatalogItem]:
        """Highest-volume live market, used as the group's representative."""
        live = self.live_items()
        if not live:
            return None
        return max(live, key=lambda m: m.volume)


class TaxonomyNode(BaseModel):
    """A tag usable to bulk-fetch related events."""

    model_config = ConfigDict(extra="ignore")

    id: str
    label: str = ""
    slug: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        if v is None or v == "":
            raise ValueError("tag id is required")
        return str(v)

    @field_validator("label", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v or ""

    def ranking_text(self) -> str:
        return f"{self.label} ({self.slug})" if self.slug else self.label


class PricePoint(BaseModel):
    """One sample of a market's price history."""

    timestamp: str
    price: float = 0.0

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, v):
        return str(v)

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, v):
        return to_float(v)
