"""
Deterministic ordering helpers shared by every search strategy.
"""

from datetime import datetime
from typing import Iterable, List, Optional, TypeVar

from ..schemas import CatalogItem, Group

T = TypeVar("T")


def dedupe_by_id(items: Iterable[T]) -> List[T]:
    """First-seen order wins. dedupe_by_id(dedupe_by_id(x)) == dedupe_by_id(x)."""
    seen = set()
    unique: List[T] = []
    for item in items:
        key = getattr(item, "id")
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def end_date_ts(value: Optional[str]) -> float:
    """ISO end date → epoch seconds. Missing/unparseable dates sort last."""
    if not value:
        return float("-inf")
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return float("-inf")


def sort_and_cap(items: Iterable[CatalogItem], limit: int = 50) -> List[CatalogItem]:
    """Drop closed items, then volume desc, then end date desc, then cap."""
    open_items = [m for m in items if not m.closed]
    open_items.sort(key=lambda m: (m.volume, end_date_ts(m.end_date)), reverse=True)
    return open_items[:limit]


def merge_ranked(*batches: Iterable[CatalogItem], limit: int = 50) -> List[CatalogItem]:
    """Concatenate, dedupe (first batch wins), rank, cap."""
    merged: List[CatalogItem] = []
    for batch in batches:
        merged.extend(batch)
    return sort_and_cap(dedupe_by_id(merged), limit)


def flatten_live_items(groups: Iterable[Group]) -> List[CatalogItem]:
    """Live markets of every group, in group order, each carrying its parent context."""
    items: List[CatalogItem] = []
    for group in groups:
        items.extend(group.live_items())
    return items


def by_volume(items: Iterable[CatalogItem]) -> List[CatalogItem]:
    return sorted(items, key=lambda m: m.volume, reverse=True)
