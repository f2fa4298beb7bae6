"""
Topical "dimension" pools for the hybrid orchestrator.

Each dimension (politics, crypto, middle east, ...) is a pool of event ids
and titles. The pool comes from data/categorized-events.json, written by
scripts/categorize_events.py. When that file is absent or unreadable the
pool is derived on the fly from the live-event snapshot with the
keyword-regex classifier.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..analytics.enrichment import format_volume
from ..cache.snapshots import CatalogSnapshots
from ..config import Settings, get_settings
from ..schemas import Group
from .keywords import classify_title

logger = logging.getLogger(__name__)

PoolEntry = Tuple[str, str]  # (event id, event title)


def load_categorized_events(path: Path) -> Optional[List[dict]]:
    """Records from the categorized-events file, or None if unusable."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return None
    if not isinstance(data, list):
        logger.warning(f"{path} is not a JSON list, ignoring")
        return None
    return [r for r in data if isinstance(r, dict) and r.get("id") and r.get("category")]


def bucket_records(records: Sequence[dict], dimensions: Sequence[str]) -> Dict[str, List[PoolEntry]]:
    pools: Dict[str, List[PoolEntry]] = {d: [] for d in dimensions}
    for record in records:
        category = record["category"]
        if category in pools:
            pools[category].append((str(record["id"]), str(record.get("title", ""))))
    return pools


class DimensionPool:
    def __init__(
        self,
        snapshots: CatalogSnapshots,
        settings: Optional[Settings] = None,
        path: Optional[str | Path] = None,
    ):
        self.snapshots = snapshots
        self.settings = settings or get_settings()
        self.path = Path(path or self.settings.categorized_events_path)
        self.dimensions: List[str] = list(self.settings.semantic_dimensions)
        self._file_pools: Optional[Dict[str, List[PoolEntry]]] = None
        self._file_mtime: Optional[float] = None

    def _from_file(self) -> Optional[Dict[str, List[PoolEntry]]]:
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            return None
        if self._file_pools is not None and mtime == self._file_mtime:
            return self._file_pools
        records = load_categorized_events(self.path)
        if records is None:
            return None
        self._file_pools = bucket_records(records, self.dimensions)
        self._file_mtime = mtime
        logger.info(
            f"Loaded {len(records)} categorized events from {self.path}: "
            + ", ".join(f"{d}={len(p)}" for d, p in self._file_pools.items())
        )
        return self._file_pools

    async def pools(self) -> Dict[str, List[PoolEntry]]:
        """dimension → [(event id, title)]; every configured dimension is a key."""
        from_file = self._from_file()
        if from_file is not None:
            return from_file

        groups = await self.snapshots.live_groups()
        pools: Dict[str, List[PoolEntry]] = {d: [] for d in self.dimensions}
        for group in groups:
            category = classify_title(group.title, self.dimensions)
            if category:
                pools[category].append((group.id, group.title))
        logger.info(f"Derived dimension pools from {len(groups)} live events (no categorized file)")
        return pools


# ── writing the categorized-events file ──

def record_for_group(group: Group, category: str) -> Optional[dict]:
    """Categorized-events record for a group, keyed on its top-volume live market."""
    top = group.top_live_item()
    if top is None:
        return None
    return {
        "id": group.id,
        "title": group.title,
        "category": category,
        "eventSlug": group.slug,
        "topMarket": {
            "id": top.id,
            "question": top.question,
            "slug": top.slug,
            "volume": format_volume(top.volume),
            "image": top.image,
            "clobTokenIds": json.dumps(top.token_ids),
            "outcomes": list(top.outcomes),
        },
    }


async def categorize_groups(
    groups: Sequence[Group],
    ranker,
    dimensions: Sequence[str],
    batch_size: int = 100,
) -> List[dict]:
    """Classify group titles in batches; groups without a live market are dropped."""
    records: List[dict] = []
    for start in range(0, len(groups), batch_size):
        batch = groups[start:start + batch_size]
        logger.info(f"Categorizing batch {start // batch_size + 1} ({start}-{start + len(batch)})")
        assignments = await ranker.classify_titles([g.title for g in batch], dimensions)
        for idx in sorted(assignments):
            record = record_for_group(batch[idx], assignments[idx])
            if record:
                records.append(record)
    return records


def write_categorized_events(records: Sequence[dict], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(list(records), indent=2, ensure_ascii=False), encoding="utf-8")
