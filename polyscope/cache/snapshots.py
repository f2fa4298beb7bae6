"""
TTL-cached snapshots of the upstream catalog.

  taxonomy nodes  - all tags (30 min)
  live groups     - every active event with at least one live market (10 min)
  live items      - live markets of those events, volume desc (30 min)

Each fetched tag snapshot can also be archived as JSON (TAXONOMY_SNAPSHOT_DIR)
for offline inspection. Archiving is best effort; on a read-only filesystem
the tags stay cached in memory only.
"""

import errno
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..config import Settings, get_settings
from ..schemas import CatalogItem, Group, TaxonomyNode
from ..search.ranking import by_volume, flatten_live_items
from .ttl_cache import TTLCache

logger = logging.getLogger(__name__)


class CatalogSnapshots:
    def __init__(
        self,
        client,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.settings = settings or get_settings()
        s = self.settings
        self.nodes: TTLCache[List[TaxonomyNode]] = TTLCache(
            s.taxonomy_cache_seconds, self._fetch_nodes, clock=clock, name="tags",
        )
        self.groups: TTLCache[List[Group]] = TTLCache(
            s.group_cache_seconds, self._fetch_groups, clock=clock, name="events",
        )
        self.items: TTLCache[List[CatalogItem]] = TTLCache(
            s.item_cache_seconds, self._fetch_items, clock=clock, name="markets",
        )

    async def taxonomy_nodes(self) -> List[TaxonomyNode]:
        return await self.nodes.get_or_refresh()

    async def live_groups(self) -> List[Group]:
        return await self.groups.get_or_refresh()

    async def live_items(self) -> List[CatalogItem]:
        return await self.items.get_or_refresh()

    def clear(self) -> None:
        for cache in (self.nodes, self.groups, self.items):
            cache.clear()

    def status(self) -> Dict[str, Any]:
        report = {}
        for cache in (self.nodes, self.groups, self.items):
            payload = cache.peek()
            age = cache.age()
            report[cache.name] = {
                "entries": len(payload) if payload is not None else 0,
                "age_seconds": round(age, 1) if age is not None else None,
                "fresh": cache.is_fresh(),
            }
        return report

    # ── fetchers ──

    async def _fetch_nodes(self) -> List[TaxonomyNode]:
        nodes = await self.client.get_taxonomy_nodes()
        if self.settings.taxonomy_snapshot_dir:
            self._archive_nodes(nodes)
        return nodes

    async def _fetch_groups(self) -> List[Group]:
        groups = await self.client.get_all_active_groups()
        return [g for g in groups if g.live_items()]

    async def _fetch_items(self) -> List[CatalogItem]:
        return by_volume(flatten_live_items(await self.live_groups()))

    def _archive_nodes(self, nodes: List[TaxonomyNode]) -> Optional[Path]:
        now = datetime.now(timezone.utc)
        target_dir = Path(self.settings.taxonomy_snapshot_dir)
        path = target_dir / f"tags-{now.strftime('%Y-%m-%dT%H-%M-%S')}.json"
        payload = {
            "timestamp": now.isoformat(),
            "total_tags": len(nodes),
            "tags": [n.model_dump() for n in nodes],
        }
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            if e.errno == errno.EROFS:
                logger.warning("Read-only filesystem: tag snapshot not archived, cached in memory only")
            else:
                logger.warning(f"Tag snapshot archive failed: {e}")
            return None
        logger.info(f"Tag snapshot saved to {path}")
        return path
