"""
Dead-node negative cache.

A taxonomy node is "dead" once a traversal proves it has zero live markets.
Remembering that avoids paying one or more upstream fetches per dead tag on
every later search. The set is persisted as a flat, ordered JSON list of tag
ids (data/dead-tags.json) so it survives restarts; when the medium is
read-only the cache keeps working in memory only.

Entries never expire here. Reviving a tag is a manual edit of the file.
"""

import errno
import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Set, TypeVar

from ..errors import PersistenceWriteError

logger = logging.getLogger(__name__)

N = TypeVar("N")


class DeadNodeCache:
    """Set of node ids with lazy load and best-effort persistence."""

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path) if path else None
        self._ids: List[str] = []
        self._id_set: Set[str] = set()
        self._loaded = False
        self._writes_disabled = False

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if self.path is None or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"DeadNodeCache: could not read {self.path}: {e}")
            return
        if not isinstance(data, list):
            logger.warning(f"DeadNodeCache: {self.path} is not a JSON list, ignoring")
            return
        for node_id in data:
            node_id = str(node_id)
            if node_id not in self._id_set:
                self._id_set.add(node_id)
                self._ids.append(node_id)
        logger.info(f"DeadNodeCache: loaded {len(self._ids)} dead tags")

    def __contains__(self, node_id) -> bool:
        self._ensure_loaded()
        return str(node_id) in self._id_set

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._ids)

    @property
    def ids(self) -> List[str]:
        self._ensure_loaded()
        return list(self._ids)

    def filter_live(self, nodes: Iterable[N]) -> List[N]:
        """Drop nodes whose id is known dead. No side effects."""
        self._ensure_loaded()
        nodes = list(nodes)
        if not self._id_set:
            return nodes
        return [n for n in nodes if str(getattr(n, "id", n)) not in self._id_set]

    def mark_dead(self, node_id) -> bool:
        """Record a dead node. Returns False if it was already known."""
        self._ensure_loaded()
        node_id = str(node_id)
        if node_id in self._id_set:
            return False
        self._id_set.add(node_id)
        self._ids.append(node_id)
        logger.info(f"DeadNodeCache: marked tag {node_id} as dead ({len(self._ids)} total)")
        try:
            self._persist()
        except PersistenceWriteError as e:
            logger.warning(f"DeadNodeCache: keeping tag {node_id} in memory only: {e}")
        return True

    def _persist(self) -> None:
        if self.path is None or self._writes_disabled:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._ids, indent=2), encoding="utf-8")
        except OSError as e:
            if e.errno == errno.EROFS:
                self._writes_disabled = True
            raise PersistenceWriteError(f"write to {self.path} failed: {e}", errno=e.errno) from e
