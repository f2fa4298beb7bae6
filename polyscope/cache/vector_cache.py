"""
Embedding cache with incremental refresh and brute-force cosine search.

Refresh reuses every entry whose (id, text) is unchanged and only embeds the
rest, chunked to the embedder's max batch size. A failed chunk aborts the
whole refresh and the previous cache stays in place, so search keeps working
against stale-but-valid vectors.

Search is a linear scan. Catalog size here is in the low thousands.
"""

import asyncio
import logging
from typing import Dict, List, Protocol, Sequence, Tuple

import numpy as np

from ..schemas import VectorEntry

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    max_batch_size: int

    async def embed(self, text: str) -> List[float]: ...

    async def embed_batch(self, texts: List[str]) -> List[List[float]]: ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Raw dot(a, b) / (|a| * |b|). A zero vector yields NaN; callers filter it."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        return float("nan")
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.dot(va, vb) / (np.linalg.norm(va) * np.linalg.norm(vb)))


def chunked(seq: List, size: int) -> List[List]:
    size = max(1, size)
    return [seq[i:i + size] for i in range(0, len(seq), size)]


class VectorCache:
    """Maps item id → embedding of that item's text."""

    def __init__(self, embedder: Embedder, name: str = "vectors"):
        self.embedder = embedder
        self.name = name
        self._entries: List[VectorEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[VectorEntry]:
        return list(self._entries)

    async def refresh(self, current: Sequence[Tuple[str, str]]) -> None:
        """Bring the cache in line with `current` [(item_id, text), ...]."""
        previous: Dict[str, VectorEntry] = {e.item_id: e for e in self._entries}

        # Slots keep the current ordering; None marks "needs embedding"
        slots: List[VectorEntry | None] = []
        to_embed: List[Tuple[int, str, str]] = []
        for item_id, text in current:
            existing = previous.get(item_id)
            if existing is not None and existing.text == text:
                slots.append(existing)
            else:
                to_embed.append((len(slots), item_id, text))
                slots.append(None)

        if to_embed:
            chunks = chunked(to_embed, self.embedder.max_batch_size)
            logger.info(
                f"[{self.name}] embedding {len(to_embed)} new/changed items "
                f"in {len(chunks)} chunk(s), reusing {len(slots) - len(to_embed)}"
            )
            results = await asyncio.gather(
                *[self.embedder.embed_batch([text for _, _, text in chunk]) for chunk in chunks],
                return_exceptions=True,
            )
            for chunk, vectors in zip(chunks, results):
                if isinstance(vectors, BaseException):
                    logger.warning(f"[{self.name}] embedding chunk failed, keeping previous cache: {vectors}")
                    return
                if len(vectors) != len(chunk):
                    logger.warning(
                        f"[{self.name}] embedder returned {len(vectors)} vectors for "
                        f"{len(chunk)} texts, keeping previous cache"
                    )
                    return
                for (slot, item_id, text), vector in zip(chunk, vectors):
                    slots[slot] = VectorEntry(item_id=item_id, text=text, vector=list(vector))

        self._entries = [e for e in slots if e is not None]

    async def search(self, query_text: str, top_n: int) -> List[str]:
        """Top-N item ids by cosine similarity to the query."""
        if not self._entries or top_n <= 0:
            return []
        query_vector = await self.embedder.embed(query_text)

        scored = []
        for entry in self._entries:
            score = cosine_similarity(query_vector, entry.vector)
            if np.isnan(score):
                continue
            scored.append((score, entry.item_id))

        scored.sort(key=lambda s: s[0], reverse=True)
        return [item_id for _, item_id in scored[:top_n]]
