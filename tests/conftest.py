"""Shared fixtures: in-memory catalog, ranker, embedder and a manual clock."""

from collections import Counter
from typing import Dict, List, Optional, Sequence

import pytest

from polyscope.config import Settings
from polyscope.errors import UpstreamFetchError
from polyscope.schemas import Group, PricePoint, TaxonomyNode
from polyscope.search.keywords import classify_title
from polyscope.tools.response_parsing import Pick


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def market(
    market_id: str,
    question: Optional[str] = None,
    volume: float = 1000.0,
    token: Optional[str] = None,
    live: bool = True,
    end_date: Optional[str] = None,
) -> dict:
    """Raw Gamma-shaped market record."""
    return {
        "id": market_id,
        "question": question or f"Market {market_id}?",
        "clobTokenIds": f'["{token or "tok-" + market_id}", "no-{market_id}"]',
        "volume": str(volume),
        "endDate": end_date,
        "slug": f"market-{market_id}",
        "outcomes": '["Yes", "No"]',
        "active": live,
        "closed": not live,
        "enableOrderBook": live,
    }


def group(group_id: str, title: str, markets: Sequence[dict]) -> Group:
    return Group.model_validate({
        "id": group_id,
        "title": title,
        "slug": f"event-{group_id}",
        "markets": list(markets),
    })


def node(node_id: str, label: str) -> TaxonomyNode:
    return TaxonomyNode(id=node_id, label=label, slug=label.lower().replace(" ", "-"))


def make_settings(**overrides) -> Settings:
    """Settings isolated from any local .env file."""
    defaults = {
        "gemini_api_key": "",
        "openrouter_api_key": "",
        "use_ollama": False,
        "use_local_embeddings": False,
        "huggingface_api_key": "",
        "dead_nodes_path": "",
        "categorized_events_path": "does-not-exist.json",
        "taxonomy_snapshot_dir": "",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

def _maybe_raise(value):
    if isinstance(value, BaseException):
        raise value
    return value


class FakeCatalog:
    """Async catalog provider backed by dicts. `calls` counts (method, key) pairs."""

    def __init__(self):
        self.text_results: Dict[str, object] = {}
        self.node_groups: Dict[str, object] = {}
        self.groups: Dict[str, Group] = {}
        self.popular: object = []
        self.active_groups: object = []
        self.nodes: object = []
        self.prices: object = {}
        self.histories: Dict[str, object] = {}
        self.calls: Counter = Counter()

    async def search_by_text(self, query: str) -> List[Group]:
        self.calls[("search_by_text", query)] += 1
        return _maybe_raise(self.text_results.get(query, []))

    async def get_groups_by_taxonomy_node(self, node_id: str, limit: int = 100) -> List[Group]:
        self.calls[("get_groups_by_taxonomy_node", node_id)] += 1
        return _maybe_raise(self.node_groups.get(node_id, []))

    async def get_groups_by_ids(self, ids: List[str]) -> List[Group]:
        self.calls[("get_groups_by_ids", tuple(ids))] += 1
        return [self.groups[i] for i in ids if i in self.groups]

    async def get_popular(self, limit: int = 20) -> List[Group]:
        self.calls[("get_popular", limit)] += 1
        return _maybe_raise(self.popular)

    async def get_all_active_groups(self, page_size=None, max_pages=None) -> List[Group]:
        self.calls[("get_all_active_groups", None)] += 1
        return _maybe_raise(self.active_groups)

    async def get_taxonomy_nodes(self) -> List[TaxonomyNode]:
        self.calls[("get_taxonomy_nodes", None)] += 1
        return _maybe_raise(self.nodes)

    async def get_batch_prices(self, token_ids: List[str]) -> Dict[str, float]:
        self.calls[("get_batch_prices", None)] += 1
        prices = _maybe_raise(self.prices)
        return {t: prices[t] for t in token_ids if t in prices}

    async def get_price_history(self, token_id: str, interval: Optional[str] = None) -> List[PricePoint]:
        self.calls[("get_price_history", token_id)] += 1
        series = _maybe_raise(self.histories.get(token_id, []))
        return [PricePoint(timestamp=str(i), price=p) for i, p in enumerate(series)]

    async def aclose(self) -> None:
        pass

    def count(self, method: str, key=None) -> int:
        return self.calls[(method, key)]


class FakeRanker:
    """Deterministic ranker: keeps candidate order, picks the first `count` entries."""

    def __init__(self, reasoning: str = "relevant"):
        self.reasoning = reasoning
        self.rank_calls: List[Sequence[str]] = []
        self.pick_calls: List[str] = []

    def is_configured(self) -> bool:
        return True

    async def rank_top_indices(self, query: str, candidates: Sequence[str], top_n: int) -> List[int]:
        self.rank_calls.append(list(candidates))
        return list(range(min(len(candidates), top_n)))

    async def pick_with_reasoning(self, query, pool, count, hint: str = "") -> List[Pick]:
        self.pick_calls.append(hint)
        return [Pick(id=item_id, reasoning=f"{self.reasoning} ({hint})") for item_id, _ in list(pool)[:count]]

    async def classify_titles(self, titles, categories) -> Dict[int, str]:
        result = {}
        for i, title in enumerate(titles):
            category = classify_title(title, categories)
            if category:
                result[i] = category
        return result


class FakeEmbedder:
    """Looks vectors up by text; unknown texts get a constant vector."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, max_batch_size: int = 100):
        self.vectors = vectors or {}
        self.max_batch_size = max_batch_size
        self.batch_calls: List[List[str]] = []
        self.embed_calls: List[str] = []
        self.fail = False
        self.short = False

    def _vector(self, text: str) -> List[float]:
        return list(self.vectors.get(text, [0.1, 0.1, 0.1]))

    async def embed(self, text: str) -> List[float]:
        self.embed_calls.append(text)
        return self._vector(text)

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.batch_calls.append(list(texts))
        if self.fail:
            raise UpstreamFetchError("embedding backend down")
        vectors = [self._vector(t) for t in texts]
        return vectors[:-1] if self.short else vectors


class ManualClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def ranker() -> FakeRanker:
    return FakeRanker()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()
