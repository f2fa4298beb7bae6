"""
Polymarket REST client: Gamma (catalog) + CLOB (prices) APIs.

No API key. Every call carries an explicit timeout and is tried exactly once;
any transport error or non-2xx status surfaces as UpstreamFetchError so the
caller can decide whether that means "this tier produced nothing".

Raw shapes pass through pydantic models; individual malformed records are
skipped (logged at debug) instead of failing the whole response.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from ..config import Settings, get_settings
from ..errors import QueryValidationError, UpstreamFetchError
from ..schemas import Group, PricePoint, TaxonomyNode
from ..schemas.catalog import to_float

logger = logging.getLogger(__name__)

# Gamma accepts repeated id= params; keep URLs a sane length
_IDS_PER_REQUEST = 50


def _unwrap_list(data: Any, *keys: str) -> List[Any]:
    """Gamma endpoints return either a bare list or {<key>: [...]}."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return value
    return []


def parse_groups(raw: Iterable[Any]) -> List[Group]:
    groups: List[Group] = []
    for record in raw:
        if not isinstance(record, dict):
            continue
        try:
            groups.append(Group.model_validate(record))
        except ValidationError as e:
            logger.debug(f"Skipping malformed event {record.get('id')!r}: {e.error_count()} errors")
    return groups


def parse_nodes(raw: Iterable[Any]) -> List[TaxonomyNode]:
    nodes: List[TaxonomyNode] = []
    for record in raw:
        if not isinstance(record, dict):
            continue
        try:
            nodes.append(TaxonomyNode.model_validate(record))
        except ValidationError:
            logger.debug(f"Skipping malformed tag {record!r}")
    return nodes


def parse_price_history(data: Any) -> List[PricePoint]:
    """Accepts the three shapes seen in the wild:

    - a bare list of {date|timestamp, price}
    - {"data": [{date|timestamp, price}, ...]}
    - {"history": [{"t": 1700000000, "p": 0.48}, ...]}  (current CLOB)
    """
    if isinstance(data, dict) and isinstance(data.get("history"), list):
        rows = [
            {"timestamp": r.get("t"), "price": r.get("p")}
            for r in data["history"] if isinstance(r, dict)
        ]
    else:
        rows = [
            {"timestamp": r.get("date") or r.get("timestamp"), "price": r.get("price")}
            for r in _unwrap_list(data, "data") if isinstance(r, dict)
        ]
    return [PricePoint(**r) for r in rows if r["timestamp"] is not None]


class PolymarketClient:
    """
    Catalog provider.

    Usage:
        client = PolymarketClient()
        groups = await client.search_by_text("bitcoin")
        prices = await client.get_batch_prices(["123...", "456..."])

    Pass `http_client` to share a connection pool (or a MockTransport in tests).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self.gamma_base = self.settings.gamma_api_base.rstrip("/")
        self.clob_base = self.settings.clob_api_base.rstrip("/")
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.http_timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        kwargs.setdefault("timeout", self.settings.http_timeout)
        try:
            resp = await self._get_client().request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise UpstreamFetchError(f"timeout calling {url}") from e
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"{type(e).__name__} calling {url}: {e}") from e

        if resp.status_code >= 400:
            raise UpstreamFetchError(
                f"{url} returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamFetchError(f"{url} returned non-JSON body") from e

    # ── Gamma: events / tags ──

    async def search_by_text(self, query: str) -> List[Group]:
        """Free-text search over active events (public-search)."""
        params = {"q": query, "events_status": "active", "keep_closed_markets": "0"}
        data = await self._request("GET", f"{self.gamma_base}/public-search", params=params)
        groups = parse_groups(_unwrap_list(data, "events"))
        logger.info(f"Text search '{query[:40]}': {len(groups)} events")
        return groups

    async def get_groups_by_taxonomy_node(self, node_id: str, limit: int = 100) -> List[Group]:
        params = {
            "tag_id": node_id,
            "active": "true",
            "closed": "false",
            "sort": "volume",
            "limit": str(limit),
        }
        data = await self._request("GET", f"{self.gamma_base}/events", params=params)
        groups = parse_groups(_unwrap_list(data, "results", "events"))
        logger.debug(f"Tag {node_id}: {len(groups)} events")
        return groups

    async def get_groups_by_ids(self, ids: List[str]) -> List[Group]:
        """Fetch events by id, preserving the order of `ids`."""
        ids = [str(i) for i in ids if i]
        if not ids:
            return []

        async def _fetch(chunk: List[str]) -> List[Group]:
            params = [("id", i) for i in chunk] + [("limit", str(len(chunk)))]
            data = await self._request("GET", f"{self.gamma_base}/events", params=params)
            return parse_groups(_unwrap_list(data, "results", "events"))

        chunks = [ids[i:i + _IDS_PER_REQUEST] for i in range(0, len(ids), _IDS_PER_REQUEST)]
        results = await asyncio.gather(*[_fetch(c) for c in chunks])
        by_id: Dict[str, Group] = {g.id: g for batch in results for g in batch}
        return [by_id[i] for i in ids if i in by_id]

    async def get_popular(self, limit: int = 20) -> List[Group]:
        """Most-traded open events, independent of any query."""
        params = {"closed": "false", "limit": str(limit), "sort": "volume"}
        data = await self._request("GET", f"{self.gamma_base}/events", params=params)
        return parse_groups(_unwrap_list(data, "results", "events"))

    async def get_all_active_groups(
        self,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> List[Group]:
        """Page through every active event. Stops on a short page."""
        page_size = page_size or self.settings.catalog_page_size
        max_pages = max_pages or self.settings.catalog_max_pages
        groups: List[Group] = []
        seen: set = set()
        for page in range(max_pages):
            params = {
                "active": "true",
                "closed": "false",
                "sort": "volume",
                "limit": str(page_size),
                "offset": str(page * page_size),
            }
            data = await self._request("GET", f"{self.gamma_base}/events", params=params)
            raw = _unwrap_list(data, "results", "events")
            for group in parse_groups(raw):
                if group.id not in seen:
                    seen.add(group.id)
                    groups.append(group)
            if len(raw) < page_size:
                break
        logger.info(f"Fetched {len(groups)} active events")
        return groups

    async def get_taxonomy_nodes(self) -> List[TaxonomyNode]:
        data = await self._request("GET", f"{self.gamma_base}/tags")
        nodes = parse_nodes(_unwrap_list(data, "tags"))
        logger.info(f"Fetched {len(nodes)} tags")
        return nodes

    # ── CLOB: prices ──

    async def get_batch_prices(self, token_ids: List[str]) -> Dict[str, float]:
        """Current BUY-side price for each token. One request for the whole batch."""
        token_ids = list(dict.fromkeys(t for t in token_ids if t))
        if not token_ids:
            return {}
        body = [{"token_id": t, "side": "BUY"} for t in token_ids]
        data = await self._request("POST", f"{self.clob_base}/prices", json=body)

        # Response shape: {"<token_id>": {"BUY": "0.48"}, ...}
        prices: Dict[str, float] = {}
        if isinstance(data, dict):
            for token_id, quote in data.items():
                if isinstance(quote, dict) and quote.get("BUY") is not None:
                    prices[token_id] = to_float(quote["BUY"])
        logger.debug(f"Fetched prices for {len(prices)}/{len(token_ids)} tokens")
        return prices

    async def get_price_history(self, token_id: str, interval: Optional[str] = None) -> List[PricePoint]:
        if not token_id or not token_id.strip():
            raise QueryValidationError("token_id is required")
        params = {"interval": interval or self.settings.price_history_interval, "market": token_id}
        data = await self._request("GET", f"{self.clob_base}/prices-history", params=params)
        return parse_price_history(data)
