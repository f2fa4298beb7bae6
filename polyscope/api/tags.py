"""Tags router -- live taxonomy nodes and the markets under one node."""

from fastapi import APIRouter, Query

from polyscope.api.dependencies import Engine
from polyscope.api.schemas import TagListResponse, TagMarketsResponse

router = APIRouter()


@router.get("", response_model=TagListResponse)
async def list_tags(engine: Engine):
    nodes, dead = await engine.taxonomy_nodes()
    return TagListResponse(count=len(nodes), dead_count=dead, tags=nodes)


@router.get("/{node_id}/markets", response_model=TagMarketsResponse)
async def tag_markets(
    node_id: str,
    engine: Engine,
    limit: int = Query(default=30, ge=1, le=200),
):
    markets = await engine.node_items(node_id, limit)
    return TagMarketsResponse(tag_id=node_id, count=len(markets), markets=markets)
