"""Search router -- smart (cascading) and hybrid search."""

from fastapi import APIRouter

from polyscope.api.dependencies import Engine
from polyscope.api.schemas import SearchRequest
from polyscope.schemas import HybridSearchResult, SmartSearchResult

router = APIRouter()


@router.post("/smart", response_model=SmartSearchResult)
async def smart_search(body: SearchRequest, engine: Engine):
    return await engine.smart_search(body.query)


@router.post("/hybrid", response_model=HybridSearchResult)
async def hybrid_search(body: SearchRequest, engine: Engine):
    """Direct match + taxonomy-first search + dimension picks.

    `all_relevant_items` is meant to be posted back to /api/insights.
    """
    return await engine.hybrid_search(body.query)
