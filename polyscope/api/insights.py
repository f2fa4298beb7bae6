"""Insights router -- relationship analysis over a market list."""

from fastapi import APIRouter

from polyscope.api.dependencies import Engine
from polyscope.api.schemas import InsightsRequest, InsightsResponse

router = APIRouter()


@router.post("", response_model=InsightsResponse)
async def insights(body: InsightsRequest, engine: Engine):
    report, items = await engine.insights(body.query, body.items or None)
    return InsightsResponse(
        query=body.query,
        core=report.core,
        pairs=report.pairs,
        groups=report.groups,
        all_items=items,
    )
