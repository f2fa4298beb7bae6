"""Price history router."""

from typing import Optional

from fastapi import APIRouter, Query

from polyscope.api.dependencies import Engine
from polyscope.api.schemas import PriceHistoryResponse

router = APIRouter()


@router.get("/prices-history", response_model=PriceHistoryResponse)
async def prices_history(
    engine: Engine,
    token_id: str = Query(default=""),
    interval: Optional[str] = None,
):
    history = await engine.price_history(token_id, interval)
    return PriceHistoryResponse(token_id=token_id, interval=interval, history=history)
