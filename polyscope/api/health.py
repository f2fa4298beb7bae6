"""Health check router -- cache ages, dead tags, provider status, config summary."""

from datetime import datetime, timezone

from fastapi import APIRouter

from polyscope import __version__
from polyscope.api.dependencies import AppSettings, Engine

router = APIRouter()


@router.get("/")
async def root():
    return {"service": "Polyscope API", "version": __version__}


@router.get("/health")
async def health(engine: Engine, settings: AppSettings):
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "engine": engine.status(),
        "providers": await engine.provider_status(),
        "config": {
            # Upstream
            "gamma_api_base": settings.gamma_api_base,
            "clob_api_base": settings.clob_api_base,
            "http_timeout": settings.http_timeout,
            # Cascade
            "direct_min_results": settings.direct_min_results,
            "result_limit": settings.result_limit,
            # Taxonomy search
            "taxonomy_candidate_count": settings.taxonomy_candidate_count,
            "taxonomy_target_nodes": settings.taxonomy_target_nodes,
            # Insights
            "insight_candidate_count": settings.insight_candidate_count,
            "correlation_threshold": settings.correlation_threshold,
            "semantic_dimensions": list(settings.semantic_dimensions),
            # Ranker
            "llm": settings.get_llm_config(),
        },
    }
