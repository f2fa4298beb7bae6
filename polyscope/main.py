"""
Polyscope - Main Entry Point.
FastAPI server and CLI interface.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api import health, insights, prices, search, tags
from .config import Settings, get_settings
from .engine import PolyscopeEngine
from .errors import QueryValidationError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(engine: Optional[PolyscopeEngine] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API. Pass `engine` to serve a prebuilt (or fake) engine."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = engine is None
        app.state.settings = settings
        app.state.engine = engine or PolyscopeEngine.from_settings(settings)
        logger.info("🚀 Starting Polyscope API...")

        if owned:
            ranker = app.state.engine.ranker
            if ranker.is_configured():
                logger.info(f"✅ Ranker providers: {', '.join(ranker.provider_manager.get_provider_names()) or 'none'}")
            else:
                logger.warning("⚠️ No LLM provider configured, ranking uses the lexical fallback")
        try:
            yield
        finally:
            if owned:
                await app.state.engine.aclose()

    app = FastAPI(
        title="Polyscope",
        description="Prediction-market search, taxonomy discovery and relationship insights",
        version=__version__,
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(QueryValidationError)
    async def query_validation_handler(request: Request, exc: QueryValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    app.include_router(health.router)
    app.include_router(search.router, prefix="/api/search", tags=["search"])
    app.include_router(insights.router, prefix="/api/insights", tags=["insights"])
    app.include_router(tags.router, prefix="/api/tags", tags=["tags"])
    app.include_router(prices.router, prefix="/api", tags=["prices"])
    return app


app = create_app()


# CLI Runner
async def cli_search(query: str, hybrid: bool = False):
    engine = PolyscopeEngine.from_settings(get_settings())
    try:
        if hybrid:
            result = await engine.hybrid_search(query)
            items = result.all_relevant_items
            print(f"Tags used: {', '.join(n.label for n in result.nodes_used)}")
        else:
            result = await engine.smart_search(query)
            items = result.items
            print(f"Source: {result.source}")
            if result.message:
                print(result.message)
    finally:
        await engine.aclose()

    print("\n" + "=" * 60)
    for item in items[:20]:
        print(f"{item.probability:6.2f}%  {item.volume:>8}  {item.title}")
    print("=" * 60)
    print(f"{len(items)} markets\n")


def main():
    """Entry point for CLI."""
    import argparse

    parser = argparse.ArgumentParser(description="Polyscope prediction-market search")
    parser.add_argument("--query", "-q", help="Run one search and print the results")
    parser.add_argument("--hybrid", action="store_true", help="Use hybrid search instead of smart search")
    parser.add_argument("--host", default="0.0.0.0", help="Server host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")
    args = parser.parse_args()

    if args.query:
        asyncio.run(cli_search(args.query, hybrid=args.hybrid))
    else:
        import uvicorn
        logger.info(f"Starting server on port {args.port}...")
        uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
