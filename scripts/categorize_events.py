"""
Builds data/categorized-events.json: every active event, classified by the
ranker into the configured dimensions (keyword-regex fallback), keyed on its
top-volume live market. DimensionPool reads this file for the hybrid search.

Usage:
    python scripts/categorize_events.py [--output data/categorized-events.json] [--batch-size 100]
"""

import argparse
import asyncio
import logging
from collections import Counter
from pathlib import Path

from polyscope.config import get_settings
from polyscope.search.dimensions import categorize_groups, write_categorized_events
from polyscope.tools.polymarket_client import PolymarketClient
from polyscope.tools.ranker import LLMRanker

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logger = logging.getLogger("categorize_events")


async def run(output: Path, batch_size: int) -> int:
    settings = get_settings()
    client = PolymarketClient(settings)
    ranker = LLMRanker(settings)
    if not ranker.is_configured():
        logger.warning("No LLM provider configured, categorizing with keyword patterns only")
    try:
        groups = await client.get_all_active_groups(settings.catalog_page_size, settings.catalog_max_pages)
    finally:
        await client.aclose()

    logger.info(f"Fetched {len(groups)} active events")
    records = await categorize_groups(groups, ranker, settings.semantic_dimensions, batch_size)
    write_categorized_events(records, output)

    counts = Counter(r["category"] for r in records)
    for dimension in settings.semantic_dimensions:
        logger.info(f"  {dimension}: {counts.get(dimension, 0)}")
    logger.info(f"Saved {len(records)} categorized events to {output}")
    return len(records)


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Categorize active Polymarket events")
    parser.add_argument("--output", type=Path, default=Path(settings.categorized_events_path))
    parser.add_argument("--batch-size", type=int, default=100)
    args = parser.parse_args()
    asyncio.run(run(args.output, args.batch_size))


if __name__ == "__main__":
    main()
