"""
Polyscope: query-driven discovery and relationship analysis for prediction markets.

Layers:
  - cache/: TTL snapshots, dead-node negative cache, vector cache
  - search/: cascading, taxonomy-first and hybrid search strategies
  - analytics/: enrichment and correlation / relationship classification
  - tools/: upstream catalog client, LLM ranker, embedding providers
"""

__version__ = "0.3.0"
