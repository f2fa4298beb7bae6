"""
Configuration management for Polyscope.
Supports Gemini (cloud), OpenRouter (cloud) and Ollama (local) ranking providers.
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Upstream catalog (Polymarket Gamma + CLOB) ──
    gamma_api_base: str = Field(default="https://gamma-api.polymarket.com", alias="GAMMA_API_BASE")
    clob_api_base: str = Field(default="https://clob.polymarket.com", alias="CLOB_API_BASE")
    # Every upstream call carries an explicit timeout. No automatic retries.
    http_timeout: float = Field(default=30.0, alias="HTTP_TIMEOUT")
    price_history_interval: str = Field(default="1h", alias="PRICE_HISTORY_INTERVAL")
    catalog_page_size: int = Field(default=500, alias="CATALOG_PAGE_SIZE")
    catalog_max_pages: int = Field(default=20, alias="CATALOG_MAX_PAGES")

    # ── Ranking LLM ──
    # Provider priority: Gemini → OpenRouter → Ollama
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash-lite", alias="GEMINI_MODEL")
    openrouter_api_key: str = Field(default="", alias="OPENROUTER_API_KEY")
    openrouter_model: str = Field(default="google/gemini-2.0-flash-001", alias="OPENROUTER_MODEL")
    use_ollama: bool = Field(default=False, alias="USE_OLLAMA")
    ollama_model: str = Field(default="mistral", alias="OLLAMA_MODEL")
    ollama_base_url: str = Field(default="http://localhost:11434", alias="OLLAMA_BASE_URL")
    llm_timeout: float = Field(default=30.0, alias="LLM_TIMEOUT")
    # Max candidate titles shown to the ranker in one prompt (token budget)
    ranker_max_candidates: int = Field(default=500, alias="RANKER_MAX_CANDIDATES")

    # ── Embeddings ──
    huggingface_api_key: str = Field(default="", alias="HF_API_KEY")
    embedding_model: str = Field(default="BAAI/bge-small-en-v1.5", alias="EMBEDDING_MODEL")
    local_embedding_model: str = Field(default="all-MiniLM-L6-v2", alias="LOCAL_EMBEDDING_MODEL")
    use_local_embeddings: bool = Field(default=True, alias="USE_LOCAL_EMBEDDINGS")
    embedding_max_batch: int = Field(default=100, alias="EMBEDDING_MAX_BATCH")

    # ── Cache durations (seconds) ──
    taxonomy_cache_seconds: float = Field(default=1800.0, alias="TAXONOMY_CACHE_SECONDS")
    group_cache_seconds: float = Field(default=600.0, alias="GROUP_CACHE_SECONDS")
    item_cache_seconds: float = Field(default=1800.0, alias="ITEM_CACHE_SECONDS")

    # ── Persisted files ──
    dead_nodes_path: str = Field(default="data/dead-tags.json", alias="DEAD_NODES_PATH")
    categorized_events_path: str = Field(default="data/categorized-events.json", alias="CATEGORIZED_EVENTS_PATH")
    # Empty = don't archive taxonomy snapshots
    taxonomy_snapshot_dir: str = Field(default="", alias="TAXONOMY_SNAPSHOT_DIR")

    # ── Cascading search ──
    direct_min_results: int = Field(default=5, alias="DIRECT_MIN_RESULTS")
    synonym_fanout: int = Field(default=5, alias="SYNONYM_FANOUT")
    result_limit: int = Field(default=50, alias="RESULT_LIMIT")
    popular_limit: int = Field(default=20, alias="POPULAR_LIMIT")
    semantic_top_n: int = Field(default=50, alias="SEMANTIC_TOP_N")

    # ── Taxonomy-first search ──
    # Candidates are over-provisioned beyond the target so dead nodes don't starve results
    taxonomy_candidate_count: int = Field(default=15, alias="TAXONOMY_CANDIDATE_COUNT")
    taxonomy_target_nodes: int = Field(default=8, alias="TAXONOMY_TARGET_NODES")
    taxonomy_groups_per_node: int = Field(default=50, alias="TAXONOMY_GROUPS_PER_NODE")
    taxonomy_items_per_node: int = Field(default=30, alias="TAXONOMY_ITEMS_PER_NODE")

    # ── Hybrid orchestration ──
    hybrid_direct_limit: int = Field(default=50, alias="HYBRID_DIRECT_LIMIT")
    dimension_pick_count: int = Field(default=50, alias="DIMENSION_PICK_COUNT")
    semantic_dimensions: List[str] = Field(
        default=["Live Crypto", "politics", "middle east", "crypto", "sports", "pop culture", "tech", "ai"],
        alias="SEMANTIC_DIMENSIONS",
    )

    # ── Insights (correlation analysis) ──
    insight_core_count: int = Field(default=5, alias="INSIGHT_CORE_COUNT")
    insight_candidate_count: int = Field(default=20, alias="INSIGHT_CANDIDATE_COUNT")
    correlation_threshold: float = Field(default=0.7, alias="CORRELATION_THRESHOLD")
    insight_fallback_items: int = Field(default=30, alias="INSIGHT_FALLBACK_ITEMS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    def get_llm_config(self) -> dict:
        """Describe the first configured ranking provider.

        Priority: Gemini → OpenRouter → Ollama
        """
        if self.gemini_api_key:
            return {"provider": "gemini", "model": self.gemini_model}
        elif self.openrouter_api_key:
            return {"provider": "openrouter", "model": self.openrouter_model}
        elif self.use_ollama:
            return {"provider": "ollama", "model": self.ollama_model, "base_url": self.ollama_base_url}
        return {"provider": "none"}


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
