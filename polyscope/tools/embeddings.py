"""
Embeddings tool for generating vector representations of market titles.

Supports (in priority order):
1. Local Sentence Transformers (fastest, no API calls; optional `local` extra)
2. Ollama nomic-embed-text (local fallback)
3. Hugging Face Inference API (cloud fallback)

All fallback providers MUST produce the same dimension as the first provider
that answered. Vectors of different dimensions cannot be compared, so the
first successful batch locks the dimension and a mismatching fallback is
rejected with EmbeddingBatchError instead of silently mixing spaces.

Failures never degrade to zero vectors: the vector cache needs to know a
chunk failed so it can keep its previous state.
"""

import asyncio
import logging
import os
from typing import List, Optional

import httpx
import numpy as np

from ..config import Settings, get_settings
from ..errors import EmbeddingBatchError

logger = logging.getLogger(__name__)

OLLAMA_EMBED_MODEL = "nomic-embed-text"

# Singleton for local model (avoids reloading on every EmbeddingTool instantiation)
_local_model = None
_local_model_name = None


def _get_local_model(model_name: str, hf_token: str = ""):
    """Load local sentence-transformers model (singleton, lazy-loaded)."""
    global _local_model, _local_model_name
    if _local_model is not None and _local_model_name == model_name:
        return _local_model
    try:
        from sentence_transformers import SentenceTransformer
    except ImportError:
        logger.info("sentence-transformers not installed; local embeddings disabled (pip install polyscope[local])")
        return None
    if hf_token and not os.environ.get("HF_TOKEN"):
        os.environ["HF_TOKEN"] = hf_token
    try:
        logger.info(f"Loading local embedding model: {model_name}...")
        _local_model = SentenceTransformer(model_name)
        _local_model_name = model_name
        logger.info(f"Local embedding model loaded: {model_name} (dim={_local_model.get_sentence_embedding_dimension()})")
        return _local_model
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load local embedding model '{model_name}': {type(e).__name__}: {e}")
        return None


def _rows_from_feature_extraction(result) -> List[List[float]]:
    """HF feature_extraction returns ndarray, flat list, or nested lists."""
    if isinstance(result, np.ndarray):
        if result.ndim == 1:
            return [result.tolist()]
        if result.ndim == 3:
            # token-level output: mean-pool
            return result.mean(axis=1).tolist()
        return result.tolist()
    rows = []
    for item in result:
        if isinstance(item, list) and item and isinstance(item[0], list):
            rows.append(item[0])
        else:
            rows.append(list(item))
    return rows


class EmbeddingTool:
    """
    Async embedder with local-first strategy.

    Exposes the interface the vector cache expects:
        max_batch_size, await embed(text), await embed_batch(texts)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.max_batch_size = self.settings.embedding_max_batch
        self._hf_client = None
        self._local_model_checked = False
        self._local_available = False
        self._embedding_dim: Optional[int] = None
        self._active_provider: Optional[str] = None

    @property
    def local_model(self):
        """Lazy-load local sentence-transformers model."""
        if not self.settings.use_local_embeddings:
            return None
        if not self._local_model_checked:
            self._local_model_checked = True
            model = _get_local_model(self.settings.local_embedding_model, self.settings.huggingface_api_key)
            self._local_available = model is not None
        return _local_model if self._local_available else None

    @property
    def hf_client(self):
        """Lazy-load Hugging Face async client."""
        if self._hf_client is not None:
            return self._hf_client
        if not self.settings.huggingface_api_key:
            logger.debug("HF_API_KEY not set, Hugging Face embeddings unavailable")
            return None
        from huggingface_hub import AsyncInferenceClient
        self._hf_client = AsyncInferenceClient(
            token=self.settings.huggingface_api_key,
            timeout=self.settings.http_timeout,
        )
        logger.info("Hugging Face embeddings initialized")
        return self._hf_client

    @property
    def embedding_dim(self) -> Optional[int]:
        return self._embedding_dim

    @property
    def active_provider(self) -> Optional[str]:
        return self._active_provider

    def is_configured(self) -> bool:
        return bool(
            self.settings.use_local_embeddings
            or self.settings.use_ollama
            or self.settings.huggingface_api_key
        )

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """One vector per text, same order. Raises EmbeddingBatchError on failure."""
        if not texts:
            return []
        errors = []

        # 1. Local sentence-transformers (fastest, no API)
        if self.local_model is not None:
            try:
                return self._accept(await asyncio.to_thread(self._embed_local_batch, texts), "local", len(texts))
            except (RuntimeError, ValueError, EmbeddingBatchError) as e:
                errors.append(f"local: {e}")
                logger.warning(f"Local batch embedding failed: {e}, trying Ollama")

        # 2. Ollama nomic-embed-text (local, no API key)
        if self.settings.use_ollama:
            try:
                return self._accept(await self._embed_ollama_batch(texts), "ollama", len(texts))
            except (httpx.HTTPError, ValueError, EmbeddingBatchError) as e:
                errors.append(f"ollama: {e}")
                logger.warning(f"Ollama batch embedding failed: {e}, trying HF API")

        # 3. HuggingFace API (cloud fallback)
        if self.hf_client is not None:
            try:
                return self._accept(await self._embed_hf_batch(texts), "huggingface", len(texts))
            except Exception as e:
                # huggingface_hub raises HfHubHTTPError, InferenceTimeoutError, aiohttp errors...
                errors.append(f"huggingface: {e}")
                logger.error(f"HF batch embedding failed: {e}")

        if not errors:
            raise EmbeddingBatchError("No embedding backend available (install sentence-transformers, set HF_API_KEY or enable Ollama)")
        raise EmbeddingBatchError("; ".join(errors))

    def _accept(self, vectors: List[List[float]], provider: str, expected: int) -> List[List[float]]:
        """Validate count and dimension, lock the dimension on first success."""
        if len(vectors) != expected:
            raise EmbeddingBatchError(f"{provider} returned {len(vectors)} vectors for {expected} texts")
        dims = {len(v) for v in vectors}
        if len(dims) != 1:
            raise EmbeddingBatchError(f"{provider} returned mixed dimensions {sorted(dims)}")
        dim = dims.pop()
        if self._embedding_dim is None:
            self._embedding_dim = dim
            self._active_provider = provider
            logger.info(f"Embedding provider: {provider} (dim={dim})")
        elif dim != self._embedding_dim:
            raise EmbeddingBatchError(
                f"{provider} produces {dim}-dim embeddings but cache is locked to {self._embedding_dim}-dim"
            )
        return vectors

    def _embed_local_batch(self, texts: List[str]) -> List[List[float]]:
        embeddings = self.local_model.encode(
            texts,
            batch_size=min(64, len(texts)),
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return embeddings.tolist()

    async def _embed_ollama_batch(self, texts: List[str]) -> List[List[float]]:
        url = f"{self.settings.ollama_base_url}/api/embed"
        async with httpx.AsyncClient(timeout=120.0) as client:
            response = await client.post(url, json={"model": OLLAMA_EMBED_MODEL, "input": texts})
            response.raise_for_status()
            return response.json().get("embeddings", [])

    async def _embed_hf_batch(self, texts: List[str]) -> List[List[float]]:
        result = await self.hf_client.feature_extraction(texts, model=self.settings.embedding_model)
        return _rows_from_feature_extraction(result)
