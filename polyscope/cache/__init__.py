from polyscope.cache.ttl_cache import TTLCache
from polyscope.cache.dead_nodes import DeadNodeCache
from polyscope.cache.vector_cache import VectorCache, cosine_similarity

__all__ = ["TTLCache", "DeadNodeCache", "VectorCache", "cosine_similarity"]
