"""
Error taxonomy for the search / caching / correlation engine.

Only QueryValidationError is meant to reach callers of the engine's public
entry points. Everything else is caught at a tier or fan-out branch
boundary, logged, and treated as "this branch produced nothing".
"""


class PolyscopeError(Exception):
    """Base class for all engine errors."""


class QueryValidationError(PolyscopeError, ValueError):
    """Caller supplied an empty or otherwise unusable input."""


class UpstreamFetchError(PolyscopeError):
    """Network / HTTP failure talking to the catalog API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RankerParseError(PolyscopeError):
    """Ranking provider returned something we could not validate."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw[:500]


class EmbeddingBatchError(PolyscopeError):
    """An embedding chunk could not be produced."""


class PersistenceWriteError(PolyscopeError):
    """Durable write of a cache file failed (read-only medium, permissions...)."""

    def __init__(self, message: str, errno: int | None = None):
        super().__init__(message)
        self.errno = errno
