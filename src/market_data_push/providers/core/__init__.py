"""Core source abstractions."""
from market_data_push.providers.core.exceptions import (ErrorKind,
                                                        RateLimitExceeded,
                                                        SourceError,
                                                        SourceUnavailable,
                                                        SymbolNotFound,
                                                        classify_source_error)
from market_data_push.providers.core.rate_limiter import RateLimiter
from market_data_push.providers.core.source_client_abc import SourceClientABC

__all__ = [
    "ErrorKind",
    "RateLimitExceeded",
    "RateLimiter",
    "SourceClientABC",
    "SourceError",
    "SourceUnavailable",
    "SymbolNotFound",
    "classify_source_error",
]
