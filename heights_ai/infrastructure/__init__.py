"""
Infrastructure layer - cross-cutting concerns

Contains:
- logging: structured logging
- errors: exception hierarchy and retry
- cache: LRU + TTL cache for provider results
- rate_limiter: per-provider and per-client throttling
"""

from heights_ai.infrastructure.logging import (
    setup_logging,
    get_logger,
    LogContext,
    log_async_performance,
    StructuredFormatter,
    ConsoleFormatter,
)
from heights_ai.infrastructure.errors import (
    HeightsAIError,
    ValidationError,
    AllProvidersExhausted,
    ContinuationFailed,
    ErrorHandler,
    async_retry,
)
from heights_ai.infrastructure.cache import (
    LRUCache,
    CacheConfig,
    CacheKind,
)
from heights_ai.infrastructure.rate_limiter import (
    RateLimiter,
    RateLimitConfig,
    RateLimitStrategy,
    ProviderRateLimiters,
    ClientRateLimiter,
    DEFAULT_PROVIDER_LIMITS,
)

__all__ = [
    # logging
    "setup_logging",
    "get_logger",
    "LogContext",
    "log_async_performance",
    "StructuredFormatter",
    "ConsoleFormatter",
    # errors
    "HeightsAIError",
    "ValidationError",
    "AllProvidersExhausted",
    "ContinuationFailed",
    "ErrorHandler",
    "async_retry",
    # cache
    "LRUCache",
    "CacheConfig",
    "CacheKind",
    # rate limiting
    "RateLimiter",
    "RateLimitConfig",
    "RateLimitStrategy",
    "ProviderRateLimiters",
    "ClientRateLimiter",
    "DEFAULT_PROVIDER_LIMITS",
]
