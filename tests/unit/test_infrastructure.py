"""
Infrastructure tests - logging, errors, cache, rate limiting
"""

import json
import logging
import time
from unittest.mock import Mock, patch

import pytest

from fakes import run
from heights_ai.domain.models import ErrorCode, ProviderId
from heights_ai.infrastructure.cache import CacheConfig, CacheKind, LRUCache
from heights_ai.infrastructure.errors import (
    AllProvidersExhausted,
    ContinuationFailed,
    ErrorHandler,
    HeightsAIError,
    ValidationError,
    async_retry,
)
from heights_ai.infrastructure.logging import (
    ConsoleFormatter,
    LogContext,
    StructuredFormatter,
    get_logger,
    log_async_performance,
    setup_logging,
)
from heights_ai.infrastructure.rate_limiter import (
    ClientRateLimiter,
    ProviderRateLimiters,
    RateLimitConfig,
    RateLimiter,
    RateLimitStrategy,
)


def make_record(msg="Test message", **extra):
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogging:
    """Logging"""

    def test_get_logger(self):
        assert isinstance(get_logger("test"), logging.Logger)

    def test_structured_formatter_emits_json(self):
        record = make_record(request_id="abc123", provider="claude", extra_data={"k": 1})

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "Test message"
        assert data["level"] == "INFO"
        assert data["request_id"] == "abc123"
        assert data["provider"] == "claude"
        assert data["data"] == {"k": 1}

    def test_console_formatter(self):
        formatted = ConsoleFormatter().format(make_record(request_id="abc123", duration_ms=12.5))

        assert "Test message" in formatted
        assert "abc123" in formatted
        assert "12.50ms" in formatted

    def test_setup_logging_replaces_handlers(self, tmp_path):
        log_file = tmp_path / "heights.log"
        previous_level = logging.getLogger().level
        root = setup_logging("DEBUG", json_format=True, log_file=str(log_file))
        try:
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers.clear()
            root.setLevel(previous_level)

    def test_log_context_success(self):
        logger = Mock()
        with LogContext(logger, "query", request_id="r1"):
            pass

        assert logger.info.call_count == 2
        assert "Finished query" in logger.info.call_args[0][0]

    def test_log_context_failure_propagates(self):
        logger = Mock()
        with pytest.raises(RuntimeError):
            with LogContext(logger, "query"):
                raise RuntimeError("boom")

        logger.error.assert_called_once()

    def test_log_async_performance(self):
        logger = Mock()

        @log_async_performance(logger)
        async def work(x):
            return x * 2

        @log_async_performance(logger)
        async def broken():
            raise ValueError("bad")

        assert run(work(21)) == 42
        with pytest.raises(ValueError):
            run(broken())
        logger.debug.assert_called_once()
        logger.error.assert_called_once()


class TestErrors:
    """Errors"""

    def test_base_error(self):
        error = HeightsAIError("boom", ErrorCode.INTERNAL_ERROR, {"a": 1})

        assert error.to_dict() == {
            "error_code": "internal_error",
            "message": "boom",
            "details": {"a": 1},
        }

    def test_validation_error(self):
        error = ValidationError("query must not be empty", field="query")

        assert error.error_code == ErrorCode.INVALID_INPUT
        assert error.details == {"field": "query"}

    def test_all_providers_exhausted(self):
        error = AllProvidersExhausted(["claude", "perplexity"], {"claude": "timeout"})

        assert error.error_code == ErrorCode.ALL_PROVIDERS_EXHAUSTED
        assert "claude, perplexity" in error.message
        assert error.details["failures"] == {"claude": "timeout"}

    def test_continuation_failed(self):
        error = ContinuationFailed("claude", "overloaded")

        assert error.error_code == ErrorCode.CONTINUATION_FAILED
        assert error.message.endswith("overloaded")

    def test_handler_passes_known_errors_through(self):
        error = ValidationError("bad")
        assert ErrorHandler.handle_exception(error) is error

    def test_handler_maps_builtin_errors(self):
        value = ErrorHandler.handle_exception(ValueError("bad value"), context="parse")
        other = ErrorHandler.handle_exception(RuntimeError("boom"))

        assert value.error_code == ErrorCode.INVALID_INPUT
        assert value.message == "[parse] bad value"
        assert other.error_code == ErrorCode.INTERNAL_ERROR
        assert other.details["original_type"] == "RuntimeError"


class TestAsyncRetry:

    def test_retries_until_success(self):
        attempts = []

        @async_retry(max_attempts=3, delay=0.0, exceptions=(ConnectionError,))
        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("reset")
            return "ok"

        assert run(flaky()) == "ok"
        assert len(attempts) == 3

    def test_gives_up(self):
        callback = Mock()

        @async_retry(max_attempts=2, delay=0.0, exceptions=(ConnectionError,), on_retry=callback)
        async def broken():
            raise ConnectionError("reset")

        with pytest.raises(ConnectionError):
            run(broken())
        callback.assert_called_once()

    def test_other_exceptions_are_not_retried(self):
        attempts = []

        @async_retry(max_attempts=3, delay=0.0, exceptions=(ConnectionError,))
        async def broken():
            attempts.append(1)
            raise KeyError("missing")

        with pytest.raises(KeyError):
            run(broken())
        assert len(attempts) == 1


class TestCache:

    def test_set_get(self):
        cache = LRUCache()
        cache.set("k", "v")

        assert cache.get("k") == "v"
        assert cache.get("missing") is None
        assert cache.stats.hits == 1
        assert cache.stats.misses == 1

    def test_make_key_normalises_symbol(self):
        assert LRUCache.make_key(CacheKind.QUOTE, "coinbase", "btc") == "quote:coinbase:BTC"

    def test_ttl_expiry(self):
        cache = LRUCache()
        cache.set("k", "v", ttl=1)

        with patch("heights_ai.infrastructure.cache.time.time", return_value=time.time() + 5):
            assert cache.get("k") is None

    def test_kind_ttl(self):
        cache = LRUCache(CacheConfig(kind_ttls={CacheKind.QUOTE.value: 7, CacheKind.NEWS.value: 0}))
        now = time.time()
        cache.set("quote", "v", kind=CacheKind.QUOTE)
        cache.set("news", "n", kind=CacheKind.NEWS)

        with patch("heights_ai.infrastructure.cache.time.time", return_value=now + 5):
            assert cache.get("quote") == "v"
        with patch("heights_ai.infrastructure.cache.time.time", return_value=now + 60):
            assert cache.get("quote") is None
            assert cache.get("news") == "n"
        assert cache.stats.expired == 1

    def test_lru_eviction(self):
        cache = LRUCache(CacheConfig(max_size=2))
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.stats.evictions == 1

    def test_delete_and_clear(self):
        cache = LRUCache()
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a")
        assert not cache.delete("a")
        cache.clear()
        assert len(cache) == 0


class TestRateLimiting:

    def test_token_bucket_burst(self):
        limiter = RateLimiter(RateLimitConfig(requests_per_second=0.1, burst_size=2))

        assert limiter.acquire()
        assert limiter.acquire()
        assert not limiter.acquire()
        assert limiter.get_wait_time() > 0
        assert limiter.stats.rejected_requests == 1

    def test_sliding_window(self):
        limiter = RateLimiter(RateLimitConfig(
            requests_per_second=2 / 60, strategy=RateLimitStrategy.SLIDING_WINDOW, window_size=60,
        ))

        assert limiter.acquire()
        assert limiter.acquire()
        assert not limiter.acquire()
        assert 0 < limiter.get_wait_time() <= 60

    def test_provider_registry(self):
        limiters = ProviderRateLimiters({ProviderId.POLYGON: RateLimitConfig.per_period(1, 60)})

        assert limiters.acquire(ProviderId.POLYGON)
        assert not limiters.acquire(ProviderId.POLYGON)
        assert limiters.acquire(ProviderId.CLAUDE)
        assert limiters.get_wait_time(ProviderId.CLAUDE) == 0.0
        assert limiters.get_all_stats()["polygon"]["rejected_requests"] == 1

    def test_default_registry_covers_vendors(self):
        limiters = ProviderRateLimiters()

        assert limiters.get(ProviderId.ALPHA_VANTAGE) is not None
        assert limiters.get(ProviderId.CLAUDE) is None

    def test_client_limiter_is_per_client(self):
        limiter = ClientRateLimiter(requests_per_minute=2)

        assert limiter.acquire("alice")
        assert limiter.acquire("alice")
        assert not limiter.acquire("alice")
        assert limiter.acquire("bob")
        assert limiter.get_wait_time("alice") > 0
        assert limiter.get_wait_time("bob") == 0.0
