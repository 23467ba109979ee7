"""
Rate limiting - outbound provider quotas and inbound API protection

Two strategies share one interface (acquire / get_wait_time / stats):
a token bucket for vendor quotas and an exact sliding window for API
clients. Nothing here sleeps; callers decide what to do with a refusal.
"""

import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Deque, Dict, Optional

from heights_ai.domain.models import ProviderId


class RateLimitStrategy(str, Enum):
    TOKEN_BUCKET = "token_bucket"
    SLIDING_WINDOW = "sliding_window"


@dataclass
class RateLimitConfig:
    requests_per_second: float = 1.0
    burst_size: int = 10
    strategy: RateLimitStrategy = RateLimitStrategy.TOKEN_BUCKET
    window_size: int = 60  # seconds, sliding window only

    @classmethod
    def per_period(cls, requests: int, period_seconds: float) -> "RateLimitConfig":
        """``requests`` per ``period_seconds``, all usable as one burst"""
        return cls(requests_per_second=requests / period_seconds, burst_size=requests)


@dataclass
class RateLimitStats:
    total_requests: int = 0
    allowed_requests: int = 0
    rejected_requests: int = 0

    @property
    def rejection_rate(self) -> float:
        return self.rejected_requests / self.total_requests if self.total_requests else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "allowed_requests": self.allowed_requests,
            "rejected_requests": self.rejected_requests,
            "rejection_rate": round(self.rejection_rate * 100, 2),
        }


class _Limiter(ABC):
    """Locking and bookkeeping shared by both strategies"""

    def __init__(self, config: RateLimitConfig):
        self.config = config
        self._lock = Lock()
        self._stats = RateLimitStats()

    @abstractmethod
    def _take(self, now: float, tokens: int) -> bool:
        ...

    @abstractmethod
    def _wait(self, now: float, tokens: int) -> float:
        ...

    def acquire(self, tokens: int = 1) -> bool:
        """Non-blocking; True when the request may go ahead"""
        with self._lock:
            allowed = self._take(time.monotonic(), tokens)
            self._stats.total_requests += 1
            if allowed:
                self._stats.allowed_requests += 1
            else:
                self._stats.rejected_requests += 1
            return allowed

    def get_wait_time(self, tokens: int = 1) -> float:
        """Seconds until ``tokens`` would be granted, 0 when available now"""
        with self._lock:
            return self._wait(time.monotonic(), tokens)

    @property
    def stats(self) -> RateLimitStats:
        return self._stats


class TokenBucketLimiter(_Limiter):
    """Bursts up to burst_size, refilled at requests_per_second"""

    def __init__(self, config: RateLimitConfig):
        super().__init__(config)
        self._tokens = float(config.burst_size)
        self._refilled_at = time.monotonic()

    def _refill(self, now: float) -> None:
        gained = (now - self._refilled_at) * self.config.requests_per_second
        self._tokens = min(float(self.config.burst_size), self._tokens + gained)
        self._refilled_at = now

    def _take(self, now: float, tokens: int) -> bool:
        self._refill(now)
        if self._tokens < tokens:
            return False
        self._tokens -= tokens
        return True

    def _wait(self, now: float, tokens: int) -> float:
        self._refill(now)
        missing = tokens - self._tokens
        return missing / self.config.requests_per_second if missing > 0 else 0.0


class SlidingWindowLimiter(_Limiter):
    """Exact count of grants over the last window_size seconds"""

    def __init__(self, config: RateLimitConfig):
        super().__init__(config)
        self._granted: Deque[float] = deque()
        self.capacity = max(1, round(config.requests_per_second * config.window_size))

    def _expire(self, now: float) -> None:
        horizon = now - self.config.window_size
        while self._granted and self._granted[0] < horizon:
            self._granted.popleft()

    def _take(self, now: float, tokens: int) -> bool:
        self._expire(now)
        if len(self._granted) + tokens > self.capacity:
            return False
        self._granted.extend([now] * tokens)
        return True

    def _wait(self, now: float, tokens: int) -> float:
        self._expire(now)
        if len(self._granted) + tokens <= self.capacity:
            return 0.0
        return max(0.0, self._granted[0] + self.config.window_size - now)


_STRATEGIES = {
    RateLimitStrategy.TOKEN_BUCKET: TokenBucketLimiter,
    RateLimitStrategy.SLIDING_WINDOW: SlidingWindowLimiter,
}


class RateLimiter:
    """Front for the limiter named by config.strategy"""

    def __init__(self, config: RateLimitConfig):
        self.config = config
        self._limiter: _Limiter = _STRATEGIES[config.strategy](config)

    def acquire(self, tokens: int = 1) -> bool:
        return self._limiter.acquire(tokens)

    def get_wait_time(self, tokens: int = 1) -> float:
        return self._limiter.get_wait_time(tokens)

    @property
    def stats(self) -> RateLimitStats:
        return self._limiter.stats


# free-tier vendor quotas
DEFAULT_PROVIDER_LIMITS: Dict[ProviderId, RateLimitConfig] = {
    ProviderId.COINBASE: RateLimitConfig.per_period(10, 1),
    ProviderId.ALPHA_VANTAGE: RateLimitConfig.per_period(5, 60),
    ProviderId.POLYGON: RateLimitConfig.per_period(5, 60),
    ProviderId.BENZINGA: RateLimitConfig.per_period(10, 60),
    ProviderId.GNEWS: RateLimitConfig.per_period(10, 60),
    ProviderId.TWELVE_DATA: RateLimitConfig.per_period(8, 60),
    ProviderId.PERPLEXITY: RateLimitConfig.per_period(20, 60),
    ProviderId.YFINANCE: RateLimitConfig(requests_per_second=0.5, burst_size=5),
}


class ProviderRateLimiters:
    """
    Outbound limiters keyed by provider, owned by the gateway

    Providers without a registered limiter are never throttled.
    """

    def __init__(self, configs: Optional[Dict[ProviderId, RateLimitConfig]] = None):
        self._limiters: Dict[ProviderId, RateLimiter] = {}
        self._lock = Lock()
        for provider_id, config in (DEFAULT_PROVIDER_LIMITS if configs is None else configs).items():
            self.register(provider_id, config)

    def register(self, provider_id: ProviderId, config: RateLimitConfig) -> RateLimiter:
        limiter = RateLimiter(config)
        with self._lock:
            self._limiters[provider_id] = limiter
        return limiter

    def get(self, provider_id: ProviderId) -> Optional[RateLimiter]:
        with self._lock:
            return self._limiters.get(provider_id)

    def acquire(self, provider_id: ProviderId) -> bool:
        limiter = self.get(provider_id)
        return limiter.acquire() if limiter is not None else True

    def get_wait_time(self, provider_id: ProviderId) -> float:
        limiter = self.get(provider_id)
        return limiter.get_wait_time() if limiter is not None else 0.0

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {pid.value: limiter.stats.to_dict() for pid, limiter in self._limiters.items()}


class ClientRateLimiter:
    """Inbound limiter for the HTTP layer, one sliding window per client key"""

    def __init__(self, requests_per_minute: int = 60):
        self.config = RateLimitConfig(
            requests_per_second=requests_per_minute / 60,
            strategy=RateLimitStrategy.SLIDING_WINDOW,
            window_size=60,
        )
        self._clients: Dict[str, SlidingWindowLimiter] = {}
        self._lock = Lock()

    def _for(self, client: str) -> SlidingWindowLimiter:
        with self._lock:
            if client not in self._clients:
                self._clients[client] = SlidingWindowLimiter(self.config)
            return self._clients[client]

    def acquire(self, client: str) -> bool:
        return self._for(client).acquire()

    def get_wait_time(self, client: str) -> float:
        return self._for(client).get_wait_time()
