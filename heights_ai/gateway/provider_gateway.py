"""
Provider gateway - uniform, failure-safe access to every provider

Each call is wrapped in:
- capability check (unknown provider or missing port -> ProviderUnavailable)
- per-provider rate limit (-> ProviderRateLimited)
- timeout (-> ProviderTimeout)
- bounded retry of timeouts and transport errors
- read-through / write-through TTL cache for quotes and news

Calls always return a ProviderResult. Nothing raises past this class.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from heights_ai.domain.models import MarketDataPoint, NewsItem, ProviderId
from heights_ai.infrastructure.cache import CacheKind, LRUCache
from heights_ai.infrastructure.errors import async_retry
from heights_ai.infrastructure.rate_limiter import ProviderRateLimiters
from heights_ai.ports.interfaces import (
    MarketDataPort,
    NewsPort,
    ProviderError,
    ProviderEmptyResult,
    ProviderPort,
    ProviderRateLimited,
    ProviderTimeout,
    ProviderTransportError,
    ProviderUnavailable,
    ReasoningPort,
)


logger = logging.getLogger(__name__)


class Capability(str, Enum):
    MARKET_DATA = "market_data"
    NEWS = "news"
    REASONING = "reasoning"


_CAPABILITY_PORTS = {
    Capability.MARKET_DATA: MarketDataPort,
    Capability.NEWS: NewsPort,
    Capability.REASONING: ReasoningPort,
}


@dataclass(frozen=True)
class ProviderResult:
    """Outcome of one gateway call"""
    provider: ProviderId
    success: bool
    data: Any = None
    error: Optional[ProviderError] = None
    duration_ms: float = 0.0
    cached: bool = False


def _is_empty(data: Any) -> bool:
    if data is None:
        return True
    if isinstance(data, str):
        return not data.strip()
    if isinstance(data, (list, tuple)):
        return len(data) == 0
    return False


class ProviderGateway:
    """
    Registry of provider adapters keyed by ProviderId

    One adapter may implement several ports (e.g. quotes and news).
    """

    def __init__(
        self,
        providers: Iterable[ProviderPort] = (),
        cache: Optional[LRUCache] = None,
        rate_limiters: Optional[ProviderRateLimiters] = None,
        retry_delay: float = 0.5,
    ):
        self._providers: Dict[ProviderId, ProviderPort] = {}
        self._cache = cache
        self._rate_limiters = rate_limiters
        self.retry_delay = retry_delay
        for provider in providers:
            self.register(provider)

    # ==================== Registry ====================

    def register(self, provider: ProviderPort) -> None:
        self._providers[provider.provider_id] = provider
        logger.debug(f"Registered provider {provider.provider_id.value}")

    def provider_ids(self) -> List[ProviderId]:
        return list(self._providers)

    def supports(self, provider_id: ProviderId, capability: Capability) -> bool:
        provider = self._providers.get(provider_id)
        return isinstance(provider, _CAPABILITY_PORTS[capability])

    def providers_for(self, capability: Capability) -> List[ProviderId]:
        """Registered providers exposing a capability, in registration order"""
        return [pid for pid in self._providers if self.supports(pid, capability)]

    @property
    def cache(self) -> Optional[LRUCache]:
        return self._cache

    # ==================== Capabilities ====================

    async def fetch_market_data(
        self,
        provider_id: ProviderId,
        symbol: str,
        timeout: float = 10.0,
        max_retries: int = 0,
    ) -> ProviderResult:
        """Quote for a symbol; Result data is a MarketDataPoint"""
        key = LRUCache.make_key(CacheKind.QUOTE, provider_id.value, symbol)
        cached = self._cache_get(key)
        if cached is not None:
            return ProviderResult(provider=provider_id, success=True, data=cached, cached=True)

        async def operation(port: MarketDataPort) -> MarketDataPoint:
            return await port.fetch_market_data(symbol)

        result = await self._call(provider_id, Capability.MARKET_DATA, operation, timeout, max_retries)
        if result.success:
            self._cache_set(key, result.data, CacheKind.QUOTE)
        return result

    async def fetch_news(
        self,
        provider_id: ProviderId,
        symbol: str,
        timeout: float = 10.0,
        max_retries: int = 0,
        limit: int = 10,
    ) -> ProviderResult:
        """News for a symbol; Result data is a list of NewsItem"""
        key = LRUCache.make_key(CacheKind.NEWS, provider_id.value, symbol)
        cached = self._cache_get(key)
        if cached is not None:
            return ProviderResult(provider=provider_id, success=True, data=list(cached)[:limit], cached=True)

        async def operation(port: NewsPort) -> List[NewsItem]:
            return list(await port.fetch_news(symbol, limit))[:limit]

        result = await self._call(provider_id, Capability.NEWS, operation, timeout, max_retries)
        if result.success:
            self._cache_set(key, tuple(result.data), CacheKind.NEWS)
        return result

    async def converse(
        self,
        provider_id: ProviderId,
        system_prompt: str,
        messages: List[Dict[str, str]],
        timeout: float = 30.0,
        max_retries: int = 0,
    ) -> ProviderResult:
        """One reasoning turn; Result data is the answer text. Never cached."""

        async def operation(port: ReasoningPort) -> str:
            return await port.converse(system_prompt, messages)

        return await self._call(provider_id, Capability.REASONING, operation, timeout, max_retries)

    # ==================== Internals ====================

    async def _call(
        self,
        provider_id: ProviderId,
        capability: Capability,
        operation: Callable[[Any], Awaitable[Any]],
        timeout: float,
        max_retries: int,
    ) -> ProviderResult:
        start = time.monotonic()
        port = self._providers.get(provider_id)

        if port is None:
            return self._failure(provider_id, ProviderUnavailable(provider_id), start)
        if not isinstance(port, _CAPABILITY_PORTS[capability]):
            return self._failure(provider_id, ProviderUnavailable(provider_id, capability.value), start)

        if self._rate_limiters is not None and not self._rate_limiters.acquire(provider_id):
            wait = self._rate_limiters.get_wait_time(provider_id)
            return self._failure(provider_id, ProviderRateLimited(provider_id, wait), start)

        @async_retry(
            max_attempts=max(0, max_retries) + 1,
            delay=self.retry_delay,
            exceptions=(ProviderTimeout, ProviderTransportError),
        )
        async def attempt():
            try:
                data = await asyncio.wait_for(operation(port), timeout=timeout)
            except asyncio.TimeoutError:
                raise ProviderTimeout(provider_id, timeout)
            except ProviderError:
                raise
            except Exception as e:
                raise ProviderTransportError(provider_id, f"{type(e).__name__}: {e}")

            if _is_empty(data):
                raise ProviderEmptyResult(provider_id)
            return data

        try:
            data = await attempt()
        except ProviderError as e:
            return self._failure(provider_id, e, start)

        duration = (time.monotonic() - start) * 1000
        logger.debug(
            f"{capability.value} call to {provider_id.value} succeeded",
            extra={'provider': provider_id.value, 'duration_ms': duration}
        )
        return ProviderResult(provider=provider_id, success=True, data=data, duration_ms=duration)

    def _failure(self, provider_id: ProviderId, error: ProviderError, start: float) -> ProviderResult:
        duration = (time.monotonic() - start) * 1000
        logger.warning(
            f"Provider call failed: {error.message}",
            extra={'provider': provider_id.value, 'duration_ms': duration}
        )
        return ProviderResult(provider=provider_id, success=False, error=error, duration_ms=duration)

    def _cache_get(self, key: str) -> Any:
        if self._cache is None:
            return None
        return self._cache.get(key)

    def _cache_set(self, key: str, value: Any, kind: CacheKind) -> None:
        if self._cache is not None:
            self._cache.set(key, value, kind=kind)
