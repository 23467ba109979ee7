"""
Dependency injection - FastAPI dependency wiring

Builds the gateway and orchestrator once per process and hands them to
the routes.
"""

import logging
from functools import lru_cache

from heights_ai import __version__
from heights_ai.adapters.llm_adapter import create_reasoning_adapters
from heights_ai.adapters.yfinance_adapter import YFinanceAdapter
from heights_ai.config import Settings
from heights_ai.gateway.provider_gateway import Capability, ProviderGateway
from heights_ai.infrastructure.cache import CacheConfig, CacheKind, LRUCache
from heights_ai.infrastructure.rate_limiter import ProviderRateLimiters
from heights_ai.orchestrator import Orchestrator


logger = logging.getLogger(__name__)


APP_NAME = "Heights AI"
APP_VERSION = __version__


class ServiceContainer:
    """
    Service container - owns every long-lived service

    Adapters are registered only when they can work: reasoning providers
    need an API key, yfinance can be switched off.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

        cache = LRUCache(CacheConfig(
            max_size=settings.cache_max_size,
            kind_ttls={
                CacheKind.QUOTE.value: settings.quote_cache_ttl,
                CacheKind.NEWS.value: settings.news_cache_ttl,
            },
        ))
        rate_limiters = ProviderRateLimiters() if settings.enable_provider_rate_limits else None
        self._gateway = ProviderGateway(
            cache=cache,
            rate_limiters=rate_limiters,
            retry_delay=settings.retry_delay,
        )

        for adapter in create_reasoning_adapters(settings):
            self._gateway.register(adapter)
        if settings.enable_yfinance:
            self._gateway.register(YFinanceAdapter())

        if not self._gateway.providers_for(Capability.REASONING):
            logger.warning("No reasoning provider configured: set ANTHROPIC_API_KEY or PERPLEXITY_API_KEY")

        self._orchestrator = Orchestrator(self._gateway, settings=settings)
        logger.info(f"Registered providers: {[p.value for p in self._gateway.provider_ids()]}")

    @property
    def orchestrator(self) -> Orchestrator:
        return self._orchestrator

    @property
    def gateway(self) -> ProviderGateway:
        return self._gateway


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache()
def get_service_container() -> ServiceContainer:
    """
    Process-wide service container

    lru_cache makes sure it is built once.
    """
    return ServiceContainer(get_settings())


def get_orchestrator() -> Orchestrator:
    """FastAPI dependency: orchestrator"""
    return get_service_container().orchestrator


def get_gateway() -> ProviderGateway:
    """FastAPI dependency: provider gateway"""
    return get_service_container().gateway
