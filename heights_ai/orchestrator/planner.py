"""
Strategy planner - static routing table from classification to providers
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from heights_ai.config import Settings
from heights_ai.domain.models import (
    AssetType,
    ClassifiedQuery,
    ProcessingStrategy,
    ProviderId,
    QueryIntent,
)


logger = logging.getLogger(__name__)


# ==================== Provider families ====================

REASONING_PROVIDERS = (ProviderId.CLAUDE, ProviderId.PERPLEXITY)
SEARCH_REASONING_PROVIDERS = (ProviderId.PERPLEXITY,)

MARKET_DATA_PROVIDERS: Dict[AssetType, Tuple[ProviderId, ...]] = {
    AssetType.CRYPTO: (ProviderId.COINBASE, ProviderId.POLYGON, ProviderId.YFINANCE),
    AssetType.STOCK: (
        ProviderId.ALPHA_VANTAGE, ProviderId.POLYGON, ProviderId.TWELVE_DATA, ProviderId.YFINANCE,
    ),
    AssetType.FOREX: (ProviderId.TWELVE_DATA, ProviderId.ALPHA_VANTAGE, ProviderId.YFINANCE),
    AssetType.COMMODITY: (ProviderId.TWELVE_DATA, ProviderId.YFINANCE),
}

NEWS_PROVIDERS: Dict[AssetType, Tuple[ProviderId, ...]] = {
    AssetType.CRYPTO: (ProviderId.GNEWS, ProviderId.POLYGON, ProviderId.YFINANCE),
    AssetType.STOCK: (
        ProviderId.BENZINGA, ProviderId.ALPHA_VANTAGE, ProviderId.POLYGON,
        ProviderId.GNEWS, ProviderId.YFINANCE,
    ),
    AssetType.FOREX: (ProviderId.GNEWS, ProviderId.ALPHA_VANTAGE),
    AssetType.COMMODITY: (ProviderId.GNEWS, ProviderId.YFINANCE),
}

_REASONING_FIRST = (ProviderId.CLAUDE, ProviderId.PERPLEXITY)
_SEARCH_FIRST = (ProviderId.PERPLEXITY, ProviderId.CLAUDE)

# (intent, has_symbol) -> ordered cascade; None means "asset-specific data list"
_ROUTES: Dict[Tuple[QueryIntent, bool], Optional[Tuple[ProviderId, ...]]] = {
    (QueryIntent.PRICE, True): None,
    (QueryIntent.PRICE, False): _SEARCH_FIRST,
    (QueryIntent.NEWS, True): None,
    (QueryIntent.NEWS, False): _SEARCH_FIRST,
    (QueryIntent.ANALYSIS, True): _REASONING_FIRST,
    (QueryIntent.ANALYSIS, False): _REASONING_FIRST,
    (QueryIntent.EXPLANATION, True): _REASONING_FIRST,
    (QueryIntent.EXPLANATION, False): _REASONING_FIRST,
    (QueryIntent.PREDICTION, True): _REASONING_FIRST,
    (QueryIntent.PREDICTION, False): _REASONING_FIRST,
    (QueryIntent.COMPARISON, True): _REASONING_FIRST,
    (QueryIntent.COMPARISON, False): _REASONING_FIRST,
}


def _unique(providers: Iterable[ProviderId]) -> List[ProviderId]:
    seen, ordered = set(), []
    for provider in providers:
        if provider not in seen:
            seen.add(provider)
            ordered.append(provider)
    return ordered


class StrategyPlanner:
    """
    Maps a ClassifiedQuery to a ProcessingStrategy

    Pure and stateless: the same classification always yields the same
    strategy.
    """

    def __init__(
        self,
        reasoning_timeout: float = 30.0,
        data_timeout: float = 15.0,
        max_retries: int = 1,
    ):
        self.reasoning_timeout = reasoning_timeout
        self.data_timeout = data_timeout
        self.max_retries = max_retries

    @classmethod
    def from_settings(cls, settings: Settings) -> "StrategyPlanner":
        return cls(
            reasoning_timeout=settings.reasoning_timeout,
            data_timeout=settings.data_timeout,
            max_retries=settings.max_retries,
        )

    def cascade_for(self, classified: ClassifiedQuery) -> List[ProviderId]:
        """Full ordered provider list for the routing key"""
        route = _ROUTES[(classified.intent, classified.has_symbol)]
        if route is not None:
            return list(route)

        if classified.intent == QueryIntent.PRICE:
            return list(MARKET_DATA_PROVIDERS[classified.asset_type])
        # news with a symbol: news vendors, then real-time search
        return list(NEWS_PROVIDERS[classified.asset_type]) + list(SEARCH_REASONING_PROVIDERS)

    def plan(self, classified: ClassifiedQuery) -> ProcessingStrategy:
        """
        Build the processing strategy

        Args:
            classified: classifier output

        Returns:
            ProcessingStrategy: primary, de-duplicated fallbacks and the
            prefetch set
        """
        cascade = _unique(self.cascade_for(classified))
        primary, fallbacks = cascade[0], tuple(cascade[1:])

        data_providers: Tuple[ProviderId, ...] = ()
        if classified.has_symbol:
            data_providers = tuple(_unique(
                list(MARKET_DATA_PROVIDERS[classified.asset_type])
                + list(NEWS_PROVIDERS[classified.asset_type])
            ))

        timeout = self.reasoning_timeout
        if primary not in REASONING_PROVIDERS:
            timeout = self.data_timeout

        strategy = ProcessingStrategy(
            primary_provider=primary,
            fallback_providers=fallbacks,
            data_providers=data_providers,
            requires_data=classified.has_symbol,
            max_retries=self.max_retries,
            timeout_seconds=timeout,
        )
        logger.debug(
            f"Strategy: {primary.value} -> {[p.value for p in fallbacks]}, "
            f"prefetch={[p.value for p in data_providers]}"
        )
        return strategy
