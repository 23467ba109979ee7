"""
Ports layer - interfaces to the outside world

Contains:
- MarketDataPort: quotes
- NewsPort: news
- ReasoningPort: conversational models
- ProviderError and its subclasses
"""

from heights_ai.ports.interfaces import (
    ProviderPort,
    MarketDataPort,
    NewsPort,
    ReasoningPort,
    ProviderError,
    ProviderTimeout,
    ProviderTransportError,
    ProviderEmptyResult,
    ProviderRateLimited,
    ProviderUnavailable,
)

__all__ = [
    "ProviderPort",
    "MarketDataPort",
    "NewsPort",
    "ReasoningPort",
    "ProviderError",
    "ProviderTimeout",
    "ProviderTransportError",
    "ProviderEmptyResult",
    "ProviderRateLimited",
    "ProviderUnavailable",
]
