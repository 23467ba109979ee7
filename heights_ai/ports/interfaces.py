"""
Port interfaces - the dependency-inversion seam

Every external provider is reached through these interfaces; adapters
supply the concrete implementations.

Rules:
1. Interface segregation: one capability per port
2. A provider may implement several ports
3. Failures are expressed as ProviderError subclasses
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from heights_ai.domain.models import (
    ErrorCode,
    MarketDataPoint,
    NewsItem,
    ProviderId,
)
from heights_ai.infrastructure.errors import HeightsAIError


# ==================== Provider errors ====================

class ProviderError(HeightsAIError):
    """Typed failure of a single provider call"""

    error_code = ErrorCode.PROVIDER_TRANSPORT

    def __init__(self, provider: ProviderId, message: str, retryable: bool = False):
        self.provider = provider
        self.retryable = retryable
        super().__init__(
            message=f"[{provider.value}] {message}",
            details={"provider": provider.value},
        )


class ProviderTimeout(ProviderError):
    """Call exceeded its timeout"""
    error_code = ErrorCode.PROVIDER_TIMEOUT

    def __init__(self, provider: ProviderId, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(provider, f"timed out after {timeout_seconds:.1f}s", retryable=True)


class ProviderTransportError(ProviderError):
    """Network or API failure"""
    error_code = ErrorCode.PROVIDER_TRANSPORT

    def __init__(self, provider: ProviderId, message: str):
        super().__init__(provider, message, retryable=True)


class ProviderEmptyResult(ProviderError):
    """Call succeeded but returned nothing usable"""
    error_code = ErrorCode.PROVIDER_EMPTY

    def __init__(self, provider: ProviderId, message: str = "empty result"):
        super().__init__(provider, message)


class ProviderRateLimited(ProviderError):
    """Local quota for the provider is spent"""
    error_code = ErrorCode.RATE_LIMITED

    def __init__(self, provider: ProviderId, retry_after: float = 0.0):
        self.retry_after = retry_after
        super().__init__(provider, f"rate limited, retry after {retry_after:.1f}s")


class ProviderUnavailable(ProviderError):
    """Provider not registered or lacks the requested capability"""
    error_code = ErrorCode.PROVIDER_UNAVAILABLE

    def __init__(self, provider: ProviderId, capability: Optional[str] = None):
        message = "not configured"
        if capability:
            message = f"does not provide {capability}"
        super().__init__(provider, message)


# ==================== Ports ====================

class ProviderPort(ABC):
    """Common base: every provider knows its own id"""

    @property
    @abstractmethod
    def provider_id(self) -> ProviderId:
        pass


class MarketDataPort(ProviderPort):
    """Market quotes"""

    @abstractmethod
    async def fetch_market_data(self, symbol: str) -> MarketDataPoint:
        """
        Fetch a current quote

        Args:
            symbol: canonical symbol (BTC, AAPL, GC=F)

        Returns:
            MarketDataPoint: quote stamped with this provider's id

        Raises:
            ProviderError: or any transport exception, mapped by the gateway
        """
        pass


class NewsPort(ProviderPort):
    """News articles"""

    @abstractmethod
    async def fetch_news(self, symbol: str, limit: int = 10) -> List[NewsItem]:
        """
        Fetch recent news for a symbol

        Args:
            symbol: canonical symbol
            limit: maximum number of items

        Returns:
            List[NewsItem]: newest first
        """
        pass


class ReasoningPort(ProviderPort):
    """Conversational model"""

    @abstractmethod
    async def converse(self, system_prompt: str, messages: List[Dict[str, str]]) -> str:
        """
        Run one conversation turn

        Args:
            system_prompt: system instructions
            messages: [{"role": "user"|"assistant", "content": ...}]

        Returns:
            str: the model's answer
        """
        pass
