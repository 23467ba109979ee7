"""
Domain layer - core entities and value objects

Contains:
- ClassifiedQuery / ProcessingStrategy: routing decisions
- MarketDataPoint / NewsItem: provider records
- AnalysisResult / TradeSetup: structured analysis
- AIResponse: orchestrator output
"""

from heights_ai.domain.models import (
    QueryIntent,
    AssetType,
    ProviderId,
    MatchKind,
    ResponseType,
    DataFreshness,
    Sentiment,
    Impact,
    Recommendation,
    RiskLevel,
    ErrorCode,
    ClassifiedQuery,
    ProcessingStrategy,
    MarketDataPoint,
    NewsItem,
    TechnicalIndicators,
    PriceTargets,
    ConfidenceFactors,
    TradeTarget,
    TradeSetup,
    AnalysisResult,
    ChatMessage,
    ChatContext,
    QueryOptions,
    ResponseMetadata,
    AIResponse,
)

__all__ = [
    "QueryIntent",
    "AssetType",
    "ProviderId",
    "MatchKind",
    "ResponseType",
    "DataFreshness",
    "Sentiment",
    "Impact",
    "Recommendation",
    "RiskLevel",
    "ErrorCode",
    "ClassifiedQuery",
    "ProcessingStrategy",
    "MarketDataPoint",
    "NewsItem",
    "TechnicalIndicators",
    "PriceTargets",
    "ConfidenceFactors",
    "TradeTarget",
    "TradeSetup",
    "AnalysisResult",
    "ChatMessage",
    "ChatContext",
    "QueryOptions",
    "ResponseMetadata",
    "AIResponse",
]
