"""
Core domain models - business entities and value objects

Design rules:
1. Immutability: records use frozen=True
2. Type safety: every field is annotated
3. Serializable: responses expose to_dict() for JSON output
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple


# ==================== Enums ====================

class QueryIntent(str, Enum):
    """What the user wants from the assistant"""
    PRICE = "price"
    ANALYSIS = "analysis"
    NEWS = "news"
    COMPARISON = "comparison"
    PREDICTION = "prediction"
    EXPLANATION = "explanation"


class AssetType(str, Enum):
    """Asset class"""
    CRYPTO = "crypto"
    STOCK = "stock"
    FOREX = "forex"
    COMMODITY = "commodity"


class ProviderId(str, Enum):
    """External providers known to the gateway"""
    CLAUDE = "claude"
    PERPLEXITY = "perplexity"
    COINBASE = "coinbase"
    ALPHA_VANTAGE = "alpha_vantage"
    POLYGON = "polygon"
    TWELVE_DATA = "twelve_data"
    BENZINGA = "benzinga"
    GNEWS = "gnews"
    YFINANCE = "yfinance"


class MatchKind(str, Enum):
    """How the asset symbol was found in the query"""
    EXACT = "exact"
    ALIAS = "alias"
    PATTERN = "pattern"
    CONTEXT = "context"
    NONE = "none"


class ResponseType(str, Enum):
    TEXT = "text"
    ANALYSIS = "analysis"
    COMPARISON = "comparison"
    NEWS = "news"
    DATA = "data"
    ERROR = "error"


class DataFreshness(str, Enum):
    REAL_TIME = "real-time"
    RECENT = "recent"
    HISTORICAL = "historical"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Impact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Recommendation(str, Enum):
    """Investment recommendation"""
    STRONG_BUY = "strong_buy"
    BUY = "buy"
    HOLD = "hold"
    SELL = "sell"
    STRONG_SELL = "strong_sell"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorCode(str, Enum):
    """Error codes"""
    SUCCESS = "success"
    INVALID_INPUT = "invalid_input"
    PROVIDER_TIMEOUT = "provider_timeout"
    PROVIDER_TRANSPORT = "provider_transport"
    PROVIDER_EMPTY = "provider_empty"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    RATE_LIMITED = "rate_limited"
    ALL_PROVIDERS_EXHAUSTED = "all_providers_exhausted"
    CONTINUATION_FAILED = "continuation_failed"
    INTERNAL_ERROR = "internal_error"


# ==================== Classification / strategy ====================

CLASSIFIER_BASELINE_CONFIDENCE = 0.3


@dataclass(frozen=True)
class ClassifiedQuery:
    """Result of classifying a raw user query"""
    intent: QueryIntent
    asset_type: AssetType
    confidence: float                   # 0.0 - 1.0
    asset_symbol: Optional[str] = None
    timeframe: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    match_kind: MatchKind = MatchKind.NONE

    @property
    def has_symbol(self) -> bool:
        return self.asset_symbol is not None

    @property
    def is_ambiguous(self) -> bool:
        """Nothing beyond the baseline was recognised"""
        return self.confidence <= CLASSIFIER_BASELINE_CONFIDENCE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent.value,
            "asset_type": self.asset_type.value,
            "asset_symbol": self.asset_symbol,
            "confidence": round(self.confidence, 4),
            "timeframe": self.timeframe,
            "parameters": dict(self.parameters),
            "match_kind": self.match_kind.value,
        }


@dataclass(frozen=True)
class ProcessingStrategy:
    """Ordered provider plan for one query"""
    primary_provider: ProviderId
    fallback_providers: Tuple[ProviderId, ...] = ()
    data_providers: Tuple[ProviderId, ...] = ()
    requires_data: bool = False
    max_retries: int = 1
    timeout_seconds: float = 30.0

    @property
    def cascade(self) -> Tuple[ProviderId, ...]:
        return (self.primary_provider,) + tuple(self.fallback_providers)


# ==================== Market data ====================

@dataclass(frozen=True)
class MarketDataPoint:
    """Quote snapshot returned by a data provider"""
    symbol: str
    price: float
    change: float
    change_percent: float
    volume: float
    high_24h: float
    low_24h: float
    source: ProviderId
    market_cap: Optional[float] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "change": self.change,
            "change_percent": self.change_percent,
            "volume": self.volume,
            "high_24h": self.high_24h,
            "low_24h": self.low_24h,
            "market_cap": self.market_cap,
            "source": self.source.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class NewsItem:
    """News article"""
    title: str
    summary: str
    source: str
    url: str
    published_at: datetime
    sentiment: Sentiment = Sentiment.NEUTRAL
    impact: Impact = Impact.LOW
    relevance_score: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "source": self.source,
            "url": self.url,
            "published_at": self.published_at.isoformat(),
            "sentiment": self.sentiment.value,
            "impact": self.impact.value,
            "relevance_score": self.relevance_score,
        }


# ==================== Analysis ====================

@dataclass(frozen=True)
class TechnicalIndicators:
    rsi: float
    support: float
    resistance: float
    sma_20: Optional[float] = None
    sma_50: Optional[float] = None
    macd_signal: Optional[str] = None


@dataclass(frozen=True)
class PriceTargets:
    short: float
    medium: float
    long: float


@dataclass(frozen=True)
class ConfidenceFactors:
    """Sub-scores feeding the confidence formula, each in [0, 1]"""
    technical_alignment: float
    fundamental_strength: float
    market_conditions: float
    news_sentiment: float


@dataclass(frozen=True)
class TradeTarget:
    price: float
    exit_percentage: float
    risk_reward: float
    probability: float


@dataclass(frozen=True)
class TradeSetup:
    """Entry, stop, targets and sizing for a position"""
    symbol: str
    current_price: float
    entry: float
    stop_loss: float
    targets: Tuple[TradeTarget, ...]
    risk_reward_ratio: float
    position_size: float
    portfolio_percentage: float
    max_loss: float
    expected_return: float
    win_probability: float
    kelly_percentage: float
    timeframe: Optional[str] = None


@dataclass(frozen=True)
class AnalysisResult:
    """Structured analysis extracted from a reasoning answer"""
    symbol: str
    recommendation: Recommendation
    confidence: float
    reasoning: str
    risks: Tuple[str, ...] = ()
    opportunities: Tuple[str, ...] = ()
    timeframe: str = "1-3 months"
    technical_indicators: Optional[TechnicalIndicators] = None
    price_targets: Optional[PriceTargets] = None
    risk_level: RiskLevel = RiskLevel.MEDIUM
    confidence_factors: Optional[ConfidenceFactors] = None
    trade_setup: Optional[TradeSetup] = None
    last_updated: datetime = field(default_factory=datetime.now)


# ==================== Conversation ====================

@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChatContext:
    """Caller-owned recent history"""
    message_history: Tuple[ChatMessage, ...] = ()


@dataclass(frozen=True)
class QueryOptions:
    use_secondary_reasoner: bool = False
    structured: bool = False
    portfolio_size: Optional[float] = None


# ==================== Response ====================

def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class ResponseMetadata:
    sources: Tuple[ProviderId, ...]
    confidence: float
    data_freshness: DataFreshness = DataFreshness.HISTORICAL
    processing_time_ms: float = 0.0
    classification: Optional[ClassifiedQuery] = None
    error_code: Optional[ErrorCode] = None

    def __post_init__(self):
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))


@dataclass(frozen=True)
class AIResponse:
    """Terminal output of the orchestrator; never mutated after return"""
    id: str
    content: str
    type: ResponseType
    metadata: ResponseMetadata
    market_data: Tuple[MarketDataPoint, ...] = ()
    news: Tuple[NewsItem, ...] = ()
    analysis: Optional[AnalysisResult] = None
    suggestions: Tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=datetime.now)
    partial: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dict"""
        classification = self.metadata.classification
        return {
            "id": self.id,
            "content": self.content,
            "type": self.type.value,
            "metadata": {
                "sources": [s.value for s in self.metadata.sources],
                "confidence": round(self.metadata.confidence, 4),
                "data_freshness": self.metadata.data_freshness.value,
                "processing_time_ms": round(self.metadata.processing_time_ms, 2),
                "classification": classification.to_dict() if classification else None,
                "error_code": self.metadata.error_code.value if self.metadata.error_code else None,
            },
            "market_data": [m.to_dict() for m in self.market_data],
            "news": [n.to_dict() for n in self.news],
            "analysis": _analysis_to_dict(self.analysis) if self.analysis else None,
            "suggestions": list(self.suggestions),
            "timestamp": self.timestamp.isoformat(),
            "partial": self.partial,
        }


def _analysis_to_dict(analysis: AnalysisResult) -> Dict[str, Any]:
    def plain(obj):
        if obj is None:
            return None
        return {k: (v.value if isinstance(v, Enum) else v) for k, v in obj.__dict__.items()}

    setup = None
    if analysis.trade_setup:
        setup = plain(analysis.trade_setup)
        setup["targets"] = [plain(t) for t in analysis.trade_setup.targets]

    return {
        "symbol": analysis.symbol,
        "recommendation": analysis.recommendation.value,
        "confidence": round(analysis.confidence, 4),
        "reasoning": analysis.reasoning,
        "risks": list(analysis.risks),
        "opportunities": list(analysis.opportunities),
        "timeframe": analysis.timeframe,
        "technical_indicators": plain(analysis.technical_indicators),
        "price_targets": plain(analysis.price_targets),
        "risk_level": analysis.risk_level.value,
        "confidence_factors": plain(analysis.confidence_factors),
        "trade_setup": setup,
        "last_updated": analysis.last_updated.isoformat(),
    }
