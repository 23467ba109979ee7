"""
Confidence scoring - bounded confidence and trade setup

Pure functions over already-fetched data. No I/O.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from heights_ai.config import Settings
from heights_ai.domain.models import (
    ConfidenceFactors,
    MarketDataPoint,
    NewsItem,
    Sentiment,
    TechnicalIndicators,
    TradeSetup,
    TradeTarget,
)


NEUTRAL = 0.5
KELLY_CAP = 0.25
MAX_POSITION_FRACTION = 0.05
DEFAULT_STOP_FRACTION = 0.02

# (risk multiple, share of position exited, hit probability)
TARGET_LADDER = (
    (1.5, 40.0, 0.70),
    (2.5, 40.0, 0.50),
    (4.0, 20.0, 0.30),
)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class ConfidenceWeights:
    """Relative weights; normalised by their sum when scoring"""
    technical: float = 0.3
    fundamental: float = 0.3
    market: float = 0.2
    news: float = 0.2

    @property
    def total(self) -> float:
        return self.technical + self.fundamental + self.market + self.news


# ==================== Sub-scores ====================

def technical_alignment(
    rsi: Optional[float] = None,
    trend: Optional[str] = None,
    macd_signal: Optional[str] = None,
    current_price: Optional[float] = None,
    support: Optional[float] = None,
    resistance: Optional[float] = None,
) -> float:
    """RSI zone, trend/MACD agreement and position inside the support band"""
    score = 50.0

    if rsi is not None:
        if rsi < 30:
            score += 10
        elif rsi > 70:
            score -= 10
        else:
            score += 5

    trend = (trend or "").lower()
    macd = (macd_signal or "").lower()
    if trend in ("up", "uptrend", "bullish") and "bullish" in macd:
        score += 20
    elif trend in ("down", "downtrend", "bearish") and "bearish" in macd:
        score += 15

    if current_price and support is not None and resistance is not None and resistance > support:
        position = (current_price - support) / (resistance - support)
        if 0.3 < position < 0.7:
            score += 10

    return _clamp(score / 100)


def fundamental_strength(
    pe: Optional[float] = None,
    sector_pe: Optional[float] = None,
    revenue_growth: Optional[float] = None,
    eps_growth: Optional[float] = None,
    roe: Optional[float] = None,
    operating_margin: Optional[float] = None,
) -> float:
    """Valuation, growth and profitability; neutral when nothing is known"""
    score = 50.0

    if pe is not None and sector_pe:
        if pe < sector_pe * 0.8:
            score += 15
        elif pe > sector_pe * 1.2:
            score -= 10

    if revenue_growth is not None and revenue_growth > 0.15:
        score += 10
    if eps_growth is not None and eps_growth > 0.20:
        score += 15
    if roe is not None and roe > 0.15:
        score += 10
    if operating_margin is not None and operating_margin > 0.20:
        score += 10

    return _clamp(score / 100)


def market_conditions_score(
    sentiment: Optional[str] = None,
    volume_ratio: Optional[float] = None,
    volatility: Optional[float] = None,
) -> float:
    score = 50.0

    if sentiment == "bullish":
        score += 15
    elif sentiment == "bearish":
        score -= 15

    if volume_ratio is not None:
        if volume_ratio > 1.2:
            score += 10
        elif volume_ratio < 0.8:
            score -= 5

    if volatility is not None:
        if volatility < 0.15:
            score += 10
        elif volatility > 0.30:
            score -= 10

    return _clamp(score / 100)


def news_sentiment_score(news: Sequence[NewsItem]) -> float:
    """Average headline sentiment; more coverage nudges it up"""
    if not news:
        return NEUTRAL

    values = {Sentiment.POSITIVE: 0.7, Sentiment.NEGATIVE: 0.3, Sentiment.NEUTRAL: 0.5}
    average = sum(values[item.sentiment] for item in news) / len(news)
    if len(news) > 5:
        average *= 1.1
    return _clamp(average)


# ==================== Scorer ====================

class ConfidenceScorer:
    """Weighted confidence formula plus trade-setup sizing"""

    def __init__(self, weights: Optional[ConfidenceWeights] = None):
        self.weights = weights or ConfidenceWeights()
        if self.weights.total <= 0:
            raise ValueError("confidence weights must sum to a positive number")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConfidenceScorer":
        technical, fundamental, market, news = settings.confidence_weights
        return cls(ConfidenceWeights(technical, fundamental, market, news))

    def score(
        self,
        technical: Optional[float] = None,
        fundamental: Optional[float] = None,
        market_conditions: Optional[float] = None,
        news_sentiment: Optional[float] = None,
    ) -> float:
        """
        Weighted sum of sub-scores, each in [0, 1]

        Missing inputs count as neutral (0.5), so the result is always
        defined and lies in [0, 1].
        """
        parts = (
            (technical, self.weights.technical),
            (fundamental, self.weights.fundamental),
            (market_conditions, self.weights.market),
            (news_sentiment, self.weights.news),
        )
        total = sum(
            _clamp(NEUTRAL if value is None else value) * weight
            for value, weight in parts
        )
        return _clamp(total / self.weights.total)

    def score_factors(self, factors: ConfidenceFactors) -> float:
        return self.score(
            factors.technical_alignment,
            factors.fundamental_strength,
            factors.market_conditions,
            factors.news_sentiment,
        )

    def confidence_factors(
        self,
        technicals: Optional[TechnicalIndicators] = None,
        quote: Optional[MarketDataPoint] = None,
        news: Sequence[NewsItem] = (),
        trend: Optional[str] = None,
    ) -> ConfidenceFactors:
        """Sub-scores from whatever the pipeline fetched"""
        if technicals is not None:
            technical = technical_alignment(
                rsi=technicals.rsi,
                trend=trend,
                macd_signal=technicals.macd_signal,
                current_price=quote.price if quote else None,
                support=technicals.support,
                resistance=technicals.resistance,
            )
        else:
            technical = NEUTRAL

        if quote is not None:
            sentiment = None
            if quote.change_percent > 2:
                sentiment = "bullish"
            elif quote.change_percent < -2:
                sentiment = "bearish"
            market = market_conditions_score(
                sentiment=sentiment,
                volatility=abs(quote.change_percent) / 100,
            )
        else:
            market = NEUTRAL

        return ConfidenceFactors(
            technical_alignment=technical,
            fundamental_strength=fundamental_strength(),
            market_conditions=market,
            news_sentiment=news_sentiment_score(news),
        )

    def trade_setup(
        self,
        symbol: str,
        current_price: float,
        confidence: float,
        portfolio_size: float,
        volatility: Optional[float] = None,
        trend: Optional[str] = None,
        timeframe: Optional[str] = None,
    ) -> TradeSetup:
        """
        Entry, stop-loss, three targets and Kelly-based position size

        Args:
            current_price: last price, must be positive
            confidence: win probability as a fraction (or percent above 1)
            portfolio_size: capital the position is sized against
            volatility: stop distance as a fraction of entry (default 2%)
            trend: bullish/uptrend nudges entry up, bearish/downtrend down
        """
        if current_price <= 0:
            raise ValueError("current_price must be positive")

        trend = (trend or "").lower()
        if trend in ("bullish", "uptrend", "up"):
            entry = current_price * 1.001
        elif trend in ("bearish", "downtrend", "down"):
            entry = current_price * 0.999
        else:
            entry = current_price

        stop_fraction = _clamp(
            volatility if volatility else DEFAULT_STOP_FRACTION, 0.005, 0.5
        )
        stop_loss = entry * (1 - stop_fraction)
        risk = entry - stop_loss

        targets = tuple(
            TradeTarget(
                price=entry + risk * multiple,
                exit_percentage=share,
                risk_reward=multiple,
                probability=probability,
            )
            for multiple, share, probability in TARGET_LADDER
        )
        reward = targets[0].price - entry
        risk_reward = reward / risk

        win_probability = _clamp(confidence / 100 if confidence > 1 else confidence)
        kelly = _clamp((win_probability * risk_reward - (1 - win_probability)) / risk_reward, 0.0, KELLY_CAP)

        portfolio = max(0.0, portfolio_size)
        position_size = portfolio * min(kelly * 0.25, MAX_POSITION_FRACTION)
        portfolio_percentage = (position_size / portfolio * 100) if portfolio else 0.0

        return TradeSetup(
            symbol=symbol,
            current_price=current_price,
            entry=entry,
            stop_loss=stop_loss,
            targets=targets,
            risk_reward_ratio=risk_reward,
            position_size=position_size,
            portfolio_percentage=portfolio_percentage,
            max_loss=position_size * (risk / entry),
            expected_return=position_size * (reward / entry) * win_probability,
            win_probability=win_probability,
            kelly_percentage=kelly,
            timeframe=timeframe,
        )
