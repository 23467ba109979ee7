"""
Fact extraction - best-effort structured parser over model prose

Every extractor is total: when a pattern does not match it returns a
documented default instead of None, so callers always get a number
where a number is expected. Misses are not errors.
"""

import re
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from heights_ai.domain.models import (
    AnalysisResult,
    Impact,
    MarketDataPoint,
    PriceTargets,
    ProviderId,
    Recommendation,
    RiskLevel,
    Sentiment,
    TechnicalIndicators,
)


# ==================== News heuristics ====================

POSITIVE_WORDS = (
    "gain", "rise", "rising", "bull", "positive", "growth", "surge",
    "rally", "breakthrough", "record", "beat", "upgrade", "soar",
)
NEGATIVE_WORDS = (
    "fall", "drop", "bear", "negative", "decline", "crash", "plunge",
    "concern", "risk", "miss", "downgrade", "slump", "lawsuit",
)
HIGH_IMPACT_WORDS = (
    "breaking", "major", "significant", "crash", "surge", "announcement",
)


def _count_stems(text: str, words: Sequence[str]) -> int:
    return sum(1 for word in words if re.search(rf"\b{re.escape(word)}", text))


def classify_sentiment(text: str) -> Sentiment:
    """Keyword vote over a headline or summary"""
    lowered = (text or "").lower()
    positive = _count_stems(lowered, POSITIVE_WORDS)
    negative = _count_stems(lowered, NEGATIVE_WORDS)
    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def sentiment_from_score(score: Optional[float]) -> Sentiment:
    """Map a vendor sentiment score in [-1, 1]"""
    if score is None:
        return Sentiment.NEUTRAL
    if score > 0.1:
        return Sentiment.POSITIVE
    if score < -0.1:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def assess_impact(text: str) -> Impact:
    lowered = (text or "").lower()
    if _count_stems(lowered, HIGH_IMPACT_WORDS):
        return Impact.HIGH
    if len(text or "") > 100:
        return Impact.MEDIUM
    return Impact.LOW


# ==================== Numeric helpers ====================

_MULTIPLIERS = {
    "K": 1_000,
    "M": 1_000_000,
    "B": 1_000_000_000,
    "T": 1_000_000_000_000,
}


def _to_float(raw: str) -> float:
    return float(raw.replace(",", "").replace("$", "").strip())


class FactExtractor:
    """Pattern rules for prices, percentages and labelled fields"""

    CURRENCY_PATTERN = re.compile(r"\$\s?(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)")
    PERCENT_PATTERN = re.compile(r"([+-]?\d+(?:\.\d+)?)\s?%")
    RSI_PATTERN = re.compile(r"\bRSI\b[^\d\n]{0,20}?(\d{1,3}(?:\.\d+)?)", re.IGNORECASE)
    SUPPORT_PATTERN = re.compile(r"support(?:\s+level)?[:\s]*(?:at|near|around)?\s*\$?\s?(\d[\d,]*(?:\.\d+)?)", re.IGNORECASE)
    RESISTANCE_PATTERN = re.compile(r"resistance(?:\s+level)?[:\s]*(?:at|near|around)?\s*\$?\s?(\d[\d,]*(?:\.\d+)?)", re.IGNORECASE)
    VOLUME_PATTERN = re.compile(r"volume[:\s]*(?:of\s*)?\$?(\d[\d,]*(?:\.\d+)?)\s*([KMB])?\b", re.IGNORECASE)
    MARKET_CAP_PATTERN = re.compile(r"market\s*cap(?:italization)?[:\s]*(?:of\s*)?\$?(\d[\d,]*(?:\.\d+)?)\s*([KMBT])", re.IGNORECASE)
    CONFIDENCE_PATTERNS = (
        re.compile(r"confidence(?:\s+level)?[:\s]*(?:of\s*)?(\d+(?:\.\d+)?)\s?%", re.IGNORECASE),
        re.compile(r"(\d+(?:\.\d+)?)\s?%?\s*confiden(?:t|ce)", re.IGNORECASE),
    )
    TARGET_PATTERN = r"{term}[- ]?term[^$\n]*?\$\s?(\d[\d,]*(?:\.\d+)?)"
    BULLET_PATTERN = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.*)$")

    DEFAULT_RISKS = ("Market volatility", "Economic uncertainty", "Company-specific risks")
    DEFAULT_OPPORTUNITIES = ("Growth potential", "Market expansion", "Technology advancement")

    # ---------- numbers ----------

    def extract_prices(self, text: str) -> List[float]:
        """All currency-prefixed amounts, in order of appearance"""
        prices = []
        for match in self.CURRENCY_PATTERN.finditer(text or ""):
            value = _to_float(match.group(1))
            if value > 0:
                prices.append(value)
        return prices

    def extract_price(self, text: str, default: float = 0.0) -> float:
        prices = self.extract_prices(text)
        return prices[0] if prices else default

    def extract_percentage_change(self, text: str, default: float = 0.0) -> float:
        match = self.PERCENT_PATTERN.search(text or "")
        return float(match.group(1)) if match else default

    def extract_rsi(self, text: str, default: float = 50.0) -> float:
        match = self.RSI_PATTERN.search(text or "")
        if not match:
            return default
        value = float(match.group(1))
        return value if 0 <= value <= 100 else default

    def extract_support_resistance(self, text: str, price: float) -> Tuple[float, float]:
        """(support, resistance); defaults are price -5% / +5%"""
        support_match = self.SUPPORT_PATTERN.search(text or "")
        resistance_match = self.RESISTANCE_PATTERN.search(text or "")
        support = _to_float(support_match.group(1)) if support_match else price * 0.95
        resistance = _to_float(resistance_match.group(1)) if resistance_match else price * 1.05
        return support, resistance

    def extract_volume(self, text: str) -> float:
        match = self.VOLUME_PATTERN.search(text or "")
        if not match:
            return 0.0
        value = _to_float(match.group(1))
        unit = (match.group(2) or "").upper()
        return value * _MULTIPLIERS.get(unit, 1)

    def extract_market_cap(self, text: str) -> float:
        match = self.MARKET_CAP_PATTERN.search(text or "")
        if not match:
            return 0.0
        return _to_float(match.group(1)) * _MULTIPLIERS[match.group(2).upper()]

    # ---------- recommendation / confidence ----------

    def extract_recommendation(self, text: str) -> Recommendation:
        lowered = (text or "").lower()
        if "strong buy" in lowered or "strongly recommend buying" in lowered:
            return Recommendation.STRONG_BUY
        if "strong sell" in lowered or "strongly recommend selling" in lowered:
            return Recommendation.STRONG_SELL
        if re.search(r"\bsell\b", lowered):
            return Recommendation.SELL
        if re.search(r"\b(buy|accumulate)\b", lowered):
            return Recommendation.BUY
        return Recommendation.HOLD

    def extract_confidence(self, text: str) -> float:
        """Stated confidence as a fraction, else a default by recommendation strength"""
        for pattern in self.CONFIDENCE_PATTERNS:
            match = pattern.search(text or "")
            if match:
                value = float(match.group(1))
                value = value / 100 if value > 1 else value
                return max(0.0, min(1.0, value))

        recommendation = self.extract_recommendation(text)
        if recommendation in (Recommendation.STRONG_BUY, Recommendation.STRONG_SELL):
            return 0.85
        if recommendation in (Recommendation.BUY, Recommendation.SELL):
            return 0.75
        return 0.65

    def extract_reasoning(self, text: str) -> str:
        """First three sentences"""
        sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", (text or "").strip()) if s.strip()]
        if not sentences:
            return ""
        return " ".join(sentences[:3])

    # ---------- targets / lists ----------

    def _labeled_target(self, text: str, term: str) -> Optional[float]:
        match = re.search(self.TARGET_PATTERN.format(term=term), text, re.IGNORECASE)
        return _to_float(match.group(1)) if match else None

    def extract_price_targets(
        self,
        text: str,
        current_price: Optional[float] = None
    ) -> Optional[PriceTargets]:
        """
        Short/medium/long price targets

        Labelled "short-term ... $X" phrases win. Otherwise at least two
        currency amounts are sorted into low/mid/high. Otherwise, with a
        current price, +5% / +10% / +15%. None only when nothing is known.
        """
        text = text or ""
        short = self._labeled_target(text, "short")
        medium = self._labeled_target(text, "(?:medium|mid)")
        long = self._labeled_target(text, "long")

        if short is None and medium is None and long is None:
            prices = sorted(self.extract_prices(text))
            if len(prices) >= 2:
                return PriceTargets(
                    short=prices[0],
                    medium=prices[len(prices) // 2],
                    long=prices[-1],
                )
            if current_price:
                return PriceTargets(
                    short=current_price * 1.05,
                    medium=current_price * 1.10,
                    long=current_price * 1.15,
                )
            return None

        base = current_price or short or medium or long
        short = short if short is not None else base * 1.05
        long = long if long is not None else base * 1.15
        medium = medium if medium is not None else (short + long) / 2
        return PriceTargets(short=short, medium=medium, long=long)

    def _section_items(self, text: str, heading: str) -> List[str]:
        heading_re = re.compile(
            rf"^[#*\s\d.]*(?:key\s+|main\s+|potential\s+)?{heading}\**\s*(?::\**\s*(.*))?$",
            re.IGNORECASE,
        )
        lines = (text or "").splitlines()
        for index, line in enumerate(lines):
            match = heading_re.match(line)
            if not match:
                continue

            items = []
            inline = (match.group(1) or "").strip()
            if inline:
                items.extend(part.strip() for part in re.split(r"[;,•]", inline))

            for follow in lines[index + 1:]:
                if not follow.strip():
                    if items:
                        break
                    continue
                bullet = self.BULLET_PATTERN.match(follow)
                if not bullet:
                    break
                items.append(bullet.group(1).strip().strip("*").strip())

            items = [item for item in items if len(item) > 10]
            if items:
                return items[:3]
        return []

    def extract_risks(self, text: str) -> Tuple[str, ...]:
        items = self._section_items(text, r"risks?(?:\s+factors)?")
        return tuple(items) if items else self.DEFAULT_RISKS

    def extract_opportunities(self, text: str) -> Tuple[str, ...]:
        items = self._section_items(text, r"(?:opportunit(?:y|ies)|catalysts?)")
        return tuple(items) if items else self.DEFAULT_OPPORTUNITIES

    def extract_risk_level(self, text: str, volatility: Optional[float] = None) -> RiskLevel:
        lowered = (text or "").lower()
        if re.search(r"\b(high[- ]risk|highly volatile|speculative)\b", lowered):
            return RiskLevel.HIGH
        if re.search(r"\b(low[- ]risk|conservative|stable)\b", lowered):
            return RiskLevel.LOW
        if volatility is not None:
            if volatility > 0.1:
                return RiskLevel.HIGH
            if volatility > 0.05:
                return RiskLevel.MEDIUM
            return RiskLevel.LOW
        return RiskLevel.MEDIUM

    def extract_trend(self, text: str) -> str:
        """uptrend / downtrend / sideways / neutral"""
        lowered = (text or "").lower()
        trend_words = {
            "uptrend": ("uptrend", "bullish trend", "rising", "climbing"),
            "downtrend": ("downtrend", "bearish trend", "falling", "declining"),
            "sideways": ("sideways", "consolidation", "range-bound", "flat"),
        }
        for trend, words in trend_words.items():
            if any(word in lowered for word in words):
                return trend
        return "neutral"

    def extract_macd_signal(self, text: str) -> str:
        lowered = (text or "").lower()
        if "macd" in lowered and "bullish" in lowered:
            return "Bullish crossover"
        if "macd" in lowered and "bearish" in lowered:
            return "Bearish crossover"
        return "Neutral"

    # ---------- composite ----------

    def parse_market_data(
        self,
        text: str,
        symbol: str,
        source: ProviderId
    ) -> MarketDataPoint:
        """Quote from prose; high/low default to price +/-2%"""
        price = self.extract_price(text)
        change_percent = self.extract_percentage_change(text)
        market_cap = self.extract_market_cap(text)
        return MarketDataPoint(
            symbol=symbol,
            price=price,
            change=price * change_percent / 100,
            change_percent=change_percent,
            volume=self.extract_volume(text),
            high_24h=price * 1.02,
            low_24h=price * 0.98,
            market_cap=market_cap or None,
            source=source,
        )

    def calculate_basic_technicals(self, point: MarketDataPoint) -> TechnicalIndicators:
        """Single-snapshot approximation, no history available"""
        change = point.change_percent
        if change > 5:
            rsi = 70.0
        elif change < -5:
            rsi = 30.0
        else:
            rsi = 50.0 + change * 2

        return TechnicalIndicators(
            rsi=max(0.0, min(100.0, rsi)),
            support=point.low_24h or point.price * 0.95,
            resistance=point.high_24h or point.price * 1.05,
            sma_20=point.price * 0.98,
            sma_50=point.price * 0.96,
        )

    def build_analysis(
        self,
        symbol: str,
        text: str,
        market_data: Sequence[MarketDataPoint] = (),
        timeframe: Optional[str] = None
    ) -> AnalysisResult:
        """Structured analysis from a reasoning answer plus any fetched quote"""
        quote = market_data[0] if market_data else None
        current_price = quote.price if quote else self.extract_price(text) or None

        if quote is not None:
            technicals = self.calculate_basic_technicals(quote)
        elif current_price:
            support, resistance = self.extract_support_resistance(text, current_price)
            technicals = TechnicalIndicators(
                rsi=self.extract_rsi(text),
                support=support,
                resistance=resistance,
                macd_signal=self.extract_macd_signal(text),
            )
        else:
            technicals = None

        volatility = abs(quote.change_percent) / 100 if quote else None

        return AnalysisResult(
            symbol=symbol,
            recommendation=self.extract_recommendation(text),
            confidence=self.extract_confidence(text),
            reasoning=self.extract_reasoning(text),
            risks=self.extract_risks(text),
            opportunities=self.extract_opportunities(text),
            timeframe=timeframe or "1-3 months",
            technical_indicators=technicals,
            price_targets=self.extract_price_targets(text, current_price),
            risk_level=self.extract_risk_level(text, volatility),
            last_updated=datetime.now(),
        )
