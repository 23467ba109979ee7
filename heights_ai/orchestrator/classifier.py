"""
Query classifier - rule-based intent and asset extraction

Rules:
1. Lexicon first: known symbols and name aliases beat guessed tickers
2. Deterministic: identical input gives an identical result
3. Total: every string yields a usable classification, never an error
4. Context aware: a follow-up without a symbol inherits the last one
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from heights_ai.domain.models import (
    CLASSIFIER_BASELINE_CONFIDENCE,
    AssetType,
    ChatContext,
    ClassifiedQuery,
    MatchKind,
    QueryIntent,
)
from heights_ai.infrastructure.errors import ValidationError


logger = logging.getLogger(__name__)


class QueryClassifier:
    """
    Query classifier

    Responsibilities:
    1. Detect the intent from keyword sets
    2. Resolve the asset symbol and asset type
    3. Extract timeframe and extra parameters
    4. Score how confident the classification is
    """

    BASELINE_CONFIDENCE = CLASSIFIER_BASELINE_CONFIDENCE
    INTENT_BONUS = 0.2
    ASSET_TYPE_BONUS = 0.1
    SYMBOL_BONUS = {
        MatchKind.EXACT: 0.35,
        MatchKind.ALIAS: 0.25,
        MatchKind.CONTEXT: 0.15,
        MatchKind.PATTERN: 0.1,
        MatchKind.NONE: 0.0,
    }

    # Ordered: ties go to the earlier intent
    INTENT_PATTERNS = {
        QueryIntent.PRICE: [
            re.compile(r"\b(price|cost|rate|trading at|current|now|today)\b", re.I),
            re.compile(r"(how much|what's|what is|current price)", re.I),
            re.compile(r"\$\d[\d,]*"),
        ],
        QueryIntent.EXPLANATION: [
            re.compile(r"\b(what is|tell me about|explain|description|about)\b", re.I),
            re.compile(r"\b(history|background|company|founded|overview)\b", re.I),
            re.compile(r"\b(how does|how it works|what does)\b", re.I),
        ],
        QueryIntent.PREDICTION: [
            re.compile(r"\b(future|predict|prediction|forecast|will|going to|expect)\b", re.I),
            re.compile(r"\b(tomorrow|next week|next month|next year|20\d{2})\b", re.I),
            re.compile(r"\b(bull|bear|bullish|bearish|trend)\b", re.I),
        ],
        QueryIntent.NEWS: [
            re.compile(r"\b(news|latest|recent|update|headlines?)\b", re.I),
            re.compile(r"\b(happened|event|announcement|earnings)\b", re.I),
        ],
        QueryIntent.ANALYSIS: [
            re.compile(r"\b(analy[sz]e|analysis|technical|fundamental)\b", re.I),
            re.compile(r"\b(should i buy|should i sell|good investment|recommend)\b", re.I),
            re.compile(r"\b(pros|cons|risk|risky|safe)\b", re.I),
        ],
        QueryIntent.COMPARISON: [
            re.compile(r"\b(vs\.?|versus|compare|comparison|better|difference)\b", re.I),
            re.compile(r"\b(between|which)\b", re.I),
        ],
    }

    ASSET_PATTERNS = {
        AssetType.CRYPTO: [
            re.compile(r"\b(bitcoin|btc|ethereum|eth|crypto|cryptocurrency|coin|token)\b", re.I),
            re.compile(r"\b(solana|sol|matic|doge|dogecoin|ada|cardano|xrp|ripple)\b", re.I),
            re.compile(r"\b(defi|nft|blockchain|altcoin)\b", re.I),
        ],
        AssetType.STOCK: [
            re.compile(r"\b(stock|stocks|share|shares|equity|company|corporation)\b", re.I),
            re.compile(r"\b(apple|google|microsoft|tesla|amazon|meta|nvidia|netflix)\b", re.I),
            re.compile(r"\b(reliance|tcs|infosys|hdfc|icici|wipro)\b", re.I),
            re.compile(r"(\bnasdaq\b|\bdow\b|s&p|\bnifty\b|\bsensex\b)", re.I),
        ],
        AssetType.FOREX: [
            re.compile(r"\b(forex|fx|currency|currencies|exchange rate)\b", re.I),
            re.compile(r"\b(dollar|euro|yen|pound|sterling|rupee)\b", re.I),
        ],
        AssetType.COMMODITY: [
            re.compile(r"\b(gold|silver|oil|copper|crude|commodity|commodities)\b", re.I),
            re.compile(r"\b(wheat|corn|sugar|coffee|natural gas)\b", re.I),
        ],
    }

    KNOWN_SYMBOLS: Dict[str, AssetType] = {
        # crypto
        "BTC": AssetType.CRYPTO, "ETH": AssetType.CRYPTO, "SOL": AssetType.CRYPTO,
        "MATIC": AssetType.CRYPTO, "DOGE": AssetType.CRYPTO, "ADA": AssetType.CRYPTO,
        "XRP": AssetType.CRYPTO, "DOT": AssetType.CRYPTO, "LINK": AssetType.CRYPTO,
        "AVAX": AssetType.CRYPTO, "BNB": AssetType.CRYPTO,
        # US stocks / ETFs
        "AAPL": AssetType.STOCK, "TSLA": AssetType.STOCK, "GOOGL": AssetType.STOCK,
        "MSFT": AssetType.STOCK, "AMZN": AssetType.STOCK, "META": AssetType.STOCK,
        "NVDA": AssetType.STOCK, "NFLX": AssetType.STOCK, "AMD": AssetType.STOCK,
        "INTC": AssetType.STOCK, "SPY": AssetType.STOCK, "QQQ": AssetType.STOCK,
        # Indian stocks
        "RELIANCE.NS": AssetType.STOCK, "TCS.NS": AssetType.STOCK, "INFY.NS": AssetType.STOCK,
        "HDFCBANK.NS": AssetType.STOCK, "ICICIBANK.NS": AssetType.STOCK, "WIPRO.NS": AssetType.STOCK,
        # commodities
        "GC=F": AssetType.COMMODITY, "SI=F": AssetType.COMMODITY,
        "CL=F": AssetType.COMMODITY, "NG=F": AssetType.COMMODITY,
        # indices
        "^NSEI": AssetType.STOCK, "^BSESN": AssetType.STOCK, "^DJI": AssetType.STOCK,
        "^IXIC": AssetType.STOCK, "^GSPC": AssetType.STOCK,
    }

    # Lower-case tickers that are safe to accept without capitals
    LOWERCASE_SAFE = {"btc", "eth", "aapl", "tsla", "nvda", "msft", "googl", "amzn", "doge", "xrp"}

    SYMBOL_ALIASES = {
        # crypto
        "bitcoin": "BTC", "ethereum": "ETH", "ether": "ETH", "solana": "SOL",
        "polygon": "MATIC", "dogecoin": "DOGE", "cardano": "ADA", "ripple": "XRP",
        # US stocks
        "apple": "AAPL", "tesla": "TSLA", "google": "GOOGL", "alphabet": "GOOGL",
        "microsoft": "MSFT", "amazon": "AMZN", "meta": "META", "facebook": "META",
        "nvidia": "NVDA", "netflix": "NFLX",
        # Indian stocks
        "reliance": "RELIANCE.NS", "tcs": "TCS.NS", "infosys": "INFY.NS",
        "hdfc": "HDFCBANK.NS", "icici": "ICICIBANK.NS", "wipro": "WIPRO.NS",
        # commodities
        "gold": "GC=F", "silver": "SI=F", "crude oil": "CL=F", "crude": "CL=F",
        "oil": "CL=F", "natural gas": "NG=F",
        # indices
        "nifty": "^NSEI", "sensex": "^BSESN", "dow jones": "^DJI", "dow": "^DJI",
        "nasdaq": "^IXIC", "s&p 500": "^GSPC", "s&p": "^GSPC",
        # forex
        "euro": "EURUSD=X", "pound": "GBPUSD=X", "sterling": "GBPUSD=X", "yen": "JPY=X",
    }

    CURRENCIES = {"USD", "EUR", "GBP", "JPY", "CHF", "AUD", "CAD", "INR", "CNY", "NZD"}
    FOREX_PAIR_PATTERN = re.compile(r"\b([A-Za-z]{3})\s?/\s?([A-Za-z]{3})\b")
    TOKEN_PATTERN = re.compile(r"(\$)?\b([A-Za-z][A-Za-z0-9]{0,9}(?:\.[A-Za-z]{1,2})?)\b")

    STOPWORDS = {
        "A", "I", "AN", "THE", "AND", "OR", "FOR", "ARE", "BUT", "NOT", "YOU",
        "ALL", "CAN", "HER", "WAS", "ONE", "OUR", "HAD", "HIS", "HAS", "HOW",
        "WHAT", "WHY", "WHO", "WHEN", "IS", "IT", "ME", "MY", "US", "USA", "UK",
        "CEO", "CFO", "IPO", "ETF", "AI", "GDP", "CPI", "FED", "RSI", "MACD",
        "EPS", "PE", "ATH", "USD", "EUR", "OK", "VS", "NOW", "NEW", "TOP",
        "BUY", "SELL", "HOLD", "TODAY", "IN", "ON", "OF", "TO", "AT", "BY",
    }

    # Ordered: first match wins
    TIMEFRAMES: List[Tuple[str, str]] = [
        (r"this week", "1w"),
        (r"next week", "1w"),
        (r"this month", "1m"),
        (r"next month", "1m"),
        (r"this year", "1y"),
        (r"next year", "1y"),
        (r"short[- ]term", "1m"),
        (r"long[- ]term", "1y"),
        (r"today", "1d"),
        (r"intraday", "1d"),
        (r"daily", "1d"),
        (r"weekly", "1w"),
        (r"monthly", "1m"),
        (r"yearly", "1y"),
        (r"20\d{2}", "1y"),
    ]

    CONTEXT_LOOKBACK = 4

    def classify(self, query: str, context: Optional[ChatContext] = None) -> ClassifiedQuery:
        """
        Classify a raw query

        Args:
            query: free-text user question
            context: recent conversation, read only

        Returns:
            ClassifiedQuery: immutable classification

        Raises:
            ValidationError: query is not a string
        """
        if not isinstance(query, str):
            raise ValidationError("query must be a string", field="query")

        text = query.strip()
        intent, intent_matched = self._detect_intent(text)
        symbol, symbol_type, match_kind = self._resolve_symbol(text)

        if symbol is None and context is not None:
            symbol = self._symbol_from_context(context)
            if symbol is not None:
                match_kind = MatchKind.CONTEXT
                symbol_type = self._type_of(symbol)

        keyword_type = self._detect_asset_type(text)
        asset_type = symbol_type or keyword_type or AssetType.STOCK

        confidence = self.BASELINE_CONFIDENCE
        if intent_matched:
            confidence += self.INTENT_BONUS
        if symbol_type is not None or keyword_type is not None:
            confidence += self.ASSET_TYPE_BONUS
        confidence += self.SYMBOL_BONUS[match_kind]
        confidence = min(confidence, 1.0)

        classified = ClassifiedQuery(
            intent=intent,
            asset_type=asset_type,
            asset_symbol=symbol,
            confidence=confidence,
            timeframe=self._extract_timeframe(text),
            parameters=self._extract_parameters(text, intent),
            match_kind=match_kind,
        )

        if classified.is_ambiguous:
            logger.warning(f"Ambiguous query, falling back to defaults: {text[:80]!r}")
        else:
            logger.debug(
                f"Classified as {intent.value}/{asset_type.value} "
                f"symbol={symbol} confidence={confidence:.2f}"
            )
        return classified

    # ==================== Intent / asset type ====================

    def _detect_intent(self, text: str) -> Tuple[QueryIntent, bool]:
        best_intent, best_score = QueryIntent.EXPLANATION, 0
        for intent, patterns in self.INTENT_PATTERNS.items():
            score = sum(1 for pattern in patterns if pattern.search(text))
            if score > best_score:
                best_intent, best_score = intent, score
        return best_intent, best_score > 0

    def _detect_asset_type(self, text: str) -> Optional[AssetType]:
        best_type, best_score = None, 0
        for asset_type, patterns in self.ASSET_PATTERNS.items():
            score = sum(1 for pattern in patterns if pattern.search(text))
            if score > best_score:
                best_type, best_score = asset_type, score
        return best_type

    # ==================== Symbol ====================

    def _resolve_symbol(self, text: str) -> Tuple[Optional[str], Optional[AssetType], MatchKind]:
        """(symbol, known asset type, how it matched)"""
        pair = self._forex_pair(text)
        if pair:
            return pair, AssetType.FOREX, MatchKind.EXACT

        tokens = list(self.TOKEN_PATTERN.finditer(text))

        for match in tokens:
            dollar, token = match.group(1), match.group(2)
            upper = token.upper()
            if upper not in self.KNOWN_SYMBOLS:
                continue
            if dollar or token == upper or token.lower() in self.LOWERCASE_SAFE:
                return upper, self.KNOWN_SYMBOLS[upper], MatchKind.EXACT

        alias = self._alias_symbol(text)
        if alias:
            return alias, self._type_of(alias), MatchKind.ALIAS

        for match in tokens:
            dollar, token = match.group(1), match.group(2)
            base = token.split(".")[0]
            if not dollar and token != token.upper():
                continue
            if not 1 <= len(base) <= 5 or not base.isalpha():
                continue
            if token.upper() in self.STOPWORDS:
                continue
            return token.upper(), None, MatchKind.PATTERN

        return None, None, MatchKind.NONE

    def _forex_pair(self, text: str) -> Optional[str]:
        for match in self.FOREX_PAIR_PATTERN.finditer(text):
            base, quote = match.group(1).upper(), match.group(2).upper()
            if base in self.CURRENCIES and quote in self.CURRENCIES and base != quote:
                return f"{base}{quote}=X"
        return None

    def _alias_symbol(self, text: str) -> Optional[str]:
        lowered = text.lower()
        # longest alias first so "crude oil" wins over "oil"
        for alias in sorted(self.SYMBOL_ALIASES, key=len, reverse=True):
            if re.search(rf"(?<![\w]){re.escape(alias)}(?![\w])", lowered):
                return self.SYMBOL_ALIASES[alias]
        return None

    def _type_of(self, symbol: str) -> Optional[AssetType]:
        if symbol.endswith("=X"):
            return AssetType.FOREX
        return self.KNOWN_SYMBOLS.get(symbol)

    def _symbol_from_context(self, context: ChatContext) -> Optional[str]:
        history = list(context.message_history)[-self.CONTEXT_LOOKBACK:]
        for message in reversed(history):
            metadata = message.metadata or {}
            symbol = metadata.get("asset_symbol")
            if not symbol:
                classification = metadata.get("classification")
                if isinstance(classification, dict):
                    symbol = classification.get("asset_symbol")
                elif isinstance(classification, ClassifiedQuery):
                    symbol = classification.asset_symbol
            if symbol:
                return str(symbol).upper()

            found, _, kind = self._resolve_symbol(message.content or "")
            if found and kind in (MatchKind.EXACT, MatchKind.ALIAS):
                return found
        return None

    # ==================== Timeframe / parameters ====================

    def _extract_timeframe(self, text: str) -> Optional[str]:
        for phrase, timeframe in self.TIMEFRAMES:
            if re.search(rf"\b{phrase}\b", text, re.I):
                return timeframe
        return None

    def _extract_parameters(self, text: str, intent: QueryIntent) -> Dict[str, Any]:
        params: Dict[str, Any] = {}

        price = re.search(r"\$\s?(\d[\d,]*(?:\.\d+)?)", text)
        if price:
            params["target_price"] = float(price.group(1).replace(",", ""))

        connector = r"vs\.?|versus|compared to"
        if intent == QueryIntent.COMPARISON:
            connector += r"|or|and|with"
        versus = re.search(rf"\b([\w$.&^=-]+)\s+(?:{connector})\s+([\w$.&^=-]+)", text, re.I)
        if versus:
            params["comparison"] = {"asset1": versus.group(1), "asset2": versus.group(2)}

        if re.search(r"\b(buy|purchase|invest)\b", text, re.I):
            params["action"] = "buy"
        elif re.search(r"\b(sell|exit|liquidate)\b", text, re.I):
            params["action"] = "sell"

        if re.search(r"\b(safe|conservative|low risk)\b", text, re.I):
            params["risk_tolerance"] = "low"
        elif re.search(r"\b(aggressive|high risk|risky)\b", text, re.I):
            params["risk_tolerance"] = "high"

        return params
