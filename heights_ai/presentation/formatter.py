"""
Response formatter - deterministic text and follow-up suggestions

Turns fetched data into readable answer text without any model call, so a
data or news answer always carries the real figures.
"""

import time
import uuid
from datetime import datetime, timedelta
from typing import List, Sequence, Tuple

from heights_ai.domain.models import (
    ClassifiedQuery,
    DataFreshness,
    MarketDataPoint,
    NewsItem,
    QueryIntent,
    ResponseType,
)


REAL_TIME_WINDOW = timedelta(minutes=5)
RECENT_WINDOW = timedelta(hours=1)
MAX_DIGEST_ITEMS = 5

FALLBACK_NOTICE = (
    "Real-time market data and news are currently unavailable, so this answer "
    "is based on general knowledge and may not reflect current prices."
)

FALLBACK_SUGGESTIONS = (
    "Check real-time market data",
    "Look up recent news",
    "Consult financial advisors",
    "Use multiple data sources",
)

RETRY_SUGGESTIONS = (
    "Try rephrasing your question",
    "Check your internet connection",
    "Contact support if the issue persists",
)

NEWS_SUGGESTIONS = (
    "Read full articles",
    "Set up news alerts",
    "Check market impact analysis",
    "View related stocks",
)

_INTENT_TYPES = {
    QueryIntent.ANALYSIS: ResponseType.ANALYSIS,
    QueryIntent.COMPARISON: ResponseType.COMPARISON,
    QueryIntent.NEWS: ResponseType.NEWS,
    QueryIntent.PRICE: ResponseType.DATA,
    QueryIntent.PREDICTION: ResponseType.ANALYSIS,
}

_INTENT_SUGGESTIONS = {
    QueryIntent.PRICE: ("Set up price alerts", "View historical performance"),
    QueryIntent.ANALYSIS: ("Get risk assessment", "Check analyst ratings"),
    QueryIntent.NEWS: ("Set up news alerts", "Check market sentiment"),
}


def new_response_id() -> str:
    return f"ai_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def intent_to_response_type(intent: QueryIntent) -> ResponseType:
    return _INTENT_TYPES.get(intent, ResponseType.TEXT)


def _now_like(moment: datetime) -> datetime:
    # compare aware timestamps against an aware "now"
    return datetime.now(moment.tzinfo) if moment.tzinfo else datetime.now()


def assess_data_freshness(
    market_data: Sequence[MarketDataPoint],
    news: Sequence[NewsItem],
) -> DataFreshness:
    """
    Freshness of the data behind an answer

    Returns:
        DataFreshness: real-time if any quote is under 5 minutes old,
        recent if any news item is under an hour old, else historical
    """
    if any(_now_like(p.timestamp) - p.timestamp < REAL_TIME_WINDOW for p in market_data):
        return DataFreshness.REAL_TIME
    if any(_now_like(n.published_at) - n.published_at < RECENT_WINDOW for n in news):
        return DataFreshness.RECENT
    return DataFreshness.HISTORICAL


# ==================== Text ====================

def format_price(value: float) -> str:
    if abs(value) >= 1:
        return f"${value:,.2f}"
    return f"${value:,.6f}"


def format_large_number(value: float) -> str:
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if abs(value) >= threshold:
            return f"{value / threshold:.2f}{suffix}"
    return f"{value:,.0f}"


def format_market_snapshot(market_data: Sequence[MarketDataPoint]) -> str:
    """Markdown snapshot of every fetched quote, primary source first"""
    if not market_data:
        return ""

    primary = market_data[0]
    arrow = "▲" if primary.change_percent >= 0 else "▼"
    lines = [
        f"## {primary.symbol} Market Snapshot",
        "",
        f"**{primary.symbol}** is trading at **{format_price(primary.price)}** "
        f"{arrow} {primary.change_percent:+.2f}% ({primary.change:+,.2f})",
        "",
        f"- 24h range: {format_price(primary.low_24h)} - {format_price(primary.high_24h)}",
    ]
    if primary.volume:
        lines.append(f"- Volume: {format_large_number(primary.volume)}")
    if primary.market_cap:
        lines.append(f"- Market cap: {format_large_number(primary.market_cap)}")

    if len(market_data) > 1:
        lines += ["", "| Source | Price | Change |", "|--------|-------|--------|"]
        for point in market_data:
            lines.append(
                f"| {point.source.value} | {format_price(point.price)} | {point.change_percent:+.2f}% |"
            )

    lines += [
        "",
        "---",
        f"*Source: {primary.source.value} | Updated: {primary.timestamp.strftime('%Y-%m-%d %H:%M')}*",
    ]
    return "\n".join(lines)


def format_news_digest(news: Sequence[NewsItem], symbol: str = "") -> str:
    if not news:
        return ""

    heading = f"## Latest {symbol} News" if symbol else "## Latest News"
    lines = [heading, ""]
    for i, item in enumerate(news[:MAX_DIGEST_ITEMS], 1):
        lines.append(
            f"**{i}. [{item.published_at.strftime('%Y-%m-%d')}] {item.title}** "
            f"({item.sentiment.value}, {item.impact.value} impact)"
        )
        if item.summary:
            summary = item.summary if len(item.summary) <= 200 else item.summary[:200] + "..."
            lines.append(f"   > {summary}")
        if item.url:
            lines.append(f"   [{item.source}]({item.url})")
        lines.append("")

    lines += ["---", f"*{len(news)} articles*"]
    return "\n".join(lines)


def with_interpretation(base: str, interpretation: str) -> str:
    if not interpretation or not interpretation.strip():
        return base
    return f"{base}\n\n### Interpretation\n\n{interpretation.strip()}"


# ==================== Suggestions ====================

def build_suggestions(classified: ClassifiedQuery) -> Tuple[str, ...]:
    """Follow-up actions for a reasoning answer"""
    suggestions: List[str] = []
    symbol = classified.asset_symbol
    if symbol:
        suggestions += [
            f"Get technical analysis for {symbol}",
            f"Compare {symbol} with similar assets",
            f"Check {symbol} news and events",
        ]
    suggestions += _INTENT_SUGGESTIONS.get(classified.intent, ())
    return tuple(suggestions)


def build_data_suggestions(market_data: Sequence[MarketDataPoint]) -> Tuple[str, ...]:
    suggestions = ["View detailed chart", "Set price alerts"]
    if len(market_data) > 1:
        suggestions.append("Compare data sources")
    return tuple(suggestions)


def build_news_suggestions() -> Tuple[str, ...]:
    return NEWS_SUGGESTIONS


def build_error_content(message: str) -> str:
    return (
        "I apologize, but I encountered an error while processing your query: "
        f"{message}. Please try again or rephrase your question."
    )
