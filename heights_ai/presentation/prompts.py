"""
Prompt templates - the text sent to reasoning providers

Every prompt is built from already-fetched data; nothing here does I/O.
"""

from typing import List, Optional, Sequence

from heights_ai.domain.models import (
    ChatContext,
    ClassifiedQuery,
    MarketDataPoint,
    NewsItem,
)


MAX_PROMPT_NEWS = 5
CONTEXT_SYMBOL_MESSAGES = 2


SYSTEM_PROMPT = """You are {assistant}, an expert financial assistant for Heights trading platform.

QUERY CLASSIFICATION:
- Intent: {intent}
- Asset Type: {asset_type}
- Asset Symbol: {symbol}
- Confidence: {confidence:.1f}%

AVAILABLE DATA:
- Market Data: {quote_count} sources
- News Data: {news_count} articles

INSTRUCTIONS:
1. Provide accurate, actionable financial insights
2. Use the provided real-time data when available
3. Be specific with numbers, prices, and percentages
4. Include appropriate risk disclaimers
5. Suggest next steps for the user
6. Format responses clearly with sections

TONE: Professional but accessible, confident but cautious about predictions.

DISCLAIMER: Always remind users that this is educational information and not personalized financial advice."""


INTERPRETER_SYSTEM_PROMPT = (
    "You are an expert financial assistant for Heights trading platform. "
    "Interpret the data you are given accurately and concisely. "
    "This is educational information and not personalized financial advice."
)


FALLBACK_PROMPT = """You are a helpful financial assistant. The user asked: "{query}"

Provide a helpful response based on your knowledge, but acknowledge that you don't have access to real-time data.
Offer to help with general information and suggest that the user check current market data from reliable sources.

Be specific about what information you can and cannot provide without real-time data access."""


MARKET_DATA_PROMPT = """Analyze this market data and answer the user's query: "{query}"

MARKET DATA:
{data}

Provide a clear, informative response that:
1. Directly answers the user's question
2. Highlights key data points
3. Compares data from different sources if available
4. Suggests what this data means for investors
5. Includes appropriate disclaimers"""


NEWS_PROMPT = """Analyze this news data and answer the user's query: "{query}"

RECENT NEWS:
{news}

Provide a comprehensive news analysis that:
1. Summarizes the key news themes
2. Identifies sentiment trends
3. Explains potential market impact
4. Highlights the most important developments
5. Suggests how investors should interpret this news"""


def _signed(value: float) -> str:
    return f"{'+' if value >= 0 else ''}{value:.2f}%"


def build_system_prompt(
    classified: ClassifiedQuery,
    market_data: Sequence[MarketDataPoint] = (),
    news: Sequence[NewsItem] = (),
    assistant: str = "Claude",
) -> str:
    return SYSTEM_PROMPT.format(
        assistant=assistant,
        intent=classified.intent.value,
        asset_type=classified.asset_type.value,
        symbol=classified.asset_symbol or "Not specified",
        confidence=classified.confidence * 100,
        quote_count=len(market_data),
        news_count=len(news),
    )


def _context_symbols(context: Optional[ChatContext]) -> List[str]:
    if context is None:
        return []

    symbols = []
    for message in context.message_history[-CONTEXT_SYMBOL_MESSAGES:]:
        metadata = message.metadata or {}
        symbol = metadata.get("asset_symbol")
        classification = metadata.get("classification")
        if not symbol and isinstance(classification, ClassifiedQuery):
            symbol = classification.asset_symbol
        elif not symbol and isinstance(classification, dict):
            symbol = classification.get("asset_symbol")
        if symbol and symbol not in symbols:
            symbols.append(symbol)
    return symbols


def build_grounded_query(
    query: str,
    market_data: Sequence[MarketDataPoint] = (),
    news: Sequence[NewsItem] = (),
    context: Optional[ChatContext] = None,
) -> str:
    """
    User message carrying the query plus every fetched fact

    Args:
        query: raw user query
        market_data: prefetched quotes
        news: prefetched news
        context: recent history, used only for the symbols it mentions

    Returns:
        str: message for the reasoning provider
    """
    parts = [f'User Query: "{query}"\n']

    symbols = _context_symbols(context)
    if symbols:
        parts.append(f"Previous Context: User has been asking about {', '.join(symbols)}\n")

    if market_data:
        lines = ["REAL-TIME MARKET DATA:"]
        for point in market_data:
            lines.append(
                f"{point.symbol}: ${point.price:,.2f} ({_signed(point.change_percent)}) "
                f"- Source: {point.source.value}"
            )
        parts.append("\n".join(lines) + "\n")

    if news:
        lines = ["RECENT NEWS:"]
        for item in news[:MAX_PROMPT_NEWS]:
            lines.append(f"• {item.title} ({item.sentiment.value}) - {item.source}")
        parts.append("\n".join(lines) + "\n")

    parts.append("Please provide a comprehensive response addressing the user's query with the available data.")
    return "\n".join(parts)


def build_search_query(query: str, classified: ClassifiedQuery) -> str:
    """Query phrased for a real-time search reasoner"""
    asset = f" for {classified.asset_symbol}" if classified.asset_symbol else ""
    period = f" for {classified.timeframe}" if classified.timeframe else " recently"
    return (
        f"{query}{asset}{period}. Please provide current market data, recent news, "
        f"and expert analysis. Include specific prices, percentages, and sources."
    )


def build_market_data_prompt(query: str, market_data: Sequence[MarketDataPoint]) -> str:
    data = "\n".join(
        f"{point.symbol}: {point.price:,.2f} ({_signed(point.change_percent)}) - {point.source.value}"
        for point in market_data
    )
    return MARKET_DATA_PROMPT.format(query=query, data=data)


def build_news_prompt(query: str, news: Sequence[NewsItem]) -> str:
    lines = "\n".join(
        f"• {item.title} ({item.sentiment.value}) - {item.source} - "
        f"{item.published_at.strftime('%Y-%m-%d')}"
        for item in news[:MAX_PROMPT_NEWS]
    )
    return NEWS_PROMPT.format(query=query, news=lines)


def build_fallback_prompt(query: str) -> str:
    return FALLBACK_PROMPT.format(query=query)
