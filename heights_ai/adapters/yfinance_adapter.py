"""
YFinance adapter - implements MarketDataPort and NewsPort

Yahoo Finance quotes and headlines for stocks, indices, crypto, forex and
futures. yfinance is blocking, so every call runs in a worker thread.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, List, Optional

import yfinance as yf

from heights_ai.domain.models import MarketDataPoint, NewsItem, ProviderId
from heights_ai.infrastructure.logging import log_async_performance
from heights_ai.ports.interfaces import (
    MarketDataPort,
    NewsPort,
    ProviderEmptyResult,
)
from heights_ai.synthesis.extraction import assess_impact, classify_sentiment


logger = logging.getLogger(__name__)


DEFAULT_CRYPTO_SYMBOLS = frozenset({
    "BTC", "ETH", "SOL", "MATIC", "DOGE", "ADA", "XRP", "DOT", "LINK", "AVAX", "BNB",
})

NEWS_MAX_AGE = timedelta(days=90)


def _parse_published(article: Dict[str, Any]) -> Optional[datetime]:
    # older payloads carry an epoch, newer ones an ISO string under "content"
    epoch = article.get("providerPublishTime")
    if epoch:
        return datetime.fromtimestamp(epoch)

    raw = (article.get("content") or {}).get("pubDate")
    if raw:
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00")).astimezone().replace(tzinfo=None)
        except ValueError:
            return None
    return None


class YFinanceAdapter(MarketDataPort, NewsPort):
    """
    Yahoo Finance data adapter

    Maps yfinance payloads onto MarketDataPoint / NewsItem. Crypto symbols
    are quoted against USD (BTC -> BTC-USD).
    """

    def __init__(self, crypto_symbols: FrozenSet[str] = DEFAULT_CRYPTO_SYMBOLS):
        self.crypto_symbols = crypto_symbols

    @property
    def provider_id(self) -> ProviderId:
        return ProviderId.YFINANCE

    def to_ticker(self, symbol: str) -> str:
        symbol = symbol.upper()
        if symbol in self.crypto_symbols:
            return f"{symbol}-USD"
        return symbol

    def _get_ticker(self, symbol: str) -> yf.Ticker:
        return yf.Ticker(self.to_ticker(symbol))

    # ==================== Quotes ====================

    @log_async_performance()
    async def fetch_market_data(self, symbol: str) -> MarketDataPoint:
        return await asyncio.to_thread(self._quote, symbol)

    def _quote(self, symbol: str) -> MarketDataPoint:
        stock = self._get_ticker(symbol)
        info = stock.info or {}

        current_price = (
            info.get('currentPrice')
            or info.get('regularMarketPrice')
            or info.get('bid')
        )
        high = info.get('dayHigh') or info.get('regularMarketDayHigh')
        low = info.get('dayLow') or info.get('regularMarketDayLow')
        volume = info.get('volume') or info.get('regularMarketVolume') or 0

        if not current_price:
            # fall back to the last daily bar
            hist = stock.history(period="5d")
            if hist.empty:
                raise ProviderEmptyResult(self.provider_id, f"no price data for {symbol}")
            current_price = float(hist['Close'].iloc[-1])
            high = high or float(hist['High'].iloc[-1])
            low = low or float(hist['Low'].iloc[-1])
            volume = volume or float(hist['Volume'].iloc[-1])

        prev_close = info.get('previousClose') or info.get('regularMarketPreviousClose') or current_price
        change = current_price - prev_close
        change_percent = (change / prev_close) * 100 if prev_close else 0.0

        return MarketDataPoint(
            symbol=symbol.upper(),
            price=float(current_price),
            change=round(change, 4),
            change_percent=round(change_percent, 4),
            volume=float(volume),
            high_24h=float(high or current_price),
            low_24h=float(low or current_price),
            market_cap=float(info['marketCap']) if info.get('marketCap') else None,
            source=self.provider_id,
            timestamp=datetime.now(),
        )

    # ==================== News ====================

    @log_async_performance()
    async def fetch_news(self, symbol: str, limit: int = 10) -> List[NewsItem]:
        return await asyncio.to_thread(self._news, symbol, limit)

    def _news(self, symbol: str, limit: int) -> List[NewsItem]:
        articles = self._get_ticker(symbol).news or []
        cutoff = datetime.now() - NEWS_MAX_AGE

        items = []
        for article in articles:
            content = article.get("content") or {}
            title = article.get("title") or content.get("title")
            published = _parse_published(article)
            if not title or published is None or published < cutoff:
                continue

            summary = content.get("summary") or article.get("summary") or ""
            publisher = article.get("publisher") or (content.get("provider") or {}).get("displayName")
            url = article.get("link") or (content.get("canonicalUrl") or {}).get("url") or ""
            text = f"{title} {summary}"

            items.append(NewsItem(
                title=title,
                summary=summary,
                source=publisher or "Yahoo Finance",
                url=url,
                published_at=published,
                sentiment=classify_sentiment(text),
                impact=assess_impact(text),
                relevance_score=0.8 if symbol.upper() in text.upper() else 0.5,
            ))
            if len(items) >= limit:
                break

        items.sort(key=lambda item: item.published_at, reverse=True)
        logger.debug(f"yfinance returned {len(items)} articles for {symbol}")
        return items
