"""
Query orchestrator - single entry point for every user query

Pipeline:
1. Validate, classify, plan
2. Prefetch market data and news concurrently (failures are dropped)
3. Walk the provider cascade until one provider produces an answer
4. Terminal fallback when the cascade is exhausted
5. Stamp timing and classification on the immutable response

Nothing raises past process_query: unexpected errors become an error
response.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

from heights_ai.config import Settings
from heights_ai.domain.models import (
    AIResponse,
    AnalysisResult,
    ChatContext,
    ClassifiedQuery,
    DataFreshness,
    ErrorCode,
    MarketDataPoint,
    NewsItem,
    ProcessingStrategy,
    ProviderId,
    QueryIntent,
    QueryOptions,
    ResponseMetadata,
    ResponseType,
)
from heights_ai.gateway.provider_gateway import Capability, ProviderGateway, ProviderResult
from heights_ai.infrastructure.errors import (
    AllProvidersExhausted,
    ErrorHandler,
    HeightsAIError,
    ValidationError,
)
from heights_ai.infrastructure.logging import LogContext
from heights_ai.orchestrator.classifier import QueryClassifier
from heights_ai.orchestrator.planner import (
    REASONING_PROVIDERS,
    SEARCH_REASONING_PROVIDERS,
    StrategyPlanner,
)
from heights_ai.ports.interfaces import ProviderError, ProviderUnavailable
from heights_ai.presentation.formatter import (
    FALLBACK_NOTICE,
    FALLBACK_SUGGESTIONS,
    RETRY_SUGGESTIONS,
    assess_data_freshness,
    build_data_suggestions,
    build_error_content,
    build_news_suggestions,
    build_suggestions,
    format_market_snapshot,
    format_news_digest,
    intent_to_response_type,
    new_response_id,
    with_interpretation,
)
from heights_ai.presentation.prompts import (
    INTERPRETER_SYSTEM_PROMPT,
    build_fallback_prompt,
    build_grounded_query,
    build_market_data_prompt,
    build_news_prompt,
    build_search_query,
    build_system_prompt,
)
from heights_ai.scoring.confidence import ConfidenceScorer
from heights_ai.synthesis.extraction import FactExtractor
from heights_ai.synthesis.synthesizer import ResponseSynthesizer


logger = logging.getLogger(__name__)


GATHERING_MESSAGE = "Gathering market data and news..."
DATA_ANSWER_CONFIDENCE = 0.9
NEWS_ANSWER_CONFIDENCE = 0.8
SEARCH_CONFIDENCE_BOOST = 0.1
FALLBACK_CONFIDENCE = 0.6
UNANSWERED_CONFIDENCE = 0.1
STRUCTURED_INTENTS = (QueryIntent.ANALYSIS, QueryIntent.PREDICTION)


@dataclass
class _Prefetch:
    """Data gathered before the cascade, keyed by the provider that served it"""
    quotes: Dict[ProviderId, MarketDataPoint] = field(default_factory=dict)
    news: Dict[ProviderId, List[NewsItem]] = field(default_factory=dict)
    failures: Dict[ProviderId, ProviderError] = field(default_factory=dict)
    market_data: Tuple[MarketDataPoint, ...] = ()
    news_items: Tuple[NewsItem, ...] = ()
    news_sources: Tuple[ProviderId, ...] = ()

    def sources(self) -> Tuple[ProviderId, ...]:
        """Providers with at least one quote or news item that survived the caps"""
        return _unique_sources(list(self.quotes)[: len(self.market_data)], self.news_sources)


def _unique_sources(*groups: Sequence[ProviderId]) -> Tuple[ProviderId, ...]:
    ordered: List[ProviderId] = []
    for group in groups:
        for provider in group:
            if provider not in ordered:
                ordered.append(provider)
    return tuple(ordered)


class Orchestrator:
    """
    Query orchestrator

    Responsibilities:
    1. Classify the query and plan the provider cascade
    2. Fetch grounding data and run the cascade through the gateway
    3. Repair truncated answers, score analyses, build the response
    4. Keep every failure inside the response instead of raising
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        classifier: Optional[QueryClassifier] = None,
        planner: Optional[StrategyPlanner] = None,
        synthesizer: Optional[ResponseSynthesizer] = None,
        scorer: Optional[ConfidenceScorer] = None,
        settings: Optional[Settings] = None,
        extractor: Optional[FactExtractor] = None,
    ):
        """
        Args:
            gateway: provider gateway holding every registered adapter
            classifier: query classifier
            planner: strategy planner
            synthesizer: truncation repair / combination
            scorer: confidence scorer
            settings: runtime settings, defaults when omitted
            extractor: fact extractor for structured analyses
        """
        self.settings = settings or Settings()
        self.gateway = gateway
        self.classifier = classifier or QueryClassifier()
        self.planner = planner or StrategyPlanner.from_settings(self.settings)
        self.synthesizer = synthesizer or ResponseSynthesizer.from_settings(self.settings)
        self.scorer = scorer or ConfidenceScorer.from_settings(self.settings)
        self.extractor = extractor or FactExtractor()

    # ==================== Public API ====================

    async def process_query(
        self,
        query: str,
        context: Optional[ChatContext] = None,
        options: Optional[QueryOptions] = None,
    ) -> AIResponse:
        """
        Answer one query

        Args:
            query: free-text user question
            context: recent conversation, read only
            options: per-query switches

        Returns:
            AIResponse: final response, never raises
        """
        request_id = uuid.uuid4().hex[:8]
        response = None
        with LogContext(logger, "query", request_id=request_id):
            async for response in self._run(query, context, options, request_id):
                pass
        return response

    async def stream_process_query(
        self,
        query: str,
        context: Optional[ChatContext] = None,
        options: Optional[QueryOptions] = None,
    ) -> AsyncIterator[AIResponse]:
        """
        Same pipeline as process_query, yielding progress partials first

        Yields:
            AIResponse: classification partial, a data-gathering partial
            when data is required, then the final response
        """
        request_id = uuid.uuid4().hex[:8]
        logger.info("Started streaming query", extra={'request_id': request_id})
        async for response in self._run(query, context, options, request_id):
            yield response
        logger.info("Finished streaming query", extra={'request_id': request_id})

    # ==================== Pipeline ====================

    async def _run(
        self,
        query: str,
        context: Optional[ChatContext],
        options: Optional[QueryOptions],
        request_id: str,
    ) -> AsyncIterator[AIResponse]:
        start_time = time.monotonic()
        options = options or QueryOptions()
        classified: Optional[ClassifiedQuery] = None

        try:
            if not isinstance(query, str) or not query.strip():
                raise ValidationError("query must be a non-empty string", field="query")

            classified = self.classifier.classify(query, context)
            strategy = self.planner.plan(classified)
            logger.info(
                f"Routing {classified.intent.value} query to {strategy.primary_provider.value}",
                extra={
                    'request_id': request_id,
                    'intent': classified.intent.value,
                    'symbol': classified.asset_symbol,
                },
            )

            yield self._partial(classified, self._classification_message(classified), start_time)

            prefetch = _Prefetch()
            if strategy.requires_data:
                yield self._partial(classified, GATHERING_MESSAGE, start_time)
                prefetch = await self._prefetch(classified, strategy)

            response = await self._cascade(query, classified, strategy, prefetch, context, options)
        except Exception as e:
            response = self._error_response(e, request_id)

        yield replace(
            response,
            metadata=replace(
                response.metadata,
                processing_time_ms=(time.monotonic() - start_time) * 1000,
                classification=classified,
            ),
        )

    async def _prefetch(self, classified: ClassifiedQuery, strategy: ProcessingStrategy) -> _Prefetch:
        """Concurrent quote and news fetch from every data provider that serves them"""
        symbol = classified.asset_symbol
        timeout = self.planner.data_timeout
        calls = []
        for provider in strategy.data_providers:
            if self.gateway.supports(provider, Capability.MARKET_DATA):
                calls.append(self.gateway.fetch_market_data(
                    provider, symbol, timeout=timeout, max_retries=strategy.max_retries
                ))
            if self.gateway.supports(provider, Capability.NEWS):
                calls.append(self.gateway.fetch_news(
                    provider, symbol, timeout=timeout, max_retries=strategy.max_retries,
                    limit=self.settings.max_news_items,
                ))

        results: Sequence[ProviderResult] = await asyncio.gather(*calls) if calls else []

        prefetch = _Prefetch()
        for result in results:
            if not result.success:
                prefetch.failures[result.provider] = result.error
            elif isinstance(result.data, MarketDataPoint):
                prefetch.quotes[result.provider] = result.data
            else:
                prefetch.news[result.provider] = list(result.data)

        prefetch.market_data = tuple(prefetch.quotes.values())[: self.settings.max_market_data_sources]
        news_items: List[NewsItem] = []
        news_sources: List[ProviderId] = []
        for provider, items in prefetch.news.items():
            kept = items[: self.settings.max_news_items - len(news_items)]
            if kept:
                news_items.extend(kept)
                news_sources.append(provider)
        prefetch.news_items = tuple(news_items)
        prefetch.news_sources = tuple(news_sources)

        logger.info(
            f"Prefetched {len(prefetch.market_data)} quotes and {len(prefetch.news_items)} news items "
            f"for {symbol} ({len(prefetch.failures)} provider failures)",
            extra={'symbol': symbol},
        )
        return prefetch

    async def _cascade(
        self,
        query: str,
        classified: ClassifiedQuery,
        strategy: ProcessingStrategy,
        prefetch: _Prefetch,
        context: Optional[ChatContext],
        options: QueryOptions,
    ) -> AIResponse:
        failures: Dict[str, str] = {}
        for provider in strategy.cascade:
            try:
                if provider in REASONING_PROVIDERS:
                    return await self._reasoning_answer(
                        provider, query, classified, strategy, prefetch, context, options
                    )
                if classified.intent != QueryIntent.NEWS:
                    return await self._data_answer(provider, query, classified, prefetch)
                return await self._news_answer(provider, query, classified, prefetch)
            except ProviderError as e:
                failures[provider.value] = e.message
                logger.info(f"Provider {provider.value} could not answer, trying next: {e.message}")

        exhausted = AllProvidersExhausted([p.value for p in strategy.cascade], failures)
        logger.warning(exhausted.message, extra={'extra_data': exhausted.details})
        return await self._terminal_fallback(query, classified, prefetch)

    # ==================== Cascade steps ====================

    async def _reasoning_answer(
        self,
        provider: ProviderId,
        query: str,
        classified: ClassifiedQuery,
        strategy: ProcessingStrategy,
        prefetch: _Prefetch,
        context: Optional[ChatContext],
        options: QueryOptions,
    ) -> AIResponse:
        timeout = self._timeout_for(provider, strategy)
        is_search = provider in SEARCH_REASONING_PROVIDERS
        system_prompt = build_system_prompt(
            classified, prefetch.market_data, prefetch.news_items,
            assistant="Heights AI" if is_search else "Claude",
        )
        message = build_grounded_query(query, prefetch.market_data, prefetch.news_items, context)
        if is_search:
            message = f"{build_search_query(query, classified)}\n\n{message}"

        secondary = self._secondary_reasoner(provider, options)
        primary_call = self.gateway.converse(
            provider, system_prompt, [{"role": "user", "content": message}],
            timeout=timeout, max_retries=strategy.max_retries,
        )
        if secondary is not None:
            secondary_call = self.gateway.converse(
                secondary, system_prompt,
                [{"role": "user", "content": build_search_query(query, classified)}],
                timeout=self.planner.reasoning_timeout,
            )
            result, secondary_result = await asyncio.gather(primary_call, secondary_call)
        else:
            result, secondary_result = await primary_call, None

        if not result.success:
            raise result.error

        content = await self.synthesizer.complete_truncated(
            result.data, provider, self.gateway, system_prompt, timeout=timeout
        )
        sources = [provider]
        if secondary_result is not None and secondary_result.success:
            content = self.synthesizer.combine(content, secondary_result.data)
            sources.append(secondary)

        confidence = classified.confidence + (SEARCH_CONFIDENCE_BOOST if is_search else 0.0)
        analysis = None
        if classified.has_symbol and (classified.intent in STRUCTURED_INTENTS or options.structured):
            analysis = self._build_analysis(classified, content, prefetch, options)
            confidence = (confidence + analysis.confidence) / 2

        freshness = assess_data_freshness(prefetch.market_data, prefetch.news_items)
        if is_search:
            freshness = DataFreshness.REAL_TIME

        return self._response(
            content=content,
            response_type=intent_to_response_type(classified.intent),
            sources=_unique_sources(sources, prefetch.sources()),
            confidence=confidence,
            freshness=freshness,
            prefetch=prefetch,
            analysis=analysis,
            suggestions=build_suggestions(classified),
        )

    async def _data_answer(
        self,
        provider: ProviderId,
        query: str,
        classified: ClassifiedQuery,
        prefetch: _Prefetch,
    ) -> AIResponse:
        quote = prefetch.quotes.get(provider)
        if quote is None:
            raise prefetch.failures.get(provider) or ProviderUnavailable(provider, Capability.MARKET_DATA.value)

        # answering provider first, other sources for comparison
        quotes = (quote,) + tuple(q for q in prefetch.market_data if q is not quote)
        quotes = quotes[: self.settings.max_market_data_sources]

        interpretation, interpreter = await self._interpret(build_market_data_prompt(query, quotes))
        return self._response(
            content=with_interpretation(format_market_snapshot(quotes), interpretation),
            response_type=ResponseType.DATA,
            sources=_unique_sources([provider], [q.source for q in quotes], interpreter),
            confidence=DATA_ANSWER_CONFIDENCE,
            freshness=assess_data_freshness(quotes, prefetch.news_items),
            prefetch=prefetch,
            market_data=quotes,
            suggestions=build_data_suggestions(quotes),
        )

    async def _news_answer(
        self,
        provider: ProviderId,
        query: str,
        classified: ClassifiedQuery,
        prefetch: _Prefetch,
    ) -> AIResponse:
        items = prefetch.news.get(provider)
        if not items:
            raise prefetch.failures.get(provider) or ProviderUnavailable(provider, Capability.NEWS.value)

        items = items[: self.settings.max_news_items]
        interpretation, interpreter = await self._interpret(build_news_prompt(query, items))
        digest = format_news_digest(items, classified.asset_symbol or "")
        return self._response(
            content=with_interpretation(digest, interpretation),
            response_type=ResponseType.NEWS,
            sources=_unique_sources([provider], interpreter),
            confidence=NEWS_ANSWER_CONFIDENCE,
            freshness=assess_data_freshness(prefetch.market_data, items),
            prefetch=prefetch,
            news=tuple(items),
            suggestions=build_news_suggestions(),
        )

    async def _terminal_fallback(
        self,
        query: str,
        classified: ClassifiedQuery,
        prefetch: _Prefetch,
    ) -> AIResponse:
        terminal = self.settings.terminal_provider
        system_prompt = build_fallback_prompt(query)
        result = await self.gateway.converse(
            terminal, system_prompt, [{"role": "user", "content": query}],
            timeout=self.planner.reasoning_timeout,
        )

        if not result.success:
            logger.error(f"Terminal provider {terminal.value} failed too, returning notice only")
            return self._response(
                content=f"{FALLBACK_NOTICE}\n\nPlease try again in a few moments.",
                response_type=ResponseType.TEXT,
                sources=(),
                confidence=UNANSWERED_CONFIDENCE,
                freshness=DataFreshness.HISTORICAL,
                prefetch=prefetch,
                suggestions=RETRY_SUGGESTIONS,
                error_code=ErrorCode.ALL_PROVIDERS_EXHAUSTED,
            )

        content = await self.synthesizer.complete_truncated(
            result.data, terminal, self.gateway, system_prompt,
            timeout=self.planner.reasoning_timeout,
        )
        return self._response(
            content=f"{FALLBACK_NOTICE}\n\n{content}",
            response_type=ResponseType.TEXT,
            sources=(terminal,),
            confidence=FALLBACK_CONFIDENCE,
            freshness=DataFreshness.HISTORICAL,
            prefetch=prefetch,
            suggestions=FALLBACK_SUGGESTIONS,
        )

    # ==================== Helpers ====================

    def _timeout_for(self, provider: ProviderId, strategy: ProcessingStrategy) -> float:
        if provider == strategy.primary_provider:
            return strategy.timeout_seconds
        if provider in REASONING_PROVIDERS:
            return self.planner.reasoning_timeout
        return self.planner.data_timeout

    def _secondary_reasoner(self, provider: ProviderId, options: QueryOptions) -> Optional[ProviderId]:
        if not options.use_secondary_reasoner:
            return None
        for candidate in SEARCH_REASONING_PROVIDERS:
            if candidate != provider and self.gateway.supports(candidate, Capability.REASONING):
                return candidate
        return None

    async def _interpret(self, prompt: str) -> Tuple[str, Tuple[ProviderId, ...]]:
        """Optional prose over fetched data by the first registered reasoner"""
        reasoners = self.gateway.providers_for(Capability.REASONING)
        if not reasoners:
            return "", ()

        interpreter = reasoners[0]
        result = await self.gateway.converse(
            interpreter,
            INTERPRETER_SYSTEM_PROMPT,
            [{"role": "user", "content": prompt}],
            timeout=self.planner.reasoning_timeout,
        )
        if not result.success:
            return "", ()
        return result.data, (interpreter,)

    def _build_analysis(
        self,
        classified: ClassifiedQuery,
        content: str,
        prefetch: _Prefetch,
        options: QueryOptions,
    ) -> AnalysisResult:
        symbol = classified.asset_symbol
        analysis = self.extractor.build_analysis(
            symbol, content, prefetch.market_data, classified.timeframe
        )
        quote = prefetch.market_data[0] if prefetch.market_data else None
        trend = self.extractor.extract_trend(content)

        factors = self.scorer.confidence_factors(
            analysis.technical_indicators, quote, prefetch.news_items, trend
        )
        score = self.scorer.score_factors(factors)
        analysis = replace(analysis, confidence=score, confidence_factors=factors)

        if options.portfolio_size and quote is not None:
            try:
                setup = self.scorer.trade_setup(
                    symbol,
                    quote.price,
                    score,
                    options.portfolio_size,
                    volatility=abs(quote.change_percent) / 100 or None,
                    trend=trend,
                    timeframe=classified.timeframe,
                )
            except ValueError as e:
                logger.warning(f"Skipping trade setup for {symbol}: {e}")
            else:
                analysis = replace(analysis, trade_setup=setup)

        logger.debug(f"Analysis for {symbol}: {analysis.recommendation.value} score={score:.2f}")
        return analysis

    @staticmethod
    def _classification_message(classified: ClassifiedQuery) -> str:
        subject = f" about {classified.asset_symbol}" if classified.asset_symbol else ""
        return f"Understanding your {classified.intent.value} question{subject}..."

    def _partial(self, classified: ClassifiedQuery, content: str, start_time: float) -> AIResponse:
        return AIResponse(
            id=new_response_id(),
            content=content,
            type=intent_to_response_type(classified.intent),
            metadata=ResponseMetadata(
                sources=(),
                confidence=classified.confidence,
                processing_time_ms=(time.monotonic() - start_time) * 1000,
                classification=classified,
            ),
            partial=True,
        )

    @staticmethod
    def _response(
        content: str,
        response_type: ResponseType,
        sources: Sequence[ProviderId],
        confidence: float,
        freshness: DataFreshness,
        prefetch: _Prefetch,
        suggestions: Sequence[str] = (),
        analysis: Optional[AnalysisResult] = None,
        market_data: Optional[Tuple[MarketDataPoint, ...]] = None,
        news: Optional[Tuple[NewsItem, ...]] = None,
        error_code: Optional[ErrorCode] = None,
    ) -> AIResponse:
        return AIResponse(
            id=new_response_id(),
            content=content,
            type=response_type,
            metadata=ResponseMetadata(
                sources=tuple(sources),
                confidence=confidence,
                data_freshness=freshness,
                error_code=error_code,
            ),
            market_data=prefetch.market_data if market_data is None else market_data,
            news=prefetch.news_items if news is None else news,
            analysis=analysis,
            suggestions=tuple(suggestions),
        )

    @staticmethod
    def _error_response(e: Exception, request_id: str) -> AIResponse:
        error = ErrorHandler.handle_exception(e, context="process_query")
        if isinstance(e, HeightsAIError):
            logger.warning(f"Query rejected: {error.message}", extra={'request_id': request_id})
        else:
            logger.exception(f"Unexpected error while processing query: {e}", extra={'request_id': request_id})

        return AIResponse(
            id=new_response_id(),
            content=build_error_content(error.message),
            type=ResponseType.ERROR,
            metadata=ResponseMetadata(
                sources=(),
                confidence=0.0,
                error_code=error.error_code,
            ),
            suggestions=RETRY_SUGGESTIONS,
        )

