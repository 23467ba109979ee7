"""
Query routes - the assistant's public endpoints
"""

import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from heights_ai.api.dependencies import get_orchestrator
from heights_ai.api.schemas import (
    ErrorResponse,
    QueryRequest,
    QueryResponse,
    to_query_response,
)
from heights_ai.orchestrator import Orchestrator


router = APIRouter(prefix="/api/v1", tags=["Query"])


@router.post(
    "/query",
    response_model=QueryResponse,
    responses={
        422: {"description": "Empty or malformed query"},
        429: {"model": ErrorResponse, "description": "Client rate limit exceeded"},
    },
    summary="Answer a query",
    description="""
    Classifies the query, gathers market data and news for the asset it
    mentions and answers through the provider cascade.

    Provider failures never surface as HTTP errors: they are reported in
    `metadata.error_code` and reflected in `metadata.confidence`.
    """
)
async def query(
    request: QueryRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> QueryResponse:
    response = await orchestrator.process_query(
        request.query,
        context=request.to_context(),
        options=request.to_options(),
    )
    return to_query_response(response)


@router.post(
    "/query/stream",
    summary="Answer a query with progress updates",
    description="Newline-delimited JSON: progress partials (`partial: true`) then the final response.",
)
async def query_stream(
    request: QueryRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    async def lines() -> AsyncIterator[str]:
        async for response in orchestrator.stream_process_query(
            request.query,
            context=request.to_context(),
            options=request.to_options(),
        ):
            yield json.dumps(response.to_dict(), ensure_ascii=False) + "\n"

    return StreamingResponse(lines(), media_type="application/x-ndjson")
