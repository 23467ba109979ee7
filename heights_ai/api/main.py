"""
Heights AI API - application entry point

Features:
- Query classification and provider cascade behind one endpoint
- NDJSON streaming with progress partials
- Per-client rate limiting
- Structured request logging
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from heights_ai.api.dependencies import (
    APP_NAME,
    APP_VERSION,
    get_service_container,
    get_settings,
)
from heights_ai.api.routes import health_router, query_router
from heights_ai.api.schemas import ErrorResponse
from heights_ai.config import Settings
from heights_ai.domain.models import ErrorCode
from heights_ai.infrastructure.logging import setup_logging
from heights_ai.infrastructure.rate_limiter import ClientRateLimiter


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{APP_NAME} starting...")
    # warm the container so the first request does not pay for it
    get_service_container()
    yield
    logger.info(f"{APP_NAME} shutting down...")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create the FastAPI application"""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_json, settings.log_file)

    app = FastAPI(
        title=APP_NAME,
        description="""
# Heights AI

Query orchestration for the Heights investment assistant: classifies a
question, gathers market data and news, and answers through a cascade of
reasoning and data providers.

## Quick start

```python
import httpx

response = httpx.post(
    "http://localhost:8000/api/v1/query",
    json={"query": "What's Bitcoin doing today?"},
)
print(response.json()["content"])
```
        """,
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    client_limiter = ClientRateLimiter(settings.api_rate_limit_per_minute)
    app.state.client_limiter = client_limiter

    @app.middleware("http")
    async def rate_limit_and_log(request: Request, call_next):
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:8])

        if request.url.path.startswith("/api/"):
            client = request.headers.get("X-Client-ID") or (
                request.client.host if request.client else "anonymous"
            )
            if not client_limiter.acquire(client):
                retry_after = client_limiter.get_wait_time(client)
                logger.warning(f"[{request_id}] rate limit exceeded for {client}")
                return JSONResponse(
                    status_code=429,
                    headers={"Retry-After": str(max(1, int(retry_after)))},
                    content=ErrorResponse(
                        error_code=ErrorCode.RATE_LIMITED.value,
                        error_message="Too many requests, please slow down",
                        details={"retry_after": round(retry_after, 1)},
                    ).model_dump(),
                )

        logger.info(f"[{request_id}] {request.method} {request.url.path}")
        response = await call_next(request)

        duration = (time.time() - start_time) * 1000
        logger.info(f"[{request_id}] done {response.status_code} - {duration:.2f}ms")
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.2f}ms"
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error_code=ErrorCode.INTERNAL_ERROR.value,
                error_message="Internal server error, please try again later",
            ).model_dump(),
        )

    app.include_router(health_router)
    app.include_router(query_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("heights_ai.api.main:app", host="0.0.0.0", port=8000)
