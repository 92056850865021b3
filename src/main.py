"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.container import build_container
from src.fx_account.api.router import router as account_router
from src.fx_bootstrap.seed import seed_if_empty
from src.fx_common.database import async_session_factory, engine
from src.fx_common.errors import AppError
from src.fx_common.redis_client import close_redis, get_redis
from src.fx_common.response import error_response
from src.fx_exchange.api.router import router as exchange_router
from src.fx_gateway.middleware.rate_limit import RateLimitMiddleware
from src.fx_gateway.middleware.request_log import RequestLogMiddleware
from src.fx_rates.api.router import router as rates_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, seed an empty store, wire the container. Shutdown: dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    redis = await get_redis()
    await redis.ping()

    await seed_if_empty(async_session_factory, Path(settings.SEED_DIR))
    container = build_container(async_session_factory, redis)
    await container.accounts.verify_single_account_per_currency()
    app.state.container = container
    logger.info("%s ready", settings.APP_NAME)
    yield
    # Shutdown
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: [%d] %s", request.method, request.url.path, exc.code, exc.message)
    resp = error_response(exc.code, exc.message, request=request)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(account_router, prefix="/api/v1")
app.include_router(rates_router, prefix="/api/v1")
app.include_router(exchange_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
