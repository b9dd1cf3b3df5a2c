from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from search_proxy.config import Settings, settings
from search_proxy.google_search import (
    RotationState,
    SearchError,
    rotate_search,
    search_single,
)
from search_proxy.models import (
    CredentialPool,
    CredentialProfile,
    ErrorResponse,
    HealthResponse,
)

logger = logging.getLogger(__name__)

MISSING_QUERY = 'a search query "q" is required.'
NOT_CONFIGURED = "api credentials are not configured on the server."
QUOTA_EXHAUSTED = "daily search limit reached for all keys."
ALL_SOURCES_FAILED = "failed to fetch search results from all available sources."
SINGLE_FAILED = "failed to fetch search results."


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.settings = settings
    app.state.profile = settings.credential_profile()
    app.state.pool = settings.credential_pool()
    client = httpx.AsyncClient(timeout=settings.request_timeout)
    app.state.client = client
    logger.info(
        "Search proxy started (%s profile, %d credential pairs)",
        app.state.profile.value,
        app.state.pool.size,
    )
    yield
    await client.aclose()


app = FastAPI(title="Search Proxy", lifespan=lifespan)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.get(
    "/api/search",
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def search(request: Request) -> JSONResponse:
    # first occurrence wins for repeated parameters
    values = request.query_params.getlist("q")
    q = values[0] if values else None
    if not q:
        return _error(400, MISSING_QUERY)

    s: Settings = app.state.settings
    pool: CredentialPool = app.state.pool
    client: httpx.AsyncClient = app.state.client

    if not pool.is_configured:
        logger.error(
            "server error: api credentials not found or mismatched (%d keys, %d engine ids). "
            "ensure GOOGLE_API_KEYS and GOOGLE_SEARCH_ENGINE_IDS have the same number of comma-separated values.",
            pool.key_count,
            pool.id_count,
        )
        return _error(500, NOT_CONFIGURED)

    if app.state.profile is CredentialProfile.SINGLE:
        try:
            payload = await search_single(pool.pairs[0], q, client, settings=s)
        except SearchError as exc:
            logger.error("Single-credential search failed: %s", exc)
            return _error(500, SINGLE_FAILED)
        return JSONResponse(status_code=200, content=payload)

    try:
        outcome = await rotate_search(pool, q, client, settings=s)
    except Exception:
        logger.exception("Unexpected error during search")
        return _error(500, ALL_SOURCES_FAILED)

    if outcome.state is RotationState.SUCCEEDED:
        return JSONResponse(
            status_code=200,
            content=outcome.payload,
            headers={"Cache-Control": s.cache_control},
        )
    if outcome.state is RotationState.SEMANTIC_ERROR:
        return JSONResponse(status_code=400, content=outcome.payload)
    if outcome.state is RotationState.QUOTA_EXHAUSTED:
        return _error(429, QUOTA_EXHAUSTED)
    return _error(500, ALL_SOURCES_FAILED)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    pool: CredentialPool = app.state.pool
    return HealthResponse(
        status="ok",
        profile=app.state.profile,
        credentials_configured=pool.is_configured,
        pool_size=pool.size,
    )


def main() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.host, port=settings.port)
