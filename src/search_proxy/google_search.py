from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from search_proxy.config import Settings, settings as default_settings
from search_proxy.models import CredentialPair, CredentialPool

logger = logging.getLogger(__name__)

QUOTA_ERROR_CODE = 429


class SearchError(Exception):
    pass


class UpstreamTransportError(SearchError):
    pass


class UpstreamApiError(SearchError):
    def __init__(self, payload: dict[str, Any]) -> None:
        super().__init__(json.dumps(payload.get("error")))
        self.payload = payload


class AttemptResult(str, Enum):
    SUCCESS = "success"
    QUOTA = "quota"
    SEMANTIC = "semantic"
    TRANSPORT = "transport"


class RotationState(str, Enum):
    TRYING = "trying"
    SUCCEEDED = "succeeded"
    QUOTA_EXHAUSTED = "quota_exhausted"
    SEMANTIC_ERROR = "semantic_error"
    TRANSPORT_EXHAUSTED = "transport_exhausted"


@dataclass
class RotationOutcome:
    state: RotationState
    index: int
    attempts: int
    payload: Any = None


def build_search_url(base_url: str, pair: CredentialPair, query: str) -> str:
    params = {
        "key": pair.api_key.get_secret_value(),
        "cx": pair.search_engine_id,
        "q": query,
    }
    return f"{base_url}?{urlencode(params, quote_via=quote)}"


def build_log_url(base_url: str, pair: CredentialPair, query: str) -> str:
    params = {"cx": pair.search_engine_id, "q": query}
    return f"{base_url}?{urlencode(params, quote_via=quote)}"


def upstream_error(payload: Any) -> Any:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    # empty objects and arrays still count as an error
    if error is None or (isinstance(error, (bool, int, float, str)) and not error):
        return None
    return error


def classify_payload(payload: Any) -> AttemptResult:
    error = upstream_error(payload)
    if error is None:
        return AttemptResult.SUCCESS
    if isinstance(error, dict) and error.get("code") == QUOTA_ERROR_CODE:
        return AttemptResult.QUOTA
    return AttemptResult.SEMANTIC


def next_state(result: AttemptResult, index: int, size: int) -> RotationState:
    """Transition out of TRYING(index) for a pool of ``size`` pairs."""
    if result is AttemptResult.SUCCESS:
        return RotationState.SUCCEEDED
    if result is AttemptResult.SEMANTIC:
        return RotationState.SEMANTIC_ERROR
    if index < size - 1:
        return RotationState.TRYING
    if result is AttemptResult.QUOTA:
        return RotationState.QUOTA_EXHAUSTED
    return RotationState.TRANSPORT_EXHAUSTED


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name}")


async def fetch_json(client: httpx.AsyncClient, url: str, timeout: float) -> Any:
    try:
        response = await client.get(url, timeout=timeout)
        payload = json.loads(response.content, parse_constant=_reject_constant)
    except httpx.HTTPError as exc:
        raise UpstreamTransportError(str(exc)) from exc
    except ValueError as exc:
        raise UpstreamTransportError(f"invalid JSON from upstream: {exc}") from exc
    if payload is None:
        raise UpstreamTransportError("empty JSON body from upstream")
    return payload


async def rotate_search(
    pool: CredentialPool,
    query: str,
    client: httpx.AsyncClient,
    settings: Settings | None = None,
) -> RotationOutcome:
    """Try each credential pair in order until one gives a terminal outcome.

    Quota errors and transport failures move on to the next pair; a success
    or any other upstream error ends the rotation immediately. The outcome's
    state after the last pair tells which kind of failure exhausted the pool.
    """
    s = settings or default_settings
    size = pool.size
    if size == 0:
        raise ValueError("credential pool is empty")

    index = 0
    payload: Any = None
    state = RotationState.TRYING
    while state is RotationState.TRYING:
        pair = pool.pairs[index]
        logger.info(
            "Attempting search with key index %d. URL fragment: %s",
            index,
            build_log_url(s.search_base_url, pair, query),
        )
        try:
            payload = await fetch_json(
                client, build_search_url(s.search_base_url, pair, query), s.request_timeout
            )
            result = classify_payload(payload)
        except UpstreamTransportError as exc:
            logger.error("Error fetching from upstream with key index %d: %s", index, exc)
            payload = None
            result = AttemptResult.TRANSPORT

        if result in (AttemptResult.QUOTA, AttemptResult.SEMANTIC):
            logger.error(
                "Upstream API error for key index %d: %s",
                index,
                json.dumps(upstream_error(payload), indent=2),
            )

        state = next_state(result, index, size)
        if state is RotationState.TRYING:
            index += 1

    if state is RotationState.QUOTA_EXHAUSTED:
        logger.error("All %d api keys have reached their daily limit", size)
    return RotationOutcome(state=state, index=index, attempts=index + 1, payload=payload)


async def search_single(
    pair: CredentialPair,
    query: str,
    client: httpx.AsyncClient,
    settings: Settings | None = None,
) -> Any:
    s = settings or default_settings
    logger.info("Searching with single credential. URL fragment: %s", build_log_url(s.search_base_url, pair, query))
    payload = await fetch_json(client, build_search_url(s.search_base_url, pair, query), s.request_timeout)
    if upstream_error(payload) is not None:
        raise UpstreamApiError(payload)
    return payload
