from typing import Any

import httpx
import pytest

from search_proxy.config import Settings

UPSTREAM_BASE = "https://upstream.test/customsearch/v1"

QUOTA_ERROR = {
    "error": {
        "code": 429,
        "message": "Quota exceeded for quota metric 'Queries' and limit 'Queries per day'.",
        "status": "RESOURCE_EXHAUSTED",
    }
}

INVALID_ARGUMENT = {
    "error": {
        "code": 400,
        "message": "Request contains an invalid argument.",
        "errors": [{"message": "Request contains an invalid argument.", "domain": "global", "reason": "badRequest"}],
        "status": "INVALID_ARGUMENT",
    }
}


def success_payload(cx: str) -> dict[str, Any]:
    return {
        "kind": "customsearch#search",
        "searchInformation": {"totalResults": "1"},
        "items": [
            {
                "title": f"Result via {cx}",
                "link": "https://example.com/page",
                "snippet": "An example snippet",
            }
        ],
    }


class FakeUpstream:
    """Mock transport handler keyed by API key.

    Behaviours: ``ok``, ``quota``, ``semantic``, ``transport``, ``timeout``,
    ``not_json``, ``null``, ``nan``, ``empty_error_object``, ``empty_error_list``.
    """

    def __init__(self, behaviours: dict[str, str]) -> None:
        self.behaviours = behaviours
        self.requests: list[httpx.Request] = []

    @property
    def keys_called(self) -> list[str]:
        return [r.url.params["key"] for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        behaviour = self.behaviours[request.url.params["key"]]
        if behaviour == "transport":
            raise httpx.ConnectError("connection refused", request=request)
        if behaviour == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        if behaviour == "null":
            return httpx.Response(200, content=b"null", headers={"content-type": "application/json"})
        if behaviour == "nan":
            return httpx.Response(200, content=b'{"items": [NaN]}', headers={"content-type": "application/json"})
        if behaviour == "empty_error_object":
            return httpx.Response(200, json={"error": {}})
        if behaviour == "empty_error_list":
            return httpx.Response(200, json={"error": []})
        if behaviour == "quota":
            return httpx.Response(429, json=QUOTA_ERROR)
        if behaviour == "semantic":
            return httpx.Response(400, json=INVALID_ARGUMENT)
        if behaviour == "not_json":
            return httpx.Response(502, text="<html>Bad Gateway</html>")
        return httpx.Response(200, json=success_payload(request.url.params["cx"]))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def make_settings(n_pairs: int = 3, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "api_keys": ",".join(f"secret-{i}" for i in range(n_pairs)),
        "search_engine_ids": ",".join(f"cx-{i}" for i in range(n_pairs)),
        "api_key": "",
        "search_engine_id": "",
        "search_base_url": UPSTREAM_BASE,
        "request_timeout": 1.0,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()
