import json
from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from nano_remove.config import Settings
from nano_remove.main import create_app

UPSTREAM = "https://upstream.test/v1beta"


class Upstream:
    """Records outgoing requests and answers them with a canned handler."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = lambda req: httpx.Response(
            200, json={"candidates": []}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def make_settings(monkeypatch):
    for var in ("ALLOW_ORIGIN", "UPSTREAM_PROVIDER", "UPSTREAM_URL", "NANO_API_KEY", "NANO_MODEL",
                "CONTEXT", "APP_VERSION", "PROXY_PATH"):
        monkeypatch.delenv(var, raising=False)

    def _make(**overrides) -> Settings:
        values = {"nano_api_key": "test-key", "upstream_url": UPSTREAM}
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def make_client(make_settings, upstream):
    def _make(**overrides) -> TestClient:
        settings = make_settings(**overrides)
        http = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        return TestClient(create_app(settings, client=http))

    return _make


@pytest.fixture
def client(make_client):
    return make_client()


def gemini_image(data: str = "ABC123", key: str = "inline_data") -> dict:
    return {
        "candidates": [
            {
                "content": {
                    "parts": [
                        {"text": "Here is the edited image"},
                        {key: {"mime_type": "image/png", "data": data}},
                    ]
                }
            }
        ]
    }
