"""
Shared fixtures: reference tables, settings and a fake upstream.

Every outbound HTTP call in these tests goes through httpx.MockTransport,
so nothing reaches the network.
"""
import dataclasses
import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from smart_assistant.core.config import DEFAULT_DATA_DIR, Settings
from smart_assistant.main import create_app
from smart_assistant.services.reference.loader import load_reference_data

SEARCH_ENDPOINT = "https://search.test"
AZURE_OPENAI_ENDPOINT = "https://openai.test"
DIRECTORY_BASE = "https://directory.test/api"

SAMPLE_PROGRAMS = [
    {
        "id": "sf-food-bank",
        "name": "SF-Marin Food Bank",
        "category": "food",
        "description": "Free groceries at more than 200 pantries across San Francisco and Marin.",
        "phone": "415-282-1900",
        "website": "https://www.sfmfoodbank.org",
        "areas": ["San Francisco", "Marin County"],
    },
    {
        "id": "calfresh",
        "name": "CalFresh",
        "category": "food",
        "description": "Monthly grocery money on an EBT card.",
        "website": "https://www.getcalfresh.org",
        "areas": ["Statewide"],
    },
]


@pytest.fixture(scope="session")
def reference():
    return load_reference_data(DEFAULT_DATA_DIR)


@pytest.fixture
def settings():
    return Settings(
        log_json=True,
        azure_search_endpoint=SEARCH_ENDPOINT,
        azure_search_key="search-key",
        directory_api_base=DIRECTORY_BASE,
    )


class FakeUpstream:
    """
    Route table for httpx.MockTransport.

    Each handler gets the request and returns an httpx.Response; every
    request is recorded for assertions.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.search_documents: List[Dict[str, Any]] = list(SAMPLE_PROGRAMS)
        self.cloudflare: Optional[Callable[[httpx.Request], httpx.Response]] = None
        self.azure: Optional[Callable[[httpx.Request], httpx.Response]] = None
        self.directory: Dict[str, Any] = {}
        self.directory_status = 200

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url.startswith(SEARCH_ENDPOINT):
            return httpx.Response(200, json={"value": self.search_documents})
        if "api.cloudflare.com" in url and self.cloudflare:
            return self.cloudflare(request)
        if url.startswith(AZURE_OPENAI_ENDPOINT) and self.azure:
            return self.azure(request)
        if url.startswith(DIRECTORY_BASE):
            resource = url.rsplit("/", 1)[-1].replace(".json", "")
            if resource in self.directory:
                return httpx.Response(self.directory_status, json=self.directory[resource])
        return httpx.Response(404)

    def search_payloads(self) -> List[Dict[str, Any]]:
        return [
            json.loads(r.content) for r in self.requests if str(r.url).startswith(SEARCH_ENDPOINT)
        ]

    def hosts(self) -> List[str]:
        return [r.url.host for r in self.requests]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def upstream():
    return FakeUpstream()


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the hash-based counters."""

    def __init__(self):
        self.hashes: Dict[str, Dict[str, Any]] = {}
        self.ttls: Dict[str, int] = {}

    async def hgetall(self, key):
        return {k: str(v) for k, v in self.hashes.get(key, {}).items()}

    async def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update(mapping)

    async def expire(self, key, seconds):
        self.ttls[key] = seconds

    async def ping(self):
        return True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def make_client(settings, upstream):
    """
    Build a TestClient for an app wired to the fake upstream.

    Keyword arguments override fields of the settings fixture. Startup and
    shutdown events run.
    """
    clients = []

    def build(**overrides):
        app = create_app(dataclasses.replace(settings, **overrides), transport=upstream.transport)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield build
    for client in clients:
        client.__exit__(None, None, None)
