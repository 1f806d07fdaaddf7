"""
Unit tests for the tier cascade.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from smart_assistant.core.errors import BudgetExhaustedError
from smart_assistant.services.ai.cascade import (
    AZURE_USAGE_SERVICE,
    TIER_AZURE,
    TIER_CLOUDFLARE,
    TIER_LOCAL,
    TierCascade,
)
from smart_assistant.services.ai.llm_client import AzureOpenAIClient, CloudflareWorkersAIClient
from smart_assistant.services.ai.usage import UsageTracker
from smart_assistant.services.search.classification import LocalClassifier
from smart_assistant.services.search.synonym_expansion import QueryExpander

UNCLASSIFIED_QUERY = "whom could my neighbor contact regarding paperwork"


class Upstream:
    def __init__(self, cloudflare=None, azure=None):
        self.cloudflare = cloudflare
        self.azure = azure
        self.calls = []

    def __call__(self, request):
        host = request.url.host
        self.calls.append(host)
        handler = self.cloudflare if host == "api.cloudflare.com" else self.azure
        if handler is None:
            return httpx.Response(500)
        return handler(request)


def cloudflare_ok(keywords):
    return lambda r: httpx.Response(200, json={"result": {"response": keywords}})


def azure_ok(keywords):
    return lambda r: httpx.Response(200, json={"choices": [{"message": {"content": keywords}}]})


def rate_limited(request):
    return httpx.Response(429)


@pytest.fixture
def make_cascade(reference):
    def build(upstream, max_daily=100, usage=None, configured=True):
        transport = httpx.MockTransport(upstream)
        classifier = LocalClassifier(reference)
        cloudflare = CloudflareWorkersAIClient(
            "acct" if configured else None, "token", transport=transport
        )
        azure = AzureOpenAIClient(
            "https://openai.test" if configured else None, "key", transport=transport
        )
        return TierCascade(
            classifier,
            QueryExpander(classifier, reference.synonyms),
            cloudflare,
            azure,
            usage or UsageTracker(),
            azure_max_daily_requests=max_daily,
        )
    return build


@pytest.mark.asyncio
async def test_common_query_skips_llm(make_cascade):
    upstream = Upstream()
    result = await make_cascade(upstream).resolve("where do they have free groceries on saturdays")

    assert result.stage == "common_query"
    assert result.skipped_llm
    assert result.keywords == "food pantry food bank groceries free distribution"
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_short_query_is_local(make_cascade):
    upstream = Upstream()
    result = await make_cascade(upstream).resolve("paperwork questions")

    assert result.stage == "short_query"
    assert result.tier == TIER_LOCAL
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_classified_query_is_local(make_cascade):
    upstream = Upstream()
    result = await make_cascade(upstream).resolve("I need help finding food in 94110")

    assert result.stage == "classified"
    assert result.keywords.startswith("food pantry groceries")
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_cloudflare_answers_first(make_cascade):
    upstream = Upstream(cloudflare=cloudflare_ok("legal aid document help"))
    result = await make_cascade(upstream).resolve(UNCLASSIFIED_QUERY)

    assert result.tier == TIER_CLOUDFLARE
    assert result.keywords == "legal aid document help"
    assert not result.skipped_llm
    assert not result.used_azure
    assert upstream.calls == ["api.cloudflare.com"]


@pytest.mark.asyncio
async def test_azure_after_cloudflare_rate_limit_counts_usage(make_cascade):
    usage = UsageTracker()
    upstream = Upstream(cloudflare=rate_limited, azure=azure_ok("legal paperwork assistance"))
    result = await make_cascade(upstream, usage=usage).resolve(UNCLASSIFIED_QUERY)

    assert result.tier == TIER_AZURE
    assert result.used_azure
    assert await usage.get_usage(AZURE_USAGE_SERVICE) == 1


@pytest.mark.asyncio
async def test_azure_skipped_when_budget_spent(make_cascade):
    usage = UsageTracker()
    for _ in range(3):
        await usage.record_usage(AZURE_USAGE_SERVICE)
    upstream = Upstream(cloudflare=rate_limited, azure=azure_ok("never used"))

    result = await make_cascade(upstream, max_daily=3, usage=usage).resolve(UNCLASSIFIED_QUERY)

    assert result.tier == TIER_LOCAL
    assert result.stage == "fallback"
    assert "openai.test" not in upstream.calls
    assert await usage.get_usage(AZURE_USAGE_SERVICE) == 3


@pytest.mark.asyncio
async def test_azure_skipped_when_usage_store_unreadable(make_cascade):
    usage = MagicMock()
    usage.ensure_under_budget = AsyncMock(side_effect=BudgetExhaustedError("store down"))
    usage.record_usage = AsyncMock()
    upstream = Upstream(cloudflare=rate_limited, azure=azure_ok("never used"))

    result = await make_cascade(upstream, usage=usage).resolve(UNCLASSIFIED_QUERY)

    assert result.tier == TIER_LOCAL
    assert "openai.test" not in upstream.calls
    usage.record_usage.assert_not_called()


@pytest.mark.asyncio
async def test_failed_azure_call_is_not_counted(make_cascade):
    usage = UsageTracker()
    upstream = Upstream(cloudflare=rate_limited, azure=None)
    result = await make_cascade(upstream, usage=usage).resolve(UNCLASSIFIED_QUERY)

    assert result.tier == TIER_LOCAL
    assert await usage.get_usage(AZURE_USAGE_SERVICE) == 0


@pytest.mark.asyncio
async def test_nothing_configured_falls_back_locally(make_cascade):
    upstream = Upstream()
    result = await make_cascade(upstream, configured=False).resolve(UNCLASSIFIED_QUERY)

    assert result.tier == TIER_LOCAL
    assert result.stage == "fallback"
    assert result.keywords == "whom could neighbor contact regarding paperwork"
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_budget_overrun_abandons_llm(make_cascade, monkeypatch):
    cascade = make_cascade(Upstream())

    async def slow_extract(query):
        await asyncio.sleep(5)

    monkeypatch.setattr(cascade.cloudflare, "extract_keywords", slow_extract)
    result = await cascade.resolve(UNCLASSIFIED_QUERY, budget_seconds=0.05)

    assert result.tier == TIER_LOCAL
    assert result.stage == "fallback"
