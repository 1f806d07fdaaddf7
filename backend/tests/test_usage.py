"""
Unit tests for daily usage counters.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from smart_assistant.core.errors import BudgetExhaustedError, UpstreamUnavailableError
from smart_assistant.services.ai.usage import USAGE_KEY_TTL_SECONDS, UsageTracker


class FakeUtcClock:
    def __init__(self):
        self.now = datetime(2026, 5, 4, 23, 59, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_counts_per_day_and_service():
    clock = FakeUtcClock()
    tracker = UsageTracker(clock=clock)

    await tracker.record_usage("azure_openai")
    await tracker.record_usage("azure_openai")
    await tracker.record_usage("other")

    assert await tracker.get_usage("azure_openai") == 2
    assert await tracker.get_usage("other") == 1
    record = await tracker.get_record("azure_openai")
    assert record.last_updated == clock.now.isoformat()


@pytest.mark.asyncio
async def test_new_utc_day_starts_at_zero():
    clock = FakeUtcClock()
    tracker = UsageTracker(clock=clock)
    await tracker.record_usage("azure_openai")

    clock.now += timedelta(minutes=2)

    assert tracker.today() == "2026-05-05"
    assert await tracker.get_usage("azure_openai") == 0
    assert await tracker.get_usage("azure_openai", day="2026-05-04") == 1


@pytest.mark.asyncio
async def test_budget_check():
    tracker = UsageTracker(clock=FakeUtcClock())
    assert await tracker.is_under_budget("azure_openai", 2)
    await tracker.record_usage("azure_openai")
    await tracker.record_usage("azure_openai")
    assert not await tracker.is_under_budget("azure_openai", 2)


@pytest.mark.asyncio
async def test_redis_store(fake_redis):
    redis = fake_redis
    tracker = UsageTracker(redis_client=redis, clock=FakeUtcClock())

    assert await tracker.record_usage("azure_openai") == 1
    assert await tracker.record_usage("azure_openai") == 2

    key = "usage:2026-05-04:azure_openai"
    assert redis.hashes[key]["count"] == 2
    assert "lastUpdated" in redis.hashes[key]
    assert redis.ttls[key] == USAGE_KEY_TTL_SECONDS


@pytest.mark.asyncio
async def test_unreadable_store_is_over_budget():
    redis = MagicMock()
    redis.hgetall = AsyncMock(side_effect=ConnectionError("redis down"))
    tracker = UsageTracker(redis_client=redis)

    with pytest.raises(UpstreamUnavailableError):
        await tracker.get_usage("azure_openai")
    assert not await tracker.is_under_budget("azure_openai", 100)


@pytest.mark.asyncio
async def test_failed_increment_raises(fake_redis):
    redis = fake_redis
    redis.hset = AsyncMock(side_effect=ConnectionError("redis down"))
    tracker = UsageTracker(redis_client=redis)

    with pytest.raises(UpstreamUnavailableError):
        await tracker.record_usage("azure_openai")


@pytest.mark.asyncio
async def test_ensure_under_budget_raises_at_cap():
    tracker = UsageTracker(clock=FakeUtcClock())
    await tracker.record_usage("azure_openai")

    assert await tracker.ensure_under_budget("azure_openai", 2) == 1
    await tracker.record_usage("azure_openai")
    with pytest.raises(BudgetExhaustedError):
        await tracker.ensure_under_budget("azure_openai", 2)


@pytest.mark.asyncio
async def test_ensure_under_budget_raises_when_store_unreadable():
    redis = MagicMock()
    redis.hgetall = AsyncMock(side_effect=ConnectionError("redis down"))
    tracker = UsageTracker(redis_client=redis)

    with pytest.raises(BudgetExhaustedError):
        await tracker.ensure_under_budget("azure_openai", 100)
