"""
Daily usage counters for metered services.

Counters are keyed by (UTC date, service). A new day simply uses a new key,
so nothing is ever reset explicitly. Reads and increments are not atomic
across instances; a small overshoot of the daily cap under concurrency is
accepted.

Storage is a Redis hash `usage:<date>:<service>` with fields count and
lastUpdated (expiring after seven days) when a Redis client is attached,
otherwise a process-local dict.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from smart_assistant.core.errors import BudgetExhaustedError, UpstreamUnavailableError
from smart_assistant.core.logging import get_logger
from smart_assistant.core.metrics import record_budget_usage

logger = get_logger(__name__)

USAGE_KEY_TTL_SECONDS = 7 * 24 * 60 * 60
LOCAL_RETENTION_DAYS = 7


@dataclass
class UsageRecord:
    count: int
    last_updated: Optional[str] = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")


class UsageTracker:
    def __init__(self, redis_client=None, clock: Callable[[], datetime] = utc_now):
        self.redis_client = redis_client
        self._clock = clock
        self._local: Dict[Tuple[str, str], UsageRecord] = {}

    def today(self) -> str:
        return day_key(self._clock().date())

    async def get_record(self, service: str, day: Optional[str] = None) -> UsageRecord:
        """
        Read the counter for service on day (default: today, UTC).

        Raises:
            UpstreamUnavailableError: the usage store could not be read
        """
        day = day or self.today()

        if self.redis_client is None:
            record = self._local.get((day, service))
            return UsageRecord(record.count, record.last_updated) if record else UsageRecord(0)

        try:
            data = await self.redis_client.hgetall(f"usage:{day}:{service}")
        except Exception as e:
            logger.warning(
                "usage_read_failed",
                service=service,
                day=day,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamUnavailableError("Usage store read failed") from e

        if not data:
            return UsageRecord(0)
        return UsageRecord(int(data.get("count", 0)), data.get("lastUpdated"))

    async def get_usage(self, service: str, day: Optional[str] = None) -> int:
        return (await self.get_record(service, day)).count

    async def ensure_under_budget(self, service: str, limit: int) -> int:
        """
        Return today's count for service when it is below limit.

        Raises:
            BudgetExhaustedError: limit reached, or the store could not be read
        """
        try:
            count = await self.get_usage(service)
        except UpstreamUnavailableError as e:
            raise BudgetExhaustedError(f"Usage for {service} could not be read") from e
        if count >= limit:
            raise BudgetExhaustedError(f"{service} used {count} of {limit} requests today")
        return count

    async def is_under_budget(self, service: str, limit: int) -> bool:
        """True when today's count for service is below limit; an unreadable store is over budget."""
        try:
            await self.ensure_under_budget(service, limit)
        except BudgetExhaustedError:
            return False
        return True

    async def record_usage(self, service: str) -> int:
        """
        Add one successful call to today's counter.

        Returns:
            The new count

        Raises:
            UpstreamUnavailableError: the increment could not be persisted
        """
        now = self._clock()
        day = day_key(now.date())
        timestamp = now.isoformat()

        if self.redis_client is None:
            record = self._local.get((day, service), UsageRecord(0))
            count = record.count + 1
            self._local[(day, service)] = UsageRecord(count, timestamp)
            self._prune_local(now.date())
        else:
            key = f"usage:{day}:{service}"
            try:
                data = await self.redis_client.hgetall(key)
                count = int(data.get("count", 0)) + 1 if data else 1
                await self.redis_client.hset(key, mapping={"count": count, "lastUpdated": timestamp})
                await self.redis_client.expire(key, USAGE_KEY_TTL_SECONDS)
            except Exception as e:
                logger.warning(
                    "usage_increment_failed",
                    service=service,
                    day=day,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise UpstreamUnavailableError("Usage store write failed") from e

        record_budget_usage(service, count)
        logger.debug("usage_recorded", service=service, day=day, count=count)
        return count

    def _prune_local(self, today: date) -> None:
        cutoff = day_key(today - timedelta(days=LOCAL_RETENTION_DAYS))
        stale = [key for key in self._local if key[0] < cutoff]
        for key in stale:
            del self._local[key]
