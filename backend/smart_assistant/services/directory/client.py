"""
Client for the static Bay Navigator directory API.

Each resource is a JSON file served from {base}/{resource}.json. Responses
go through ResilientCache so an upstream outage, or offline mode, serves
the last good copy instead of failing.
"""
import json
from typing import Any, Dict, Optional

import httpx

from smart_assistant.core.errors import (
    DirectoryError,
    DirectoryNotFoundError,
    DirectoryPermanentError,
    DirectoryTransientError,
    OfflineModeError,
)
from smart_assistant.core.logging import get_logger
from smart_assistant.services.directory.cache import CachedResult, ResilientCache

logger = get_logger(__name__)

DAY_SECONDS = 24 * 60 * 60

# resource -> cache TTL in seconds
RESOURCE_TTLS: Dict[str, int] = {
    "programs": DAY_SECONDS,
    "categories": DAY_SECONDS,
    "groups": DAY_SECONDS,
    "areas": DAY_SECONDS,
    "metadata": 30 * 60,
}


class DirectoryClient:
    def __init__(
        self,
        base_url: str,
        cache: Optional[ResilientCache] = None,
        offline: bool = False,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.cache = cache or ResilientCache()
        self.offline = offline
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @staticmethod
    def is_known_resource(resource: str) -> bool:
        return resource in RESOURCE_TTLS

    def url_for(self, resource: str) -> str:
        return f"{self.base_url}/{resource}.json"

    async def _fetch(self, resource: str) -> Any:
        url = self.url_for(resource)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.get(url, headers={"Accept": "application/json"})
        except httpx.TimeoutException as e:
            raise DirectoryTransientError(f"Timed out fetching {resource}") from e
        except httpx.HTTPError as e:
            raise DirectoryTransientError(f"Network error fetching {resource}: {e}") from e

        if response.status_code == 404:
            raise DirectoryNotFoundError(f"{resource} not found")
        if response.status_code >= 500:
            raise DirectoryTransientError(f"Directory returned HTTP {response.status_code}")
        if response.status_code != 200:
            raise DirectoryPermanentError(f"Directory returned HTTP {response.status_code}")

        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise DirectoryPermanentError(f"Could not decode {resource}") from e

    async def get(self, resource: str, force_refresh: bool = False) -> CachedResult:
        """
        Fetch one directory resource through the cache.

        Raises:
            DirectoryNotFoundError: resource is not one the directory serves
            OfflineModeError: offline mode with nothing cached
            DirectoryError: upstream failure with nothing cached
        """
        if not self.is_known_resource(resource):
            raise DirectoryNotFoundError(f"Unknown directory resource: {resource}")

        result = await self.cache.get_or_fetch(
            resource,
            lambda: self._fetch(resource),
            ttl_seconds=RESOURCE_TTLS[resource],
            offline=self.offline,
            force_refresh=force_refresh,
        )
        logger.debug(
            "directory_resource_served",
            resource=resource,
            from_cache=result.from_cache,
            stale=result.stale,
        )
        return result

    async def precache_all(self) -> Dict[str, bool]:
        """Force-refresh every resource; returns resource -> loaded."""
        loaded = {}
        for resource in RESOURCE_TTLS:
            try:
                result = await self.get(resource, force_refresh=True)
                loaded[resource] = not result.stale
            except (DirectoryError, OfflineModeError) as e:
                logger.warning(
                    "directory_precache_failed",
                    resource=resource,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                loaded[resource] = False
        logger.info("directory_precache_completed", loaded=sum(loaded.values()), total=len(loaded))
        return loaded
