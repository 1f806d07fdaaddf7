"""
Health check endpoints.
"""
from fastapi import APIRouter, Request

from smart_assistant.core.cache import ping_redis
from smart_assistant.core.logging import get_logger
from smart_assistant.services.ai.cascade import AZURE_USAGE_SERVICE

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "ok",
        "message": "API is running"
    }


@router.get("/dependencies")
async def dependencies_health(request: Request):
    """
    Report which upstream dependencies are configured and reachable.

    Returns:
        - search: whether the program index is configured (required)
        - cloudflare / azure_openai: whether each LLM tier is configured
          and whether the Azure daily budget still has room
        - redis: enabled and answering PING
        - circuit_breakers: state of each outbound breaker
        - reference_data: loaded table versions

    status is "degraded" when search is not configured, since the
    assistant endpoint answers 503 in that case.
    """
    container = request.app.state.container

    redis_enabled = container.redis_client is not None
    redis_ok = await ping_redis(container.redis_client) if redis_enabled else False
    search_configured = container.search_client.is_configured()

    response = {
        "status": "ok" if search_configured else "degraded",
        "search": {"configured": search_configured},
        "cloudflare": {
            "configured": container.cloudflare.is_configured(),
            "exhausted_today": container.cloudflare.is_exhausted(),
        },
        "azure_openai": {
            "configured": container.azure.is_configured(),
            "max_daily_requests": container.settings.azure_openai_max_daily_requests,
            "under_budget_today": await container.usage.is_under_budget(
                AZURE_USAGE_SERVICE, container.settings.azure_openai_max_daily_requests
            ),
        },
        "redis": {"enabled": redis_enabled, "reachable": redis_ok},
        "circuit_breakers": {
            breaker.name: breaker.state.value
            for breaker in (
                container.search_client.circuit_breaker,
                container.cloudflare.circuit_breaker,
                container.azure.circuit_breaker,
            )
        },
        "reference_data": dict(container.reference.versions),
        "directory": {"offline_mode": container.directory.offline},
    }

    if redis_enabled and not redis_ok:
        logger.warning("health_redis_unreachable")

    return response
