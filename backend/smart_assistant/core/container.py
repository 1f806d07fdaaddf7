"""
Service container.

Every long-lived component is built once from Settings in build_container
and hung off app.state.container. Routes and middleware read what they need
from there; nothing is looked up through module globals.
"""
from dataclasses import dataclass, field
from typing import Optional

import httpx
from redis.asyncio import Redis

from smart_assistant.core.cache import close_redis, create_redis_client
from smart_assistant.core.config import Settings
from smart_assistant.core.logging import get_logger
from smart_assistant.core.rate_limit import FixedWindowRateLimiter
from smart_assistant.services.ai.cascade import TierCascade
from smart_assistant.services.ai.llm_client import AzureOpenAIClient, CloudflareWorkersAIClient
from smart_assistant.services.ai.usage import UsageTracker
from smart_assistant.services.assistant.pipeline import AssistantPipeline
from smart_assistant.services.directory.client import DirectoryClient
from smart_assistant.services.quick_answers.matcher import QuickAnswerMatcher
from smart_assistant.services.reference.loader import ReferenceData, load_reference_data
from smart_assistant.services.search.classification import LocalClassifier
from smart_assistant.services.search.location import LocationResolver
from smart_assistant.services.search.search_client import SearchIndexClient
from smart_assistant.services.search.synonym_expansion import QueryExpander

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    reference: ReferenceData
    rate_limiter: FixedWindowRateLimiter
    usage: UsageTracker
    search_client: SearchIndexClient
    cloudflare: CloudflareWorkersAIClient
    azure: AzureOpenAIClient
    cascade: TierCascade
    pipeline: AssistantPipeline
    directory: DirectoryClient
    redis_client: Optional[Redis] = field(default=None)

    async def startup(self) -> None:
        """Connect Redis and share it with the stores that can use it."""
        self.redis_client = await create_redis_client(self.settings.redis_url)
        self.rate_limiter.redis_client = self.redis_client
        self.usage.redis_client = self.redis_client
        logger.info(
            "container_started",
            redis_enabled=self.redis_client is not None,
            search_configured=self.search_client.is_configured(),
            cloudflare_configured=self.cloudflare.is_configured(),
            azure_openai_configured=self.azure.is_configured(),
        )

    async def shutdown(self) -> None:
        await close_redis(self.redis_client)
        self.redis_client = None
        self.rate_limiter.redis_client = None
        self.usage.redis_client = None


def build_container(
    settings: Settings,
    reference: Optional[ReferenceData] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceContainer:
    """
    Wire the assistant's components from settings.

    Args:
        settings: Loaded settings
        reference: Pre-loaded reference tables; loaded from settings.reference_data_dir if omitted
        transport: Optional httpx transport shared by every outbound client (tests)

    Raises:
        ConfigurationError: required reference tables are missing
    """
    reference = reference or load_reference_data(settings.reference_data_dir)

    classifier = LocalClassifier(reference)
    expander = QueryExpander(classifier, reference.synonyms)
    usage = UsageTracker()

    search_client = SearchIndexClient(
        settings.azure_search_endpoint,
        settings.azure_search_key,
        index_name=settings.azure_search_index,
        timeout_seconds=settings.search_timeout_seconds,
        transport=transport,
    )
    cloudflare = CloudflareWorkersAIClient(
        settings.cf_account_id,
        settings.cf_api_token,
        model=settings.cf_model,
        timeout_seconds=settings.cf_timeout_seconds,
        transport=transport,
    )
    azure = AzureOpenAIClient(
        settings.azure_openai_endpoint,
        settings.azure_openai_key,
        deployment=settings.azure_openai_deployment,
        timeout_seconds=settings.azure_openai_timeout_seconds,
        transport=transport,
    )
    cascade = TierCascade(
        classifier,
        expander,
        cloudflare,
        azure,
        usage,
        azure_max_daily_requests=settings.azure_openai_max_daily_requests,
        ai_budget_seconds=settings.request_budget_seconds,
    )
    pipeline = AssistantPipeline(
        LocationResolver(reference.locations),
        QuickAnswerMatcher(reference.quick_answers),
        expander,
        cascade,
        search_client,
        request_budget_seconds=settings.request_budget_seconds,
    )
    directory = DirectoryClient(
        settings.directory_api_base,
        offline=settings.directory_offline_mode,
        timeout_seconds=settings.directory_timeout_seconds,
        transport=transport,
    )

    return ServiceContainer(
        settings=settings,
        reference=reference,
        rate_limiter=FixedWindowRateLimiter(
            limit=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        usage=usage,
        search_client=search_client,
        cloudflare=cloudflare,
        azure=azure,
        cascade=cascade,
        pipeline=pipeline,
        directory=directory,
    )
