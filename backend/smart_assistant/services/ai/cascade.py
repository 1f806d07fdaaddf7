"""
Tier cascade: turn a sanitized query into search keywords as cheaply as possible.

Stages, first success wins:
1. Common-question table          (free, local)
2. Short query (<= 3 words)       (free, local synonym expansion)
3. Category or group detected     (free, local synonym expansion)
4. Cloudflare Workers AI          (free tier, hard daily cap)
5. Azure OpenAI                   (metered, daily request budget)
6. Local synonym expansion        (always succeeds)

The cascade never raises. Metered and free LLM calls run under the
request's remaining time budget; when it runs out the in-flight call is
abandoned and stage 6 answers.
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

from smart_assistant.core.errors import BudgetExhaustedError, UpstreamUnavailableError
from smart_assistant.core.logging import get_logger
from smart_assistant.services.ai.llm_client import (
    AzureOpenAIClient,
    CloudflareWorkersAIClient,
    LLMResult,
    LLMStatus,
)
from smart_assistant.services.ai.usage import UsageTracker
from smart_assistant.services.search.classification import LocalClassifier
from smart_assistant.services.search.synonym_expansion import QueryExpander

logger = get_logger(__name__)

SHORT_QUERY_MAX_WORDS = 3
AZURE_USAGE_SERVICE = "azure_openai"

TIER_LOCAL = "local"
TIER_CLOUDFLARE = "cloudflare"
TIER_AZURE = "azure_openai"


@dataclass(frozen=True)
class CascadeResult:
    keywords: str
    skipped_llm: bool
    used_azure: bool = False
    tier: str = TIER_LOCAL
    stage: str = "fallback"


class TierCascade:
    def __init__(
        self,
        classifier: LocalClassifier,
        expander: QueryExpander,
        cloudflare: CloudflareWorkersAIClient,
        azure: AzureOpenAIClient,
        usage: UsageTracker,
        azure_max_daily_requests: int,
        ai_budget_seconds: float = 20.0,
    ):
        self.classifier = classifier
        self.expander = expander
        self.cloudflare = cloudflare
        self.azure = azure
        self.usage = usage
        self.azure_max_daily_requests = azure_max_daily_requests
        self.ai_budget_seconds = ai_budget_seconds

    def _local(self, query: str, stage: str) -> CascadeResult:
        return CascadeResult(
            keywords=self.expander.expand_query_with_synonyms(query).text,
            skipped_llm=True,
            tier=TIER_LOCAL,
            stage=stage,
        )

    async def resolve(self, query: str, budget_seconds: Optional[float] = None) -> CascadeResult:
        """
        Resolve query to search keywords.

        Args:
            query: Sanitized user query
            budget_seconds: Time left for the LLM stages; defaults to ai_budget_seconds
        """
        common = self.classifier.match_common_query(query)
        if common:
            logger.info("cascade_resolved", stage="common_query", tier=TIER_LOCAL)
            return CascadeResult(
                keywords=common.keywords_to_search,
                skipped_llm=True,
                tier=TIER_LOCAL,
                stage="common_query",
            )

        word_count = len(query.split())
        if word_count <= SHORT_QUERY_MAX_WORDS:
            logger.info("cascade_resolved", stage="short_query", tier=TIER_LOCAL, word_count=word_count)
            return self._local(query, "short_query")

        classification = self.classifier.classify(query)
        if classification.has_matches:
            logger.info(
                "cascade_resolved",
                stage="classified",
                tier=TIER_LOCAL,
                categories=len(classification.categories),
                groups=len(classification.groups),
            )
            return self._local(query, "classified")

        budget = self.ai_budget_seconds if budget_seconds is None else budget_seconds
        try:
            result = await asyncio.wait_for(self._resolve_with_llm(query), timeout=max(budget, 0.0))
        except asyncio.TimeoutError:
            logger.warning("cascade_budget_exceeded", budget_seconds=budget)
            result = None

        if result is not None:
            return result

        logger.info("cascade_resolved", stage="fallback", tier=TIER_LOCAL)
        return self._local(query, "fallback")

    async def _resolve_with_llm(self, query: str) -> Optional[CascadeResult]:
        cloudflare_result = await self.cloudflare.extract_keywords(query)
        if cloudflare_result.ok:
            logger.info("cascade_resolved", stage="cloudflare", tier=TIER_CLOUDFLARE)
            return CascadeResult(
                keywords=cloudflare_result.keywords,
                skipped_llm=False,
                used_azure=False,
                tier=TIER_CLOUDFLARE,
                stage="cloudflare",
            )
        self._log_tier_failure(TIER_CLOUDFLARE, cloudflare_result)

        azure_result = await self._try_azure(query)
        if azure_result.ok:
            logger.info("cascade_resolved", stage="azure_openai", tier=TIER_AZURE)
            return CascadeResult(
                keywords=azure_result.keywords,
                skipped_llm=False,
                used_azure=True,
                tier=TIER_AZURE,
                stage="azure_openai",
            )
        self._log_tier_failure(TIER_AZURE, azure_result)
        return None

    async def _try_azure(self, query: str) -> LLMResult:
        if not self.azure.is_configured():
            return LLMResult(LLMStatus.NOT_CONFIGURED)

        try:
            await self.usage.ensure_under_budget(AZURE_USAGE_SERVICE, self.azure_max_daily_requests)
        except BudgetExhaustedError as e:
            logger.info("cascade_budget_gate_closed", tier=TIER_AZURE, reason=e.message)
            return LLMResult(LLMStatus.BUDGET_EXHAUSTED)

        result = await self.azure.extract_keywords(query)
        if not result.ok:
            return result

        try:
            await self.usage.record_usage(AZURE_USAGE_SERVICE)
        except UpstreamUnavailableError:
            # uncounted calls are treated as a failed tier
            return LLMResult(LLMStatus.TRANSIENT_FAILURE)
        return result

    @staticmethod
    def _log_tier_failure(tier: str, result: LLMResult) -> None:
        log = logger.debug if result.status == LLMStatus.NOT_CONFIGURED else logger.info
        log("cascade_tier_failed", tier=tier, status=result.status.value)
