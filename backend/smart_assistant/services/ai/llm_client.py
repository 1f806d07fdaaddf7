"""
Keyword-extraction clients for the two LLM tiers.

- CloudflareWorkersAIClient: free tier (Llama 3.1 8B). Hard-stops with 429
  when the daily neuron allowance is used up.
- AzureOpenAIClient: budget-capped tier (gpt-4o-mini deployment).

Both talk plain HTTP through httpx, send only the sanitized query, and return
a tagged LLMResult instead of raising. Each client has its own timeout and
circuit breaker; 5xx responses, timeouts and network errors count as
breaker failures, 4xx responses do not.
"""
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

from smart_assistant.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from smart_assistant.core.errors import UpstreamUnavailableError
from smart_assistant.core.logging import get_logger
from smart_assistant.core.metrics import record_llm_request
from smart_assistant.core.tracing import get_tracer

logger = get_logger(__name__)

SYSTEM_PROMPT = "You extract search keywords from queries. Return only space-separated keywords, nothing else."
MAX_TOKENS = 60
TEMPERATURE = 0.1

CLOUDFLARE_API_BASE = "https://api.cloudflare.com/client/v4"
AZURE_OPENAI_API_VERSION = "2024-02-15-preview"

CLOUDFLARE_PROMPT = """You help extract search keywords from natural language queries about assistance programs.

User query: "{query}"

Extract and return ONLY a space-separated list of search terms that would match relevant programs. Include:
- The main topic (childcare, food, housing, transportation, utilities, healthcare, etc.)
- Target demographics if mentioned (seniors, veterans, children, disabled, low-income, infant, youth, elderly, 65+, etc.)
- Specific program types (subsidy, discount, free, emergency, assistance, etc.)
- Related terms that programs might use

Examples:
- "I need affordable childcare for my infant" -> "childcare infant child care affordable subsidy preschool daycare baby toddler"
- "I'm a senior who needs help with transportation" -> "senior seniors elderly 65+ transportation transit bus ride discount paratransit clipper"
- "Help paying electric bill" -> "utility utilities electric energy bill payment assistance LIHEAP PG&E low-income"

Return ONLY the keywords separated by spaces, nothing else:"""

AZURE_PROMPT = """Extract search keywords from this query about assistance programs.

Query: "{query}"

Return ONLY space-separated keywords that would match relevant programs. Include topics, demographics, and program types.

Keywords:"""


class LLMStatus(str, Enum):
    OK = "ok"
    NOT_CONFIGURED = "not_configured"
    RATE_LIMITED = "rate_limited"
    BUDGET_EXHAUSTED = "budget_exhausted"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass(frozen=True)
class LLMResult:
    status: LLMStatus
    keywords: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == LLMStatus.OK and bool(self.keywords)


def build_messages(prompt_template: str, query: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt_template.format(query=query)},
    ]


class KeywordExtractionClient(ABC):
    """Shared HTTP, breaker and metrics handling for one LLM provider."""

    provider = "llm"
    prompt_template = AZURE_PROMPT

    def __init__(
        self,
        timeout_seconds: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name=f"llm_{self.provider}")

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials for this provider are present."""
        pass

    @abstractmethod
    def build_request(self, query: str) -> Dict[str, Any]:
        """Return url, headers and json payload for one extraction call."""
        pass

    @abstractmethod
    def parse_keywords(self, data: Dict[str, Any]) -> str:
        """Pull the keyword string out of a decoded provider response."""
        pass

    async def _send(self, request: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            response = await client.post(
                request["url"],
                headers=request["headers"],
                json=request["json"],
            )
        if response.status_code >= 500:
            raise UpstreamUnavailableError(f"{self.provider} returned {response.status_code}")
        return response

    def _finish(self, status: LLMStatus, started: Optional[float], keywords: Optional[str] = None) -> LLMResult:
        duration = time.monotonic() - started if started is not None else None
        record_llm_request(self.provider, status.value, duration)
        return LLMResult(status=status, keywords=keywords)

    async def extract_keywords(self, query: str) -> LLMResult:
        """
        Ask the provider for space-separated search keywords.

        Never raises for upstream problems; the status says what happened.
        """
        if not self.is_configured():
            logger.debug("llm_not_configured", provider=self.provider)
            return self._finish(LLMStatus.NOT_CONFIGURED, None)

        request = self.build_request(query)
        started = time.monotonic()

        with get_tracer().start_as_current_span(f"llm.{self.provider}"):
            try:
                response = await self.circuit_breaker.call(self._send, request)
            except CircuitBreakerOpenError:
                logger.warning("llm_circuit_open", provider=self.provider)
                return self._finish(LLMStatus.TRANSIENT_FAILURE, started)
            except httpx.TimeoutException as e:
                logger.warning(
                    "llm_timeout",
                    provider=self.provider,
                    timeout_seconds=self.timeout_seconds,
                    error_type=type(e).__name__,
                )
                return self._finish(LLMStatus.TRANSIENT_FAILURE, started)
            except (httpx.HTTPError, UpstreamUnavailableError) as e:
                logger.warning(
                    "llm_http_error",
                    provider=self.provider,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return self._finish(LLMStatus.TRANSIENT_FAILURE, started)

            if response.status_code == 429:
                logger.info("llm_rate_limited", provider=self.provider)
                return self._finish(LLMStatus.RATE_LIMITED, started)

            if response.status_code >= 400:
                logger.warning(
                    "llm_request_rejected",
                    provider=self.provider,
                    status_code=response.status_code,
                )
                return self._finish(LLMStatus.PERMANENT_FAILURE, started)

            try:
                keywords = self.parse_keywords(response.json())
            except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
                logger.warning(
                    "llm_response_invalid",
                    provider=self.provider,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return self._finish(LLMStatus.PERMANENT_FAILURE, started)

            if not keywords:
                logger.warning("llm_empty_keywords", provider=self.provider)
                return self._finish(LLMStatus.PERMANENT_FAILURE, started)

            logger.info(
                "llm_keywords_extracted",
                provider=self.provider,
                keyword_count=len(keywords.split()),
            )
            return self._finish(LLMStatus.OK, started, keywords)


class CloudflareWorkersAIClient(KeywordExtractionClient):
    """
    Free tier. A 429 means the daily allowance is gone, so the client stops
    calling until the next UTC day.
    """

    provider = "cloudflare"
    prompt_template = CLOUDFLARE_PROMPT

    def __init__(
        self,
        account_id: Optional[str],
        api_token: Optional[str],
        model: str = "@cf/meta/llama-3.1-8b-instruct",
        api_base: str = CLOUDFLARE_API_BASE,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.account_id = account_id
        self.api_token = api_token
        self.model = model
        self.api_base = api_base.rstrip("/")
        self._clock = clock
        self._exhausted_on: Optional[str] = None

    def is_configured(self) -> bool:
        return bool(self.account_id and self.api_token)

    def _today(self) -> str:
        return self._clock().strftime("%Y-%m-%d")

    def is_exhausted(self) -> bool:
        return self._exhausted_on == self._today()

    def build_request(self, query: str) -> Dict[str, Any]:
        return {
            "url": f"{self.api_base}/accounts/{self.account_id}/ai/run/{self.model}",
            "headers": {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_token}",
            },
            "json": {
                "messages": build_messages(self.prompt_template, query),
                "max_tokens": MAX_TOKENS,
                "temperature": TEMPERATURE,
            },
        }

    def parse_keywords(self, data: Dict[str, Any]) -> str:
        return ((data.get("result") or {}).get("response") or "").strip()

    async def extract_keywords(self, query: str) -> LLMResult:
        if self.is_configured() and self.is_exhausted():
            logger.debug("llm_daily_allowance_exhausted", provider=self.provider)
            return self._finish(LLMStatus.RATE_LIMITED, None)

        result = await super().extract_keywords(query)
        if result.status == LLMStatus.RATE_LIMITED:
            self._exhausted_on = self._today()
            logger.warning("llm_daily_allowance_exhausted", provider=self.provider, day=self._exhausted_on)
        return result


class AzureOpenAIClient(KeywordExtractionClient):
    provider = "azure_openai"
    prompt_template = AZURE_PROMPT

    def __init__(
        self,
        endpoint: Optional[str],
        api_key: Optional[str],
        deployment: str = "gpt-4o-mini",
        api_version: str = AZURE_OPENAI_API_VERSION,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.api_key = api_key
        self.deployment = deployment
        self.api_version = api_version

    def is_configured(self) -> bool:
        return bool(self.endpoint and self.api_key)

    def build_request(self, query: str) -> Dict[str, Any]:
        return {
            "url": (
                f"{self.endpoint}/openai/deployments/{self.deployment}"
                f"/chat/completions?api-version={self.api_version}"
            ),
            "headers": {
                "Content-Type": "application/json",
                "api-key": self.api_key,
            },
            "json": {
                "messages": build_messages(self.prompt_template, query),
                "max_tokens": MAX_TOKENS,
                "temperature": TEMPERATURE,
            },
        }

    def parse_keywords(self, data: Dict[str, Any]) -> str:
        return (data["choices"][0]["message"]["content"] or "").strip()
