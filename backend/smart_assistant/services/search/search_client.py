"""
Azure AI Search REST client for the programs index.

Any failure (not configured, timeout, non-200, bad JSON, open circuit)
degrades to an empty result list and is logged; the assistant still
answers, just without program cards.
"""
import time
from typing import Any, Dict, List, Optional

import httpx

from smart_assistant.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from smart_assistant.core.errors import UpstreamUnavailableError
from smart_assistant.core.logging import get_logger
from smart_assistant.core.metrics import record_search_request
from smart_assistant.core.tracing import get_tracer, set_span_attribute
from smart_assistant.services.search.query_builder import SearchRequest

logger = get_logger(__name__)

SEARCH_API_VERSION = "2023-11-01"


class SearchIndexClient:
    def __init__(
        self,
        endpoint: Optional[str],
        api_key: Optional[str],
        index_name: str = "programs",
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.api_key = api_key
        self.index_name = index_name
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name="search_index")

    def is_configured(self) -> bool:
        return bool(self.endpoint and self.api_key)

    @property
    def url(self) -> str:
        return f"{self.endpoint}/indexes/{self.index_name}/docs/search?api-version={SEARCH_API_VERSION}"

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            response = await client.post(
                self.url,
                headers={"Content-Type": "application/json", "api-key": self.api_key},
                json=payload,
            )
        if response.status_code >= 500:
            raise UpstreamUnavailableError(f"search index returned {response.status_code}")
        return response

    async def search(self, request: SearchRequest) -> List[Dict[str, Any]]:
        """Run request against the index; returns the `value` documents or []."""
        if not self.is_configured():
            logger.info("search_not_configured")
            return []

        start = time.monotonic()
        with get_tracer().start_as_current_span("search.index"):
            set_span_attribute("search.has_filter", bool(request.filter))
            set_span_attribute("search.top", request.top)
            try:
                response = await self.circuit_breaker.call(self._post, request.to_payload())
            except CircuitBreakerOpenError:
                logger.warning("search_circuit_open")
                record_search_request(time.monotonic() - start, "circuit_open")
                return []
            except httpx.TimeoutException as e:
                logger.warning("search_timeout", timeout_seconds=self.timeout_seconds, error_type=type(e).__name__)
                record_search_request(time.monotonic() - start, "timeout")
                return []
            except (httpx.HTTPError, UpstreamUnavailableError) as e:
                logger.warning("search_http_error", error=str(e), error_type=type(e).__name__)
                record_search_request(time.monotonic() - start, "http_error")
                return []

            if response.status_code != 200:
                logger.warning("search_request_rejected", status_code=response.status_code)
                record_search_request(time.monotonic() - start, f"status_{response.status_code}")
                return []

            try:
                documents = response.json().get("value") or []
            except (ValueError, AttributeError) as e:
                logger.warning("search_response_invalid", error=str(e), error_type=type(e).__name__)
                record_search_request(time.monotonic() - start, "invalid_response")
                return []

            record_search_request(time.monotonic() - start)
            set_span_attribute("search.results", len(documents))
            logger.info(
                "search_completed",
                results=len(documents),
                has_filter=bool(request.filter),
                latency_ms=int((time.monotonic() - start) * 1000),
            )
            return documents
