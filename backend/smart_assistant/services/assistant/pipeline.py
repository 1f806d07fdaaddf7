"""
Assistant request pipeline.

sanitize -> location -> quick answer -> (cascade) -> search -> envelope

Rate limiting has already happened in middleware by the time a request
reaches this module. Only the sanitized query is used past the first step.
"""
import time
from typing import Any, Dict, List, Optional, Sequence

from smart_assistant.core.errors import ConfigurationError, QueryValidationError
from smart_assistant.core.logging import get_logger
from smart_assistant.core.metrics import record_resolution
from smart_assistant.core.privacy import prepare_query
from smart_assistant.core.tracing import get_tracer, set_span_attribute
from smart_assistant.models.responses import AssistantResponse
from smart_assistant.services.ai.cascade import TierCascade
from smart_assistant.services.assistant.response import TIER_QUICK_ANSWER, assemble_response
from smart_assistant.services.quick_answers.matcher import QuickAnswerMatcher
from smart_assistant.services.search.location import LocationMatch, LocationResolver
from smart_assistant.services.search.query_builder import build_search_request
from smart_assistant.services.search.search_client import SearchIndexClient
from smart_assistant.services.search.synonym_expansion import QueryExpander

logger = get_logger(__name__)

FALLBACK_ANSWER_TYPE = "fallback"


class AssistantPipeline:
    def __init__(
        self,
        resolver: LocationResolver,
        matcher: QuickAnswerMatcher,
        expander: QueryExpander,
        cascade: TierCascade,
        search_client: SearchIndexClient,
        request_budget_seconds: float = 20.0,
    ):
        self.resolver = resolver
        self.matcher = matcher
        self.expander = expander
        self.cascade = cascade
        self.search_client = search_client
        self.request_budget_seconds = request_budget_seconds

    async def search_programs(self, keywords: str, location: Optional[LocationMatch]) -> List[Dict[str, Any]]:
        """Expand keywords, filter by detected categories and location, and query the index."""
        expanded = self.expander.expand_query_with_synonyms(keywords)
        request = build_search_request(expanded.text, expanded.category_ids, location)
        logger.debug(
            "search_request_built",
            term_count=len(expanded.terms),
            categories=expanded.category_ids,
            has_location=location is not None,
        )
        return await self.search_client.search(request)

    async def handle(self, message: Any, conversation_history: Sequence[Any] = ()) -> AssistantResponse:
        """
        Resolve one assistant message into the response envelope.

        Raises:
            ConfigurationError: the search index is not configured
            QueryValidationError: message missing, blank or not a string
        """
        started = time.monotonic()

        if not self.search_client.is_configured():
            logger.error("search_not_configured", status=503)
            raise ConfigurationError()

        if not isinstance(message, str) or not message.strip():
            logger.warning("assistant_invalid_request", reason="missing_message", status=400)
            raise QueryValidationError()

        query = prepare_query(message)
        logger.info(
            "assistant_query_received",
            query_length=len(query),
            word_count=len(query.split()),
            has_history=len(conversation_history) > 0,
        )

        with get_tracer().start_as_current_span("assistant.pipeline"):
            location = self.resolver.resolve(query)
            if location:
                logger.info("location_detected", **location.to_dict())

            quick = self.matcher.match(query, location)

            if quick and not quick.should_continue_to_ai:
                programs: List[Dict[str, Any]] = []
                if quick.search:
                    programs = await self.search_programs(quick.search, location)
                response = assemble_response(
                    quick_answer=quick.response,
                    programs=programs,
                    search_query=quick.search or query,
                    location=location,
                    tier=TIER_QUICK_ANSWER,
                    skipped_llm=True,
                )
                self._finish(response, started)
                return response

            remaining = self.request_budget_seconds - (time.monotonic() - started)
            resolution = await self.cascade.resolve(query, budget_seconds=remaining)
            set_span_attribute("assistant.tier", resolution.tier)

            programs = await self.search_programs(resolution.keywords, location)

            quick_answer = quick.response if quick else None
            if not programs and quick_answer is None:
                fallback = self.matcher.fallback()
                if fallback:
                    quick_answer = {"type": FALLBACK_ANSWER_TYPE, **fallback}

            response = assemble_response(
                quick_answer=quick_answer,
                programs=programs,
                search_query=resolution.keywords,
                location=location,
                tier=resolution.tier,
                skipped_llm=resolution.skipped_llm,
            )
            self._finish(response, started)
            return response

    @staticmethod
    def _finish(response: AssistantResponse, started: float) -> None:
        record_resolution(response.tier, response.programs_found)
        logger.info(
            "assistant_query_resolved",
            tier=response.tier,
            skipped_llm=response.skipped_llm,
            programs_found=response.programs_found,
            has_quick_answer=response.quick_answer is not None,
            latency_ms=int((time.monotonic() - started) * 1000),
        )
