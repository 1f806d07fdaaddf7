"""
Quick-answer matching (Tier 0).

Pattern sets are checked in a fixed priority order and the first match wins:

1. crisis   - any crisis phrase anywhere in the query; always terminal
2. clarify  - vague queries of at most four words (exact or leading match)
3. program  - application trouble, eligibility questions, then named programs
4. category - help-seeking phrases for a topic; the search still runs

Matching never touches the network.
"""
import copy
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from smart_assistant.core.logging import get_logger
from smart_assistant.core.metrics import record_quick_answer
from smart_assistant.services.search.location import LocationMatch

logger = get_logger(__name__)

MAX_CLARIFY_WORDS = 4

TYPE_CRISIS = "crisis"
TYPE_CLARIFY = "clarify"
TYPE_PROGRAM = "program"
TYPE_CATEGORY = "category"
TYPE_GUIDE = "guide"
TYPE_GUIDE_WITH_CONTACT = "guide_with_contact"
TYPE_ELIGIBILITY = "eligibility"


@dataclass
class QuickAnswerResult:
    type: str
    response: Dict[str, Any]
    should_continue_to_ai: bool = False

    @property
    def search(self) -> Optional[str]:
        return self.response.get("search")


def county_contact_key(county: str) -> str:
    """'Santa Clara County' -> 'santa_clara'"""
    return "_".join(county.lower().replace(" county", "").split())


def _contains_any(lower_query: str, phrases) -> bool:
    return any(phrase.lower() in lower_query for phrase in phrases)


class QuickAnswerMatcher:
    def __init__(self, quick_answers: Mapping[str, Any]):
        self.data = quick_answers

    def match(self, query: str, location: Optional[LocationMatch] = None) -> Optional[QuickAnswerResult]:
        """
        Match query against the canned answer sets.

        Args:
            query: Sanitized user query
            location: Resolved location, used for county contacts

        Returns:
            QuickAnswerResult, or None when nothing matches
        """
        if not query or not self.data:
            return None

        lower_query = query.lower().strip()

        result = (
            self._match_crisis(lower_query)
            or self._match_clarify(lower_query)
            or self._match_trouble(lower_query, location)
            or self._match_eligibility(lower_query)
            or self._match_program(lower_query)
            or self._match_category(lower_query)
        )

        if result:
            record_quick_answer(result.type)
            logger.info(
                "quick_answer_matched",
                answer_type=result.type,
                continues_to_search=result.should_continue_to_ai,
            )
        return result

    def _match_crisis(self, lower_query: str) -> Optional[QuickAnswerResult]:
        for crisis in self.data.get("crisisPatterns", []):
            if _contains_any(lower_query, crisis.get("patterns", [])):
                response = copy.deepcopy(crisis["response"])
                response["type"] = TYPE_CRISIS
                response.setdefault("search", None)
                return QuickAnswerResult(type=TYPE_CRISIS, response=response)
        return None

    def _match_clarify(self, lower_query: str) -> Optional[QuickAnswerResult]:
        if len(lower_query.split()) > MAX_CLARIFY_WORDS:
            return None
        for clarify in self.data.get("clarifyPatterns", []):
            for pattern in clarify.get("patterns", []):
                pattern = pattern.lower()
                if lower_query == pattern or lower_query.startswith(pattern + " "):
                    response = copy.deepcopy(clarify["response"])
                    response.setdefault("type", TYPE_CLARIFY)
                    return QuickAnswerResult(type=TYPE_CLARIFY, response=response)
        return None

    def _match_trouble(
        self, lower_query: str, location: Optional[LocationMatch]
    ) -> Optional[QuickAnswerResult]:
        trouble = self.data.get("troublePatterns")
        if not trouble or not _contains_any(lower_query, trouble.get("triggers", [])):
            return None

        for info in trouble.get("programs", {}).values():
            if not _contains_any(lower_query, info.get("keywords", [])):
                continue

            county_contact = None
            if location and location.county:
                contact = self.data.get("countyContacts", {}).get(county_contact_key(location.county))
                county_contact = copy.deepcopy(contact) if contact else None

            answer_type = TYPE_GUIDE_WITH_CONTACT if county_contact else TYPE_GUIDE
            response = {
                "type": answer_type,
                "title": info.get("fallbackMessage"),
                "message": info.get("fallbackAction"),
                "guideUrl": info.get("guideUrl"),
                "guideTitle": info.get("guideTitle"),
                "countyContact": county_contact,
            }
            return QuickAnswerResult(type=answer_type, response=response)
        return None

    def _match_eligibility(self, lower_query: str) -> Optional[QuickAnswerResult]:
        eligibility = self.data.get("eligibilityQueries")
        if not eligibility or not _contains_any(lower_query, eligibility.get("triggers", [])):
            return None

        for info in eligibility.get("programs", {}).values():
            if _contains_any(lower_query, info.get("keywords", [])):
                response = {
                    "type": TYPE_ELIGIBILITY,
                    "title": info.get("title"),
                    "guideUrl": info.get("url"),
                }
                return QuickAnswerResult(type=TYPE_ELIGIBILITY, response=response)
        return None

    def _match_program(self, lower_query: str) -> Optional[QuickAnswerResult]:
        for program in self.data.get("programQueries", []):
            if _contains_any(lower_query, program.get("patterns", [])):
                response = copy.deepcopy(program["response"])
                response.setdefault("type", TYPE_PROGRAM)
                return QuickAnswerResult(type=TYPE_PROGRAM, response=response)
        return None

    def _match_category(self, lower_query: str) -> Optional[QuickAnswerResult]:
        for intent in self.data.get("categoryIntentPatterns", []):
            if _contains_any(lower_query, intent.get("patterns", [])):
                response = copy.deepcopy(intent["response"])
                response.setdefault("type", TYPE_CATEGORY)
                return QuickAnswerResult(
                    type=TYPE_CATEGORY,
                    response=response,
                    should_continue_to_ai=True,
                )
        return None

    def fallback(self) -> Optional[Dict[str, Any]]:
        """The 211 referral shown when a search finds nothing."""
        fallback = self.data.get("fallback")
        return copy.deepcopy(fallback) if fallback else None
