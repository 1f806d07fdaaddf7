"""
Local intent classification (Tier 1, no network).

Detects program categories and eligibility groups by substring matching
trigger phrases against the lowercased query, and maps frequent questions
straight to search keywords.

Matching is plain substring containment, so a trigger such as "rent" would
also fire inside "parent"; trigger tables avoid such short stems. Each rule
records only its first matching trigger, in table order. Rules are
independent, so one query can match several categories.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from smart_assistant.core.logging import get_logger
from smart_assistant.services.reference.loader import CommonQueryPattern, KeywordRule, ReferenceData

logger = get_logger(__name__)


@dataclass(frozen=True)
class DetectedRule:
    id: str
    name: str
    matched_trigger: str
    search_keywords: str


@dataclass(frozen=True)
class Classification:
    categories: Tuple[DetectedRule, ...]
    groups: Tuple[DetectedRule, ...]

    @property
    def category_ids(self) -> List[str]:
        return [c.id for c in self.categories]

    @property
    def group_ids(self) -> List[str]:
        return [g.id for g in self.groups]

    @property
    def has_matches(self) -> bool:
        return bool(self.categories or self.groups)


def _detect(query: str, rules: Sequence[KeywordRule]) -> Tuple[DetectedRule, ...]:
    lower_query = query.lower()
    detected = []
    for rule in rules:
        for trigger in rule.trigger_keywords:
            if trigger in lower_query:
                detected.append(DetectedRule(
                    id=rule.id,
                    name=rule.name,
                    matched_trigger=trigger,
                    search_keywords=rule.search_keywords,
                ))
                break
    return tuple(detected)


class LocalClassifier:
    """Category, group and common-query detection over the static tables."""

    def __init__(self, reference: ReferenceData):
        self.categories = reference.categories
        self.groups = reference.groups
        self.common_queries = reference.common_queries

    def detect_program_categories(self, query: str) -> Tuple[DetectedRule, ...]:
        return _detect(query or "", self.categories)

    def detect_eligibility_groups(self, query: str) -> Tuple[DetectedRule, ...]:
        return _detect(query or "", self.groups)

    def classify(self, query: str) -> Classification:
        classification = Classification(
            categories=self.detect_program_categories(query),
            groups=self.detect_eligibility_groups(query),
        )
        if classification.has_matches:
            logger.debug(
                "local_classification_matched",
                categories=classification.category_ids,
                groups=classification.group_ids,
            )
        return classification

    def match_common_query(self, query: str) -> Optional[CommonQueryPattern]:
        """
        Find the first frequent-question pattern contained in query.

        Returns:
            The matching pattern (its keywords_to_search feed the search
            directly), or None
        """
        lower_query = (query or "").lower().strip()
        for common in self.common_queries:
            for pattern in common.patterns:
                if pattern in lower_query:
                    logger.debug(
                        "common_query_matched",
                        topic=common.topic,
                        name=common.name,
                    )
                    return common
        return None
