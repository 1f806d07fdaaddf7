"""
Synonym expansion for the local search tier.

Builds the keyword string sent to the search index when no LLM is used:
- Primary terms: detected category IDs, their search keywords, and the
  search keywords of detected eligibility groups
- Secondary terms: content words of the query plus their synonyms

When any primary term exists only primary terms are used (capped at 25),
which keeps category queries precise. Otherwise primary and secondary terms
are combined (capped at 30). Term order is first-insertion order, so the
same input always yields the same output.
"""
from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple

from smart_assistant.core.logging import get_logger
from smart_assistant.services.search.classification import DetectedRule, LocalClassifier

logger = get_logger(__name__)

MAX_PRIMARY_TERMS = 25
MAX_TOTAL_TERMS = 30
MIN_CONTENT_WORD_LENGTH = 3

STOP_WORDS = frozenset({
    "i", "need", "help", "me", "a", "an", "the", "for", "to", "with", "my",
    "am", "is", "are", "can", "you", "how", "where", "what", "looking",
    "find", "finding", "get", "getting",
})


@dataclass(frozen=True)
class ExpandedQuery:
    terms: Tuple[str, ...]
    primary_terms: Tuple[str, ...]
    secondary_terms: Tuple[str, ...]
    categories: Tuple[DetectedRule, ...]
    groups: Tuple[DetectedRule, ...]

    @property
    def text(self) -> str:
        return " ".join(self.terms)

    @property
    def category_ids(self) -> List[str]:
        return [c.id for c in self.categories]


def _ordered_add(target: Dict[str, None], term: str) -> None:
    if term:
        target.setdefault(term, None)


class QueryExpander:
    """Deterministic keyword expansion over the static category, group and synonym tables."""

    def __init__(self, classifier: LocalClassifier, synonyms: Mapping[str, Tuple[str, ...]]):
        self.classifier = classifier
        self.synonyms = synonyms

    def expand_query_with_synonyms(self, query: str) -> ExpandedQuery:
        query = query or ""
        words = query.lower().split()

        # dicts keep insertion order and deduplicate
        primary: Dict[str, None] = {}
        secondary: Dict[str, None] = {}

        categories = self.classifier.detect_program_categories(query)
        for category in categories:
            _ordered_add(primary, category.id)
            for keyword in category.search_keywords.split():
                _ordered_add(primary, keyword)

        groups = self.classifier.detect_eligibility_groups(query)
        for group in groups:
            for keyword in group.search_keywords.split():
                _ordered_add(primary, keyword)

        for word in words:
            if word not in STOP_WORDS and len(word) >= MIN_CONTENT_WORD_LENGTH:
                _ordered_add(secondary, word)

        for word in words:
            if word in STOP_WORDS:
                continue
            for synonym in self.synonyms.get(word, ()):
                _ordered_add(secondary, synonym)

        if primary:
            terms = list(primary)[:MAX_PRIMARY_TERMS]
        else:
            combined: Dict[str, None] = dict(primary)
            for term in secondary:
                _ordered_add(combined, term)
            terms = list(combined)[:MAX_TOTAL_TERMS]

        return ExpandedQuery(
            terms=tuple(terms),
            primary_terms=tuple(primary),
            secondary_terms=tuple(secondary),
            categories=categories,
            groups=groups,
        )
