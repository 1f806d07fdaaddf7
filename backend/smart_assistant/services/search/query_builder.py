"""
Azure AI Search request construction.

Filters are OData expressions:
- categories: (category eq 'food' or category eq 'housing')
- location:   (areas/any(a: a eq 'Bay Area') or ... or city eq 'Oakland')

Programs tagged Bay Area, Statewide, California or Nationwide serve
everyone, so those labels are always part of the location clause. The
location clause is only added when a county was resolved; the two clauses
are joined with `and`.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from smart_assistant.services.search.location import LocationMatch

DEFAULT_TOP = 10
SELECT_FIELDS = "id,name,category,description,whatTheyOffer,howToGetIt,groups,areas,city,website,phone"
SEARCH_FIELDS = "name,category,description,whatTheyOffer,howToGetIt,groups"
UNIVERSAL_AREAS = ("Bay Area", "Statewide", "California", "Nationwide")


@dataclass(frozen=True)
class SearchRequest:
    search: str
    filter: Optional[str] = None
    top: int = DEFAULT_TOP
    query_type: str = "simple"
    search_mode: str = "any"
    select: str = SELECT_FIELDS
    search_fields: str = SEARCH_FIELDS

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "search": self.search,
            "queryType": self.query_type,
            "searchMode": self.search_mode,
            "top": self.top,
            "select": self.select,
            "searchFields": self.search_fields,
        }
        if self.filter:
            payload["filter"] = self.filter
        return payload


def odata_literal(value: str) -> str:
    """Quote a string for an OData filter ('' escapes a single quote)."""
    return "'" + value.replace("'", "''") + "'"


def _area_clause(label: str) -> str:
    return f"areas/any(a: a eq {odata_literal(label)})"


def build_category_filter(category_ids: Sequence[str]) -> Optional[str]:
    if not category_ids:
        return None
    return "(" + " or ".join(f"category eq {odata_literal(c)}" for c in category_ids) + ")"


def build_location_filter(location: Optional[LocationMatch]) -> Optional[str]:
    if not location or not location.county:
        return None

    clauses: List[str] = [_area_clause(label) for label in UNIVERSAL_AREAS]
    clauses.append(_area_clause(location.county))
    if location.city:
        clauses.append(f"city eq {odata_literal(location.city)}")
        clauses.append(_area_clause(location.city))
    return "(" + " or ".join(clauses) + ")"


def build_search_request(
    terms: str,
    category_ids: Sequence[str] = (),
    location: Optional[LocationMatch] = None,
    top: int = DEFAULT_TOP,
) -> SearchRequest:
    """
    Compile keywords, detected categories and location into one search request.

    Args:
        terms: Space-separated search keywords
        category_ids: Category IDs as stored in the index ("food", not "Food Assistance")
        location: Resolved location, if any
        top: Result cap
    """
    filters = [f for f in (build_category_filter(category_ids), build_location_filter(location)) if f]
    return SearchRequest(
        search=terms,
        filter=" and ".join(filters) if filters else None,
        top=top,
    )
