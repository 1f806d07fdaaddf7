"""
Static reference data: quick answers, category and group rules, common
queries, synonyms and location tables.

Everything is read from JSON once at application creation and is treated as
immutable afterwards. A missing or malformed file degrades that table to
empty (logged), except the location and rule tables which the assistant
cannot work without.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple

from smart_assistant.core.errors import ConfigurationError
from smart_assistant.core.logging import get_logger

logger = get_logger(__name__)

QUICK_ANSWERS_FILE = "quick_answers.json"
CATEGORIES_FILE = "program_categories.json"
GROUPS_FILE = "eligibility_groups.json"
COMMON_QUERIES_FILE = "common_queries.json"
SYNONYMS_FILE = "synonyms.json"
LOCATIONS_FILE = "locations.json"


@dataclass(frozen=True)
class KeywordRule:
    """A program category or eligibility group with its trigger phrases."""
    id: str
    name: str
    trigger_keywords: Tuple[str, ...]
    search_keywords: str


@dataclass(frozen=True)
class CommonQueryPattern:
    topic: str
    name: str
    patterns: Tuple[str, ...]
    keywords_to_search: str


@dataclass(frozen=True)
class LocationTables:
    zip_to_city: Mapping[str, str]
    city_to_county: Mapping[str, str]
    counties: Tuple[str, ...]


@dataclass(frozen=True)
class ReferenceData:
    quick_answers: Mapping[str, Any]
    categories: Tuple[KeywordRule, ...]
    groups: Tuple[KeywordRule, ...]
    common_queries: Tuple[CommonQueryPattern, ...]
    synonyms: Mapping[str, Tuple[str, ...]]
    locations: LocationTables
    versions: Dict[str, str] = field(default_factory=dict)


def _read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _read_optional(path: Path, default: Any) -> Any:
    if not path.exists():
        logger.warning("reference_file_not_found", path=str(path))
        return default
    try:
        return _read_json(path)
    except json.JSONDecodeError as e:
        logger.error(
            "reference_file_invalid_json",
            path=str(path),
            error=str(e),
        )
        return default


def _read_required(path: Path) -> Any:
    try:
        return _read_json(path)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(
            "reference_file_load_failed",
            path=str(path),
            error=str(e),
            error_type=type(e).__name__,
        )
        raise ConfigurationError(f"Reference data {path.name} could not be loaded") from e


def _parse_rules(raw: Mapping[str, Any]) -> Tuple[KeywordRule, ...]:
    rules: List[KeywordRule] = []
    for rule_id, body in raw.items():
        rules.append(KeywordRule(
            id=rule_id,
            name=body.get("name", rule_id),
            trigger_keywords=tuple(k.lower() for k in body.get("trigger_keywords", [])),
            search_keywords=body.get("search_keywords", ""),
        ))
    return tuple(rules)


def _parse_common_queries(raw: Mapping[str, Any]) -> Tuple[CommonQueryPattern, ...]:
    patterns: List[CommonQueryPattern] = []
    for topic, entries in raw.get("query_patterns", {}).items():
        for name, body in entries.items():
            keywords = body.get("keywords_to_search")
            if not keywords:
                continue
            patterns.append(CommonQueryPattern(
                topic=topic,
                name=name,
                patterns=tuple(p.lower() for p in body.get("patterns", [])),
                keywords_to_search=keywords,
            ))
    return tuple(patterns)


def _parse_synonyms(raw: Mapping[str, Any]) -> Mapping[str, Tuple[str, ...]]:
    synonyms = {}
    for word, values in raw.items():
        if isinstance(values, list):
            synonyms[word.lower()] = tuple(v.lower() for v in values if isinstance(v, str))
    return MappingProxyType(synonyms)


def load_reference_data(data_dir: Path) -> ReferenceData:
    """
    Load and validate every reference table under data_dir.

    Raises:
        ConfigurationError: a required table (locations, categories, groups) is unreadable
    """
    data_dir = Path(data_dir)
    logger.info("reference_data_loading", path=str(data_dir))

    categories_raw = _read_required(data_dir / CATEGORIES_FILE)
    groups_raw = _read_required(data_dir / GROUPS_FILE)
    locations_raw = _read_required(data_dir / LOCATIONS_FILE)
    quick_answers = _read_optional(data_dir / QUICK_ANSWERS_FILE, {})
    common_raw = _read_optional(data_dir / COMMON_QUERIES_FILE, {})
    synonyms_raw = _read_optional(data_dir / SYNONYMS_FILE, {})

    locations = LocationTables(
        zip_to_city=MappingProxyType(dict(locations_raw.get("zip_to_city", {}))),
        city_to_county=MappingProxyType(dict(locations_raw.get("city_to_county", {}))),
        counties=tuple(locations_raw.get("counties", [])),
    )

    data = ReferenceData(
        quick_answers=MappingProxyType(quick_answers),
        categories=_parse_rules(categories_raw.get("categories", {})),
        groups=_parse_rules(groups_raw.get("groups", {})),
        common_queries=_parse_common_queries(common_raw),
        synonyms=_parse_synonyms(synonyms_raw),
        locations=locations,
        versions={
            "quick_answers": quick_answers.get("version", "unknown"),
            "categories": categories_raw.get("version", "unknown"),
            "groups": groups_raw.get("version", "unknown"),
            "common_queries": common_raw.get("version", "unknown"),
        },
    )

    logger.info(
        "reference_data_loaded",
        categories=len(data.categories),
        groups=len(data.groups),
        common_queries=len(data.common_queries),
        synonyms=len(data.synonyms),
        zip_codes=len(locations.zip_to_city),
        cities=len(locations.city_to_county),
    )
    return data
