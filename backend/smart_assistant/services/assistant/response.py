"""Response envelope assembly for the assistant endpoint."""
from typing import Any, Dict, List, Optional, Sequence

from smart_assistant.models.responses import AssistantResponse, ProgramCard
from smart_assistant.services.search.location import LocationMatch

MAX_PROGRAM_CARDS = 5
MAX_DESCRIPTION_LENGTH = 150

TIER_QUICK_ANSWER = "quick_answer"


def truncate_description(description: Optional[str]) -> Optional[str]:
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        return description[:MAX_DESCRIPTION_LENGTH] + "..."
    return description


def _as_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def format_program_cards(programs: Sequence[Dict[str, Any]]) -> List[ProgramCard]:
    """
    Project up to MAX_PROGRAM_CARDS index documents onto display cards.

    Field values are coerced to strings; entries that are not objects are skipped.
    """
    cards = []
    for program in [p for p in programs if isinstance(p, dict)][:MAX_PROGRAM_CARDS]:
        areas = program.get("areas") or []
        if not isinstance(areas, (list, tuple)):
            areas = [areas]
        cards.append(ProgramCard(
            id=_as_str(program.get("id")),
            name=_as_str(program.get("name")),
            category=_as_str(program.get("category")),
            description=truncate_description(_as_str(program.get("description"))),
            phone=_as_str(program.get("phone")),
            website=_as_str(program.get("website")),
            areas=[str(a) for a in areas],
        ))
    return cards


def assemble_response(
    *,
    search_query: str,
    tier: str,
    skipped_llm: bool,
    programs: Sequence[Dict[str, Any]] = (),
    quick_answer: Optional[Dict[str, Any]] = None,
    location: Optional[LocationMatch] = None,
) -> AssistantResponse:
    """
    Build the envelope returned by POST /api/smart-assistant.

    programsFound counts everything the index returned, while programs
    holds at most MAX_PROGRAM_CARDS cards.
    """
    return AssistantResponse(
        quick_answer=quick_answer,
        programs=format_program_cards(programs),
        programs_found=len(programs),
        search_query=search_query,
        location=location.to_dict() if location else None,
        tier=tier,
        skipped_llm=skipped_llm,
    )
