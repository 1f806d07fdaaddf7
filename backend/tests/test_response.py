"""
Unit tests for response envelope assembly.
"""
from smart_assistant.services.assistant.response import (
    MAX_PROGRAM_CARDS,
    assemble_response,
    format_program_cards,
    truncate_description,
)
from smart_assistant.services.search.location import LocationMatch


def test_truncate_description():
    assert truncate_description("short") == "short"
    long_text = "x" * 200
    assert truncate_description(long_text) == "x" * 150 + "..."
    assert truncate_description(None) is None


def test_cards_are_capped_but_count_is_not():
    programs = [{"id": i, "name": f"Program {i}", "areas": "Bay Area"} for i in range(8)]
    response = assemble_response(
        search_query="food",
        tier="local",
        skipped_llm=True,
        programs=programs,
        location=LocationMatch(county="Marin County"),
    )

    assert len(response.programs) == MAX_PROGRAM_CARDS
    assert response.programs_found == 8
    assert response.programs[0].id == "0"
    assert response.programs[0].areas == ["Bay Area"]
    assert response.location == {"county": "Marin County"}


def test_wire_format_is_camel_case():
    response = assemble_response(search_query="food", tier="quick_answer", skipped_llm=True)
    body = response.model_dump(by_alias=True)

    assert set(body) == {
        "quickAnswer", "programs", "programsFound", "searchQuery", "location", "tier", "skippedLLM",
    }
    assert body["programs"] == []
    assert body["quickAnswer"] is None


def test_format_program_cards_keeps_display_fields():
    cards = format_program_cards([{
        "id": "p1",
        "name": "Clinic",
        "category": "health",
        "description": "Free care",
        "phone": "555",
        "website": "https://clinic.test",
        "whatTheyOffer": "not shown on cards",
    }])
    assert cards[0].model_dump() == {
        "id": "p1",
        "name": "Clinic",
        "category": "health",
        "description": "Free care",
        "phone": "555",
        "website": "https://clinic.test",
        "areas": [],
    }


def test_format_program_cards_coerces_non_string_fields():
    cards = format_program_cards([
        "not a document",
        {
            "id": 7,
            "name": "Clinic",
            "category": "health",
            "description": 12345,
            "phone": 4155551212,
            "website": None,
            "areas": "Oakland",
        },
    ])

    assert len(cards) == 1
    assert cards[0].id == "7"
    assert cards[0].phone == "4155551212"
    assert cards[0].description == "12345"
    assert cards[0].website is None
    assert cards[0].areas == ["Oakland"]
