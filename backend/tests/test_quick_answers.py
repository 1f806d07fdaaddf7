"""
Unit tests for quick-answer matching.
"""
import pytest

from smart_assistant.services.quick_answers.matcher import (
    QuickAnswerMatcher,
    county_contact_key,
)
from smart_assistant.services.search.location import LocationMatch


@pytest.fixture
def matcher(reference):
    return QuickAnswerMatcher(reference.quick_answers)


class TestCrisis:
    def test_suicide_returns_988(self, matcher):
        result = matcher.match("suicide")
        assert result.type == "crisis"
        assert result.should_continue_to_ai is False
        assert result.response["resource"]["phone"] == "988"
        assert result.search == "mental health crisis counseling"

    def test_crisis_matches_inside_long_query(self, matcher):
        result = matcher.match("i feel like i want to die and need food for my kids")
        assert result.type == "crisis"

    def test_domestic_violence_hotline(self, matcher):
        result = matcher.match("my partner is abusive and i am not safe at home")
        assert result.response["resource"]["phone"] == "1-800-799-7233"

    def test_crisis_wins_over_clarify(self, matcher):
        assert matcher.match("help suicide").type == "crisis"


class TestClarify:
    @pytest.mark.parametrize("query", ["help", "Hello", "i need help", "food"])
    def test_vague_queries(self, matcher, query):
        result = matcher.match(query)
        assert result.type == "clarify"
        assert result.response["categories"]

    def test_leading_pattern_matches(self, matcher):
        assert matcher.match("help with rent").type == "clarify"

    def test_pattern_must_be_whole_word(self, matcher):
        assert matcher.match("helpful tips") is None

    def test_long_queries_are_never_clarify(self, matcher):
        result = matcher.match("help me find a free clinic near me")
        assert result is None or result.type != "clarify"


class TestProgramAnswers:
    def test_trouble_without_location_is_guide(self, matcher):
        result = matcher.match("my calfresh was denied")
        assert result.type == "guide"
        assert result.response["guideUrl"].endswith("/calfresh")
        assert result.response["countyContact"] is None

    def test_trouble_with_county_adds_contact(self, matcher):
        location = LocationMatch(zip="94110", city="San Francisco", county="San Francisco")
        result = matcher.match("my calfresh was denied", location)
        assert result.type == "guide_with_contact"
        assert result.response["countyContact"]["phone"] == "415-558-4700"

    def test_eligibility_question(self, matcher):
        result = matcher.match("am i eligible for medi-cal")
        assert result.type == "eligibility"
        assert result.response["title"] == "Who qualifies for Medi-Cal"

    def test_named_program(self, matcher):
        result = matcher.match("tell me about calfresh")
        assert result.type == "program"
        assert result.should_continue_to_ai is False
        assert result.search == "calfresh ebt snap food"


class TestCategoryIntent:
    def test_category_continues_to_search(self, matcher):
        result = matcher.match("i am looking for a food bank near my place")
        assert result.type == "category"
        assert result.should_continue_to_ai is True
        assert result.search == "food"


def test_no_match(matcher):
    assert matcher.match("what is the weather today") is None
    assert matcher.match("") is None


def test_responses_are_copies(matcher):
    first = matcher.match("suicide")
    first.response["resource"]["phone"] = "000"
    assert matcher.match("suicide").response["resource"]["phone"] == "988"


def test_empty_table_matches_nothing():
    assert QuickAnswerMatcher({}).match("suicide") is None


def test_county_contact_key():
    assert county_contact_key("Santa Clara County") == "santa_clara"
    assert county_contact_key("San Francisco") == "san_francisco"


def test_fallback_is_211(matcher):
    assert matcher.fallback()["resource"]["phone"] == "211"
