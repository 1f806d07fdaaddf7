"""
Unit tests for PII scrubbing and client fingerprinting.
"""
from datetime import datetime, timezone

from smart_assistant.core.privacy import (
    MAX_QUERY_LENGTH,
    REDACTED,
    fingerprint_client,
    prepare_query,
    sanitize_query,
)


class TestSanitizeQuery:
    def test_redacts_ssn(self):
        assert sanitize_query("my ssn is 123-45-6789") == f"my ssn is {REDACTED}"

    def test_redacts_email(self):
        assert sanitize_query("write to jane.doe@example.com please") == f"write to {REDACTED} please"

    def test_redacts_phone_numbers(self):
        assert sanitize_query("call 415-555-1234") == f"call {REDACTED}"
        assert REDACTED in sanitize_query("call (415) 555-1234")

    def test_redacts_card_number(self):
        result = sanitize_query("card 4111 1111 1111 1111")
        assert "4111" not in result
        assert REDACTED in result

    def test_leaves_zip_codes_alone(self):
        assert sanitize_query("food near 94110") == "food near 94110"

    def test_non_string_passthrough(self):
        assert sanitize_query(None) is None
        assert sanitize_query(42) == 42


class TestPrepareQuery:
    def test_strips_and_truncates(self):
        raw = "  " + "a" * (MAX_QUERY_LENGTH + 50) + "  "
        assert len(prepare_query(raw)) == MAX_QUERY_LENGTH

    def test_sanitizes_after_truncation(self):
        assert prepare_query("  email me at a@b.org ") == f"email me at {REDACTED}"


class TestFingerprint:
    def test_same_ip_same_day_is_stable(self):
        now = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
        assert fingerprint_client("203.0.113.7", now=now) == fingerprint_client("203.0.113.7", now=now)

    def test_rotates_daily(self):
        day_one = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
        day_two = datetime(2026, 3, 2, 12, tzinfo=timezone.utc)
        assert fingerprint_client("203.0.113.7", now=day_one) != fingerprint_client("203.0.113.7", now=day_two)

    def test_is_short_hex(self):
        fp = fingerprint_client("203.0.113.7")
        assert len(fp) == 16
        int(fp, 16)

    def test_unknown_ip(self):
        assert fingerprint_client(None) == "unknown"
        assert fingerprint_client("") == "unknown"
