"""Tier 0: canned answers for crisis, vague, program and category queries."""
