"""
PII scrubbing and client fingerprinting.

User messages pass through prepare_query before they are logged, cached,
matched or forwarded anywhere. Client IPs are only ever used as input to
fingerprint_client and are never stored.
"""
import hashlib
import re
from datetime import datetime, timezone
from typing import Any, Optional

REDACTED = "[REDACTED]"
MAX_QUERY_LENGTH = 500

# Order matters: SSNs before generic digit runs, phones before card numbers.
PII_PATTERNS = [
    re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    re.compile(r"\b\d{9}\b"),
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    re.compile(r"\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b"),
    re.compile(r"\(\d{3}\)\s*\d{3}[-.\s]?\d{4}"),
    re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{1,7}\b"),
    re.compile(r"\b\d{8,17}\b"),
]


def sanitize_query(text: Any) -> Any:
    """
    Replace SSNs, emails, phone numbers, card and account numbers with [REDACTED].

    Five-digit ZIP codes are left alone. Non-string input is returned unchanged.
    """
    if not isinstance(text, str):
        return text

    sanitized = text
    for pattern in PII_PATTERNS:
        sanitized = pattern.sub(REDACTED, sanitized)
    return sanitized


def prepare_query(raw: Any) -> Any:
    """Trim, truncate to MAX_QUERY_LENGTH characters, then sanitize."""
    if not isinstance(raw, str):
        return raw
    return sanitize_query(raw.strip()[:MAX_QUERY_LENGTH])


def daily_salt(prefix: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{prefix}-{now.strftime('%Y-%m-%d')}"


def fingerprint_client(
    ip: Optional[str],
    salt_prefix: str = "baynavigator",
    now: Optional[datetime] = None,
) -> str:
    """
    One-way, daily-rotating client identifier for rate limiting.

    Args:
        ip: Client IP address, or None when unknown
        salt_prefix: Deployment-specific salt prefix
        now: Override for the current UTC time

    Returns:
        First 16 hex chars of sha256(ip + salt), or "unknown"
    """
    if not ip:
        return "unknown"
    digest = hashlib.sha256(f"{ip}{daily_salt(salt_prefix, now)}".encode()).hexdigest()
    return digest[:16]
