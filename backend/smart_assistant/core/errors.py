"""
Error taxonomy for the smart assistant.

Terminal errors (validation, rate limit, configuration) map straight to an
HTTP status and a fixed public message. Upstream and budget errors never
reach the client: tiers convert them to "no answer" and the cascade moves on.
"""
from typing import Optional


class AssistantError(Exception):
    """Base error with an HTTP status and a message that is safe to return."""

    status_code = 500
    public_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class QueryValidationError(AssistantError):
    status_code = 400
    public_message = "Please provide a message."


class RateLimitedError(AssistantError):
    status_code = 429
    public_message = "Too many requests. Please wait a minute and try again."

    def __init__(self, retry_after: int, message: Optional[str] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ConfigurationError(AssistantError):
    status_code = 503
    public_message = "Smart assistant search is not configured. Please try again later."


class UpstreamUnavailableError(AssistantError):
    """An external dependency failed or timed out. Never terminal for a request."""

    status_code = 502
    public_message = "An upstream service is unavailable."


class BudgetExhaustedError(AssistantError):
    """A metered tier reached its daily cap or its budget could not be read."""

    status_code = 503
    public_message = "Daily budget exhausted."


class OfflineModeError(AssistantError):
    """Offline mode is on and nothing is cached for the requested resource."""

    status_code = 503
    public_message = "No offline data is available. Connect to the internet to load it."


class DirectoryError(AssistantError):
    """Base for directory API failures, tagged by kind."""

    status_code = 502
    public_message = "Directory data is unavailable."


class DirectoryNotFoundError(DirectoryError):
    status_code = 404
    public_message = "Resource not found."


class DirectoryTransientError(DirectoryError):
    """Network error, timeout or 5xx. Worth retrying later."""


class DirectoryPermanentError(DirectoryError):
    """4xx other than 404, or an unparseable body."""
