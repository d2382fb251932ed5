"""
Exception Taxonomy

Every domain error carries the HTTP status it maps to at the API boundary.
Messages are human-readable; internal detail goes to `details` and the logs.
"""

from typing import Any, Dict, Optional


class ViralHubError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message}


class ValidationError(ViralHubError):
    """Malformed request shape or arguments."""

    status_code = 400


class NotFoundError(ViralHubError):
    """Unknown opportunity, brief, generation or alert id."""

    status_code = 404

    def __init__(self, resource: str, resource_id: Any = None):
        super().__init__(f"{resource} not found", {"id": str(resource_id) if resource_id else None})
        self.resource = resource


class AuthenticationError(ViralHubError):
    """Missing or invalid credentials."""

    status_code = 401


class AuthorizationError(ViralHubError):
    """Authenticated, but not allowed. Never says which role was missing."""

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class RateLimitError(ViralHubError):
    """Caller exceeded its fixed-window quota."""

    status_code = 429

    def __init__(self, retry_after: int, message: str = "Too many requests"):
        super().__init__(message, {"retry_after": retry_after})
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "retry_after": self.retry_after}


class UpstreamGenerationError(ViralHubError):
    """LLM or scrape call failed, timed out, or returned unusable output."""

    status_code = 502


class InvalidTransitionError(ViralHubError):
    """Status state-machine violation."""

    status_code = 400

    def __init__(self, entity: str, current: str, requested: str):
        super().__init__(
            f"Invalid {entity} status transition: {current} -> {requested}",
            {"current": current, "requested": requested},
        )
        self.current = current
        self.requested = requested


class InsufficientDataError(ViralHubError):
    """
    Not enough history to say anything.

    Never surfaced to users; detectors record it as a skip reason.
    """

    status_code = 200
