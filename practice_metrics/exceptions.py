"""Errors surfaced to callers of the dashboard pipeline.

Parsing and schema inference never raise; only source fetching does.
"""

from typing import List, Optional


class DashboardError(Exception):
    """Base exception for dashboard loading failures."""


class UpstreamHTTPError(DashboardError):
    """An upstream request returned an error status."""

    def __init__(self, status: int, url: str, message: Optional[str] = None):
        self.status = status
        self.url = url
        super().__init__(message or f"HTTP {status} from {url}")


class AuthExpiredError(UpstreamHTTPError):
    """HTTP 401: the access token is missing, expired or revoked."""

    def __init__(self, url: str, message: Optional[str] = None):
        super().__init__(401, url, message or f"Unauthorized (HTTP 401) from {url}; re-authentication required")


class SourceUnavailableError(DashboardError):
    """Every endpoint/parameter variant for a record kind failed."""

    def __init__(self, label: str, attempts: List[str], status: Optional[int] = None,
                 reason: Optional[str] = None):
        self.label = label
        self.attempts = list(attempts)
        self.status = status
        detail = f" ({reason})" if reason else ""
        tried = ", ".join(self.attempts) if self.attempts else "nothing"
        super().__init__(f"Unable to fetch {label} from upstream{detail}. Tried {tried}")


class ConfigurationError(DashboardError):
    """Configuration values failed validation."""

    def __init__(self, issues: List[str]):
        self.issues = list(issues)
        super().__init__("Invalid configuration: " + "; ".join(self.issues))
