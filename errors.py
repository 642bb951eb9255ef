"""
Error types for the Badminton Shot Analytics backend.

Storage problems, malformed backup documents and invalid match
registrations are reported with their own exception classes so callers
(and the API's exception handlers) can tell them apart.
"""

from typing import Any, List, Optional


class ShotAnalyticsError(Exception):
    """Base class for every error raised by this package."""


class StorageError(ShotAnalyticsError):
    """The database is unavailable or rejected a write."""


class FormatError(ShotAnalyticsError):
    """A record or import document is missing a section or a required field."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []


class ValidationError(ShotAnalyticsError):
    """A match registration breaks the singles/doubles or side rules."""
