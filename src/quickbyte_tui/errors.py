"""
Exception hierarchy for the QuickByte client.

The gateway raises GatewayError; the controller converts it at the job
boundary into one of the user-facing categories below.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class QuickByteError(Exception):
    """Base exception for all QuickByte client errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigError(QuickByteError):
    """Missing or invalid client configuration."""


class GatewayError(QuickByteError):
    """A remote call failed or returned a non-success response."""

    def __init__(
        self,
        message: str,
        operation: str,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message, context={"operation": operation, "status_code": status_code}
        )
        self.operation = operation
        self.status_code = status_code


class FetchError(QuickByteError):
    """An article read failed; shown until the next user action."""


class FavoritesSyncError(QuickByteError):
    """Loading the favorites list failed; logged, never blocks browsing."""


class FavoriteMutationError(QuickByteError):
    """Adding or removing a favorite failed; the cache is left unchanged."""

    def __init__(self, message: str, article_id: str):
        super().__init__(message, context={"article_id": article_id})
        self.article_id = article_id


class AuthorizationError(QuickByteError):
    """A favorites operation was attempted without an authenticated session."""
