"""
Error taxonomy. Every error is terminal at the boundary where it occurs:
nothing in this package retries on its own.
"""

from __future__ import annotations


class BloggerError(Exception):
    """Base class for all application errors."""


class ConfigurationError(BloggerError, RuntimeError):
    """Backend credentials missing or invalid. Fatal to startup."""


class AuthenticationError(BloggerError):
    """Sign-in rejected by the identity provider."""


class SubscriptionError(BloggerError):
    """The snapshot channel broke or never delivered."""


class ValidationError(BloggerError, ValueError):
    """A draft is incomplete or too long. Raised before any network call."""

    def __init__(self, message: str, fields: tuple[str, ...] = ()):
        super().__init__(message)
        self.fields = fields


class WriteError(BloggerError):
    """A create, update or delete call was rejected."""
