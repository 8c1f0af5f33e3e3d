"""
Error taxonomy for secret retrieval and discovery.

Every user-facing failure is one of these. Cancellation is not modelled here:
asyncio.CancelledError always propagates untouched.
"""

from __future__ import annotations


class UamiDemoError(Exception):
    """Base class. ``str(exc)`` is the human-readable message shown to the user."""

    kind = "error"


class ConfigurationError(UamiDemoError):
    """Vault URL or secret name missing/invalid. No external call was made."""

    kind = "configuration"


class AuthenticationError(UamiDemoError):
    """The identity provider could not produce a token."""

    kind = "authentication"


class AuthorizationError(UamiDemoError):
    """The store answered 403."""

    kind = "authorization"


class NotFoundError(UamiDemoError):
    """The store answered 404."""

    kind = "not_found"


class TransientOrUnknownError(UamiDemoError):
    """Anything else, wrapping the underlying failure text."""

    kind = "unknown"
