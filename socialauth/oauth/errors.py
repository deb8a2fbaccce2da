"""
OAuth flow error taxonomy.

Each exception carries the provider key for operator logs. The messages are
safe to show to end users; none of them reveal which internal step failed.
"""

from typing import Optional


class OAuthError(Exception):
    """Base exception for OAuth flow errors"""

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider
        self.message = message


class UnknownProvider(OAuthError):
    """Provider key has no registry entry."""

    def __init__(self, provider: str):
        super().__init__(provider, f"Unknown OAuth provider: {provider}")


class UnconfiguredProvider(OAuthError):
    """Provider key is unknown or has no client credentials."""

    def __init__(self, provider: str):
        super().__init__(provider, f"Provider '{provider}' is not configured")


class InitiationFailure(OAuthError):
    def __init__(self, provider: str):
        super().__init__(provider, "Failed to initiate OAuth flow")


class MissingCode(OAuthError):
    def __init__(self, provider: str):
        super().__init__(provider, "Authorization code is required")


class InvalidState(OAuthError):
    def __init__(self, provider: str):
        super().__init__(provider, "Invalid state parameter")


class OAuthFailure(OAuthError):
    """
    The provider reported an error, or the exchange or user-info step failed.

    Attributes:
        redirect_uri: Default destination annotated with ``error=<marker>``
        marker: ``oauth_error`` when the provider reported the error,
                ``oauth_failed`` when a server-side step failed
    """

    def __init__(self, provider: str, redirect_uri: str, marker: str = "oauth_failed",
                 detail: Optional[str] = None):
        super().__init__(provider, "OAuth authentication failed")
        self.redirect_uri = redirect_uri
        self.marker = marker
        self.detail = detail


__all__ = [
    "OAuthError",
    "UnknownProvider",
    "UnconfiguredProvider",
    "InitiationFailure",
    "MissingCode",
    "InvalidState",
    "OAuthFailure",
]
