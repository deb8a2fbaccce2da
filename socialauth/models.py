"""
Data Models Module

This module defines the Pydantic models shared by the OAuth flow engine
and the FastAPI integration layer.

Models are organized by functional area:
- Provider configuration (endpoints, scopes, PKCE flag)
- State token payload (what travels through the provider and back)
- Canonical user info (the normalized profile produced by a callback)
"""

from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_CALLBACK_PATH = "/oauth/callback/{provider}"


# ============================================================================
# Provider Configuration
# ============================================================================

class ProviderConfig(BaseModel):
    """
    Immutable configuration for one identity provider.

    A provider is considered configured only when ``client_id`` is set;
    built-in providers are seeded without credentials.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(default="", description="OAuth client identifier")
    client_secret: str = Field(default="", description="OAuth client secret")
    authorization_endpoint: str = Field(..., description="Authorization endpoint URL")
    token_endpoint: str = Field(..., description="Token endpoint URL")
    userinfo_endpoint: str = Field(
        default="",
        description="User-info endpoint URL (empty when the provider has none)",
    )
    scopes: Tuple[str, ...] = Field(default=(), description="Requested scopes, in order")
    callback_path: str = Field(
        default=DEFAULT_CALLBACK_PATH,
        description="Callback path appended to the public base URL",
    )
    use_pkce: bool = Field(default=False, description="Send a PKCE S256 challenge")

    @field_validator("authorization_endpoint", "token_endpoint")
    @classmethod
    def validate_required_endpoint(cls, v: str) -> str:
        if not _is_absolute_url(v):
            raise ValueError(f"Endpoint must be an absolute http(s) URL, got: '{v}'")
        return v

    @field_validator("userinfo_endpoint")
    @classmethod
    def validate_optional_endpoint(cls, v: str) -> str:
        if v and not _is_absolute_url(v):
            raise ValueError(f"User-info endpoint must be an absolute http(s) URL, got: '{v}'")
        return v

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(cls, v):
        """Accept a space- or comma-separated string as well as a sequence."""
        if isinstance(v, str):
            return tuple(s for s in v.replace(",", " ").split() if s)
        return v

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id)


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


# ============================================================================
# State Token Payload
# ============================================================================

class StatePayload(BaseModel):
    """Decrypted contents of a state token."""

    provider: str
    redirect_uri: Optional[str] = None
    issued_at: float
    nonce: str
    code_verifier: Optional[str] = None
    callback_uri: Optional[str] = None


# ============================================================================
# Canonical User Info
# ============================================================================

# Claims the session owns; raw provider fields never overwrite these.
RESERVED_CLAIMS = frozenset(
    {
        "sub", "name", "email", "provider", "avatar_url", "given_name", "family_name",
        "iat", "exp", "iss", "aud", "nbf", "jti",
    }
)


class CanonicalUserInfo(BaseModel):
    """
    Provider-independent user profile.

    Every mapped field is a string; an empty string means the provider did
    not supply the value. ``additional_claims`` keeps every top-level field
    of the raw provider response, stringified.
    """

    id: str = ""
    email: str = ""
    name: str = ""
    given_name: str = ""
    family_name: str = ""
    avatar_url: str = ""
    provider: str = ""
    additional_claims: Dict[str, str] = Field(default_factory=dict)

    def to_claims(self) -> Dict[str, str]:
        """
        Build the session claim set for this user.

        Returns:
            Dictionary with ``sub``, ``name``, ``email``, ``provider`` and
            ``avatar_url``, the given/family names when non-empty, and every
            additional claim that does not collide with those.
        """
        claims: Dict[str, str] = {
            "sub": self.id,
            "name": self.name,
            "email": self.email,
            "provider": self.provider,
            "avatar_url": self.avatar_url,
        }
        if self.given_name:
            claims["given_name"] = self.given_name
        if self.family_name:
            claims["family_name"] = self.family_name

        for key, value in self.additional_claims.items():
            if key not in RESERVED_CLAIMS:
                claims[key] = value

        return claims


class CallbackResult(BaseModel):
    """Outcome of a successful callback: who signed in and where to send them."""

    user: CanonicalUserInfo
    redirect_uri: str
