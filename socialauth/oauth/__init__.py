"""
OAuth Flow Engine

Provider-agnostic OAuth 2.0 Authorization Code flow with optional PKCE.

Modules:
- providers: Provider registry and built-in provider table
- state: Encrypted, self-contained state tokens (CSRF defense)
- pkce: PKCE verifier/challenge generation
- authorize: Authorization URL construction
- tokens: Authorization code -> access token exchange
- userinfo: Profile fetch and per-provider normalization
- flow: Orchestrates initiate and callback
- errors: Error taxonomy
"""

from .errors import (
    InitiationFailure,
    InvalidState,
    MissingCode,
    OAuthError,
    OAuthFailure,
    UnconfiguredProvider,
    UnknownProvider,
)
from .flow import OAuthFlow
from .providers import BUILTIN_PROVIDERS, ProviderRegistry, build_registry
from .state import StateTokenCodec

__all__ = [
    "OAuthFlow",
    "ProviderRegistry",
    "BUILTIN_PROVIDERS",
    "build_registry",
    "StateTokenCodec",
    "OAuthError",
    "UnknownProvider",
    "UnconfiguredProvider",
    "InitiationFailure",
    "MissingCode",
    "InvalidState",
    "OAuthFailure",
]
