"""
socialauth
==========

OAuth 2.0 social login (Google, Microsoft, GitHub, Apple, Facebook, Twitter
and custom providers) for web applications.

The flow engine lives in ``socialauth.oauth`` and has no dependency on the
web framework; ``socialauth.auth`` and ``socialauth.main`` host it in FastAPI.

Usage:
    from socialauth.oauth import OAuthFlow, ProviderRegistry

    registry = ProviderRegistry()
    registry.configure("github", client_id="...", client_secret="...")
"""

from socialauth.models import CanonicalUserInfo, CallbackResult, ProviderConfig

__version__ = "1.0.0"

__all__ = [
    "CanonicalUserInfo",
    "CallbackResult",
    "ProviderConfig",
    "__version__",
]
