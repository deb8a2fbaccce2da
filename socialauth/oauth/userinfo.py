"""
User-info retrieval and normalization.

Providers disagree on field names and shapes. Each provider key maps to a
pure normalizer ``(provider, raw) -> CanonicalUserInfo``; unknown keys fall
back to the OIDC-style default. Supporting a new provider shape means
registering one more normalizer.

Every top-level field of the raw response (for Twitter, of the unwrapped
``data`` object) is also kept, stringified, in ``additional_claims``.
"""

import json
import logging
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from socialauth.models import CanonicalUserInfo
from socialauth.oauth.http import provider_client
from socialauth.oauth.providers import ProviderRegistry

logger = logging.getLogger(__name__)


Normalizer = Callable[[str, Mapping[str, Any]], CanonicalUserInfo]


# =============================================================================
# Field Helpers
# =============================================================================

def _text(raw: Mapping[str, Any], *names: str) -> str:
    """First non-empty string (or integer) among ``names``, else ""."""
    for name in names:
        value = raw.get(name)
        # bool is an int subclass but never an identifier
        if isinstance(value, bool):
            continue
        if isinstance(value, (str, int)) and value != "":
            return str(value)
    return ""


def _nested_text(raw: Mapping[str, Any], *path: str) -> str:
    node: Any = raw
    for name in path:
        if not isinstance(node, Mapping):
            return ""
        node = node.get(name)
    return node if isinstance(node, str) else ""


def stringify_claim(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def collect_claims(raw: Mapping[str, Any]) -> Dict[str, str]:
    return {str(key): stringify_claim(value) for key, value in raw.items()}


# =============================================================================
# Normalizers
# =============================================================================

def normalize_google(provider: str, raw: Mapping[str, Any]) -> CanonicalUserInfo:
    return CanonicalUserInfo(
        id=_text(raw, "sub", "id"),
        email=_text(raw, "email"),
        name=_text(raw, "name"),
        given_name=_text(raw, "given_name"),
        family_name=_text(raw, "family_name"),
        avatar_url=_text(raw, "picture"),
        provider=provider,
        additional_claims=collect_claims(raw),
    )


def normalize_microsoft(provider: str, raw: Mapping[str, Any]) -> CanonicalUserInfo:
    # Graph returns "mail": null for accounts without a mailbox
    return CanonicalUserInfo(
        id=_text(raw, "id"),
        email=_text(raw, "mail", "userPrincipalName"),
        name=_text(raw, "displayName"),
        given_name=_text(raw, "givenName"),
        family_name=_text(raw, "surname"),
        provider=provider,
        additional_claims=collect_claims(raw),
    )


def normalize_github(provider: str, raw: Mapping[str, Any]) -> CanonicalUserInfo:
    return CanonicalUserInfo(
        id=_text(raw, "id"),
        email=_text(raw, "email"),
        name=_text(raw, "name", "login"),
        avatar_url=_text(raw, "avatar_url"),
        provider=provider,
        additional_claims=collect_claims(raw),
    )


def normalize_facebook(provider: str, raw: Mapping[str, Any]) -> CanonicalUserInfo:
    return CanonicalUserInfo(
        id=_text(raw, "id"),
        email=_text(raw, "email"),
        name=_text(raw, "name"),
        given_name=_text(raw, "first_name"),
        family_name=_text(raw, "last_name"),
        avatar_url=_nested_text(raw, "picture", "data", "url"),
        provider=provider,
        additional_claims=collect_claims(raw),
    )


def normalize_twitter(provider: str, raw: Mapping[str, Any]) -> CanonicalUserInfo:
    # API v2 wraps the user object in "data"
    if isinstance(raw.get("data"), Mapping):
        user = raw["data"]
        claims = collect_claims({key: value for key, value in raw.items() if key != "data"})
        claims.update(collect_claims(user))
    else:
        user = raw
        claims = collect_claims(raw)

    return CanonicalUserInfo(
        id=_text(user, "id"),
        name=_text(user, "name", "username"),
        avatar_url=_text(user, "profile_image_url"),
        provider=provider,
        additional_claims=claims,
    )


def normalize_default(provider: str, raw: Mapping[str, Any]) -> CanonicalUserInfo:
    return CanonicalUserInfo(
        id=_text(raw, "sub", "id"),
        email=_text(raw, "email"),
        name=_text(raw, "name"),
        provider=provider,
        additional_claims=collect_claims(raw),
    )


DEFAULT_NORMALIZERS: Dict[str, Normalizer] = {
    "google": normalize_google,
    "microsoft": normalize_microsoft,
    "github": normalize_github,
    "facebook": normalize_facebook,
    "twitter": normalize_twitter,
}


class NormalizerRegistry:
    """Provider key -> normalizer, with a fallback for unknown keys."""

    def __init__(
        self,
        normalizers: Optional[Mapping[str, Normalizer]] = None,
        fallback: Normalizer = normalize_default,
    ):
        self._normalizers: Dict[str, Normalizer] = dict(DEFAULT_NORMALIZERS)
        if normalizers:
            for key, fn in normalizers.items():
                self.register(key, fn)
        self.fallback = fallback

    def register(self, provider: str, normalizer: Normalizer) -> None:
        self._normalizers[provider.lower()] = normalizer

    def normalizer_for(self, provider: str) -> Normalizer:
        return self._normalizers.get(provider.lower(), self.fallback)

    def normalize(self, provider: str, raw: Mapping[str, Any]) -> CanonicalUserInfo:
        provider = provider.lower()
        return self.normalizer_for(provider)(provider, raw)


# =============================================================================
# Fetcher
# =============================================================================

class UserInfoFetcher:
    """
    Fetches the provider profile with an access token and normalizes it.

    Args:
        registry: Provider registry
        http_client: Optional shared httpx.AsyncClient
        timeout: Request timeout in seconds
        normalizers: Normalizer registry (defaults to the built-in table)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        normalizers: Optional[NormalizerRegistry] = None,
    ):
        self.registry = registry
        self.http_client = http_client
        self.timeout = timeout
        self.normalizers = normalizers or NormalizerRegistry()

    def register_normalizer(self, provider: str, normalizer: Normalizer) -> None:
        self.normalizers.register(provider, normalizer)

    async def fetch(self, provider: str, access_token: str) -> Optional[CanonicalUserInfo]:
        """
        Retrieve and normalize the user profile.

        Returns:
            CanonicalUserInfo, or None when the provider has no user-info
            endpoint or the request failed
        """
        config = self.registry.lookup(provider)
        if config is None:
            logger.warning("User-info fetch for unknown provider", extra={"provider": provider})
            return None

        if not config.userinfo_endpoint:
            logger.warning("User-info endpoint not configured", extra={"provider": provider})
            return None

        try:
            async with provider_client(self.http_client, self.timeout) as client:
                response = await client.get(
                    config.userinfo_endpoint,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/json",
                    },
                    timeout=self.timeout,
                )
        except httpx.TimeoutException:
            logger.warning("User-info request timed out", extra={"provider": provider})
            return None
        except (httpx.HTTPError, UnicodeEncodeError) as e:
            logger.warning(f"User-info request failed: {type(e).__name__}", extra={"provider": provider})
            return None

        if not response.is_success:
            logger.warning(
                f"User-info request failed with status {response.status_code}",
                extra={"provider": provider, "status_code": response.status_code},
            )
            return None

        try:
            raw = response.json()
        except ValueError:
            logger.warning("User-info response is not valid JSON", extra={"provider": provider})
            return None

        if not isinstance(raw, dict):
            logger.warning("User-info response is not a JSON object", extra={"provider": provider})
            return None

        try:
            return self.normalizers.normalize(provider, raw)
        except Exception:
            logger.warning("User-info normalization failed", extra={"provider": provider}, exc_info=True)
            return None
