"""
OAuth provider registry.

Maps lower-cased provider keys to their ProviderConfig. The registry is
seeded with the built-in providers (without credentials), extended at
startup from settings or code, and frozen before request handling starts.
"""

import logging
from typing import Dict, Iterator, List, Optional, Sequence

from socialauth.models import DEFAULT_CALLBACK_PATH, ProviderConfig
from socialauth.oauth.errors import UnknownProvider

logger = logging.getLogger(__name__)


# =============================================================================
# Built-in Providers
# =============================================================================

BUILTIN_PROVIDERS: Dict[str, ProviderConfig] = {
    "google": ProviderConfig(
        authorization_endpoint="https://accounts.google.com/o/oauth2/v2/auth",
        token_endpoint="https://oauth2.googleapis.com/token",
        userinfo_endpoint="https://www.googleapis.com/oauth2/v2/userinfo",
        scopes=("openid", "profile", "email"),
    ),
    "microsoft": ProviderConfig(
        authorization_endpoint="https://login.microsoftonline.com/common/oauth2/v2.0/authorize",
        token_endpoint="https://login.microsoftonline.com/common/oauth2/v2.0/token",
        userinfo_endpoint="https://graph.microsoft.com/v1.0/me",
        scopes=("openid", "profile", "email"),
    ),
    "github": ProviderConfig(
        authorization_endpoint="https://github.com/login/oauth/authorize",
        token_endpoint="https://github.com/login/oauth/access_token",
        userinfo_endpoint="https://api.github.com/user",
        scopes=("user:email",),
    ),
    "apple": ProviderConfig(
        authorization_endpoint="https://appleid.apple.com/auth/authorize",
        token_endpoint="https://appleid.apple.com/auth/token",
        # Apple returns identity in the token response; there is no user-info call.
        userinfo_endpoint="",
        scopes=("name", "email"),
    ),
    "facebook": ProviderConfig(
        authorization_endpoint="https://www.facebook.com/v18.0/dialog/oauth",
        token_endpoint="https://graph.facebook.com/v18.0/oauth/access_token",
        userinfo_endpoint="https://graph.facebook.com/v18.0/me",
        scopes=("email", "public_profile"),
    ),
    "twitter": ProviderConfig(
        authorization_endpoint="https://twitter.com/i/oauth2/authorize",
        token_endpoint="https://api.twitter.com/2/oauth2/token",
        userinfo_endpoint="https://api.twitter.com/2/users/me",
        scopes=("tweet.read", "users.read"),
        use_pkce=True,
    ),
}


# =============================================================================
# Registry
# =============================================================================

class ProviderRegistry:
    """
    Provider key -> ProviderConfig mapping.

    Reads are safe from any number of concurrent requests once the registry
    is frozen; registration is only allowed before that.
    """

    def __init__(self, seed_builtins: bool = True):
        self._providers: Dict[str, ProviderConfig] = {}
        self._frozen = False

        if seed_builtins:
            self._providers.update(BUILTIN_PROVIDERS)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def lookup(self, key: str) -> Optional[ProviderConfig]:
        if not key:
            return None
        return self._providers.get(key.lower())

    def get(self, key: str) -> ProviderConfig:
        """
        Lookup that raises instead of returning None.

        Raises:
            UnknownProvider: If the key has no registry entry
        """
        config = self.lookup(key)
        if config is None:
            raise UnknownProvider(key)
        return config

    def is_configured(self, key: str) -> bool:
        config = self.lookup(key)
        return config is not None and config.is_configured

    def list_configured(self) -> List[str]:
        return [key for key, config in self._providers.items() if config.is_configured]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._providers

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._providers))

    def __len__(self) -> int:
        return len(self._providers)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, key: str, config: ProviderConfig) -> None:
        """
        Register a provider, replacing any existing entry for the key.

        Raises:
            RuntimeError: If the registry has been frozen
            ValueError: If the key is empty
        """
        if self._frozen:
            raise RuntimeError("Provider registry is frozen; register providers at startup")
        if not key or not key.strip():
            raise ValueError("Provider key must not be empty")

        normalized = key.strip().lower()
        if normalized in self._providers:
            logger.debug(f"Replacing OAuth provider '{normalized}'")
        self._providers[normalized] = config

    def configure(self, key: str, client_id: str, client_secret: str, **overrides) -> ProviderConfig:
        """
        Give a built-in provider its client credentials.

        Endpoints, scopes and the PKCE flag are inherited from the built-in
        entry unless passed in ``overrides``.

        Args:
            key: Built-in provider key (e.g. "google")
            client_id: OAuth client ID
            client_secret: OAuth client secret
            **overrides: Any other ProviderConfig field

        Returns:
            The registered ProviderConfig

        Raises:
            UnknownProvider: If the key is not a built-in provider
        """
        defaults = BUILTIN_PROVIDERS.get(key.lower())
        if defaults is None:
            raise UnknownProvider(key)

        fields = defaults.model_dump()
        fields.update(overrides, client_id=client_id, client_secret=client_secret)
        config = ProviderConfig(**fields)
        self.register(key, config)
        return config

    def register_custom(
        self,
        key: str,
        client_id: str,
        client_secret: str,
        authorization_endpoint: str,
        token_endpoint: str,
        userinfo_endpoint: str = "",
        scopes: Sequence[str] = (),
        use_pkce: bool = True,
        callback_path: str = DEFAULT_CALLBACK_PATH,
    ) -> ProviderConfig:
        """Register a provider that has no built-in defaults."""
        config = ProviderConfig(
            client_id=client_id,
            client_secret=client_secret,
            authorization_endpoint=authorization_endpoint,
            token_endpoint=token_endpoint,
            userinfo_endpoint=userinfo_endpoint,
            scopes=tuple(scopes),
            use_pkce=use_pkce,
            callback_path=callback_path,
        )
        self.register(key, config)
        return config

    def freeze(self) -> "ProviderRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen


# =============================================================================
# Settings Integration
# =============================================================================

def build_registry(settings) -> ProviderRegistry:
    """
    Materialize a registry from ``Settings.PROVIDERS``.

    Known providers inherit built-in values for every empty field; other
    keys are registered as custom providers and must supply their own
    endpoints.

    Args:
        settings: socialauth.config.Settings instance

    Returns:
        Unfrozen ProviderRegistry
    """
    registry = ProviderRegistry()

    for key, provider in settings.PROVIDERS.items():
        key = key.lower()
        defaults = BUILTIN_PROVIDERS.get(key)

        if defaults is not None:
            config = ProviderConfig(
                client_id=provider.client_id,
                client_secret=provider.client_secret,
                authorization_endpoint=provider.authorization_endpoint or defaults.authorization_endpoint,
                token_endpoint=provider.token_endpoint or defaults.token_endpoint,
                userinfo_endpoint=provider.userinfo_endpoint or defaults.userinfo_endpoint,
                scopes=tuple(provider.scopes) or defaults.scopes,
                callback_path=provider.callback_path or defaults.callback_path,
                use_pkce=defaults.use_pkce if provider.use_pkce is None else provider.use_pkce,
            )
            registry.register(key, config)
        else:
            registry.register_custom(
                key,
                client_id=provider.client_id,
                client_secret=provider.client_secret,
                authorization_endpoint=provider.authorization_endpoint,
                token_endpoint=provider.token_endpoint,
                userinfo_endpoint=provider.userinfo_endpoint,
                scopes=provider.scopes,
                use_pkce=True if provider.use_pkce is None else provider.use_pkce,
                callback_path=provider.callback_path or DEFAULT_CALLBACK_PATH,
            )

        logger.info(
            f"Registered OAuth provider '{key}'",
            extra={"provider": key, "builtin": defaults is not None, "configured": bool(provider.client_id)},
        )

    return registry
