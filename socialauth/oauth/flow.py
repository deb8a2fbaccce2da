"""
OAuth flow orchestrator.

Sequences the registry, state codec, URL builder, token exchange and
user-info fetcher into the two operations the hosting application calls:

1. ``initiate``: provider check -> PKCE -> state -> authorization URL
2. ``callback``: provider error check -> code check -> state validation ->
   token exchange -> user-info fetch -> canonical user + final redirect

Nothing is kept between the two calls; everything the callback needs
travels in the encrypted state token. State validation always happens
before any network call.
"""

import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode, urlparse

from socialauth.models import CallbackResult
from socialauth.oauth.authorize import AuthorizationUrlBuilder, append_query
from socialauth.oauth.errors import (
    InitiationFailure,
    InvalidState,
    MissingCode,
    OAuthFailure,
    UnconfiguredProvider,
)
from socialauth.oauth.pkce import create_pkce_challenge
from socialauth.oauth.providers import ProviderRegistry, build_registry
from socialauth.oauth.state import StateTokenCodec
from socialauth.oauth.tokens import TokenExchangeClient
from socialauth.oauth.userinfo import UserInfoFetcher

logger = logging.getLogger(__name__)


PROVIDER_ERROR_MARKER = "oauth_error"
FLOW_FAILED_MARKER = "oauth_failed"


def is_safe_redirect(target: str, base_url: Optional[str] = None) -> bool:
    """
    Whether a post-login redirect target stays on this deployment.

    Relative paths are allowed; absolute URLs only when their origin
    matches ``base_url``.
    """
    if not target or "\\" in target:
        return False
    if target.startswith("/"):
        return not target.startswith("//")

    parsed = urlparse(target)
    if not base_url or parsed.scheme not in ("http", "https"):
        return False
    base = urlparse(base_url)
    return (parsed.scheme, parsed.netloc.lower()) == (base.scheme, base.netloc.lower())


class OAuthFlow:
    """
    Stateless login flow over a frozen provider registry.

    Args:
        registry: Provider registry (frozen on construction)
        state_codec: State token codec
        url_builder: Authorization URL builder
        token_client: Token exchange client
        userinfo_fetcher: User-info fetcher
        default_redirect_uri: Post-login destination when none was requested
        base_url: Deployment origin; absolute redirect targets must match it
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        state_codec: StateTokenCodec,
        url_builder: AuthorizationUrlBuilder,
        token_client: TokenExchangeClient,
        userinfo_fetcher: UserInfoFetcher,
        default_redirect_uri: str = "/",
        base_url: Optional[str] = None,
    ):
        self.registry = registry.freeze()
        self.state_codec = state_codec
        self.url_builder = url_builder
        self.token_client = token_client
        self.userinfo_fetcher = userinfo_fetcher
        self.default_redirect_uri = default_redirect_uri
        self.base_url = base_url or url_builder.base_url

    @classmethod
    def from_settings(cls, settings, registry: Optional[ProviderRegistry] = None, http_client=None) -> "OAuthFlow":
        """
        Wire a flow from application settings.

        Args:
            settings: socialauth.config.Settings instance
            registry: Pre-built registry; built from settings when omitted
            http_client: Optional shared httpx.AsyncClient
        """
        if registry is None:
            registry = build_registry(settings)
        max_age = timedelta(minutes=settings.STATE_MAX_AGE_MINUTES)

        if settings.state_secrets_list:
            codec = StateTokenCodec(settings.state_secrets_list, max_age=max_age)
        else:
            logger.warning("STATE_SECRETS not configured; using an ephemeral state key")
            codec = StateTokenCodec.ephemeral(max_age=max_age)

        timeout = settings.HTTP_TIMEOUT_SECONDS
        return cls(
            registry=registry,
            state_codec=codec,
            url_builder=AuthorizationUrlBuilder(registry, settings.base_url),
            token_client=TokenExchangeClient(registry, settings.base_url, http_client=http_client, timeout=timeout),
            userinfo_fetcher=UserInfoFetcher(registry, http_client=http_client, timeout=timeout),
            default_redirect_uri=settings.DEFAULT_REDIRECT_URI,
            base_url=settings.base_url,
        )

    # =========================================================================
    # Initiate
    # =========================================================================

    def initiate(
        self,
        provider: str,
        redirect_uri: Optional[str] = None,
        callback_uri: Optional[str] = None,
    ) -> str:
        """
        Start a login attempt.

        Args:
            provider: Provider key
            redirect_uri: Optional post-login destination
            callback_uri: Redirect URI to register with the provider instead of
                          the configured callback URL

        Returns:
            Authorization URL to redirect the user agent to

        Raises:
            UnconfiguredProvider: If the provider is unknown or has no client id
            InitiationFailure: If the state or URL could not be produced
        """
        provider = (provider or "").lower()
        if not self.registry.is_configured(provider):
            logger.warning("OAuth login attempted for unconfigured provider", extra={"provider": provider})
            raise UnconfiguredProvider(provider)

        if redirect_uri and not is_safe_redirect(redirect_uri, self.base_url):
            logger.warning(
                "Ignoring off-site post-login redirect",
                extra={"provider": provider, "redirect_uri": redirect_uri},
            )
            redirect_uri = None

        try:
            config = self.registry.get(provider)
            pkce = create_pkce_challenge() if config.use_pkce else None
            state = self.state_codec.issue(
                provider,
                redirect_uri=redirect_uri,
                code_verifier=pkce.code_verifier if pkce else None,
                callback_uri=callback_uri,
            )
            return self.url_builder.build(provider, state, redirect_uri=callback_uri, pkce=pkce)
        except Exception as e:
            logger.error(
                "Error generating OAuth authorization URL",
                extra={"provider": provider},
                exc_info=True,
            )
            raise InitiationFailure(provider) from e

    # =========================================================================
    # Callback
    # =========================================================================

    async def callback(
        self,
        provider: str,
        code: Optional[str] = None,
        state: Optional[str] = None,
        error: Optional[str] = None,
    ) -> CallbackResult:
        """
        Complete a login attempt.

        Args:
            provider: Provider key from the callback route
            code: Authorization code
            state: State token round-tripped through the provider
            error: Error code reported by the provider

        Returns:
            CallbackResult with the canonical user and final redirect URI

        Raises:
            MissingCode: If no authorization code was supplied
            InvalidState: If the state token is forged, expired or for
                          another provider
            OAuthFailure: If the provider reported an error, or the token
                          exchange or user-info step failed
        """
        provider = (provider or "").lower()

        if error:
            logger.warning(
                "OAuth callback received provider error",
                extra={"provider": provider, "oauth_error": error},
            )
            raise self._failure(provider, PROVIDER_ERROR_MARKER, detail=error)

        if not code:
            logger.warning("OAuth callback missing authorization code", extra={"provider": provider})
            raise MissingCode(provider)

        payload = self.state_codec.decode(provider, state)
        if payload is None:
            logger.warning("OAuth state validation failed", extra={"provider": provider})
            raise InvalidState(provider)

        access_token = await self.token_client.exchange(
            provider,
            code,
            code_verifier=payload.code_verifier,
            redirect_uri=payload.callback_uri,
        )
        if not access_token:
            logger.warning("Failed to exchange code for token", extra={"provider": provider})
            raise self._failure(provider, FLOW_FAILED_MARKER, detail="token_exchange")

        user = await self.userinfo_fetcher.fetch(provider, access_token)
        if user is None:
            logger.warning("Failed to retrieve user info", extra={"provider": provider})
            raise self._failure(provider, FLOW_FAILED_MARKER, detail="userinfo")

        redirect_uri = payload.redirect_uri or self.default_redirect_uri
        logger.info(
            "OAuth login completed",
            extra={"provider": provider, "user_id": user.id},
        )
        return CallbackResult(user=user, redirect_uri=redirect_uri)

    def error_redirect(self, marker: str) -> str:
        return append_query(self.default_redirect_uri, urlencode({"error": marker}))

    def _failure(self, provider: str, marker: str, detail: Optional[str] = None) -> OAuthFailure:
        return OAuthFailure(provider, self.error_redirect(marker), marker=marker, detail=detail)
