"""
Authorization URL construction.

Builds the URL the user agent is redirected to in order to start the
Authorization Code flow at the provider.
"""

from typing import Optional
from urllib.parse import quote, urlencode

from socialauth.models import ProviderConfig
from socialauth.oauth.pkce import PkceChallenge, create_pkce_challenge
from socialauth.oauth.providers import ProviderRegistry


def callback_url(base_url: str, provider: str, config: ProviderConfig) -> str:
    """
    Compute the redirect URI registered with the provider.

    The same value must be sent with the authorization request and the
    token exchange.
    """
    path = config.callback_path.replace("{provider}", provider.lower())
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{base_url.rstrip('/')}{path}"


def append_query(url: str, query: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"


class AuthorizationUrlBuilder:
    """
    Composes provider authorization URLs.

    Args:
        registry: Provider registry
        base_url: Externally visible origin of this deployment
    """

    def __init__(self, registry: ProviderRegistry, base_url: str):
        self.registry = registry
        self.base_url = base_url.rstrip("/")

    def build(
        self,
        provider: str,
        state: str,
        redirect_uri: Optional[str] = None,
        pkce: Optional[PkceChallenge] = None,
    ) -> str:
        """
        Build the authorization URL for a provider.

        Args:
            provider: Provider key
            state: State token issued for this attempt
            redirect_uri: Explicit redirect URI; defaults to the provider's
                          callback URL on this deployment
            pkce: Challenge to send when the provider uses PKCE; a fresh one
                  is generated when omitted

        Returns:
            Absolute authorization URL with every value percent-encoded

        Raises:
            UnknownProvider: If the provider has no registry entry
        """
        config = self.registry.get(provider)

        params = {
            "client_id": config.client_id,
            "response_type": "code",
            "scope": " ".join(config.scopes),
            "redirect_uri": redirect_uri or callback_url(self.base_url, provider, config),
            "state": state,
        }

        if config.use_pkce:
            challenge = pkce or create_pkce_challenge()
            params["code_challenge"] = challenge.code_challenge
            params["code_challenge_method"] = challenge.method

        return append_query(config.authorization_endpoint, urlencode(params, quote_via=quote))
