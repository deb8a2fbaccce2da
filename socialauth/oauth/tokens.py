"""
Authorization code to access token exchange.

Every failure (unknown provider, transport error, timeout, non-2xx status,
unparsable body, missing token) resolves to None and is logged here. Only
caller cancellation propagates.
"""

import logging
from typing import Optional

import httpx

from socialauth.oauth.authorize import callback_url
from socialauth.oauth.http import provider_client
from socialauth.oauth.providers import ProviderRegistry

logger = logging.getLogger(__name__)


class TokenExchangeClient:
    """
    Exchanges authorization codes at provider token endpoints.

    Args:
        registry: Provider registry
        base_url: Externally visible origin used for the redirect URI
        http_client: Optional shared httpx.AsyncClient
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.registry = registry
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client
        self.timeout = timeout

    async def exchange(
        self,
        provider: str,
        code: str,
        code_verifier: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ) -> Optional[str]:
        """
        Exchange an authorization code for an access token.

        Args:
            provider: Provider key
            code: Authorization code from the callback
            code_verifier: PKCE verifier issued with the authorization request
            redirect_uri: Redirect URI used in the authorization request;
                          defaults to the provider's callback URL

        Returns:
            Access token string, or None if the exchange failed
        """
        config = self.registry.lookup(provider)
        if config is None:
            logger.warning("Token exchange for unknown provider", extra={"provider": provider})
            return None

        payload = {
            "grant_type": "authorization_code",
            "client_id": config.client_id,
            "code": code,
            "redirect_uri": redirect_uri or callback_url(self.base_url, provider, config),
        }

        # Public clients have no secret
        if config.client_secret:
            payload["client_secret"] = config.client_secret

        if code_verifier:
            payload["code_verifier"] = code_verifier

        try:
            async with provider_client(self.http_client, self.timeout) as client:
                response = await client.post(
                    config.token_endpoint,
                    data=payload,
                    headers={
                        "Accept": "application/json",
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                    timeout=self.timeout,
                )
        except httpx.TimeoutException:
            logger.warning("Token exchange timed out", extra={"provider": provider})
            return None
        except httpx.HTTPError as e:
            logger.warning(f"Token exchange request failed: {type(e).__name__}", extra={"provider": provider})
            return None

        if not response.is_success:
            logger.warning(
                f"Token exchange failed with status {response.status_code}",
                extra={"provider": provider, "status_code": response.status_code},
            )
            return None

        try:
            token_data = response.json()
        except ValueError:
            logger.warning("Token response is not valid JSON", extra={"provider": provider})
            return None

        access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if not isinstance(access_token, str) or not access_token:
            logger.warning("Token response missing access_token", extra={"provider": provider})
            return None

        # Sent back as a Bearer header, which only carries printable ASCII
        if not (access_token.isascii() and access_token.isprintable()):
            logger.warning("Token response access_token is not printable ASCII", extra={"provider": provider})
            return None

        return access_token
