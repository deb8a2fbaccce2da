"""
Shared fixtures for the socialauth test suite.
"""

from typing import Callable

import httpx
import pytest

from socialauth.oauth.authorize import AuthorizationUrlBuilder
from socialauth.oauth.flow import OAuthFlow
from socialauth.oauth.providers import ProviderRegistry
from socialauth.oauth.state import StateTokenCodec
from socialauth.oauth.tokens import TokenExchangeClient
from socialauth.oauth.userinfo import UserInfoFetcher


BASE_URL = "https://app.example.com"
STATE_SECRET = "test-state-secret-0123456789abcdef"


class FakeClock:
    """Manually advanced epoch clock"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """httpx client whose requests are answered by ``handler``"""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    """Registry with google, github and twitter configured plus one custom provider"""
    registry = ProviderRegistry()
    registry.configure("google", client_id="google-client", client_secret="google-secret")
    registry.configure("github", client_id="github-client", client_secret="github-secret")
    registry.configure("twitter", client_id="twitter-client", client_secret="twitter-secret")
    registry.register_custom(
        "acme",
        client_id="acme-client",
        client_secret="acme-secret",
        authorization_endpoint="https://sso.acme.test/authorize",
        token_endpoint="https://sso.acme.test/token",
        userinfo_endpoint="https://sso.acme.test/userinfo",
        scopes=["openid", "email"],
        use_pkce=False,
    )
    return registry


@pytest.fixture
def codec(clock):
    return StateTokenCodec(STATE_SECRET, clock=clock)


@pytest.fixture
def url_builder(registry):
    return AuthorizationUrlBuilder(registry, BASE_URL)


def build_flow(registry, codec, token_client=None, userinfo_fetcher=None, default_redirect_uri="/dashboard"):
    return OAuthFlow(
        registry=registry,
        state_codec=codec,
        url_builder=AuthorizationUrlBuilder(registry, BASE_URL),
        token_client=token_client or TokenExchangeClient(registry, BASE_URL),
        userinfo_fetcher=userinfo_fetcher or UserInfoFetcher(registry),
        default_redirect_uri=default_redirect_uri,
        base_url=BASE_URL,
    )
