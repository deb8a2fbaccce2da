"""
OAuth Flow Tests

Tests the initiate/callback sequencing: validation order, error mapping,
redirect handling and PKCE verifier hand-off.
"""

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from socialauth.config import Settings
from socialauth.models import CanonicalUserInfo
from socialauth.oauth.errors import (
    InitiationFailure,
    InvalidState,
    MissingCode,
    OAuthFailure,
    UnconfiguredProvider,
)
from socialauth.oauth.flow import OAuthFlow, is_safe_redirect
from socialauth.oauth.pkce import generate_code_challenge
from socialauth.oauth.providers import ProviderRegistry
from socialauth.oauth.tokens import TokenExchangeClient
from socialauth.oauth.userinfo import UserInfoFetcher

from .conftest import BASE_URL, build_flow, mock_client


def state_of(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


@pytest.fixture
def token_client():
    client = AsyncMock()
    client.exchange.return_value = "mock-access-token"
    return client


@pytest.fixture
def userinfo_fetcher():
    fetcher = AsyncMock()
    fetcher.fetch.return_value = CanonicalUserInfo(
        id="123456789",
        email="test@example.com",
        name="Test User",
        provider="google",
    )
    return fetcher


@pytest.fixture
def flow(registry, codec, token_client, userinfo_fetcher):
    return build_flow(registry, codec, token_client=token_client, userinfo_fetcher=userinfo_fetcher)


class TestSafeRedirect:
    """Test suite for the post-login redirect guard"""

    @pytest.mark.parametrize("target", [
        "/dashboard",
        "/welcome?tab=1",
        "https://app.example.com/home",
        "https://APP.example.com/home",
    ])
    def test_allowed(self, target):
        assert is_safe_redirect(target, BASE_URL)

    @pytest.mark.parametrize("target", [
        "",
        "//evil.test/path",
        "/\\evil.test",
        "https://evil.test/",
        "http://app.example.com/home",
        "javascript:alert(1)",
        "dashboard",
    ])
    def test_rejected(self, target):
        assert not is_safe_redirect(target, BASE_URL)


class TestInitiate:
    """Test suite for starting a login"""

    def test_returns_authorization_url(self, flow, codec):
        url = flow.initiate("google", "/dashboard")

        assert url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
        assert codec.validate("google", state_of(url)) == (True, "/dashboard")

    def test_provider_key_is_case_insensitive(self, flow):
        assert flow.initiate("GitHub").startswith("https://github.com/login/oauth/authorize?")

    @pytest.mark.parametrize("provider", ["myspace", "facebook", ""])
    def test_unconfigured_provider(self, flow, provider):
        with pytest.raises(UnconfiguredProvider) as exc_info:
            flow.initiate(provider)

        assert exc_info.value.message == f"Provider '{provider}' is not configured"

    def test_unsafe_redirect_is_dropped(self, flow, codec):
        url = flow.initiate("google", "https://evil.test/phish")

        assert codec.validate("google", state_of(url)) == (True, None)

    def test_pkce_verifier_travels_in_state(self, flow, codec):
        url = flow.initiate("twitter", "/home")
        challenge = parse_qs(urlparse(url).query)["code_challenge"][0]

        payload = codec.decode("twitter", state_of(url))

        assert payload.code_verifier
        assert generate_code_challenge(payload.code_verifier) == challenge

    def test_no_verifier_without_pkce(self, flow, codec):
        url = flow.initiate("google")

        assert codec.decode("google", state_of(url)).code_verifier is None

    def test_internal_error_becomes_initiation_failure(self, flow):
        with patch.object(flow.state_codec, "issue", side_effect=TypeError("boom")):
            with pytest.raises(InitiationFailure) as exc_info:
                flow.initiate("google")

        assert exc_info.value.message == "Failed to initiate OAuth flow"

    def test_registry_is_frozen(self, flow):
        assert flow.registry.frozen


class TestCallback:
    """Test suite for completing a login"""

    @pytest.mark.asyncio
    async def test_success(self, flow, token_client, userinfo_fetcher):
        state = state_of(flow.initiate("google", "/welcome"))

        result = await flow.callback("google", code="auth-code", state=state)

        assert result.redirect_uri == "/welcome"
        assert result.user.id == "123456789"
        token_client.exchange.assert_awaited_once_with(
            "google", "auth-code", code_verifier=None, redirect_uri=None
        )
        userinfo_fetcher.fetch.assert_awaited_once_with("google", "mock-access-token")

    @pytest.mark.asyncio
    async def test_success_uses_default_redirect(self, flow):
        state = state_of(flow.initiate("google"))

        result = await flow.callback("google", code="auth-code", state=state)

        assert result.redirect_uri == "/dashboard"

    @pytest.mark.asyncio
    async def test_pkce_verifier_is_redeemed(self, flow, codec, token_client):
        state = state_of(flow.initiate("twitter"))
        verifier = codec.decode("twitter", state).code_verifier

        await flow.callback("twitter", code="auth-code", state=state)

        token_client.exchange.assert_awaited_once_with(
            "twitter", "auth-code", code_verifier=verifier, redirect_uri=None
        )

    @pytest.mark.asyncio
    async def test_callback_uri_override_is_replayed_at_exchange(self, flow, token_client):
        url = flow.initiate("google", callback_uri="https://app.example.com/signin-google")

        assert parse_qs(urlparse(url).query)["redirect_uri"][0] == "https://app.example.com/signin-google"

        await flow.callback("google", code="auth-code", state=state_of(url))

        token_client.exchange.assert_awaited_once_with(
            "google", "auth-code", code_verifier=None, redirect_uri="https://app.example.com/signin-google"
        )

    @pytest.mark.asyncio
    async def test_provider_error_short_circuits(self, flow, token_client):
        state = state_of(flow.initiate("google"))

        with pytest.raises(OAuthFailure) as exc_info:
            await flow.callback("google", code="auth-code", state=state, error="access_denied")

        assert exc_info.value.marker == "oauth_error"
        assert exc_info.value.redirect_uri == "/dashboard?error=oauth_error"
        token_client.exchange.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_error_checked_before_state(self, flow):
        with pytest.raises(OAuthFailure):
            await flow.callback("google", error="access_denied", state="garbage")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [None, ""])
    async def test_missing_code(self, flow, token_client, code):
        state = state_of(flow.initiate("google"))

        with pytest.raises(MissingCode) as exc_info:
            await flow.callback("google", code=code, state=state)

        assert exc_info.value.message == "Authorization code is required"
        token_client.exchange.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", [None, "", "invalid-state"])
    async def test_invalid_state(self, flow, token_client, state):
        with pytest.raises(InvalidState) as exc_info:
            await flow.callback("google", code="auth-code", state=state)

        assert exc_info.value.message == "Invalid state parameter"
        token_client.exchange.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_state_for_other_provider(self, flow, token_client):
        state = state_of(flow.initiate("google"))

        with pytest.raises(InvalidState):
            await flow.callback("github", code="auth-code", state=state)

        token_client.exchange.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_state(self, flow, clock, token_client):
        state = state_of(flow.initiate("google"))
        clock.advance(31 * 60)

        with pytest.raises(InvalidState):
            await flow.callback("google", code="auth-code", state=state)

        token_client.exchange.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_token_exchange_failure(self, flow, token_client, userinfo_fetcher):
        token_client.exchange.return_value = None
        state = state_of(flow.initiate("google", "/welcome"))

        with pytest.raises(OAuthFailure) as exc_info:
            await flow.callback("google", code="auth-code", state=state)

        assert exc_info.value.marker == "oauth_failed"
        assert exc_info.value.redirect_uri == "/dashboard?error=oauth_failed"
        userinfo_fetcher.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_userinfo_failure(self, flow, userinfo_fetcher):
        userinfo_fetcher.fetch.return_value = None
        state = state_of(flow.initiate("google"))

        with pytest.raises(OAuthFailure) as exc_info:
            await flow.callback("google", code="auth-code", state=state)

        assert exc_info.value.redirect_uri == "/dashboard?error=oauth_failed"

    def test_error_redirect_appends_to_existing_query(self, registry, codec):
        flow = build_flow(registry, codec, default_redirect_uri="/home?tab=1")

        assert flow.error_redirect("oauth_failed") == "/home?tab=1&error=oauth_failed"


class TestEndToEnd:
    """Test suite running the real HTTP clients against a mock transport"""

    @pytest.mark.asyncio
    async def test_github_login(self, registry, codec):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "github.com":
                return httpx.Response(200, json={"access_token": "gho_token", "token_type": "bearer"})
            assert request.headers["authorization"] == "Bearer gho_token"
            return httpx.Response(200, json={
                "id": 987654321,
                "login": "testuser",
                "name": "Test User",
                "email": "test@example.com",
                "avatar_url": "https://github.com/avatar.jpg",
            })

        http_client = mock_client(handler)
        flow = build_flow(
            registry,
            codec,
            token_client=TokenExchangeClient(registry, BASE_URL, http_client=http_client),
            userinfo_fetcher=UserInfoFetcher(registry, http_client=http_client),
        )

        state = state_of(flow.initiate("github", "/repos"))
        result = await flow.callback("github", code="auth-code", state=state)

        assert result.redirect_uri == "/repos"
        assert result.user.id == "987654321"
        assert result.user.provider == "github"
        assert result.user.additional_claims["login"] == "testuser"

    @pytest.mark.asyncio
    async def test_non_ascii_access_token_fails_cleanly(self, registry, codec):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "github.com":
                return httpx.Response(200, json={"access_token": "tok\u00e9n"})
            raise AssertionError("user-info must not be requested")

        http_client = mock_client(handler)
        flow = build_flow(
            registry,
            codec,
            token_client=TokenExchangeClient(registry, BASE_URL, http_client=http_client),
            userinfo_fetcher=UserInfoFetcher(registry, http_client=http_client),
        )

        state = state_of(flow.initiate("github"))

        with pytest.raises(OAuthFailure) as exc_info:
            await flow.callback("github", code="auth-code", state=state)

        assert exc_info.value.redirect_uri == "/dashboard?error=oauth_failed"


class TestFromSettings:
    """Test suite for settings-driven wiring"""

    def test_wires_components(self):
        settings = Settings(
            _env_file=None,
            PUBLIC_BASE_URL="https://auth.example.com/",
            DEFAULT_REDIRECT_URI="/home",
            PROVIDERS={"google": {"client_id": "id", "client_secret": "secret"}},
            STATE_SECRETS="first-secret-0123456789abcdef0123,second-secret-0123456789abcdef012",
        )
        flow = OAuthFlow.from_settings(settings)

        url = flow.initiate("google")
        redirect_uri = parse_qs(urlparse(url).query)["redirect_uri"][0]

        assert redirect_uri == "https://auth.example.com/oauth/callback/google"
        assert flow.default_redirect_uri == "/home"
        assert flow.registry.list_configured() == ["google"]

    def test_without_secrets_uses_ephemeral_key(self):
        settings = Settings(_env_file=None, PROVIDERS={"github": {"client_id": "id"}})
        flow = OAuthFlow.from_settings(settings)

        state = state_of(flow.initiate("github"))

        assert flow.state_codec.validate("github", state)[0]

    def test_injected_empty_registry_is_kept(self):
        settings = Settings(_env_file=None, PROVIDERS={"github": {"client_id": "id"}})
        registry = ProviderRegistry(seed_builtins=False)

        flow = OAuthFlow.from_settings(settings, registry=registry)

        assert flow.registry is registry
        with pytest.raises(UnconfiguredProvider):
            flow.initiate("github")
