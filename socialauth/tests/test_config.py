"""
Configuration Tests
"""

import pytest
from pydantic import ValidationError

from socialauth.config import Settings, validate_configuration


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettings:
    """Test suite for settings parsing"""

    def test_defaults(self):
        settings = make_settings()

        assert settings.DEFAULT_REDIRECT_URI == "/"
        assert settings.STATE_MAX_AGE_MINUTES == 30
        assert settings.SESSION_COOKIE_NAME == "socialauth_session"
        assert settings.PROVIDERS == {}

    def test_log_level_is_uppercased(self):
        assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            make_settings(LOG_LEVEL="chatty")

    def test_short_session_secret_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(SESSION_JWT_SECRET="too-short")

    def test_state_secrets_list(self):
        settings = make_settings(STATE_SECRETS=" new-secret , old-secret ,, ")

        assert settings.state_secrets_list == ["new-secret", "old-secret"]

    def test_allowed_origins_list(self):
        settings = make_settings(ALLOWED_ORIGINS="https://a.test, https://b.test")

        assert settings.allowed_origins_list == ["https://a.test", "https://b.test"]

    def test_base_url_strips_trailing_slash(self):
        assert make_settings(PUBLIC_BASE_URL="https://app.example.com/").base_url == "https://app.example.com"

    def test_provider_keys_are_lowercased(self):
        settings = make_settings(PROVIDERS={"GitHub": {"client_id": "id", "scopes": "read:user,user:email"}})

        assert list(settings.PROVIDERS) == ["github"]
        assert settings.PROVIDERS["github"].scopes == ["read:user", "user:email"]

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("PUBLIC_BASE_URL", "https://auth.example.com")
        monkeypatch.setenv("PROVIDERS__GOOGLE__CLIENT_ID", "google-id")

        settings = make_settings()

        assert settings.base_url == "https://auth.example.com"
        assert settings.PROVIDERS["google"].client_id == "google-id"


class TestValidateConfiguration:
    """Test suite for the startup configuration report"""

    def test_valid_configuration(self):
        settings = make_settings(
            PUBLIC_BASE_URL="https://app.example.com",
            PROVIDERS={"google": {"client_id": "id", "client_secret": "secret"}},
            STATE_SECRETS="x" * 32,
            SESSION_JWT_SECRET="y" * 32,
        )
        report = validate_configuration(settings)

        assert report["valid"] is True
        assert report["errors"] == []
        assert report["warnings"] == []
        assert report["configured_providers"] == ["google"]

    def test_no_providers_is_an_error(self):
        report = validate_configuration(make_settings())

        assert report["valid"] is False
        assert any("provider" in error for error in report["errors"])

    def test_missing_secrets_are_warnings(self):
        report = validate_configuration(make_settings(PROVIDERS={"github": {"client_id": "id", "client_secret": "s"}}))

        assert report["valid"] is True
        assert any("STATE_SECRETS" in w for w in report["warnings"])
        assert any("SESSION_JWT_SECRET" in w for w in report["warnings"])

    def test_short_state_secret_warning(self):
        report = validate_configuration(make_settings(STATE_SECRETS="short"))

        assert any("shorter than 32" in w for w in report["warnings"])

    def test_public_client_warning(self):
        report = validate_configuration(make_settings(PROVIDERS={"twitter": {"client_id": "id"}}))

        assert any("twitter" in w for w in report["warnings"])

    def test_plain_http_warning(self):
        report = validate_configuration(make_settings(PUBLIC_BASE_URL="http://auth.example.com"))

        assert any("HTTPS" in w for w in report["warnings"])
