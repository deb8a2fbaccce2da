"""
Configuration module for socialauth.

This module uses Pydantic Settings to load and validate environment variables
for the OAuth provider registry, state token protection, session cookies,
outbound HTTP and CORS settings.

Environment variables are loaded from .env file or system environment.
Provider credentials use the ``__`` nested delimiter, for example::

    PROVIDERS__GOOGLE__CLIENT_ID=...
    PROVIDERS__GOOGLE__CLIENT_SECRET=...
    PROVIDERS__ACME__AUTHORIZATION_ENDPOINT=https://sso.acme.test/authorize
"""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseModel):
    """
    Per-provider configuration as read from the environment.

    Empty endpoints, empty scopes and unset flags inherit the built-in
    defaults for known providers.
    """

    client_id: str = ""
    client_secret: str = ""
    authorization_endpoint: str = ""
    token_endpoint: str = ""
    userinfo_endpoint: str = ""
    scopes: List[str] = Field(default_factory=list)
    callback_path: Optional[str] = None
    use_pkce: Optional[bool] = None

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(cls, v):
        if isinstance(v, str):
            return [s for s in v.replace(",", " ").split() if s]
        return v


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # =========================================================================
    # Deployment
    # =========================================================================

    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:8000",
        description="Externally visible origin used to build callback URLs",
    )

    DEFAULT_REDIRECT_URI: str = Field(
        default="/",
        description="Where users land after login when no redirect was requested",
    )

    LOGIN_PATH: str = Field(default="/oauth/login")
    LOGOUT_PATH: str = Field(default="/oauth/logout")

    # =========================================================================
    # OAuth Providers
    # =========================================================================

    PROVIDERS: Dict[str, ProviderSettings] = Field(
        default_factory=dict,
        description="Provider key -> credentials and endpoint overrides",
    )

    # =========================================================================
    # State Token Protection
    # =========================================================================

    STATE_SECRETS: Optional[str] = Field(
        None,
        description="Comma-separated state encryption secrets; the first one encrypts",
    )

    STATE_MAX_AGE_MINUTES: int = Field(
        default=30,
        description="Maximum age of a state token",
        ge=1,
        le=120,
    )

    # =========================================================================
    # Session Configuration
    # =========================================================================

    SESSION_JWT_SECRET: Optional[str] = Field(
        None,
        description="Secret key for signing session JWTs",
        min_length=32,
    )

    SESSION_EXPIRY_DAYS: int = Field(default=30, ge=1, le=365)

    SESSION_COOKIE_NAME: str = Field(default="socialauth_session")

    SESSION_COOKIE_SECURE: bool = Field(
        default=False,
        description="Only send the session cookie over HTTPS",
    )

    JWT_ISSUER: str = Field(default="socialauth")

    # =========================================================================
    # Outbound HTTP
    # =========================================================================

    HTTP_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for token exchange and user-info requests",
        gt=0,
        le=120,
    )

    # =========================================================================
    # Server
    # =========================================================================

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    LOG_LEVEL: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def state_secrets_list(self) -> List[str]:
        if not self.STATE_SECRETS:
            return []
        return [s.strip() for s in self.STATE_SECRETS.split(",") if s.strip()]

    @property
    def allowed_origins_list(self) -> List[str]:
        if not self.ALLOWED_ORIGINS:
            return []
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def base_url(self) -> str:
        return self.PUBLIC_BASE_URL.rstrip("/")

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("PROVIDERS", mode="before")
    @classmethod
    def lowercase_provider_keys(cls, v):
        if isinstance(v, dict):
            return {str(key).lower(): value for key, value in v.items()}
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}, got: {v}")
        return v.upper()


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Cached so that settings are loaded only once during the application
    lifecycle.

    Raises:
        ValidationError: If environment variables are invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    Example:
        >>> status = validate_configuration(get_settings())
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    errors = []
    warnings = []

    if not settings.state_secrets_list:
        warnings.append("STATE_SECRETS is not set; state tokens will not survive a restart")
    elif any(len(s) < 32 for s in settings.state_secrets_list):
        warnings.append("STATE_SECRETS contains a secret shorter than 32 characters")

    if not settings.SESSION_JWT_SECRET:
        warnings.append("SESSION_JWT_SECRET is not set; sessions will not survive a restart")

    configured = [key for key, p in settings.PROVIDERS.items() if p.client_id]
    if not configured:
        errors.append("No OAuth provider has a client id configured")

    for key, provider in settings.PROVIDERS.items():
        if provider.client_id and not provider.client_secret:
            warnings.append(f"Provider '{key}' has no client secret (public client)")

    if settings.base_url.startswith("http://") and "localhost" not in settings.base_url:
        warnings.append("PUBLIC_BASE_URL is not HTTPS")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "configured_providers": configured,
    }
