"""
Configuration management for the portfolio data layer.

Loads and validates environment variables for the Supabase client,
the session policy and the cache windows.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    # Service Configuration
    APP_NAME: str = "Portfolio Data"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    USER_AGENT: str = "portfolio-data/1.0"

    # Supabase Configuration
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""

    # OAuth Configuration
    SITE_URL: str = "http://localhost:5173"
    OAUTH_CALLBACK_PATH: str = "/auth/callback"
    PASSWORD_RESET_PATH: str = "/auth/reset-password"
    OAUTH_SCOPES: str = "openid email profile"

    # Session Policy
    SESSION_REFRESH_MARGIN_SECONDS: int = 300
    SESSION_MONITOR_INTERVAL_SECONDS: float = 60.0
    EXTENDED_SESSION_DAYS: int = 30
    EXTENDED_SESSION_STORAGE_PATH: Optional[str] = None

    # Cache Windows
    ADMIN_CACHE_TTL_SECONDS: float = 30.0
    PROFILE_CACHE_TTL_SECONDS: float = 10.0

    # Debug Tools
    DEBUG_TOOLS_ENABLED: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def oauth_redirect_url(self) -> str:
        """Fixed callback URL the identity provider redirects back to."""
        return f"{self.SITE_URL.rstrip('/')}{self.OAUTH_CALLBACK_PATH}"

    @property
    def password_reset_url(self) -> str:
        """URL embedded in password reset emails."""
        return f"{self.SITE_URL.rstrip('/')}{self.PASSWORD_RESET_PATH}"


# Global settings instance
settings = Settings()
