"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a provisioned warehouse.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "PoolCare API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. Using a list enables key rotation without downtime."
    )

    # Anthropic Configuration
    anthropic_api_key: str = Field(
        default="",
        description="Claude API key. Required for product recommendations."
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for product recommendations."
    )
    anthropic_max_tokens: int = Field(
        default=2048,
        description="Max tokens for Claude responses. A recommendation list is short."
    )
    anthropic_temperature: float = Field(
        default=0.2,
        description="Temperature for Claude. Dosages should be conservative, not creative."
    )

    # Snowflake Configuration
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_database: str = Field(
        default="POOLCARE",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="RECORDS",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    store_mock_mode: bool = Field(
        default=False,
        description="Use the in-memory document store instead of Snowflake."
    )

    # Google OAuth / Calendar
    google_client_id: str = Field(
        default="",
        description="OAuth client ID for Google Calendar sync"
    )
    google_client_secret: str = Field(
        default="",
        description="OAuth client secret for Google Calendar sync"
    )
    google_redirect_uri: str = Field(
        default="http://localhost:8000/api/v1/auth/google/callback",
        description="Redirect URI registered for the OAuth client"
    )
    calendar_time_zone: str = Field(
        default="America/Sao_Paulo",
        description="IANA time zone attached to every calendar event"
    )
    calendar_id: str = Field(
        default="primary",
        description="Google calendar that receives visit events"
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for outbound calls to Google endpoints"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )
    app_origin: str = Field(
        default="",
        description="Front-end origin that receives OAuth popup messages. Defaults to the first CORS origin."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def oauth_message_origin(self) -> Optional[str]:
        """Origin the OAuth popup may message; None when only "*" is configured."""
        if self.app_origin.strip():
            return self.app_origin.strip()
        for origin in self.cors_origins_list:
            if origin != "*":
                return origin
        return None

    @property
    def google_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")

        if not self.google_configured:
            missing.append("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET")

        # Snowflake only required if not in mock mode
        if not self.store_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not self.snowflake_password and not self.snowflake_private_key_path:
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, call get_settings.cache_clear() to reset.
    """
    return Settings()
