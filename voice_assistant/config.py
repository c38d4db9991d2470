"""Application configuration via pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]
    # API key (optional): if set, required on all routes except /health and /docs
    api_key: str = ""

    # Google OAuth (Calendar, Gmail, YouTube)
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = ""

    # Amazon (Login with Amazon + Music Web API)
    amazon_client_id: str = ""
    amazon_client_secret: str = ""
    amazon_redirect_uri: str = ""
    amazon_music_api_key: str = ""

    # Command handling
    default_timezone: str = "America/New_York"
    command_rate_limit: str = "60/minute"
    dispatch_timeout_seconds: float = 30.0
    upstream_timeout_seconds: float = 20.0

    # Retry policy for rate-limited upstream calls
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 0.5
    retry_max_delay_seconds: float = 8.0

    # Refresh tokens this many seconds before they actually expire
    token_expiry_buffer_seconds: int = 60

    # Entries kept per user
    history_limit: int = 500


settings = Settings()
