from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from SCRYFALL_* environment variables or .env."""

    model_config = SettingsConfigDict(env_prefix="SCRYFALL_", env_file=".env", extra="ignore")

    base_url: str = "https://api.scryfall.com"
    user_agent: str = "scryfall-nlq/0.1.0"
    timeout_seconds: float = 15.0

    # Scryfall asks for 50-100ms between requests
    rate_limit_ms: int = 100
    max_retries: int = 3
    backoff_multiplier: float = 2.0
    max_backoff_ms: int = 5000

    cache_ttl_seconds: int = 1800

    # Below this the server reports what it understood instead of a query
    low_confidence_threshold: float = 0.3


settings = Settings()
