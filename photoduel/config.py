from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "PhotoDuel"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/photoduel"

    anthropic_api_key: str = ""
    oracle_model: str = "claude-sonnet-4-5"
    oracle_max_tokens: int = 200

    # Seconds allowed for downloading a card image before rating it
    image_fetch_timeout: float = 15.0


settings = Settings()


# =============================================================================
# CARD POOL LIMITS
# =============================================================================

# Newest enriched cards considered when dealing a hand
CARD_POOL_WINDOW = 20
