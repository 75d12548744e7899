"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "frog_user"
    postgres_password: str = "password"
    postgres_db: str = "frog_portal"

    # Full SQLAlchemy URL, overrides the postgres_* parts when set
    database_url: Optional[str] = None

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "frog_portal_docs"

    # JWT Auth
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440

    # Public site (used in checkout redirects and school editor links)
    app_url: str = "http://localhost:3000"
    school_token_ttl_days: int = 30

    # Content Snare (form tracking)
    content_snare_client_id: str = ""
    content_snare_client_secret: str = ""
    content_snare_base_url: str = "https://api.contentsnare.com/partner_api/v1"
    content_snare_token_url: str = "https://api.contentsnare.com/oauth/token"

    # Stripe
    stripe_secret_key: str = ""
    stripe_price_id: str = ""
    stripe_webhook_secret: str = ""

    # microCMS
    microcms_service_domain: str = ""
    microcms_api_key: str = ""
    microcms_cache_ttl: int = 3600
    microcms_cache_max_entries: int = 256

    # Slack
    slack_admin_webhook_url: str = ""
    slack_timeout_seconds: float = 10.0

    # Advisor chat (OpenAI-compatible)
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"

    # File storage
    media_root: str = "media"
    media_url: str = "/media"

    # App
    debug: bool = False

    @property
    def postgres_url(self) -> str:
        """Construct the database connection URL"""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
