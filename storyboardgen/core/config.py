"""
StoryboardGen Configuration

Pydantic settings for the FastAPI service.
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    # Supabase
    supabase_url: str = Field(default="")
    supabase_anon_key: str = Field(default="")
    supabase_service_key: str = Field(default="")

    # Gemini
    gemini_api_key: str = Field(default="")
    gemini_image_model: str = Field(default="gemini-3-pro-image-preview")
    gemini_text_model: str = Field(default="gemini-2.5-flash-lite")
    gemini_timeout_seconds: float = Field(default=120.0)

    # Storage
    output_bucket: str = Field(default="project-outputs")
    signed_url_ttl_seconds: int = Field(default=3600)

    # Rate limits
    rate_limit_enabled: bool = Field(default=True)
    generation_rate_limit: str = Field(default="10/minute")
    suggestion_rate_limit: str = Field(default="20/minute")

    # Stripe
    stripe_secret_key: str = Field(default="")
    stripe_webhook_secret: str = Field(default="")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
