"""
Application Configuration

Uses Pydantic Settings for type-safe configuration.
"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field, field_validator, ConfigDict


class Settings(BaseSettings):
    """Application settings with validation."""

    # === Core ===
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # === Database ===
    database_url: str = Field(
        default="sqlite:///./streaksync.db",
        description="Database connection URL"
    )

    # === CORS ===
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # === Auth (verification only, tokens are issued elsewhere) ===
    jwt_secret: Optional[str] = Field(default=None)
    jwt_algorithm: str = Field(default="HS256")

    # === Strava ===
    strava_client_id: Optional[str] = Field(default=None)
    strava_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("strava_client_secret", "strava_secret"),
    )
    strava_webhook_verify_token: Optional[str] = Field(default=None)
    strava_redirect_uris: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173/auth/callback"],
        description="Redirect URIs accepted by the authorize endpoint"
    )

    # 64 hex chars (32 bytes, AES-256). Unset means tokens are stored as-is.
    token_encryption_key: Optional[str] = Field(default=None)

    # === Strava API budget ===
    # Hard platform limits and the soft ceilings we allow ourselves (~93%).
    strava_short_limit: int = Field(default=300)
    strava_daily_limit: int = Field(default=3000)
    strava_short_budget: int = Field(default=280)
    strava_daily_budget: int = Field(default=2800)

    # === Background sync ===
    scheduler_enabled: bool = Field(default=True)

    @field_validator('database_url')
    @classmethod
    def fix_postgres_url(cls, v: str) -> str:
        """Fix Render/Railway postgres:// URL to postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('cors_origins', 'strava_redirect_uris', mode='before')
    @classmethod
    def parse_comma_separated(cls, v):
        """Parse list settings from comma-separated string."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(',') if item.strip()]
        return v

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance
settings = Settings()
