"""
Application settings using pydantic-settings for type-safe configuration.

All environment variables are centralized here with proper typing, validation,
and sensible defaults. Settings are loaded once at startup and cached.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for local development.
    Production values should be set via environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # === Completion Provider ===
    ai_provider: str = Field(
        default="openai",
        description="Completion provider: 'openai' or 'mock' (deterministic, for development)",
    )
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key (required when ai_provider is 'openai')",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Optional custom OpenAI-compatible base URL",
    )

    # === Models ===
    primary_model: str = Field(
        default="gpt-3.5-turbo",
        description="Cheap/fast model used for the first pass over every batch",
    )
    fallback_model: str = Field(
        default="gpt-4o",
        description="Higher-quality model used to re-ask ambiguous answers",
    )
    extraction_model: str | None = Field(
        default=None,
        description="Model for organization-name extraction (defaults to primary_model)",
    )

    # === Batching ===
    enrichment_batch_size: int = Field(
        default=15,
        gt=0,
        description="Records per completion call",
    )
    max_concurrent_batches: int = Field(
        default=1,
        gt=0,
        description="Batches processed concurrently (1 = sequential)",
    )
    completion_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Deadline for a single completion call",
    )
    completion_max_retries: int = Field(
        default=2,
        ge=0,
        description="Transport-level retries performed by the OpenAI SDK",
    )

    # === Definitive Healthcare (grounding dataset) ===
    definitive_api_url: str = Field(
        default="https://api.defhc.com/v4",
        description="Definitive Healthcare API base URL",
    )
    definitive_username: str = Field(
        default="",
        description="Definitive Healthcare API username",
    )
    definitive_password: str = Field(
        default="",
        description="Definitive Healthcare API password",
    )
    definitive_page_size: int = Field(
        default=7000,
        gt=0,
        description="Maximum health systems fetched per request",
    )

    # === CORS Configuration ===
    # Note: Use str type for env var parsing, convert to list via property
    allowed_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="ALLOWED_ORIGINS",
        description="Allowed CORS origins (comma-separated)",
    )

    @property
    def allowed_origins(self) -> list[str]:
        """Parse comma-separated origins string into list."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    @property
    def definitive_configured(self) -> bool:
        return bool(self.definitive_username and self.definitive_password)

    @field_validator("ai_provider", mode="after")
    @classmethod
    def validate_ai_provider(cls, v: str) -> str:
        """Validate and normalize ai_provider."""
        v = v.lower()
        if v not in ("openai", "mock"):
            raise ValueError(f"Invalid AI_PROVIDER: {v}. Must be 'openai' or 'mock'")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the application.
    """
    return Settings()
