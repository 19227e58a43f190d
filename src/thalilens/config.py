"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str | None = "medium"
    openai_store: bool = False
    openai_timeout_seconds: float | None = None
    default_timezone: str = "UTC"
    draft_ttl_seconds: int = 3600
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_reasoning_effort(raw: str | None) -> str | None:
    """Normalize the reasoning effort setting; empty or "none" disables it."""
    if raw is None:
        return None
    cleaned = raw.strip().lower()
    if cleaned in {"", "none", "off"}:
        return None
    return cleaned
