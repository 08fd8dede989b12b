"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Lumina configuration. All values come from environment variables."""

    # Anthropic
    anthropic_api_key: str = Field(default="")
    claude_model: str = Field(default="claude-sonnet-4-5-20250929")
    max_tokens: int = Field(default=2048)
    max_tool_rounds: int = Field(default=8)

    # Database
    database_path: Path = Field(default=Path("data/lumina.db"))
    chat_retention_limit: int = Field(default=100)

    # Conversation
    conversation_window_size: int = Field(default=10)

    # Request governor
    min_request_interval_seconds: float = Field(default=3.0)
    quota_cooldown_seconds: float = Field(default=60.0)
    search_quota_cooldown_seconds: float = Field(default=120.0)
    quote_cache_ttl_seconds: float = Field(default=3600.0)
    search_cache_ttl_seconds: float = Field(default=1800.0)

    # Records
    default_reminder_minutes: int = Field(default=15)
    timezone: str = Field(default="Asia/Kolkata")
    currency_symbol: str = Field(default="₹")

    # Brave Search (optional web lookup backend)
    brave_search_api_key: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def has_api_key(self) -> bool:
        return bool(self.anthropic_api_key.strip())


settings = Settings()
