"""Configuration management for splitbill."""

from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Telegram Bot API
    telegram_bot_token: str = ""
    webhook_url: str | None = None  # e.g. https://example.com/api/telegram

    # Shared-ledger mode: when set, every chat reads/writes this chat's ledger
    # and settlement results are broadcast here.
    group_chat_id: str | None = None

    # Group settings
    group_size: int = 4
    default_roster: list[str] = ["loren", "rei", "jessi", "thora"]

    # Currency rendering (Thai baht, whole units)
    currency_symbol: str = "฿"
    currency_decimals: int = 0

    # Session storage
    store_backend: Literal["memory", "sqlite"] = "memory"
    database_path: Path = Path.home() / ".splitbill" / "splitbill.db"

    # Long polling
    poll_timeout: int = 30  # seconds

    @model_validator(mode="after")
    def _check_default_roster(self) -> "Settings":
        if len(self.default_roster) != self.group_size:
            raise ValueError(
                f"default_roster must have {self.group_size} names, "
                f"got {len(self.default_roster)}"
            )
        if len(set(self.default_roster)) != len(self.default_roster):
            raise ValueError("default_roster names must be distinct")
        return self

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        if self.store_backend == "sqlite":
            self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Make sure you have created a .env file "
            f"with all required variables. See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
