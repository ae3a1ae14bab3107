"""Configuration via pydantic-settings with .env support."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GmailLabelerSettings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="GMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OAuth credentials
    credentials_path: Path = Path("credentials/client_secret.json")
    token_path: Path = Path("credentials/token.json")
    user_id: str = "me"
    # JSON list in the environment, e.g. GMAIL_SCOPES='["https://mail.google.com/"]'
    scopes: list[str] = Field(
        default_factory=lambda: ["https://www.googleapis.com/auth/gmail.modify"], min_length=1
    )

    # Batch engine
    chunk_size: int = Field(default=100, ge=1, le=1000)
    inter_chunk_delay_seconds: float = Field(default=1.0, ge=0)
    pre_validate: bool = True
    verify: bool = True
    permanent_delete: bool = False
    request_timeout_seconds: float | None = Field(default=None, gt=0)

    # Rate limiting & retry
    max_retries: int = 5
    initial_backoff_seconds: float = 1.0
    max_backoff_seconds: float = 60.0
    num_retries: int = 3

    # Logging
    log_level: str = "INFO"

    def ensure_directories(self) -> None:
        """Create the credentials directory if it doesn't exist."""
        self.credentials_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
