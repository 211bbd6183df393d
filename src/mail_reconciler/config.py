"""Configuration management for Mail Reconciler.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mail_reconciler.models import ViewMode


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the MAIL_RECONCILER_ prefix (e.g., MAIL_RECONCILER_ARCHIVE_DB_PATH).
    """

    model_config = SettingsConfigDict(
        env_prefix="MAIL_RECONCILER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Gmail Configuration
    gmail_credentials_path: Path = Field(
        default=Path("credentials.json"),
        description="Path to Gmail API credentials file",
    )
    gmail_token_path: Path = Field(
        default=Path("token.json"),
        description="Path to Gmail API token file",
    )
    gmail_max_results: int = Field(
        default=500,
        description="Maximum number of headers to fetch per mailbox refresh",
    )
    gmail_scope: str = Field(
        default="https://www.googleapis.com/auth/gmail.modify",
        description=(
            "OAuth scope used for Gmail access. gmail.modify is needed for "
            "deleting messages and changing read status; use gmail.readonly "
            "if you only sync and archive."
        ),
    )

    # Local archive configuration
    archive_db_path: Path = Field(
        default=Path("mail_archive.sqlite3"),
        description="Path to local SQLite database holding archived and cached messages",
    )
    account_id: str = Field(
        default="default",
        description="Account scope used to key locally stored messages",
    )
    default_mailbox: str = Field(
        default="INBOX",
        description="Mailbox (Gmail label) shown when none is given",
    )
    default_view_mode: ViewMode = Field(
        default=ViewMode.ALL,
        description="View mode used when none is given (server, local, all)",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    max_retries: int = Field(
        default=3,
        description="Maximum number of retries for failed remote operations",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
