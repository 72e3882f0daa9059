"""
Application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_name: str = "SMS Ledger"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/ledger.sqlite"

    # Encryption at rest
    ledger_encryption_key: Optional[str] = None  # Fernet key; generated into ledger_key_path when unset
    ledger_key_path: str = "./data/ledger.key"

    # Privacy defaults (seed the persisted privacy settings row)
    store_plain_raw_message: bool = False
    persist_remote_transactions: bool = False

    # Remote mirror
    remote_mirror_url: Optional[str] = None
    remote_mirror_token: Optional[str] = None
    remote_timeout_seconds: float = 10.0
    remote_push_retries: int = 3
    remote_push_backoff_seconds: float = 0.5
    remote_push_workers: int = 2

    # Device inbox export
    inbox_export_path: str = "./data/inbox.jsonl"
    inbox_access_granted: bool = False

    # Sync
    sync_cooldown_seconds: float = 3.0
    sync_wait_timeout_seconds: float = 120.0
    sync_lookback_days: int = 365
    periodic_sync_user_id: Optional[str] = None  # Background sync target; disabled when unset
    periodic_sync_interval_seconds: float = 900.0

    # Message dates carry no zone; this is the offset they are read in (IST)
    message_utc_offset_minutes: int = 330

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    frontend_url: str = "http://localhost:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )


# Global settings instance
settings = Settings()
