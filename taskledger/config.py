"""
Task Ledger Configuration

Settings for the task ledger service
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Task Ledger Settings"""

    # Service
    service_name: str = "TaskLedger"
    service_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8000

    # Storage: "memory" or "redis"
    storage_backend: str = "memory"
    redis_url: str = "redis://localhost:6379"
    redis_key_prefix: str = "taskledger"

    # Token ledger (balance oracle)
    oracle_timeout: float = 30.0
    oracle_internal_token: str | None = None

    # Webhooks (event notifications)
    webhook_url: str | None = None
    webhook_secret: str | None = None  # For HMAC signature verification
    webhook_timeout: int = 30  # seconds
    webhook_retry_count: int = 3
    webhook_retry_delay: float = 5  # seconds

    # API bearer tokens mapped to the principal they authenticate
    api_tokens: dict[str, str] = {}

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="TASKLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
