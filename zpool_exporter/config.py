"""
Configuration for zpool-status-exporter.

Reads from environment variables with sensible defaults.
"""

import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # HTTP listener, "host:port"
    listen_address: str = os.getenv("LISTEN_ADDRESS", "127.0.0.1:8734")
    max_bind_retries: int = int(os.getenv("MAX_BIND_RETRIES", "5"))

    # Authentication (file with one "user:pass" per line)
    basic_auth_keys_file: Optional[str] = os.getenv("BASIC_AUTH_KEYS_FILE") or None

    # zpool command
    zpool_binary: str = "/sbin/zpool"
    zpool_fallback_binary: str = "zpool"
    command_timeout_seconds: float = 15.0

    # Treat the local timezone as UTC (deterministic output for tests)
    assume_utc: bool = False

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        env_prefix = "ZPOOL_EXPORTER_"


settings = Settings()
