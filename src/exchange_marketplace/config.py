"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup — if a required setting is missing, the app fails fast with a
clear error message.

Usage:
    from exchange_marketplace.config import get_settings
    settings = get_settings()
    print(settings.contract_service_url)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Exchange Marketplace."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    api_prefix: str = "/v1"

    # --- Database (PostgreSQL) ---
    database_url: str = (
        "postgresql+asyncpg://marketplace:marketplace_dev"
        "@localhost:5432/exchange_marketplace"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"
    redis_idempotency_ttl_seconds: int = 86400  # 24 hours

    # --- Contract Service ---
    contract_service_url: str = "http://localhost:8888"
    bilateral_contract_path: str = "/bilaterals"
    ecosystem_contract_path: str = "/contracts"
    contract_gateway_timeout_seconds: float = 10.0
    contract_gateway_max_attempts: int = 3
    # "memory" swaps in the in-process gateway (dry runs, local development)
    contract_gateway_mode: Literal["http", "memory"] = "http"

    # --- MCP ---
    mcp_transport: str = "streamable-http"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
