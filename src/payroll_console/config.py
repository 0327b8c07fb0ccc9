"""Configuration management for the payroll console."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    api_base_url: str
    api_token: str | None
    api_timeout: float
    gateway: str  # "http" or "memory"
    database_url: str
    host: str
    port: int
    debug: bool
    log_level: str

    def __post_init__(self) -> None:
        if self.gateway not in {"http", "memory"}:
            raise ValueError("PAYROLL_GATEWAY must be 'http' or 'memory'")
        if self.api_timeout <= 0:
            raise ValueError("PAYROLL_API_TIMEOUT must be positive")

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            api_base_url=os.getenv("PAYROLL_API_BASE_URL", "http://localhost:3000/api"),
            api_token=os.getenv("PAYROLL_API_TOKEN") or None,
            api_timeout=float(os.getenv("PAYROLL_API_TIMEOUT", "30")),
            gateway=os.getenv("PAYROLL_GATEWAY", "http").lower(),
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./payroll_console.db",
            ),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
