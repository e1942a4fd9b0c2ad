from __future__ import annotations

import os

APP_VERSION = "0.3.0"


def _env_bool(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    PROJECT_NAME: str = "Fundgate"
    API_V1_PREFIX: str = "/api/v1"

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./fundgate.db")
    DATABASE_ECHO: bool = _env_bool("DATABASE_ECHO")
    RESET_DB: bool = _env_bool("RESET_DB")

    # Settlement layer (optional; if not configured, payouts go to the
    # in-process recording ledger and are only logged)
    SETTLEMENT_URL: str = os.getenv("SETTLEMENT_URL", "")
    SETTLEMENT_API_KEY: str = os.getenv("SETTLEMENT_API_KEY", "")
    SETTLEMENT_TIMEOUT_SECONDS: float = float(os.getenv("SETTLEMENT_TIMEOUT_SECONDS", "30"))

    # Campaign creation limits
    MAX_MILESTONES_PER_CAMPAIGN: int = int(os.getenv("MAX_MILESTONES_PER_CAMPAIGN", "50"))
    MAX_TITLE_LENGTH: int = int(os.getenv("MAX_TITLE_LENGTH", "200"))

    ALLOWED_ORIGINS: list[str] = [
        o.strip()
        for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")
        if o.strip()
    ]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
