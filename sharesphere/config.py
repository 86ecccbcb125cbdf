"""Runtime configuration, read from the environment."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Settings for the trading core."""

    database_url: str = "sqlite+aiosqlite:///./sharesphere.db"
    sql_echo: bool = False

    # Optimistic concurrency: attempts per trade and linear backoff (seconds)
    trade_max_attempts: int = 3
    trade_retry_backoff: float = 0.05

    otlp_enabled: bool = True
    otlp_endpoint: str = "http://localhost:4318/v1/metrics"
    otlp_export_interval: int = 5000  # milliseconds

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            sql_echo=os.getenv("SQLALCHEMY_ECHO") == "1",
            trade_max_attempts=max(1, int(os.getenv("TRADE_MAX_ATTEMPTS", "3"))),
            trade_retry_backoff=float(os.getenv("TRADE_RETRY_BACKOFF", "0.05")),
            otlp_enabled=os.getenv("OTLP_ENABLED", "true").lower() != "false",
            otlp_endpoint=os.getenv("OTLP_ENDPOINT", cls.otlp_endpoint),
            otlp_export_interval=int(os.getenv("OTLP_EXPORT_INTERVAL", "5000")),
        )


settings = Settings.from_env()
