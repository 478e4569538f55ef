# booking/config.py

from datetime import time

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read env from .env; unknown keys are ignored
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Database ---
    DATABASE_URL: str = "sqlite:///./booking.db"
    SQL_ECHO: bool = False  # set to True to see SQL

    # --- Logging ---
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"

    # --- Booking rules ---
    MIN_APPOINTMENT_MINUTES: int = 15
    REQUIRE_NOTES: bool = False
    DEFAULT_APPOINTMENT_COLOR: str = "#7cbae8"

    # --- Appointment hash ---
    HASH_MAX_ATTEMPTS: int = 10
    HASH_BYTES: int = 16  # 32 hex characters
    HASH_FALLBACK_EXTRA_BYTES: int = 4

    # --- Working hours used by the blocked-period checks ---
    WORK_DAY_START: time = time(9, 0)
    WORK_DAY_END: time = time(17, 0)

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local", "testing")

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
