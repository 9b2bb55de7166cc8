from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Auth settings
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str | None = None

    # Storage settings
    STORAGE_BACKEND: str = "memory"  # "memory" or "redis"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "barberflow"

    # =================================================================
    # NEGOTIATION WINDOWS
    # =================================================================
    DECISION_WINDOW_MINUTES: int = 5
    STORE_SELECTION_BARBER_WINDOW_MINUTES: int = 30

    # =================================================================
    # EXPIRY SCHEDULER
    # =================================================================
    EXPIRY_SWEEP_INTERVAL_SECONDS: float = 30.0
    EXPIRY_RECOVERY_HORIZON_MINUTES: int = 60
    EXPIRY_RETRY_MAX_ATTEMPTS: int = 5
    EXPIRY_RETRY_BASE_DELAY: float = 0.5

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def uses_redis(self) -> bool:
        return self.STORAGE_BACKEND.strip().lower() == "redis"

    def get_expiry_config(self) -> dict:
        """
        Get expiry scheduler configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "sweep_interval_seconds": self.EXPIRY_SWEEP_INTERVAL_SECONDS,
            "recovery_horizon_minutes": self.EXPIRY_RECOVERY_HORIZON_MINUTES,
            "retry_max_attempts": self.EXPIRY_RETRY_MAX_ATTEMPTS,
            "retry_base_delay": self.EXPIRY_RETRY_BASE_DELAY,
        }

        if self.environment == "development":
            # Faster sweeps locally so stuck negotiations show up quickly
            config.update({"sweep_interval_seconds": min(self.EXPIRY_SWEEP_INTERVAL_SECONDS, 10.0)})

        return config


settings = Settings()
