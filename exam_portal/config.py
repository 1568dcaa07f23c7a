"""Application settings loaded from the environment / ``.env`` file."""

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the exam portal."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="EXAM_PORTAL_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Exam Portal"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./exam_portal.db"

    # Security
    secret_key: str = "CHANGE_ME_TO_A_RANDOM_SECRET"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Grading / submission policy
    default_passing_score: float = 0.6
    allow_resubmission: bool = True
    enforce_exam_window: bool = True

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings; also usable as a FastAPI dependency."""
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
