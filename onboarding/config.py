"""Application configuration module."""

from typing import List
from pydantic import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./onboarding.db"
    SQL_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    CREATE_SCHEMA_ON_STARTUP: bool = True

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_FILE: str = ""

    # API settings
    API_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Onboarding Assessments"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Attempt lifecycle
    ENFORCE_TEST_SEQUENCE: bool = True
    AUTO_SCORE_ON_SUBMIT: bool = True

    class Config:
        """Pydantic settings config."""
        env_file = ".env"
        case_sensitive = True


# Create global settings instance
settings = Settings()
