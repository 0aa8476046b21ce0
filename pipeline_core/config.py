"""
Shared configuration management for the pipeline core.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings


def get_project_root() -> Path:
    """Get the project root directory."""
    current = Path(__file__).resolve()
    # Go up until we find a directory with pyproject.toml
    for parent in current.parents:
        if (parent / "pyproject.toml").exists():
            return parent
    return current.parent


class Settings(BaseSettings):
    """Settings for the pipeline core service."""

    # Application info
    PROJECT_NAME: str = "Pipeline Core"
    VERSION: str = "0.1.0"
    DESCRIPTION: str = "Data-flow pipeline graph store, validator and orchestrator"
    API_PREFIX: str = "/api/v1"

    # Database settings
    DATABASE_URL: str = "sqlite:///:memory:"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Pagination
    DEFAULT_SKIP: int = 0
    DEFAULT_LIMIT: int = 100
    MAX_LIMIT: int = 1000

    # Broker settings
    TOPIC_BUFFER_SIZE: int = 1000
    INTERNAL_BROKER_ADDRESS: str = "internal://pipeline-core"

    # Processor settings
    PROCESSOR_MAX_ATTEMPTS: int = 3
    PROCESSOR_BACKOFF_BASE: float = 0.5
    PROCESSOR_BACKOFF_MAX: float = 30.0
    PROCESSOR_STARTUP_TIMEOUT: float = 10.0
    SCRIPT_TIMEOUT_SECONDS: float = 5.0
    STOP_GRACE_SECONDS: float = 10.0

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def database_config(self) -> Dict[str, Any]:
        """Get database configuration dictionary."""
        return {
            "url": self.DATABASE_URL,
            "provider": self.get_database_provider(),
        }

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT.lower() in ["development", "dev", "local"]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT.lower() in ["production", "prod"]

    def get_database_provider(self) -> str:
        """Get the database provider from the DATABASE_URL."""
        if self.DATABASE_URL.startswith("sqlite"):
            return "sqlite"
        elif self.DATABASE_URL.startswith(("postgresql", "postgres")):
            return "postgresql"
        else:
            return "unknown"


def setup_logging(settings_instance: Optional[Settings] = None) -> None:
    """Configure the root logger from LOG_LEVEL and LOG_FORMAT."""
    settings_instance = settings_instance or settings
    level = getattr(logging, settings_instance.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings_instance.LOG_FORMAT)
    logging.getLogger("pipeline_core").setLevel(level)


settings = Settings()
