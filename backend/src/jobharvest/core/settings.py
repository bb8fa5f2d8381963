"""
Settings — Configuration centralisée JobHarvest (Pydantic Settings).

Toute la configuration passe par ici. Plus jamais de os.getenv() éparpillé.
Usage:
    from jobharvest.core.settings import settings
    print(settings.DATABASE_URL)
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration centralisée, lue depuis les variables d'env / .env."""

    # --- App ---
    APP_NAME: str = "JobHarvest"
    APP_VERSION: str = "1.0.0"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_STRUCTURED: bool = False
    LOG_DIR: Optional[Path] = None

    # --- Database (résultats d'exécution) ---
    DATABASE_URL: str = "sqlite:///jobharvest.db"
    MAX_DB_RETRIES: int = 3
    DB_RETRY_DELAY_MS: int = 5000

    @property
    def db_retry_delay_seconds(self) -> float:
        return self.DB_RETRY_DELAY_MS / 1000.0

    # --- Crawl ---
    CRAWL_MAX_CONCURRENCY: int = 5
    CRAWL_REQUEST_TIMEOUT: int = 30  # seconds

    # --- Delegation / Scheduling ---
    DELEGATOR_MAX_WORKERS: int = 4
    SCHEDULER_TIMEZONE: str = "UTC"
    SHUTDOWN_TIMEOUT_SECONDS: int = 30

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Singleton, importable partout
settings = Settings()
