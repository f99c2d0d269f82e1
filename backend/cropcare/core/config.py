"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "CropCare Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://cropcare@localhost:5432/cropcare"
    default_language: str = "en"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "cropcare"
    # Generation oracle
    oracle_enabled: bool = True
    openai_api_key: str | None = None
    oracle_model: str = "gpt-4o"
    oracle_timeout_seconds: float = 45.0
    oracle_country: str = "India"
    # Notifications
    notifications_enabled: bool = False
    notifications_provider: str = "noop"
    notification_cap: int = 60
    notification_window_days: int = 45
    notification_timezone: str = "Asia/Kolkata"
    # Worker
    scheduler_enabled: bool = False
    scheduler_timezone: str = "UTC"
    cleanup_job_hour: int = 2
    cleanup_job_minute: int = 30
    notification_job_hour: int = 5
    notification_job_minute: int = 0
    jobs_run_on_startup: bool = False


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
