"""Application configuration and settings."""
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the application pipeline."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = "sqlite+aiosqlite:///./data/app.db"
    data_directory: Path = Path("data")
    profile_directory: Path = Path("data/profiles")
    artifact_directory: Path = Path("data/artifacts")
    screenshot_directory: Path = Path("data/screenshots")
    log_directory: Path = Path("logs")
    audit_log_path: Path = Path("data/audit.jsonl")
    sample_job_file: Path = Path("data/sample_jobs.json")

    log_level: str = "INFO"

    playwright_headless: bool = True
    navigation_timeout_ms: int = 25_000
    idle_timeout_seconds: float = 30.0

    failure_streak_threshold: int = 3
    inter_job_delay_seconds: float = 5.0
    default_queue_limit: int = 1
    default_dry_run: bool = True

    stale_days: int = 7
    purge_days: int = 90

    def ensure_directories(self) -> None:
        for directory in (
            self.data_directory,
            self.profile_directory,
            self.artifact_directory,
            self.screenshot_directory,
        ):
            directory.mkdir(parents=True, exist_ok=True)
        self.audit_log_path.parent.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    settings = Settings()
    settings.ensure_directories()
    return settings
