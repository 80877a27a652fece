"""Configuration management for deadline-tracker."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Local store
    sqlite_db_path: str = Field(default="./data/deadline_tracker.db", description="SQLite database file path")

    # Remote replica (Realtime-Database style REST endpoint)
    remote_base_url: str = Field(
        default="http://127.0.0.1:9000", description="Base URL of the remote task document store"
    )
    remote_auth_token: str | None = Field(default=None, description="Auth token appended to remote store requests")
    remote_user_id: str = Field(default="", description="Owner id written into remote task documents")

    # Asset storage
    asset_base_url: str = Field(
        default="http://127.0.0.1:9199/v0/b/deadline-tracker", description="Base URL of the image asset bucket"
    )
    asset_auth_token: str | None = Field(default=None, description="Bearer token for asset storage requests")

    # Notifications
    notification_webhook_url: str | None = Field(
        default=None, description="Webhook receiving deadline alerts (alerts are only logged when unset)"
    )

    # Quote API
    quote_api_url: str = Field(default="https://api.quotable.io", description="Motivational quote API base URL")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Engine tuning
    reminder_interval_minutes: int = Field(default=60, ge=1, description="Minutes between deadline checks")
    sync_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Upper bound for a single reconciliation operation"
    )


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # Urgency windows
    NEAR_WINDOW_HOURS: int = 24
    UPCOMING_WINDOW_DAYS: int = 3

    # Scheduler
    REMINDER_JOB_ID: str = "deadline_reminders"

    # Remote layout
    REMOTE_TASKS_PATH: str = "tasks"
    ASSET_PATH_PREFIX: str = "task_images"

    # Quotes
    QUOTE_TAGS: str = "inspirational,motivational"

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100
    TRACKER_ERROR_MAX_CHARS: int = 500


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
