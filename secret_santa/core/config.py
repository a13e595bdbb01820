"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Secret Santa"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"  # Bind to all interfaces for external access
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all
    app_url: str = "http://localhost:8000"  # Prefix for relative gift image paths in emails

    # Database
    database_url: str = "sqlite:///./secret_santa.db"

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_secure: bool = False  # Implicit TLS (port 465)
    smtp_starttls: bool = True
    smtp_from_email: str = ""
    smtp_from_name: str = "Secret Santa"

    # Notification settings
    notification_timeout_seconds: float = 30.0
    notification_max_workers: int = 8
    email_dry_run: bool = False  # Log emails instead of sending them
    notification_retry_enabled: bool = True
    notification_retry_interval_minutes: int = 15


settings = Settings()
