"""Application configuration using pydantic-settings."""
from pydantic_settings import BaseSettings
from pathlib import Path


# Default location for the SQLite database
DATA_DIR = Path(__file__).parent.parent.parent / "data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = f"sqlite:///{DATA_DIR / 'fieldreports.db'}"

    # Narrative generation
    llm_provider: str = "anthropic"  # anthropic | openrouter
    llm_model: str = "claude-sonnet-4-20250514"
    anthropic_api_key: str = ""
    openrouter_api_key: str = ""
    llm_max_tokens: int = 1500

    # Weather (Open-Meteo, no key required)
    weather_api_url: str = "https://api.open-meteo.com/v1/forecast"
    weather_timezone: str = "Africa/Harare"
    weather_past_days: int = 30
    weather_forecast_days: int = 7

    # Email transport
    smtp_host: str = "localhost"
    smtp_port: int = 465
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_ssl: bool = True
    smtp_timeout_seconds: float = 60.0
    email_from_address: str = "reports@yieldera.co.zw"
    email_from_name: str = "Yieldera Reports"
    email_send_retries: int = 2  # Additional attempts after the first
    email_retry_backoff_seconds: float = 3.0

    # Queue processing
    batch_size: int = 10
    batch_throttle_seconds: float = 1.0
    poll_interval_minutes: int = 2
    stale_claim_minutes: int = 30
    default_max_retries: int = 3
    enrichment_workers: int = 4

    # Scheduler
    enable_scheduler: bool = False
    weekly_reports_enabled: bool = False

    # Presentation
    app_url: str = "https://yieldera.co.zw"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()
