from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "ClearCut Lead Hunter"
    app_version: str = "1.3.0"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Providers
    youtube_api_key: str | None = None
    youtube_base_url: str = "https://www.googleapis.com/youtube/v3"
    youtube_timeout_seconds: float = 10.0
    openai_api_key: str | None = None

    # Candidate generation
    candidate_model: str = "gpt-4o-mini"
    candidate_temperature: float = 0.7
    candidate_batch_size: int = 10

    # Verification policy
    activity_window_days: int = 30
    pacing_delay_seconds: float = 0.1

    # Metrics
    metrics_backend: str = "stdout"
    metrics_namespace: str = "lead_hunter"
    metrics_disable: bool = False
    metrics_sample_rate: float = 1.0
    metrics_statsd_host: str = "127.0.0.1"
    metrics_statsd_port: int = 8125

    # Security
    cors_origins: list[str] = []  # Empty by default for security

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = ConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()
