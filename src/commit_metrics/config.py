"""Configuration management for Commit Metrics."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # GitHub Configuration
    github_token: str | None = Field(None, description="GitHub personal access token")
    github_api_url: str = Field(
        "https://api.github.com", description="Base URL of the GitHub REST API"
    )
    github_host: str = Field(
        "github.com", description="Host accepted in repository URLs"
    )

    # Report export service
    report_api_url: str = Field(
        "https://commit-metrics-api.onrender.com",
        description="Base URL of the PDF report service",
    )

    # Transport
    request_timeout: float = Field(
        30.0, gt=0, description="Hard timeout for one HTTP attempt (seconds)"
    )
    max_retries: int = Field(
        3, ge=0, description="Retries after the first attempt on transient failures"
    )
    retry_base_delay: float = Field(
        0.5, ge=0, description="Base backoff delay, doubled on every retry (seconds)"
    )
    offline: bool = Field(False, description="Treat the network as unavailable")

    # Repository sampling
    commit_page_size: int = Field(
        100, ge=1, le=100, description="Most recent commits fetched per analysis"
    )
    file_sample_size: int = Field(
        5, ge=1, le=10, description="Recent commits sampled for per-file change stats"
    )

    # Result cache
    cache_max_age: float = Field(
        3600, ge=0, description="Seconds a cached analysis stays fresh"
    )
    cache_dir: str = Field(
        ".commit_metrics", description="Directory of the persistent key-value store"
    )
    cache_key: str = Field(
        "commitMetrics_lastRepo", description="Storage key of the cache slot"
    )

    # Application Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Logging level"
    )
    debug: bool = Field(False, description="Enable debug mode")

    # API Configuration
    api_host: str = Field("0.0.0.0", description="API host")
    api_port: int = Field(8000, description="API port")


# Global settings instance
settings = Settings()
