"""
Configuration management for Seedance Studio.

Centralizes all configuration including:
- API key and endpoint
- Model selection
- Polling schedule and budget
- Download settings for generated videos
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


@dataclass
class APIConfig:
    """API configuration for the Seedance video generation service."""

    seedance_api_key: str = field(default_factory=lambda: os.getenv("SEEDANCE_API_KEY", ""))
    seedance_api_base: str = field(
        default_factory=lambda: os.getenv(
            "SEEDANCE_API_URL", "https://ark.ap-southeast.bytepluses.com/api/v3"
        )
    )

    # Transport timeouts in seconds (per single request)
    create_timeout: float = 30.0
    status_timeout: float = 10.0


@dataclass
class ModelConfig:
    """Model selection configuration."""

    # Pinned variants such as "seedance-1-5-pro-251215" are also accepted
    default_model: str = field(
        default_factory=lambda: os.getenv("SEEDANCE_MODEL_ID", "seedance-1-5-pro")
    )


@dataclass
class PollingConfig:
    """Backoff schedule and overall budget for status polling."""

    initial_delay_ms: int = 2000
    max_delay_ms: int = 10000
    timeout_ms: int = field(default_factory=lambda: _env_int("SEEDANCE_POLL_TIMEOUT_MS", 600000))

    # Consecutive failed status queries tolerated before NetworkError surfaces
    max_consecutive_errors: int = 3


@dataclass
class JobConfig:
    """Remote job settings sent with every submission."""

    execution_expires_after: int = 172800  # seconds (48 hours)
    content_url_ttl_hours: int = 24


@dataclass
class DownloadConfig:
    """Settings for persisting generated videos locally."""

    output_dir: str = field(default_factory=lambda: os.getenv("VIDEO_OUTPUT_DIR", "output"))
    max_attempts: int = 3
    timeout: float = 120.0


@dataclass
class Config:
    """Main configuration class."""

    api: APIConfig = field(default_factory=APIConfig)
    models: ModelConfig = field(default_factory=ModelConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    jobs: JobConfig = field(default_factory=JobConfig)
    downloads: DownloadConfig = field(default_factory=DownloadConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls()

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.api.seedance_api_key:
            issues.append("SEEDANCE_API_KEY not configured")

        if not self.api.seedance_api_base.startswith(("http://", "https://")):
            issues.append(f"SEEDANCE_API_URL is not an http(s) URL: {self.api.seedance_api_base}")

        if self.polling.initial_delay_ms <= 0 or self.polling.max_delay_ms < self.polling.initial_delay_ms:
            issues.append("Polling delays must be positive with max_delay_ms >= initial_delay_ms")

        if self.polling.timeout_ms <= 0:
            issues.append("Polling timeout must be positive")

        if self.polling.max_consecutive_errors < 0:
            issues.append("max_consecutive_errors cannot be negative")

        return issues


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reload_config():
    """Reload configuration from environment."""
    global _config
    _config = Config.from_env()
