"""
Configuration for the Docker Stats Exporter
"""
import os
import sys
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from docker_exporter.errors import ConfigError

WINDOWS_DOCKER_URL = 'npipe:////./pipe/docker_engine'
UNIX_DOCKER_URL = 'unix:///var/run/docker.sock'

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def default_docker_url(platform: Optional[str] = None) -> str:
    """
    Pick the Docker daemon address for the host platform.

    Docker Desktop on Windows listens on a named pipe, everything else on the
    default Unix socket.
    """
    platform = platform or sys.platform
    if platform == 'win32':
        return WINDOWS_DOCKER_URL
    return UNIX_DOCKER_URL


class ExporterConfig(BaseModel):
    """Exporter settings, read from the environment"""

    # Values come from os.getenv as strings and must be coerced and checked
    model_config = ConfigDict(validate_default=True, frozen=True)

    # HTTP server
    host: str = Field(default_factory=lambda: os.getenv('HOST', '0.0.0.0'))
    port: int = Field(default_factory=lambda: os.getenv('PORT', '9417'), ge=1, le=65535)

    # Collection
    scrape_interval_ms: int = Field(
        default_factory=lambda: os.getenv('SCRAPE_INTERVAL_MS', '15000'),
        gt=0
    )
    slow_fetch_threshold_ms: int = Field(
        default_factory=lambda: os.getenv('SLOW_FETCH_THRESHOLD_MS', '2000'),
        gt=0
    )

    # Docker daemon
    docker_url: str = Field(
        default_factory=lambda: os.getenv('DOCKER_SOCKET_PATH') or default_docker_url()
    )
    docker_max_pool_size: int = Field(
        default_factory=lambda: os.getenv('DOCKER_MAX_POOL_SIZE', '32'),
        gt=0
    )

    log_level: str = Field(default_factory=lambda: os.getenv('LOG_LEVEL', 'INFO'))

    @field_validator('log_level')
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(LOG_LEVELS)}")
        return level

    @property
    def scrape_interval_seconds(self) -> float:
        return self.scrape_interval_ms / 1000.0

    @property
    def slow_fetch_threshold_seconds(self) -> float:
        return self.slow_fetch_threshold_ms / 1000.0

    @classmethod
    def from_env(cls) -> 'ExporterConfig':
        """
        Build the configuration from the current environment.

        Raises:
            ConfigError: If any variable holds an invalid value
        """
        try:
            return cls()
        except ValidationError as e:
            raise ConfigError(f"Invalid exporter configuration: {e}") from e
