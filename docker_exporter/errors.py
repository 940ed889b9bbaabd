"""
Exception types raised by the exporter.
"""
from typing import Optional


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigError(ExporterError):
    """Raised when the environment holds an invalid setting."""


class EnumerationError(ExporterError):
    """Raised when the list of running containers cannot be retrieved."""


class StatFetchError(ExporterError):
    """Raised when stats for a single container cannot be retrieved."""

    def __init__(self, container_id: str, reason: str, cause: Optional[BaseException] = None):
        self.container_id = container_id
        self.reason = reason
        self.cause = cause
        super().__init__(f"Failed to fetch stats for container {container_id}: {reason}")
