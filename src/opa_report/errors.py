"""
Error types raised by the version reporter.
"""

from __future__ import annotations


class ReportError(Exception):
    """Base class for all reporting failures."""

    pass


class ConfigurationError(ReportError):
    """Raised when the reporter cannot be built from its configuration."""

    pass


class TransportError(ReportError):
    """Raised when the report request could not be sent or completed."""

    pass


class RemoteError(ReportError):
    """Raised when the telemetry service replies with a non-200 status."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"server replied with HTTP {status_code}")


class DecodeError(ReportError):
    """Raised when a 200 response body is not the expected JSON document."""

    pass
