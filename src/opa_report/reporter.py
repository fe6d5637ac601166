"""
Version reporter for OPA Report.

Sends the running version to the telemetry service and decodes the
service's answer about the latest upstream release.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from opa_report import __version__
from opa_report.config import resolve_service_url
from opa_report.context import Cancelled, Context, DeadlineExceeded
from opa_report.errors import ConfigurationError, DecodeError, RemoteError, TransportError
from opa_report.rest import RestClient, RestConfigError

logger = logging.getLogger(__name__)

REPORT_PATH = "/v1/version"

# Upper bound in seconds for a single report round trip.
REPORT_TIMEOUT = 5.0

# Small reads keep deadline and cancellation checks frequent.
BODY_CHUNK_SIZE = 64


@dataclass(frozen=True)
class ReleaseDetails:
    """Information about the latest upstream release."""

    download: str = ""
    release_notes: str = ""
    latest_release: str = ""
    opa_up_to_date: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReleaseDetails:
        values: dict[str, Any] = {}
        for name in ("download", "release_notes", "latest_release"):
            value = data.get(name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"field {name!r} must be a string, got {type(value).__name__}")
            values[name] = value

        up_to_date = data.get("opa_up_to_date")
        if up_to_date is not None:
            if not isinstance(up_to_date, bool):
                raise ValueError(
                    f"field 'opa_up_to_date' must be a boolean, got {type(up_to_date).__name__}"
                )
            values["opa_up_to_date"] = up_to_date

        return cls(**values)


@dataclass(frozen=True)
class DataResponse:
    """Decoded reply of the telemetry service."""

    latest: ReleaseDetails = field(default_factory=ReleaseDetails)

    @classmethod
    def from_dict(cls, data: Any) -> DataResponse:
        """
        Decode a response document.

        Raises:
            ValueError: If the document does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"response must be a JSON object, got {type(data).__name__}")

        latest = data.get("latest")
        if latest is None:
            return cls()
        if not isinstance(latest, dict):
            raise ValueError(f"field 'latest' must be an object, got {type(latest).__name__}")

        return cls(latest=ReleaseDetails.from_dict(latest))

    def is_set(self) -> bool:
        return is_set(self)

    def as_pairs(self) -> list[tuple[str, str]]:
        return as_pairs(self)

    def pretty(self) -> str:
        return pretty(self)


def is_set(response: DataResponse | None) -> bool:
    """Return True if `response` carries a complete release description."""
    if response is None:
        return False
    latest = response.latest
    return bool(latest.latest_release and latest.download and latest.release_notes)


def is_outdated(response: DataResponse | None) -> bool:
    """Return True if the service says a newer release than ours exists."""
    return is_set(response) and not response.latest.opa_up_to_date


def as_pairs(response: DataResponse | None) -> list[tuple[str, str]]:
    """
    Return the release information as ordered (label, value) pairs.

    An unset response yields an empty list.
    """
    if not is_set(response):
        return []

    latest = response.latest
    return [
        ("Latest Upstream Version", latest.latest_release.removeprefix("v")),
        ("Download", latest.download),
        ("Release Notes", latest.release_notes),
    ]


def pretty(response: DataResponse | None) -> str:
    """Return the release information in a human-readable format."""
    return "\n".join(f"{label}: {value}" for label, value in as_pairs(response))


@dataclass
class Options:
    """Parameters for building a Reporter."""

    logger: logging.Logger = field(default_factory=lambda: logger)
    service_url: str | None = None


class Reporter:
    """
    Reports the version of the running instance to the telemetry service.

    The request body is fixed at construction. Each call to send_report
    is a single POST with no retries.
    """

    def __init__(self, instance_id: str, options: Options | None = None):
        options = options or Options()

        self.service_url = resolve_service_url(options.service_url)
        rest_config = json.dumps({"url": self.service_url})

        try:
            self.client = RestClient.from_config(rest_config, {}, logger=options.logger)
        except RestConfigError as e:
            raise ConfigurationError(str(e)) from e

        self._body = {
            "id": instance_id,
            "version": __version__,
        }

    @property
    def body(self) -> dict[str, str]:
        """Copy of the request body sent with every report."""
        return dict(self._body)

    def send_report(self, ctx: Context | None = None) -> DataResponse | None:
        """
        Send the version report.

        Args:
            ctx: Caller context. The whole round trip, body included, is
                 additionally bounded by REPORT_TIMEOUT seconds.

        Returns:
            The decoded response, or None if the service sent no body.

        Raises:
            TransportError: If the request could not be sent or completed
                            before the deadline, or the context was cancelled.
            RemoteError: If the service replied with a non-200 status.
            DecodeError: If a 200 body is not the expected JSON document.
        """
        ctx = (ctx or Context.background()).with_timeout(REPORT_TIMEOUT)

        try:
            status_code, content = ctx.run(self._exchange, ctx)
        except (requests.exceptions.RequestException, Cancelled, DeadlineExceeded) as e:
            raise TransportError(str(e)) from e

        if status_code != 200:
            raise RemoteError(status_code)

        if not content:
            return None

        try:
            return DataResponse.from_dict(json.loads(content))
        except ValueError as e:
            raise DecodeError(f"invalid response from telemetry service: {e}") from e

    def _exchange(self, ctx: Context) -> tuple[int, bytes]:
        """POST the body and read a 200 reply, checking ctx between chunks."""
        response = self.client.with_json(self._body).do(ctx, "POST", REPORT_PATH)
        try:
            if response.status_code != 200:
                return response.status_code, b""

            chunks = []
            for chunk in response.iter_content(BODY_CHUNK_SIZE):
                ctx.check()
                chunks.append(chunk)
            return response.status_code, b"".join(chunks)
        finally:
            response.close()

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.client.close()

    def __enter__(self) -> Reporter:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
