"""
Minimal REST client for talking to remote OPA services.

Built from a JSON configuration document, the client holds a
requests.Session bound to a base URL and sends JSON requests under a
Context deadline.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any
from urllib.parse import urlsplit

import requests

from opa_report import __version__
from opa_report.context import Context, DeadlineExceeded


class RestConfigError(ValueError):
    """Raised when a client cannot be built from its configuration."""

    pass


class RestClient:
    """
    HTTP client bound to a single service base URL.

    Supports:
    - Extra static headers
    - Disabling TLS verification for test services
    - Per-call deadlines derived from a Context
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        allow_insecure_tls: bool = False,
        keys: dict[str, Any] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.url = url
        self.keys = keys or {}
        self.logger = logger or logging.getLogger(__name__)
        self.session = requests.Session()
        self.session.verify = not allow_insecure_tls
        self.session.headers.update(
            {
                "User-Agent": f"opa-report/{__version__}",
                "Accept": "application/json",
            }
        )
        if headers:
            self.session.headers.update(headers)
        self._json: Any = None

    @classmethod
    def from_config(
        cls,
        config: bytes | str,
        keys: dict[str, Any],
        logger: logging.Logger | None = None,
    ) -> RestClient:
        """
        Build a client from a JSON configuration document.

        Args:
            config: JSON object with `url` and optionally `headers`
                    and `allow_insecure_tls`.
            keys: Named signing keys available to the client.
            logger: Logger used for request tracing.

        Raises:
            RestConfigError: If the document or the URL is malformed.
        """
        try:
            data = json.loads(config)
        except ValueError as e:
            raise RestConfigError(f"invalid client configuration: {e}") from e

        if not isinstance(data, dict):
            raise RestConfigError("client configuration must be a JSON object")

        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise RestConfigError("client configuration is missing 'url'")

        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise RestConfigError(f"invalid service url: {url!r}")

        headers = data.get("headers") or {}
        if not isinstance(headers, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in headers.items()
        ):
            raise RestConfigError("'headers' must map strings to strings")

        insecure = data.get("allow_insecure_tls", False)
        if not isinstance(insecure, bool):
            raise RestConfigError("'allow_insecure_tls' must be a boolean")

        return cls(
            url,
            headers=headers,
            allow_insecure_tls=insecure,
            keys=keys,
            logger=logger,
        )

    def with_json(self, body: Any) -> RestClient:
        """Return a copy of the client that sends `body` as JSON."""
        client = copy.copy(self)
        client._json = body
        return client

    def do(self, ctx: Context, method: str, path: str) -> requests.Response:
        """
        Send a request and return the streamed response.

        The caller owns the response and must close it.

        Raises:
            Cancelled: If the context was cancelled before sending.
            DeadlineExceeded: If the context deadline already passed.
            requests.exceptions.RequestException: On transport failures.
        """
        ctx.check()
        timeout = ctx.remaining()
        # requests rejects a zero timeout
        if timeout == 0:
            raise DeadlineExceeded("context deadline exceeded")

        url = self.url.rstrip("/") + "/" + path.lstrip("/")
        self.logger.debug(f"Sending {method} request to {url}")

        response = self.session.request(
            method,
            url,
            json=self._json,
            timeout=timeout,
            stream=True,
        )

        self.logger.debug(f"Received HTTP {response.status_code} from {url}")
        return response

    def close(self) -> None:
        self.session.close()
