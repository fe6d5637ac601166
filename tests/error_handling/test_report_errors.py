"""
Error handling tests for version reports.

Tests that transport failures, cancellations and remote errors surface as
distinct report errors and that responses are always released.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
import requests

from opa_report.context import Cancelled, Context, DeadlineExceeded
from opa_report.errors import (
    DecodeError,
    RemoteError,
    ReportError,
    TransportError,
)
from opa_report.reporter import Reporter


@pytest.fixture
def reporter():
    return Reporter("instance-1")


class TestTransportErrors:
    """Test failures while sending the report."""

    def test_timeout(self, reporter, mock_telemetry_server_timeout):
        """Test that request timeouts raise TransportError."""
        with patch.object(
            reporter.client.session, "request", side_effect=mock_telemetry_server_timeout
        ):
            with pytest.raises(TransportError) as exc_info:
                reporter.send_report()

        assert isinstance(exc_info.value.__cause__, requests.exceptions.Timeout)

    def test_connection_error(self, reporter, mock_telemetry_server_connection_error):
        """Test that connection failures raise TransportError."""
        with patch.object(
            reporter.client.session,
            "request",
            side_effect=mock_telemetry_server_connection_error,
        ):
            with pytest.raises(TransportError) as exc_info:
                reporter.send_report()

        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)
        assert "Connection failed" in str(exc_info.value)

    def test_cancelled_context(self, reporter):
        """Test that a cancelled caller context aborts before sending."""
        ctx = Context.background()
        ctx.cancel()

        with patch.object(reporter.client.session, "request") as mock_request:
            with pytest.raises(TransportError) as exc_info:
                reporter.send_report(ctx)

        mock_request.assert_not_called()
        assert isinstance(exc_info.value.__cause__, Cancelled)

    def test_expired_context(self, reporter):
        """Test that an expired caller deadline aborts before sending."""
        ctx = Context.with_deadline_in(-1)

        with patch.object(reporter.client.session, "request") as mock_request:
            with pytest.raises(TransportError) as exc_info:
                reporter.send_report(ctx)

        mock_request.assert_not_called()
        assert isinstance(exc_info.value.__cause__, DeadlineExceeded)

    def test_cancelled_while_reading_body(self, reporter, response_factory):
        """Test that cancelling between body chunks stops the read."""
        ctx = Context.background()
        sent = []

        def chunks(chunk_size=1):
            for chunk in (b'{"latest": ', b'{"latest_release": ', b'"v1.2.3"}}'):
                sent.append(chunk)
                yield chunk
                ctx.cancel()

        response = response_factory(200)
        response.iter_content.side_effect = chunks

        with patch.object(reporter.client.session, "request", return_value=response):
            with pytest.raises(TransportError) as exc_info:
                reporter.send_report(ctx)

        assert isinstance(exc_info.value.__cause__, Cancelled)
        assert len(sent) < 3

    def test_body_read_failure(self, reporter, response_factory):
        """Test that a failure while reading the body is a transport error."""
        response = response_factory(200)
        response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError(
            "connection broken"
        )

        with patch.object(reporter.client.session, "request", return_value=response):
            with pytest.raises(TransportError):
                reporter.send_report()

        response.close.assert_called_once()


class TestRemoteErrors:
    """Test non-200 replies."""

    def test_server_error(self, reporter, mock_telemetry_server_error):
        """Test that a 500 reply raises RemoteError without reading the body."""
        with patch.object(
            reporter.client.session, "request", side_effect=mock_telemetry_server_error
        ):
            with pytest.raises(RemoteError, match="500"):
                reporter.send_report()

    def test_body_of_error_reply_is_not_parsed(self, reporter, response_factory):
        """Test that an invalid body on a non-200 reply is still a RemoteError."""
        response = response_factory(503, b"<html>unavailable</html>")

        with patch.object(reporter.client.session, "request", return_value=response):
            with pytest.raises(RemoteError) as exc_info:
                reporter.send_report()

        assert exc_info.value.status_code == 503
        response.close.assert_called_once()


class TestErrorTaxonomy:
    """Test that every failure is a distinct ReportError."""

    @pytest.mark.parametrize(
        "status, content, expected",
        [
            (500, b"", RemoteError),
            (200, b"not json", DecodeError),
            (200, b'{"latest": "v1"}', DecodeError),
            (200, b"[]", DecodeError),
        ],
    )
    def test_error_types(self, reporter, response_factory, status, content, expected):
        response = response_factory(status, content)

        with patch.object(reporter.client.session, "request", return_value=response):
            with pytest.raises(expected) as exc_info:
                reporter.send_report()

        assert isinstance(exc_info.value, ReportError)
        response.close.assert_called_once()

    def test_success_paths_release_response(
        self, reporter, mock_telemetry_server_success, mock_telemetry_server_empty
    ):
        """Test that successful replies also release the response."""
        for server in (mock_telemetry_server_success, mock_telemetry_server_empty):
            response = server()
            with patch.object(reporter.client.session, "request", return_value=response):
                reporter.send_report()
            response.close.assert_called_once()
