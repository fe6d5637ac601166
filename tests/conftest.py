"""
Pytest fixtures and configuration for OPA Report tests.

Provides reusable fixtures for telemetry responses, HTTP mocking and
configuration files across the test suite.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from opa_report.config import Config


def make_response(status_code: int = 200, content: bytes = b"") -> MagicMock:
    """Build a mock requests.Response with the given status and body."""
    response = MagicMock()
    response.status_code = status_code
    response.iter_content.side_effect = lambda chunk_size=1: iter([content] if content else [])
    response.ok = 200 <= status_code < 400
    return response


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host environment overrides out of every test."""
    for var in (
        "OPA_TELEMETRY_SERVICE_URL",
        "OPA_REPORT_SERVICE_URL",
        "OPA_TELEMETRY_ENABLED",
        "OPA_REPORT_DATA_DIR",
        "OPA_REPORT_LOG_LEVEL",
        "OPA_REPORT_LOG_FILE",
    ):
        monkeypatch.delenv(var, raising=False)


# Telemetry payload fixtures
@pytest.fixture
def sample_release_payload():
    """Full response from the telemetry service."""
    return {
        "latest": {
            "download": "https://openpolicyagent.org/downloads/v0.40.0/opa_linux_amd64",
            "release_notes": "https://github.com/open-policy-agent/opa/releases/tag/v0.40.0",
            "latest_release": "v0.40.0",
            "opa_up_to_date": False,
        }
    }


@pytest.fixture
def mock_telemetry_server_success(sample_release_payload):
    """Mock telemetry server that answers with release information."""

    def mock_request(*args, **kwargs):
        return make_response(200, json.dumps(sample_release_payload).encode())

    return mock_request


@pytest.fixture
def mock_telemetry_server_empty():
    """Mock telemetry server that answers 200 with no body."""

    def mock_request(*args, **kwargs):
        return make_response(200, b"")

    return mock_request


@pytest.fixture
def mock_telemetry_server_error():
    """Mock telemetry server that returns server errors."""

    def mock_request(*args, **kwargs):
        return make_response(500, b'{"error": "Internal server error"}')

    return mock_request


@pytest.fixture
def mock_telemetry_server_timeout():
    """Mock telemetry server that times out."""
    import requests

    def mock_request(*args, **kwargs):
        raise requests.exceptions.Timeout("Connection timed out")

    return mock_request


@pytest.fixture
def mock_telemetry_server_connection_error():
    """Mock telemetry server that has connection errors."""
    import requests

    def mock_request(*args, **kwargs):
        raise requests.exceptions.ConnectionError("Connection failed")

    return mock_request


# Utility fixtures
@pytest.fixture
def temp_config_file(tmp_path):
    """Create a temporary config file."""
    config_file = tmp_path / "opa-report.yaml"
    config_file.write_text(
        f"""
telemetry:
  url: "https://telemetry.example.com"
  enabled: true
storage:
  data_dir: "{tmp_path / 'data'}"
logging:
  level: WARNING
"""
    )
    return config_file


@pytest.fixture
def sample_config(tmp_path):
    """Sample configuration for testing."""
    return Config(
        service_url="https://telemetry.example.com",
        telemetry_enabled=True,
        data_dir=str(tmp_path / "data"),
        log_level="WARNING",
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "cli: marks command-line interface tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


@pytest.fixture
def response_factory():
    """Factory for mock responses: response_factory(status_code, content)."""
    return make_response
