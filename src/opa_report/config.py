"""
Configuration management for OPA Report.

Supports configuration via YAML files, environment variables, and programmatic access.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

# Base URL of the telemetry service. Packagers may change this default;
# OPA_TELEMETRY_SERVICE_URL overrides it at runtime.
EXTERNAL_SERVICE_URL = "https://telemetry.openpolicyagent.org"

SERVICE_URL_ENV = "OPA_TELEMETRY_SERVICE_URL"

DEFAULT_CONFIG_PATHS = [
    Path("/etc/opa-report/config.yaml"),
    Path.home() / ".config" / "opa-report" / "config.yaml",
    Path("opa-report.yaml"),
]


def resolve_service_url(configured: str | None = None) -> str:
    """
    Resolve the telemetry service base URL.

    Priority (highest to lowest):
    1. OPA_TELEMETRY_SERVICE_URL, when set and non-empty
    2. `configured`, when non-empty
    3. EXTERNAL_SERVICE_URL
    """
    return os.environ.get(SERVICE_URL_ENV) or configured or EXTERNAL_SERVICE_URL


@dataclass
class Config:
    """
    Configuration container for OPA Report.

    Priority (highest to lowest):
    1. Programmatic values passed to __init__
    2. Environment variables (prefixed with OPA_)
    3. Config file values
    4. Default values
    """

    # Telemetry settings
    service_url: str | None = None
    telemetry_enabled: bool = True

    # Storage for the instance id
    data_dir: str = "/var/lib/opa-report"

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_file(cls, path: str | Path) -> Config:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create config from a dictionary."""
        # Nested sections use short keys, e.g. telemetry.url -> service_url
        section_keys = {
            ("telemetry", "url"): "service_url",
            ("telemetry", "enabled"): "telemetry_enabled",
            ("storage", "data_dir"): "data_dir",
            ("logging", "level"): "log_level",
            ("logging", "file"): "log_file",
        }

        flat = {}
        for key, value in data.items():
            if isinstance(value, dict):
                for subkey, subvalue in value.items():
                    flat[section_keys.get((key, subkey), subkey)] = subvalue
            else:
                flat[key] = value

        # Filter to only known fields
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in flat.items() if k in known_fields}

        return cls(**filtered)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> Config:
        """
        Load configuration with full resolution order.

        Args:
            config_path: Explicit path to config file. If None, searches
                        default locations.

        Returns:
            Fully resolved Config instance.
        """
        base_config: dict[str, Any] = {}

        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    base_config = yaml.safe_load(f) or {}
        else:
            for path in DEFAULT_CONFIG_PATHS:
                if path.exists():
                    with open(path) as f:
                        base_config = yaml.safe_load(f) or {}
                    break

        config = cls.from_dict(base_config) if base_config else cls()
        config._apply_env_overrides()

        return config

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        env_mappings = {
            "OPA_REPORT_SERVICE_URL": "service_url",
            "OPA_TELEMETRY_ENABLED": "telemetry_enabled",
            "OPA_REPORT_DATA_DIR": "data_dir",
            "OPA_REPORT_LOG_LEVEL": "log_level",
            "OPA_REPORT_LOG_FILE": "log_file",
        }

        for env_var, attr in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                current = getattr(self, attr)
                if isinstance(current, bool):
                    setattr(self, attr, value.lower() in ("true", "1", "yes"))
                else:
                    setattr(self, attr, value)

    @property
    def resolved_service_url(self) -> str:
        """Base URL the reporter will actually talk to."""
        return resolve_service_url(self.service_url)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "telemetry": {
                "url": self.service_url,
                "enabled": self.telemetry_enabled,
            },
            "storage": {
                "data_dir": self.data_dir,
            },
            "logging": {
                "level": self.log_level,
                "file": self.log_file,
            },
        }

    def save(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
