"""
Instance ID for OPA Report.

Each installation is identified to the telemetry service by a random UUID
kept in the configured data directory.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

INSTANCE_ID_FILE = "instance-id"


def instance_id_path(data_dir: str | Path) -> Path:
    """Return the file holding the instance ID under `data_dir`."""
    return Path(data_dir) / INSTANCE_ID_FILE


def get_instance_id(data_dir: str | Path) -> str:
    """
    Return the stored instance ID, creating one on first use.

    A missing, unreadable or malformed file is replaced with a new UUID.
    If that cannot be written the new UUID is used for this run only.
    """
    path = instance_id_path(data_dir)

    try:
        stored = path.read_text().strip()
        uuid.UUID(stored)
        return stored
    except FileNotFoundError:
        pass
    except (ValueError, OSError) as e:
        logger.warning(f"Ignoring instance ID in {path}: {e}")

    return _store(path, str(uuid.uuid4()))


def reset_instance_id(data_dir: str | Path) -> str:
    """
    Replace the stored instance ID with a new one.

    The telemetry service will see this installation as a new instance.
    """
    return _store(instance_id_path(data_dir), str(uuid.uuid4()))


def _store(path: Path, instance_id: str) -> str:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(instance_id + "\n")
        path.chmod(0o600)
        logger.info(f"Stored instance ID {instance_id} in {path}")
    except OSError as e:
        logger.warning(f"Cannot store instance ID in {path}: {e}. Using it for this run only.")
    return instance_id
