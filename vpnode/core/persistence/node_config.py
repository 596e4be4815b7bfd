"""
Node config persistence — the first-run marker.

``/etc/rlvpn/config.json`` is written once, after a successful install
(including the LND wallet phase). Its presence is what distinguishes
"needs provisioning" from "already provisioned"; the check happens
once at startup and the answer is passed into the entry point.

Writes are atomic (write to temp file, then rename) so a crash can
never leave a half-written marker that looks like a finished install.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from vpnode.core.models.install import NodeConfig

logger = logging.getLogger(__name__)


class NodeConfigError(Exception):
    """The marker exists but cannot be read as a NodeConfig."""


def needs_install(path: Path) -> bool:
    """True when no install has completed on this host."""
    return not path.is_file()


def load_node_config(path: Path) -> NodeConfig:
    """Load the persisted node config.

    Raises:
        FileNotFoundError: No install has completed.
        NodeConfigError: The file is corrupt.
    """
    raw = path.read_text(encoding="utf-8")
    try:
        config = NodeConfig.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        raise NodeConfigError(f"Corrupt node config {path}: {e}") from e
    logger.debug("Loaded node config from %s (%s)", path, config.network)
    return config


def save_node_config(config: NodeConfig, path: Path) -> None:
    """Save the node config (atomic write, mode 0644)."""
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".config_", suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_path)
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.chmod(0o644)
        tmp.rename(path)
        logger.debug("Node config saved to %s", path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
