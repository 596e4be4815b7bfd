"""
Answers file loader — non-interactive install configuration.

Reads a YAML file holding the same choices the interactive prompts
gather, validates it, and returns an InstallConfig::

    network: testnet4          # mainnet | testnet4
    components: bitcoin+lnd    # bitcoin | bitcoin+lnd
    prune_size: 25             # GB, at least 10
    p2p_mode: hybrid           # tor | hybrid (LND only)
    public_ipv4: auto          # address, or "auto" to detect
    ssh_port: 22

The keys may also be nested under a top-level ``install:`` mapping.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from vpnode.core.models.install import InstallConfig

logger = logging.getLogger(__name__)

ANSWER_KEYS = ("network", "components", "prune_size", "p2p_mode", "public_ipv4", "ssh_port")


class ConfigError(Exception):
    """Raised when install answers are invalid or missing."""


def build_install_config(
    data: dict[str, Any],
    *,
    detect_ipv4: Callable[[], str | None] | None = None,
) -> InstallConfig:
    """Validate a mapping of answers into an InstallConfig.

    ``public_ipv4: auto`` (or a missing address in hybrid mode) triggers
    ``detect_ipv4``; if no address can be found, P2P falls back to Tor
    only, as the interactive flow does.

    Raises:
        ConfigError: Unknown keys or invalid values.
    """
    unknown = sorted(set(data) - set(ANSWER_KEYS))
    if unknown:
        raise ConfigError(f"Unknown answer(s): {', '.join(unknown)}")

    answers = dict(data)
    if answers.get("p2p_mode") == "hybrid" and answers.get("public_ipv4") in (None, "", "auto"):
        address = detect_ipv4() if detect_ipv4 else None
        if address:
            answers["public_ipv4"] = address
        else:
            logger.warning("Could not determine public IPv4, using Tor-only P2P")
            answers["p2p_mode"] = "tor"
            answers["public_ipv4"] = None
    elif answers.get("public_ipv4") == "auto":
        answers["public_ipv4"] = None

    try:
        return InstallConfig.model_validate(answers)
    except ValidationError as e:
        raise ConfigError(f"Invalid install answers: {e}") from e
    except ValueError as e:
        raise ConfigError(str(e)) from e


def load_answers(
    path: Path,
    *,
    detect_ipv4: Callable[[], str | None] | None = None,
) -> InstallConfig:
    """Load and validate an answers file.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Answers file not found: {path}")

    logger.debug("Loading install answers from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under an "install" key or be flat
    if "install" in data:
        data = data["install"]
        if not isinstance(data, dict):
            raise ConfigError(f"'install' in {path} must be a mapping")

    config = build_install_config(data, detect_ipv4=detect_ipv4)
    logger.info("Loaded answers: %s, %s", config.network.name, config.components)
    return config
