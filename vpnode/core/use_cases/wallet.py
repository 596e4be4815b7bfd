"""
Wallet use case — LND wallet creation and auto-unlock.

Runs after the pipeline, outside it: creating the wallet hands the
terminal to ``lncli create`` so the operator types the password and
records the seed themselves. Auto-unlock is a convenience; its failure
is reported as a warning and never fails the install.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from vpnode.core.errors import ProvisionError
from vpnode.core.models.network import NetworkProfile
from vpnode.core.services.provision.host import HostContext
from vpnode.core.services.provision.lnd import create_wallet, setup_auto_unlock, wait_for_lnd

logger = logging.getLogger(__name__)


@dataclass
class WalletResult:
    """Result of a wallet operation."""

    created: bool = False
    auto_unlock: bool = False
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        result: dict = {"created": self.created, "auto_unlock": self.auto_unlock}
        if self.error:
            result["error"] = self.error
        if self.warnings:
            result["warnings"] = self.warnings
        return result


def create_lnd_wallet(
    host: HostContext,
    network: NetworkProfile,
    *,
    wait: Callable[[], None] | None = None,
) -> WalletResult:
    """Wait for LND, then run the interactive wallet creation."""
    result = WalletResult()
    try:
        (wait or wait_for_lnd)()
        create_wallet(host, network)
    except ProvisionError as e:
        result.error = str(e)
        return result
    result.created = True
    return result


def enable_auto_unlock(host: HostContext, password: str) -> WalletResult:
    """Best-effort auto-unlock setup."""
    result = WalletResult(created=True)
    try:
        setup_auto_unlock(host, password)
    except (ProvisionError, OSError) as e:
        logger.warning("Auto-unlock setup failed: %s", e)
        result.warnings.append(f"Auto-unlock setup failed: {e}")
        return result
    result.auto_unlock = True
    return result
