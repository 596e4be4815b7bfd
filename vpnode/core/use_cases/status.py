"""
Status use case — what is installed and whether it is running.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from vpnode.adapters.shell.command import CommandRunner
from vpnode.core.models.install import NodeConfig
from vpnode.core.persistence.node_config import NodeConfigError, load_node_config, needs_install
from vpnode.core.services.provision.host import HostLayout
from vpnode.core.services.provision.tor import read_onion

logger = logging.getLogger(__name__)


@dataclass
class StatusResult:
    """Snapshot of a provisioned node."""

    node: NodeConfig | None = None
    services: dict[str, str] = field(default_factory=dict)
    onions: dict[str, str | None] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "node": self.node.model_dump(mode="json") if self.node else None,
            "services": self.services,
            "onions": self.onions,
        }


def node_services(node: NodeConfig) -> list[str]:
    return ["tor", "bitcoind", "lnd"] if node.has_lnd else ["tor", "bitcoind"]


def node_onions(node: NodeConfig) -> list[str]:
    names = ["bitcoin-rpc", "bitcoin-p2p"]
    if node.has_lnd:
        names += ["lnd-grpc", "lnd-rest"]
    return names


def service_state(runner: CommandRunner, service: str) -> str:
    """``systemctl is-active`` answer (active, inactive, failed, ...)."""
    result = runner.run(["systemctl", "is-active", service], timeout=10)
    return result.output.strip() or ("active" if result.ok else "unknown")


def get_status(layout: HostLayout, runner: CommandRunner) -> StatusResult:
    result = StatusResult()

    if needs_install(layout.node_config):
        result.error = "Node is not installed yet. Run: rlvpn install"
        return result

    try:
        node = load_node_config(layout.node_config)
    except (NodeConfigError, OSError) as e:
        result.error = str(e)
        return result

    result.node = node
    result.services = {svc: service_state(runner, svc) for svc in node_services(node)}
    result.onions = {name: read_onion(layout, name) for name in node_onions(node)}
    return result
