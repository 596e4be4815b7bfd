"""
Install use case — preflight, pipeline run, audit, marker.

This is the top-level orchestrator for provisioning: it checks the
host, builds the step sequence from the finalized config, runs it,
and records the run in the audit ledger. The node config (first-run
marker) is written separately by ``finalize_install`` once the LND
wallet phase is over, so an interrupted wallet setup is still treated
as "needs install" on the next login.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from vpnode.core.engine.builder import build_steps
from vpnode.core.engine.pipeline import PipelineReport, run_pipeline, write_audit_entry
from vpnode.core.errors import PreconditionError
from vpnode.core.models.install import InstallConfig, NodeConfig
from vpnode.core.persistence.audit import AuditWriter
from vpnode.core.persistence.node_config import save_node_config
from vpnode.core.services.provision.host import HostContext, HostLayout
from vpnode.core.services.provision.releases import BITCOIN_CORE_VERSION, LND_VERSION
from vpnode.core.services.provision.system import check_os, check_root
from vpnode.core.services.status_feed import StatusFeed

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of an install run."""

    config: InstallConfig | None = None
    report: PipelineReport | None = None
    error: str | None = None
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None and self.report is not None and self.report.ok

    def to_dict(self) -> dict:
        result: dict = {"ok": self.ok}
        if self.config:
            result["config"] = self.config.summary()
        if self.report:
            result["report"] = self.report.to_dict()
        if self.error:
            result["error"] = self.error
            result["output"] = self.output
        return result


def check_preconditions(layout: HostLayout, *, require_root: bool = True) -> None:
    """Raise PreconditionError unless the host can be provisioned."""
    check_os(layout)
    if require_root:
        check_root()


def run_install(
    config: InstallConfig,
    host: HostContext,
    *,
    feed: StatusFeed | None = None,
    require_root: bool = True,
) -> InstallResult:
    """Provision the host according to ``config``.

    Args:
        config: Finalized install choices.
        host: Host context (runner, fetcher, layout).
        feed: Optional status feed for progress rendering.
        require_root: Check the effective uid (off for rehearsals).

    Returns:
        InstallResult; never raises for precondition or step failures.
    """
    result = InstallResult(config=config)

    # ── Preflight ────────────────────────────────────────────────
    try:
        check_preconditions(host.layout, require_root=require_root)
    except PreconditionError as e:
        result.error = str(e)
        return result

    # ── Build and run ────────────────────────────────────────────
    steps = build_steps(config, host)
    logger.info("Installing %s on %s: %d steps", config.components, config.network.name, len(steps))

    report = run_pipeline(steps, feed=feed)
    result.report = report

    # ── Write audit log ──────────────────────────────────────────
    write_audit_entry(
        report,
        AuditWriter(host.layout.audit_log),
        context={
            "network": config.network.name,
            "components": config.components,
            "p2p_mode": config.p2p_mode,
            "bitcoin_core": BITCOIN_CORE_VERSION,
            "lnd": LND_VERSION if config.has_lnd else None,
        },
    )

    if report.error is not None:
        result.error = str(report.error)
        result.output = report.error.output

    return result


def finalize_install(
    config: InstallConfig,
    layout: HostLayout,
    *,
    auto_unlock: bool = False,
) -> NodeConfig:
    """Persist the node config, marking the host as provisioned."""
    node = config.to_node_config(auto_unlock=auto_unlock)
    save_node_config(node, layout.node_config)
    logger.info("Node config saved to %s", layout.node_config)
    return node
