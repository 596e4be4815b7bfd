"""
Pipeline builder — configuration → ordered step sequence.

Pure and deterministic: the same InstallConfig always yields the same
step names in the same order. Nothing runs here; each step's action is
a closure over the host context and config, executed later by
``run_pipeline``.

    base (12 steps)          user, dirs, IPv6, firewall, Tor ×4,
                             Bitcoin Core install/config/unit/start
    + LND (6 steps)          download, verify, install, config,
                             unit, start
"""

from __future__ import annotations

from vpnode.core.models.install import InstallConfig
from vpnode.core.models.step import Step
from vpnode.core.services.provision import bitcoin, lnd, system, tor
from vpnode.core.services.provision.host import HostContext


def base_steps(config: InstallConfig, host: HostContext) -> list[Step]:
    staged = bitcoin.stage_bitcoin_core(host)
    version = staged.release.version
    return [
        Step("Creating system user", lambda: system.create_system_user(host)),
        Step("Creating directories", lambda: system.create_directories(host, config)),
        Step("Disabling IPv6", lambda: system.disable_ipv6(host)),
        Step("Configuring firewall", lambda: system.configure_firewall(host, config)),
        Step("Installing Tor", lambda: tor.install_tor(host)),
        Step("Configuring Tor", lambda: tor.configure_tor(host, config)),
        Step("Adding user to debian-tor group", lambda: tor.add_user_to_tor_group(host)),
        Step("Starting Tor", lambda: tor.start_tor(host)),
        Step(f"Installing Bitcoin Core {version}", lambda: bitcoin.install_bitcoin_core(host, staged)),
        Step("Configuring Bitcoin Core", lambda: bitcoin.configure_bitcoin_core(host, config)),
        Step("Creating bitcoind service", lambda: bitcoin.create_bitcoind_service(host)),
        Step("Starting Bitcoin Core", lambda: bitcoin.start_bitcoind(host)),
    ]


def lnd_steps(config: InstallConfig, host: HostContext) -> list[Step]:
    staged = lnd.stage_lnd(host)
    version = staged.release.version
    return [
        Step(f"Downloading LND {version}", lambda: lnd.download_lnd(host, staged)),
        Step("Verifying LND release", lambda: lnd.verify_lnd(host, staged)),
        Step(f"Installing LND {version}", lambda: lnd.install_lnd(host, staged)),
        Step("Configuring LND", lambda: lnd.configure_lnd(host, config)),
        Step("Creating LND service", lambda: lnd.create_lnd_service(host)),
        Step("Starting LND", lambda: lnd.start_lnd(host)),
    ]


def build_steps(config: InstallConfig, host: HostContext) -> tuple[Step, ...]:
    """Build the full, ordered step sequence for one installation run."""
    steps = base_steps(config, host)
    if config.has_lnd:
        steps += lnd_steps(config, host)
    return tuple(steps)
