"""
Base system provisioning — preflight checks, service user, directories,
IPv6, firewall.

Every operation is safe to re-run: an existing user is left alone,
directories are created exist-ok and re-owned, files are rewritten and
ufw rules are idempotent on ufw's side.
"""

from __future__ import annotations

import ipaddress
import logging
import os
import pwd
from dataclasses import dataclass

from vpnode.adapters.shell.command import CommandRunner
from vpnode.core.errors import PreconditionError
from vpnode.core.models.install import LND_P2P_PORT, InstallConfig
from vpnode.core.services.provision.host import (
    BITCOIN_CONF_DIR,
    BITCOIN_DATA_DIR,
    LND_CONF_DIR,
    LND_DATA_DIR,
    OS_RELEASE,
    SYSCTL_IPV6,
    UFW_DEFAULTS,
    HostContext,
    HostLayout,
)
from vpnode.core.services.provision.templates import SYSCTL_DISABLE_IPV6

logger = logging.getLogger(__name__)


# ── Preflight ───────────────────────────────────────────────────────


def check_os(layout: HostLayout) -> None:
    """Require a Debian host.

    Raises:
        PreconditionError: os-release missing or not Debian.
    """
    try:
        release = layout.path(OS_RELEASE).read_text(encoding="utf-8")
    except OSError:
        raise PreconditionError(f"Cannot read {OS_RELEASE}: is this Linux?") from None
    ids = {line.strip().replace('"', "") for line in release.splitlines()}
    if "ID=debian" not in ids:
        raise PreconditionError("Unsupported OS: Virtual Private Node requires Debian 12+")


def check_root() -> None:
    if os.geteuid() != 0:
        raise PreconditionError("Virtual Private Node must be installed as root (try sudo)")


def detect_public_ipv4(runner: CommandRunner) -> str | None:
    """Best-effort public IPv4 lookup; None when it cannot be determined."""
    result = runner.run(["curl", "-4", "-s", "--max-time", "5", "ifconfig.me"], timeout=15)
    if not result.ok:
        logger.warning("Public IPv4 detection failed: %s", result.output.strip())
        return None
    candidate = result.output.strip()
    try:
        return str(ipaddress.IPv4Address(candidate))
    except ValueError:
        logger.warning("Public IPv4 detection returned %r", candidate[:60])
        return None


# ── User and directories ────────────────────────────────────────────


def user_exists(name: str) -> bool:
    try:
        pwd.getpwnam(name)
    except KeyError:
        return False
    return True


def create_system_user(host: HostContext) -> bool:
    """Create the service account. Returns False if it already existed."""
    if user_exists(host.user):
        logger.info("User '%s' already exists, skipping", host.user)
        return False
    host.run(
        [
            "adduser", "--system", "--group",
            "--home", BITCOIN_DATA_DIR,
            "--shell", "/usr/sbin/nologin",
            host.user,
        ],
        f"Create user {host.user}",
    )
    return True


@dataclass(frozen=True)
class DirectorySpec:
    path: str
    owner: str
    mode: int = 0o750


def directory_plan(config: InstallConfig, user: str) -> list[DirectorySpec]:
    """Config and data directories for the selected components."""
    plan = [
        DirectorySpec(BITCOIN_CONF_DIR, f"root:{user}"),
        DirectorySpec(BITCOIN_DATA_DIR, f"{user}:{user}"),
    ]
    if config.has_lnd:
        plan += [
            DirectorySpec(LND_CONF_DIR, f"root:{user}"),
            DirectorySpec(LND_DATA_DIR, f"{user}:{user}"),
        ]
    return plan


def create_directories(host: HostContext, config: InstallConfig) -> None:
    for directory in directory_plan(config, host.user):
        target = host.path(directory.path)
        target.mkdir(parents=True, exist_ok=True)
        host.chown(directory.owner, directory.path)
        target.chmod(directory.mode)


# ── Network hardening ───────────────────────────────────────────────


def disable_ipv6(host: HostContext) -> None:
    host.write(SYSCTL_IPV6, SYSCTL_DISABLE_IPV6)
    host.run(["sysctl", "--system"], "Apply sysctl settings")


def firewall_rules(config: InstallConfig) -> list[list[str]]:
    """ufw commands for ``config``, ending with enable.

    SSH is always allowed; the LND P2P port only when LND is exposed on
    clearnet (hybrid mode).
    """
    rules = [
        ["ufw", "default", "deny", "incoming"],
        ["ufw", "default", "allow", "outgoing"],
        ["ufw", "allow", f"{config.ssh_port}/tcp"],
    ]
    if config.exposes_lnd_p2p:
        rules.append(["ufw", "allow", f"{LND_P2P_PORT}/tcp"])
    rules.append(["ufw", "--force", "enable"])
    return rules


def configure_firewall(host: HostContext, config: InstallConfig) -> None:
    host.apt_install("ufw")

    defaults = host.path(UFW_DEFAULTS)
    if defaults.is_file():
        text = defaults.read_text(encoding="utf-8")
        if "IPV6=yes" in text:
            host.write(UFW_DEFAULTS, text.replace("IPV6=yes", "IPV6=no"))

    host.run_all(firewall_rules(config))
