"""
Tor provisioning — package, torrc with hidden services, group, service.
"""

from __future__ import annotations

import logging

from vpnode.core.models.install import InstallConfig
from vpnode.core.services.provision.host import TOR_DATA_DIR, TORRC, HostContext, HostLayout
from vpnode.core.services.provision.templates import torrc

logger = logging.getLogger(__name__)

TOR_GROUP = "debian-tor"


def install_tor(host: HostContext) -> None:
    host.apt_install("tor")


def configure_tor(host: HostContext, config: InstallConfig) -> None:
    host.write(TORRC, torrc(config))


def add_user_to_tor_group(host: HostContext) -> None:
    # Lets the service user read Tor's control cookie
    host.run(["usermod", "-aG", TOR_GROUP, host.user], f"Add {host.user} to {TOR_GROUP}")


def start_tor(host: HostContext) -> None:
    host.systemctl("enable", "tor")
    host.systemctl("restart", "tor")


def read_onion(layout: HostLayout, service: str) -> str | None:
    """The .onion hostname Tor generated for ``service``, if any yet."""
    hostname = layout.path(f"{TOR_DATA_DIR}/{service}/hostname")
    try:
        value = hostname.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return value or None
