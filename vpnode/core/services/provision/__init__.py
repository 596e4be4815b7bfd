"""
Provisioning operations — everything a pipeline step does to the host.

    system      preflight checks, service user, directories, IPv6, firewall
    tor         Tor package, torrc, group membership, service
    bitcoin     Bitcoin Core release, bitcoin.conf, bitcoind unit
    lnd         LND release, lnd.conf, lnd unit, wallet phase
    releases    release URLs, staged download/extract/placement
    templates   generated file contents
    host        host root, canonical paths, command helpers
"""

from vpnode.core.services.provision.host import HostContext, HostLayout
from vpnode.core.services.provision.releases import (
    BITCOIN_CORE_VERSION,
    LND_VERSION,
    Release,
    StagedRelease,
)

__all__ = [
    "BITCOIN_CORE_VERSION",
    "LND_VERSION",
    "HostContext",
    "HostLayout",
    "Release",
    "StagedRelease",
]
