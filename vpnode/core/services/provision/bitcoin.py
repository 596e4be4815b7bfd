"""
Bitcoin Core provisioning — verified install, bitcoin.conf, systemd unit.
"""

from __future__ import annotations

import logging

from vpnode.core.errors import FetchError, TrustUnavailable
from vpnode.core.models.install import InstallConfig
from vpnode.core.models.trust import VerificationReport
from vpnode.core.services.provision.host import BITCOIN_CONF, SYSTEMD_DIR, HostContext
from vpnode.core.services.provision.releases import Release, StagedRelease, bitcoin_core_release
from vpnode.core.services.provision.templates import bitcoin_conf, bitcoind_unit
from vpnode.core.services.trust import BITCOIN_CORE_POLICY, Keyring, verify_threshold

logger = logging.getLogger(__name__)


def stage_bitcoin_core(host: HostContext, release: Release | None = None) -> StagedRelease:
    release = release or bitcoin_core_release()
    return StagedRelease(release=release, workdir=host.layout.work_dir(release.family))


def verify_bitcoin_core(host: HostContext, staged: StagedRelease) -> VerificationReport:
    """Threshold-verify a downloaded Bitcoin Core release (2 of 5 builders)."""
    artifact, listing = staged.require_download()
    release = staged.release
    if listing is None:
        raise TrustUnavailable(f"{release.listing_name} for Bitcoin Core {release.version} missing")

    try:
        signature = host.fetcher.fetch(
            release.signature_url, staged.workdir / release.signature_url.rsplit("/", 1)[-1],
        )
    except FetchError as e:
        raise TrustUnavailable(f"Bitcoin Core signatures unavailable: {e}", output=e.output) from e

    keyring = Keyring(host.runner, host.fetcher, staged.workdir / "gnupg")
    staged.report = verify_threshold(
        keyring, BITCOIN_CORE_POLICY, artifact, listing, signature, family=release.family,
    )
    return staged.report


def install_bitcoin_core(host: HostContext, staged: StagedRelease) -> None:
    staged.download(host, listing_required=True)
    verify_bitcoin_core(host, staged)
    staged.install(host)


def configure_bitcoin_core(host: HostContext, config: InstallConfig) -> None:
    host.write(BITCOIN_CONF, bitcoin_conf(config), mode=0o640)
    host.chown(f"root:{host.user}", BITCOIN_CONF)


def create_bitcoind_service(host: HostContext) -> None:
    host.write(f"{SYSTEMD_DIR}/bitcoind.service", bitcoind_unit(host.user))


def start_bitcoind(host: HostContext) -> None:
    host.systemctl("daemon-reload")
    host.systemctl("enable", "bitcoind")
    host.systemctl("start", "bitcoind")
