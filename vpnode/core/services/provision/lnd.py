"""
LND provisioning — download, single-signer verification, install,
lnd.conf, systemd unit, and the post-install wallet phase.

Download, verify and install are separate pipeline steps that share a
StagedRelease, so a verification failure is reported as its own step
and install cannot run on an unverified tarball.
"""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
import time
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path

from vpnode.core.errors import ProvisionError
from vpnode.core.models.install import InstallConfig
from vpnode.core.models.network import NetworkProfile
from vpnode.core.models.trust import VerificationReport
from vpnode.core.services.provision.host import (
    LND_CONF,
    LND_DATA_DIR,
    LND_PASSWORD_FILE,
    SYSTEMD_DIR,
    HostContext,
)
from vpnode.core.services.provision.releases import Release, StagedRelease, lnd_release
from vpnode.core.services.provision.templates import LND_REST_PORT, lnd_conf, lnd_unit
from vpnode.core.services.provision.tor import read_onion
from vpnode.core.services.trust import LND_POLICY, Keyring, verify_single_signer

logger = logging.getLogger(__name__)

LND_STATE_URL = f"https://localhost:{LND_REST_PORT}/v1/state"


# ── Release ─────────────────────────────────────────────────────────


def stage_lnd(host: HostContext, release: Release | None = None) -> StagedRelease:
    release = release or lnd_release()
    return StagedRelease(release=release, workdir=host.layout.work_dir(release.family))


def download_lnd(host: HostContext, staged: StagedRelease) -> None:
    # The manifest is best-effort; its absence is judged at verification
    staged.download(host, listing_required=False)


def verify_lnd(host: HostContext, staged: StagedRelease) -> VerificationReport:
    artifact, manifest = staged.require_download()
    keyring = Keyring(host.runner, host.fetcher, staged.workdir / "gnupg")
    staged.report = verify_single_signer(
        keyring,
        host.fetcher,
        LND_POLICY,
        artifact,
        manifest,
        staged.release.signature_url,
        family=staged.release.family,
    )
    return staged.report


def install_lnd(host: HostContext, staged: StagedRelease) -> None:
    staged.install(host)


# ── Config and service ──────────────────────────────────────────────


def configure_lnd(host: HostContext, config: InstallConfig) -> None:
    # Tor has been restarted by now, so the REST onion normally exists
    rest_onion = read_onion(host.layout, "lnd-rest")
    host.write(LND_CONF, lnd_conf(config, rest_onion), mode=0o640)
    host.chown(f"root:{host.user}", LND_CONF)


def create_lnd_service(host: HostContext, *, auto_unlock: bool = False) -> None:
    host.write(f"{SYSTEMD_DIR}/lnd.service", lnd_unit(host.user, auto_unlock=auto_unlock))


def start_lnd(host: HostContext) -> None:
    host.systemctl("daemon-reload")
    host.systemctl("enable", "lnd")
    host.systemctl("start", "lnd")


# ── Wallet phase ────────────────────────────────────────────────────


def _rest_answers(url: str, timeout: float) -> bool:
    # LND serves a self-signed certificate on localhost
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    try:
        with urllib.request.urlopen(url, timeout=timeout, context=context):
            return True
    except urllib.error.HTTPError:
        # Any HTTP answer means the REST server is up
        return True
    except (urllib.error.URLError, OSError):
        return False


def wait_for_lnd(
    *,
    url: str = LND_STATE_URL,
    attempts: int = 60,
    interval: float = 2.0,
    check: Callable[[str, float], bool] = _rest_answers,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Block until LND's REST endpoint answers.

    Raises:
        ProvisionError: No answer after ``attempts`` tries.
    """
    for attempt in range(1, attempts + 1):
        if check(url, 5.0):
            logger.info("LND REST endpoint ready after %d attempt(s)", attempt)
            return
        if attempt < attempts:
            sleep(interval)
    raise ProvisionError(f"LND did not respond after {int(attempts * interval)} seconds")


def create_wallet(host: HostContext, network: NetworkProfile) -> None:
    """Hand the terminal to ``lncli create`` as the service user."""
    host.runner.run(
        [
            "sudo", "-u", host.user, "lncli",
            f"--lnddir={LND_DATA_DIR}",
            f"--network={network.lncli_network}",
            "create",
        ],
        interactive=True,
        timeout=3600,
    ).check("lncli create")


def _replace_secret(target: Path, secret: str) -> None:
    """Atomically put a fresh 0400 file holding ``secret`` at ``target``.

    The containing directory is writable by the service user, so the old
    ``target`` (possibly a symlink) is replaced, never opened.
    """
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=".wallet_password_")
    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(secret)
            os.fchmod(f.fileno(), 0o400)
        os.replace(tmp, target)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def setup_auto_unlock(host: HostContext, password: str) -> None:
    """Store the wallet password and restart LND with auto-unlock.

    The password file is 0400 and owned by the service user; this is
    the only secret the provisioner ever writes to disk.
    """
    if not password:
        raise ProvisionError("Wallet password must not be empty")

    target = host.path(LND_PASSWORD_FILE)
    target.parent.mkdir(parents=True, exist_ok=True)
    _replace_secret(target, password)
    host.chown(f"{host.user}:{host.user}", LND_PASSWORD_FILE, follow_symlinks=False)

    create_lnd_service(host, auto_unlock=True)
    host.systemctl("daemon-reload")
    host.systemctl("restart", "lnd")
    logger.info("Auto-unlock configured")
