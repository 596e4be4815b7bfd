"""
Host context — where provisioning writes, and how it runs commands.

Every path the provisioner touches is a canonical absolute path
(``/etc/bitcoin``) resolved under a configurable host root. On a real
node the root is ``/``; tests and rehearsals point it at a scratch
tree. Generated file *contents* always reference canonical paths.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from vpnode.adapters.shell.command import CommandResult, CommandRunner
from vpnode.adapters.shell.fetch import ArtifactFetcher
from vpnode.core.errors import ProvisionError

logger = logging.getLogger(__name__)

SYSTEM_USER = "bitcoin"

# ── Canonical paths ─────────────────────────────────────────────────

OS_RELEASE = "/etc/os-release"
NODE_CONFIG = "/etc/rlvpn/config.json"
AUDIT_LOG = "/var/log/rlvpn/install.ndjson"
INSTALL_LOG = "/var/log/rlvpn/install.log"
WORK_BASE = "/var/lib/rlvpn"
WORK_ROOT = "/var/lib/rlvpn/work"

BITCOIN_CONF_DIR = "/etc/bitcoin"
BITCOIN_DATA_DIR = "/var/lib/bitcoin"
BITCOIN_CONF = "/etc/bitcoin/bitcoin.conf"
LND_CONF_DIR = "/etc/lnd"
LND_DATA_DIR = "/var/lib/lnd"
LND_CONF = "/etc/lnd/lnd.conf"
LND_PASSWORD_FILE = "/var/lib/lnd/wallet_password"

TORRC = "/etc/tor/torrc"
TOR_DATA_DIR = "/var/lib/tor"
SYSCTL_IPV6 = "/etc/sysctl.d/99-disable-ipv6.conf"
UFW_DEFAULTS = "/etc/default/ufw"
SYSTEMD_DIR = "/etc/systemd/system"
BIN_DIR = "/usr/local/bin"


@dataclass(frozen=True)
class HostLayout:
    """Maps canonical paths onto a host root.

    ``work_owner`` is the uid that must own the release work directories
    (root on a real node).
    """

    root: Path = Path("/")
    work_owner: int = 0

    def path(self, canonical: str) -> Path:
        return self.root / canonical.lstrip("/")

    def work_dir(self, family: str) -> Path:
        """Scratch directory for one artifact family's downloads."""
        return self.path(f"{WORK_ROOT}/{family}")

    def prepare_work_dir(self, family: str) -> Path:
        """Create an empty, private work directory for ``family``.

        Every level from WORK_BASE down is created 0700 and must be a
        real directory owned by ``work_owner``. A stale directory from a
        previous attempt is wiped.

        Raises:
            ProvisionError: A level is a symlink, not a directory, or
                owned by another uid.
        """
        self.path(WORK_BASE).parent.mkdir(parents=True, exist_ok=True)
        self._private_dir(self.path(WORK_BASE))
        self._private_dir(self.path(WORK_ROOT))

        workdir = self.work_dir(family)
        if workdir.is_symlink() or workdir.is_file():
            workdir.unlink()
        elif workdir.exists():
            logger.debug("Removing stale work directory %s", workdir)
            shutil.rmtree(workdir)
        self._private_dir(workdir)
        return workdir

    def _private_dir(self, path: Path) -> None:
        if not os.path.lexists(path):
            path.mkdir(mode=0o700)
        st = os.lstat(path)
        if not stat.S_ISDIR(st.st_mode):
            raise ProvisionError(f"Refusing work directory {path}: not a real directory")
        if st.st_uid != self.work_owner:
            raise ProvisionError(
                f"Refusing work directory {path}: owned by uid {st.st_uid}, "
                f"expected {self.work_owner}"
            )
        if stat.S_IMODE(st.st_mode) != 0o700:
            path.chmod(0o700)

    @property
    def node_config(self) -> Path:
        return self.path(NODE_CONFIG)

    @property
    def audit_log(self) -> Path:
        return self.path(AUDIT_LOG)

    @property
    def install_log(self) -> Path:
        return self.path(INSTALL_LOG)


@dataclass
class HostContext:
    """Everything a provisioning operation needs to act on the host."""

    runner: CommandRunner
    fetcher: ArtifactFetcher
    layout: HostLayout = field(default_factory=HostLayout)
    user: str = SYSTEM_USER

    def path(self, canonical: str) -> Path:
        return self.layout.path(canonical)

    def run(self, argv: Sequence[str], operation: str = "") -> CommandResult:
        """Run a command that must succeed."""
        return self.runner.run(argv).check(operation)

    def run_all(self, commands: Sequence[Sequence[str]]) -> None:
        for argv in commands:
            self.run(argv)

    def write(self, canonical: str, content: str, mode: int = 0o644) -> Path:
        """Write a file and set its permission bits."""
        target = self.path(canonical)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        target.chmod(mode)
        logger.debug("Wrote %s (%o)", target, mode)
        return target

    def chown(self, owner: str, canonical: str, *, follow_symlinks: bool = True) -> None:
        argv = ["chown"] if follow_symlinks else ["chown", "-h"]
        self.run([*argv, owner, str(self.path(canonical))], f"chown {canonical}")

    def systemctl(self, *args: str) -> None:
        self.run(["systemctl", *args])

    def apt_install(self, package: str) -> None:
        self.run(["apt-get", "install", "-y", "-qq", package], f"Install {package}")
