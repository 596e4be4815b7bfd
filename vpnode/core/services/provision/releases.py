"""
Release artifacts — where each pinned release lives, and how a
downloaded release moves from the work directory into /usr/local/bin.

Sequencing is strict: download → verify → extract → place → clean up.
``StagedRelease.install`` refuses to extract anything that has not
been verified in the same run, and extracts only bytes whose digest
still matches the verified one. On failure the work directory is left
in place for inspection; the next attempt wipes it before downloading.
"""

from __future__ import annotations

import hashlib
import io
import logging
import shutil
import tarfile
from dataclasses import dataclass, field
from pathlib import Path

from vpnode.core.errors import ChecksumMismatch, FetchError, ProvisionError, VerificationError
from vpnode.core.models.trust import Artifact, VerificationReport
from vpnode.core.services.provision.host import BIN_DIR, HostContext
from vpnode.core.services.trust.checksums import sha256_file

logger = logging.getLogger(__name__)

BITCOIN_CORE_VERSION = "29.2"
LND_VERSION = "0.20.0-beta"


@dataclass(frozen=True)
class Release:
    """URLs and archive layout of one pinned release."""

    family: str
    version: str
    tarball_url: str
    listing_url: str            # checksum listing (SHA256SUMS / manifest)
    signature_url: str          # detached signature over the listing
    archive_dir: str            # directory inside the tarball holding binaries
    binaries: tuple[str, ...] = ()   # empty: every file in archive_dir

    @property
    def tarball_name(self) -> str:
        return self.tarball_url.rsplit("/", 1)[-1]

    @property
    def listing_name(self) -> str:
        return self.listing_url.rsplit("/", 1)[-1]


def bitcoin_core_release(version: str = BITCOIN_CORE_VERSION) -> Release:
    base = f"https://bitcoincore.org/bin/bitcoin-core-{version}"
    return Release(
        family="bitcoin-core",
        version=version,
        tarball_url=f"{base}/bitcoin-{version}-x86_64-linux-gnu.tar.gz",
        listing_url=f"{base}/SHA256SUMS",
        signature_url=f"{base}/SHA256SUMS.asc",
        archive_dir=f"bitcoin-{version}/bin",
    )


def lnd_release(version: str = LND_VERSION) -> Release:
    base = f"https://github.com/lightningnetwork/lnd/releases/download/v{version}"
    return Release(
        family="lnd",
        version=version,
        tarball_url=f"{base}/lnd-linux-amd64-v{version}.tar.gz",
        listing_url=f"{base}/manifest-v{version}.txt",
        signature_url=f"{base}/manifest-roasbeef-v{version}.sig",
        archive_dir=f"lnd-linux-amd64-v{version}",
        binaries=("lnd", "lncli"),
    )


@dataclass
class StagedRelease:
    """One release moving through download, verification and install.

    Created by the pipeline builder and shared by the steps that act on
    it, so "verified" can only mean "verified in this run".
    """

    release: Release
    workdir: Path
    artifact: Artifact | None = None
    listing: Path | None = None
    report: VerificationReport | None = None
    installed: list[str] = field(default_factory=list)

    @property
    def extract_dir(self) -> Path:
        return self.workdir / "extract"

    def download(self, host: HostContext, *, listing_required: bool = True) -> None:
        """Fetch the tarball and its checksum listing into a fresh work dir.

        With ``listing_required=False`` a missing listing is recorded as
        None instead of failing; the verifier decides what that means.
        """
        self.workdir = host.layout.prepare_work_dir(self.release.family)
        self.report = None

        tarball = host.fetcher.fetch(self.release.tarball_url, self.workdir / self.release.tarball_name)
        self.artifact = Artifact(
            url=self.release.tarball_url,
            destination=tarball,
            version=self.release.version,
            sha256=sha256_file(tarball),
        )

        listing_path = self.workdir / self.release.listing_name
        try:
            self.listing = host.fetcher.fetch(self.release.listing_url, listing_path)
        except FetchError as e:
            if listing_required:
                raise
            logger.warning("%s listing unavailable: %s", self.release.family, e)
            self.listing = None

    def require_download(self) -> tuple[Artifact, Path | None]:
        if self.artifact is None:
            raise ProvisionError(f"{self.release.family} {self.release.version} was not downloaded")
        return self.artifact, self.listing

    def install(self, host: HostContext) -> list[str]:
        """Extract the verified tarball and place its binaries.

        Raises:
            VerificationError: The release was not verified in this run.
            ChecksumMismatch: The tarball changed after verification.
            ProvisionError: The archive lacks an expected binary.
            CommandError: ``install`` failed to place a binary.
        """
        artifact, _ = self.require_download()
        report = self.report
        if report is None:
            raise VerificationError(
                f"Refusing to install unverified {self.release.family} {self.release.version}"
            )

        try:
            data = artifact.destination.read_bytes()
        except OSError as e:
            raise ProvisionError(f"Read {artifact.destination.name} failed: {e}") from e
        actual = hashlib.sha256(data).hexdigest()
        if actual != report.sha256:
            raise ChecksumMismatch(artifact.filename, report.sha256, actual)

        sources = self._extract(data, artifact.filename)
        bin_dir = f"{host.path(BIN_DIR)}/"
        for src in sources:
            host.run(
                ["install", "-m", "0755", "-o", "root", "-g", "root", str(src), bin_dir],
                f"Install {src.name}",
            )
        self.installed = [src.name for src in sources]

        shutil.rmtree(self.workdir, ignore_errors=True)
        logger.info(
            "Installed %s %s: %s",
            self.release.family, self.release.version, ", ".join(self.installed),
        )
        return self.installed

    def _extract(self, data: bytes, archive_name: str) -> list[Path]:
        target = self.extract_dir
        target.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tf:
                tf.extractall(target, filter="data")
        except (tarfile.TarError, OSError) as e:
            raise ProvisionError(f"Extract {archive_name} failed: {e}") from e

        bin_dir = target / self.release.archive_dir
        if self.release.binaries:
            sources = [bin_dir / name for name in self.release.binaries]
        else:
            sources = sorted(p for p in bin_dir.glob("*") if p.is_file()) if bin_dir.is_dir() else []

        missing = [p.name for p in sources if not p.is_file()]
        if missing or not sources:
            raise ProvisionError(
                f"{archive_name} does not contain expected binaries under "
                f"{self.release.archive_dir}: {', '.join(missing) or 'none found'}"
            )
        return sources
