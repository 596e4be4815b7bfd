"""
Isolated GnuPG keyring — import pinned signer keys and verify signatures.

Every verification run gets its own ``--homedir`` inside the run's work
directory, so the operator's personal keyring is neither read nor
modified and a key imported for one family cannot vouch for another.
"""

from __future__ import annotations

import logging
from pathlib import Path

from vpnode.adapters.shell.command import CommandResult, CommandRunner
from vpnode.adapters.shell.fetch import ArtifactFetcher
from vpnode.core.errors import CommandError, FingerprintMismatch
from vpnode.core.models.trust import Signer
from vpnode.core.services.trust.gpg_status import (
    SignatureRecord,
    parse_status,
    primary_fingerprints,
)

logger = logging.getLogger(__name__)


def ensure_gpg(runner: CommandRunner) -> None:
    """Install gnupg with apt if ``gpg`` is not on PATH."""
    if runner.which("gpg"):
        return
    logger.info("gpg not found, installing gnupg")
    runner.run(["apt-get", "install", "-y", "-qq", "gnupg"]).check("Install gnupg")


class Keyring:
    """A throwaway GnuPG home holding only pinned signer keys.

    Args:
        runner: Command runner used for every gpg invocation.
        fetcher: Downloads key files for URL-sourced signers.
        home: Directory used as ``--homedir`` (created 0700).
    """

    def __init__(self, runner: CommandRunner, fetcher: ArtifactFetcher, home: Path) -> None:
        self._runner = runner
        self._fetcher = fetcher
        self.home = home

    def prepare(self) -> None:
        ensure_gpg(self._runner)
        self.home.mkdir(parents=True, exist_ok=True)
        self.home.chmod(0o700)

    def _gpg(self, *args: str) -> CommandResult:
        return self._runner.run(
            ["gpg", "--homedir", str(self.home), "--batch", "--no-tty", *args],
        )

    def key_file(self, signer: Signer) -> Path:
        """Where a URL-sourced signer's key file is saved."""
        return self.home.parent / "keys" / f"{signer.name}.key"

    # ── Import ──────────────────────────────────────────────────

    def import_signer(self, signer: Signer) -> str:
        """Import ``signer``'s key and confirm it carries the pinned fingerprint.

        Returns:
            The confirmed fingerprint.

        Raises:
            FetchError: Key file could not be downloaded.
            CommandError: gpg could not import / receive the key.
            FingerprintMismatch: The key is not the pinned one.
        """
        if signer.key_url:
            path = self._fetcher.fetch(signer.key_url, self.key_file(signer))

            # Inspect before import: a substituted key never enters the keyring
            shown = self._gpg("--with-colons", "--show-keys", str(path))
            shown.check(f"Inspect key for {signer.name}")
            offered = primary_fingerprints(shown.output)
            if signer.fingerprint not in offered:
                raise FingerprintMismatch(signer.name, signer.fingerprint, offered)

            self._gpg("--import", str(path)).check(f"Import key for {signer.name}")
        else:
            self._gpg(
                "--keyserver", str(signer.keyserver), "--recv-keys", signer.fingerprint,
            ).check(f"Receive key for {signer.name}")

        self.confirm(signer)
        logger.info("Imported key %s (%s)", signer.name, signer.fingerprint)
        return signer.fingerprint

    def confirm(self, signer: Signer) -> None:
        """Require the pinned fingerprint to be present in the keyring."""
        listed = self._gpg("--with-colons", "--list-keys", signer.fingerprint)
        present = primary_fingerprints(listed.output) if listed.ok else []
        if signer.fingerprint not in present:
            raise FingerprintMismatch(signer.name, signer.fingerprint, present)

    # ── Verify ──────────────────────────────────────────────────

    def verify_detached(
        self, signature: Path, data: Path,
    ) -> tuple[CommandResult, list[SignatureRecord]]:
        """Run ``gpg --verify`` and parse its status lines.

        The exit code is returned untouched; with multi-signature files
        gpg exits non-zero as soon as any one signature is unverifiable,
        so callers count good signatures themselves.
        """
        result = self._gpg("--status-fd", "1", "--verify", str(signature), str(data))
        if result.returncode == 127:
            raise CommandError(
                "gpg is not installed", argv=result.argv, returncode=127, output=result.output,
            )
        return result, parse_status(result.output)
