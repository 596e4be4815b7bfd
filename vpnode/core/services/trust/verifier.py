"""
Release verification strategies.

Two strategies, selected per artifact family by its policy:

    verify_threshold       M-of-N pinned signers over a signed checksum
                           listing, then the artifact checksum (Bitcoin Core)
    verify_single_signer   one pinned signer over a manifest, with a
                           checksum-free degraded pass when the manifest is
                           not published (LND)

Both operate on file contents, never on local file names. A trust
violation (wrong key, too few signatures, bad signature, wrong digest)
is always fatal; only missing evidence may be tolerated, and only where
the policy allows it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from vpnode.adapters.shell.fetch import ArtifactFetcher
from vpnode.core.errors import (
    BadSignature,
    CommandError,
    FetchError,
    InsufficientSignatures,
    TrustUnavailable,
)
from vpnode.core.models.trust import Artifact, VerificationPolicy, VerificationReport
from vpnode.core.services.trust.checksums import sha256_file, verify_artifact_checksum
from vpnode.core.services.trust.gpg_status import good_signers
from vpnode.core.services.trust.keyring import Keyring

logger = logging.getLogger(__name__)


def _names(policy: VerificationPolicy, fingerprints: set[str]) -> list[str]:
    return [s.name for s in policy.signers if s.fingerprint in fingerprints]


def verify_threshold(
    keyring: Keyring,
    policy: VerificationPolicy,
    artifact: Artifact,
    listing: Path,
    signature: Path,
    *,
    family: str,
) -> VerificationReport:
    """Require ``policy.threshold`` pinned signers over ``listing``.

    Key import is best-effort per signer: a download or import failure
    is logged and the remaining signers may still meet the threshold.
    A key that is not the pinned one aborts immediately.

    Raises:
        FingerprintMismatch: A signer's key does not match its pin.
        InsufficientSignatures: Fewer good pinned signatures than required.
        ChecksumMismatch: The artifact is not what the listing says.
    """
    keyring.prepare()

    imported: list[str] = []
    for signer in policy.signers:
        try:
            imported.append(keyring.import_signer(signer))
        except (FetchError, CommandError) as e:
            logger.warning("Skipping signer %s: %s", signer.name, e)

    logger.info("%s: %d/%d signer keys imported", family, len(imported), len(policy.signers))

    result, records = keyring.verify_detached(signature, listing)
    good = good_signers(records, policy.fingerprints)

    if len(good) < policy.threshold:
        raise InsufficientSignatures(len(good), policy.threshold, output=result.output.strip())

    names = _names(policy, good)
    logger.info("%s: good signatures from %s", family, ", ".join(names))

    # Signature count says nothing about the tarball itself
    digest = verify_artifact_checksum(artifact, listing)

    return VerificationReport(
        family=family,
        strategy="threshold",
        good_signers=names,
        required=policy.threshold,
        checksum_verified=True,
        sha256=digest,
    )


def verify_single_signer(
    keyring: Keyring,
    fetcher: ArtifactFetcher,
    policy: VerificationPolicy,
    artifact: Artifact,
    manifest: Path | None,
    signature_url: str,
    *,
    family: str,
) -> VerificationReport:
    """Verify against one pinned signer, tolerating an unpublished manifest.

    Args:
        manifest: The downloaded manifest, or None if it could not be
            fetched.
        signature_url: Where the detached manifest signature lives.

    Raises:
        FingerprintMismatch: The signer's key does not match its pin.
        TrustUnavailable: Manifest present but key or signature missing.
        BadSignature: The manifest is not signed by the pinned key.
        ChecksumMismatch: The artifact is not what the manifest says.
    """
    signer = policy.signers[0]
    keyring.prepare()

    key_error: FetchError | CommandError | None = None
    try:
        keyring.import_signer(signer)
    except (FetchError, CommandError) as e:
        key_error = e
        logger.warning("Could not import key for %s: %s", signer.name, e)

    if manifest is None:
        if not policy.allow_unsigned_fallback:
            raise TrustUnavailable(f"{family}: manifest unavailable")
        logger.warning(
            "%s: signed manifest unavailable, installing without signature verification",
            family,
        )
        return VerificationReport(
            family=family,
            strategy="single-signer",
            required=policy.threshold,
            degraded=True,
            sha256=artifact.sha256 or sha256_file(artifact.destination),
        )

    if key_error is not None:
        raise TrustUnavailable(
            f"{family}: signing key for {signer.name} unavailable: {key_error}",
            output=key_error.output,
        )

    sig_path = manifest.with_name(signature_url.rsplit("/", 1)[-1])
    try:
        fetcher.fetch(signature_url, sig_path)
    except FetchError as e:
        raise TrustUnavailable(f"{family}: manifest signature unavailable: {e}") from e

    result, records = keyring.verify_detached(sig_path, manifest)
    good = good_signers(records, policy.fingerprints)
    if not result.ok or not good:
        raise BadSignature(
            f"{family}: manifest signature from {signer.name} did not verify",
            output=result.output.strip(),
        )
    logger.info("%s: good signature from %s", family, signer.name)

    digest = verify_artifact_checksum(artifact, manifest)

    return VerificationReport(
        family=family,
        strategy="single-signer",
        good_signers=_names(policy, good),
        required=policy.threshold,
        checksum_verified=True,
        sha256=digest,
    )
