"""
SHA-256 checksum listings (``SHA256SUMS``, LND ``manifest-v*.txt``).

Listings are parsed in the coreutils format (``<hex>  <name>`` or
``<hex> *<name>``). Entries are looked up by the artifact's published
file name, and the digest is computed from content bytes, so where the
file was saved locally does not matter.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from vpnode.core.errors import ChecksumMismatch
from vpnode.core.models.trust import Artifact

logger = logging.getLogger(__name__)


def sha256_file(path: Path) -> str:
    """Hex SHA-256 of a file, read in chunks."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def parse_listing(text: str) -> dict[str, str]:
    """Map file name → lower-case hex digest."""
    entries: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(None, 1)
        if len(parts) != 2:
            continue
        digest, name = parts
        if len(digest) != 64:
            continue
        name = name.strip().lstrip("*")
        # Some listings prefix paths ("./bin/…"); index by base name too
        entries[name] = digest.lower()
        entries.setdefault(name.rsplit("/", 1)[-1], digest.lower())
    return entries


def verify_artifact_checksum(artifact: Artifact, listing: Path) -> str:
    """Check ``artifact`` against the listing file.

    Returns:
        The verified hex digest.

    Raises:
        ChecksumMismatch: No entry for the artifact, or the digest differs.
    """
    entries = parse_listing(listing.read_text(encoding="utf-8", errors="replace"))
    actual = sha256_file(artifact.destination)
    expected = entries.get(artifact.filename)

    if expected is None or expected != actual:
        raise ChecksumMismatch(artifact.filename, expected, actual)

    logger.info("Checksum OK: %s (%s)", artifact.filename, actual[:16])
    return actual
