"""
GnuPG machine-readable output parsing (pure, no I/O).

Two formats are handled:

``--status-fd`` lines from ``gpg --verify``::

    [GNUPG:] NEWSIG
    [GNUPG:] GOODSIG 17565732E08E5E41 Michael Ford <fanquake@gmail.com>
    [GNUPG:] VALIDSIG <sig-key-fpr> <date> <ts> 0 4 0 1 10 00 <primary-fpr>
    [GNUPG:] ERRSIG 8E4256593F177720 1 10 00 1700000000 9 -

``--with-colons`` key listings (``--show-keys`` / ``--list-keys``)::

    pub:-:4096:1:17565732E08E5E41:...
    fpr:::::::::152812300785C96444D3334D17565732E08E5E41:
    sub:...
    fpr:::::::::<subkey-fpr>:
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

_STATUS_PREFIX = "[GNUPG:]"

# Keywords that open a new per-signature record
_RESULT_KEYWORDS = frozenset(
    {"GOODSIG", "BADSIG", "ERRSIG", "EXPSIG", "EXPKEYSIG", "REVKEYSIG"}
)


@dataclass
class SignatureRecord:
    """One signature found in a (possibly multi-signature) detached file."""

    result: str                        # GOODSIG, BADSIG, ERRSIG, ...
    key_id: str                        # long key id as printed by gpg
    fingerprint: str | None = None     # signing (sub)key, from VALIDSIG
    primary_fingerprint: str | None = None

    @property
    def good(self) -> bool:
        return self.result == "GOODSIG"

    def matches(self, fingerprint: str) -> bool:
        """Whether this signature was made by the key ``fingerprint``.

        Prefers the VALIDSIG fingerprints; falls back to the long key id
        when gpg did not emit VALIDSIG.
        """
        fpr = fingerprint.upper()
        if self.primary_fingerprint or self.fingerprint:
            return fpr in (self.primary_fingerprint, self.fingerprint)
        return bool(self.key_id) and fpr.endswith(self.key_id.upper())


def parse_status(output: str) -> list[SignatureRecord]:
    """Parse ``--status-fd`` output into per-signature records."""
    records: list[SignatureRecord] = []

    for raw in output.splitlines():
        line = raw.strip()
        if not line.startswith(_STATUS_PREFIX):
            continue
        fields = line[len(_STATUS_PREFIX):].split()
        if not fields:
            continue
        keyword, args = fields[0], fields[1:]

        if keyword in _RESULT_KEYWORDS:
            records.append(
                SignatureRecord(result=keyword, key_id=args[0].upper() if args else "")
            )
        elif keyword == "VALIDSIG" and records and args:
            current = records[-1]
            current.fingerprint = args[0].upper()
            # Field 10 is the primary key fingerprint (absent on old gpg)
            current.primary_fingerprint = args[9].upper() if len(args) > 9 else args[0].upper()

    return records


def good_signers(records: Iterable[SignatureRecord], trusted: Iterable[str]) -> set[str]:
    """Trusted fingerprints that produced at least one good signature."""
    found: set[str] = set()
    records = list(records)
    for fpr in trusted:
        if any(r.good and r.matches(fpr) for r in records):
            found.add(fpr.upper())
    return found


def primary_fingerprints(colons_output: str) -> list[str]:
    """Primary-key fingerprints from a ``--with-colons`` key listing.

    Subkey fingerprints are skipped: pinning applies to the primary key.
    """
    result: list[str] = []
    expect_primary_fpr = False

    for line in colons_output.splitlines():
        fields = line.split(":")
        record = fields[0]
        if record in ("pub", "sec"):
            expect_primary_fpr = True
        elif record in ("sub", "ssb"):
            expect_primary_fpr = False
        elif record == "fpr" and expect_primary_fpr:
            if len(fields) > 9 and fields[9]:
                result.append(fields[9].upper())
            expect_primary_fpr = False

    return result
