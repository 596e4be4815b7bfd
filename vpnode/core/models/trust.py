"""
Trust models — signers, verification policies, artifacts, reports.

Signers and policies are static (hardcoded per artifact family in
``core.services.trust.catalog``), never derived from user input.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_FINGERPRINT_RE = re.compile(r"^[0-9A-F]{40}$")


def normalize_fingerprint(value: str) -> str:
    """Upper-case a fingerprint and drop the spaces gpg prints between groups."""
    return value.replace(" ", "").strip().upper()


class Signer(BaseModel):
    """A trusted release signer with a pinned key fingerprint.

    Exactly one key source must be set: ``key_url`` (armored/binary key
    file) or ``keyserver`` (fetched by fingerprint).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    fingerprint: str
    key_url: str | None = None
    keyserver: str | None = None

    @field_validator("fingerprint")
    @classmethod
    def _pinned_fingerprint(cls, v: str) -> str:
        fpr = normalize_fingerprint(v)
        if not _FINGERPRINT_RE.match(fpr):
            raise ValueError(f"fingerprint must be 40 hex characters, got {v!r}")
        return fpr

    @model_validator(mode="after")
    def _one_key_source(self) -> Signer:
        if bool(self.key_url) == bool(self.keyserver):
            raise ValueError(f"signer {self.name} needs exactly one of key_url / keyserver")
        return self

    @property
    def long_key_id(self) -> str:
        """Last 16 hex digits, as gpg prints in GOODSIG lines."""
        return self.fingerprint[-16:]


class VerificationPolicy(BaseModel):
    """M-of-N trust policy for one artifact family."""

    model_config = ConfigDict(frozen=True)

    signers: tuple[Signer, ...]
    threshold: int = Field(ge=1)
    # Single-signer families may install without a signature when the
    # signed manifest is not published.
    allow_unsigned_fallback: bool = False

    @model_validator(mode="after")
    def _threshold_within_signers(self) -> VerificationPolicy:
        if self.threshold > len(self.signers):
            raise ValueError(
                f"threshold {self.threshold} exceeds signer count {len(self.signers)}"
            )
        fingerprints = [s.fingerprint for s in self.signers]
        if len(set(fingerprints)) != len(fingerprints):
            raise ValueError("signer fingerprints must be unique")
        return self

    @property
    def fingerprints(self) -> frozenset[str]:
        return frozenset(s.fingerprint for s in self.signers)


class Artifact(BaseModel):
    """A downloaded release file awaiting verification."""

    model_config = ConfigDict(frozen=True)

    url: str
    destination: Path
    version: str
    sha256: str | None = None       # digest taken when the file was downloaded

    @property
    def filename(self) -> str:
        """Published file name (last URL segment), as listed in checksum files."""
        return self.url.rsplit("/", 1)[-1]


class VerificationReport(BaseModel):
    """What verification established about one artifact."""

    family: str
    strategy: Literal["threshold", "single-signer"]
    good_signers: list[str] = Field(default_factory=list)
    required: int = 0
    degraded: bool = False          # installed without signature evidence
    checksum_verified: bool = False
    sha256: str | None = None       # digest of the artifact that passed verification

    @property
    def good_count(self) -> int:
        return len(self.good_signers)
