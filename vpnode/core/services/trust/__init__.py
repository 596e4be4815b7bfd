"""
Release verification — pinned signers, isolated keyring, strategies.

    from vpnode.core.services.trust import verify_threshold, BITCOIN_CORE_POLICY
"""

from vpnode.core.services.trust.catalog import (
    BITCOIN_CORE_POLICY,
    BITCOIN_CORE_SIGNERS,
    LND_POLICY,
    LND_SIGNER,
)
from vpnode.core.services.trust.keyring import Keyring, ensure_gpg
from vpnode.core.services.trust.verifier import verify_single_signer, verify_threshold

__all__ = [
    "BITCOIN_CORE_POLICY",
    "BITCOIN_CORE_SIGNERS",
    "LND_POLICY",
    "LND_SIGNER",
    "Keyring",
    "ensure_gpg",
    "verify_single_signer",
    "verify_threshold",
]
