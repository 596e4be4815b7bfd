"""
Trusted signers per artifact family.

Fingerprints are pinned here and never taken from the network; they do
not change when a builder renews their key's expiry. Key files are
downloaded at install time and checked against these values.
"""

from __future__ import annotations

from vpnode.core.models.trust import Signer, VerificationPolicy

_GUIX_SIGS = "https://raw.githubusercontent.com/bitcoin-core/guix.sigs/main/builder-keys"

# Bitcoin Core builders. Two of five must have signed SHA256SUMS.
BITCOIN_CORE_SIGNERS: tuple[Signer, ...] = (
    Signer(
        name="fanquake",
        fingerprint="152812300785C96444D3334D17565732E08E5E41",
        key_url=f"{_GUIX_SIGS}/fanquake.gpg",
    ),
    Signer(
        name="guggero",
        fingerprint="F4FC70F07310028424EFC20A8E4256593F177720",
        key_url=f"{_GUIX_SIGS}/guggero.gpg",
    ),
    Signer(
        name="hebasto",
        fingerprint="E86AE73439625BBEE306AAE6B66D427F873CB1A3",
        key_url=f"{_GUIX_SIGS}/hebasto.gpg",
    ),
    Signer(
        name="theStack",
        fingerprint="D1DBF2C4B96F2DEBF4C16654410108112E7EA81F",
        key_url=f"{_GUIX_SIGS}/theStack.gpg",
    ),
    Signer(
        name="willcl-ark",
        fingerprint="6A8F9C266528E25AEB1D7731C2371D91CB716EA7",
        key_url=f"{_GUIX_SIGS}/willcl-ark.gpg",
    ),
)

BITCOIN_CORE_POLICY = VerificationPolicy(signers=BITCOIN_CORE_SIGNERS, threshold=2)

# LND release manager (Roasbeef).
LND_SIGNER = Signer(
    name="roasbeef",
    fingerprint="296212681AADF05656A2CDEE90525F7DEEE0AD86",
    key_url="https://raw.githubusercontent.com/lightningnetwork/lnd/master/scripts/keys/roasbeef.asc",
)

LND_POLICY = VerificationPolicy(
    signers=(LND_SIGNER,),
    threshold=1,
    allow_unsigned_fallback=True,
)
