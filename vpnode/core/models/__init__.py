"""
Domain models — Pydantic types for the provisioner.

All models are re-exported here for convenient access:

    from vpnode.core.models import InstallConfig, Step, Signer, VerificationPolicy
"""

from vpnode.core.models.install import InstallConfig, NodeConfig
from vpnode.core.models.network import MAINNET, TESTNET4, NetworkProfile, network_from_name
from vpnode.core.models.step import Step, StepEvent, StepStatus
from vpnode.core.models.trust import (
    Artifact,
    Signer,
    VerificationPolicy,
    VerificationReport,
)

__all__ = [
    "MAINNET",
    "TESTNET4",
    "Artifact",
    "InstallConfig",
    "NetworkProfile",
    "NodeConfig",
    "Signer",
    "Step",
    "StepEvent",
    "StepStatus",
    "VerificationPolicy",
    "VerificationReport",
    "network_from_name",
]
