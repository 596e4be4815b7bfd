"""
InstallConfig and NodeConfig — the choices behind one installation.

InstallConfig is the immutable value the pipeline is built from; it is
gathered completely before provisioning starts and only ever read.
NodeConfig is its persisted form, written once after a successful
install and read on every later login.
"""

from __future__ import annotations

import ipaddress
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from vpnode.core.models.network import NetworkName, NetworkProfile, network_from_name

Components = Literal["bitcoin", "bitcoin+lnd"]
P2PMode = Literal["tor", "hybrid"]

LND_P2P_PORT = 9735
PRUNE_CHOICES = (10, 25, 50)


class InstallConfig(BaseModel):
    """Everything decided before the first step runs.

    Invariants:
        - hybrid P2P exposure requires LND and a public IPv4 address
        - never mutated once built
    """

    model_config = ConfigDict(frozen=True)

    network: NetworkProfile
    components: Components = "bitcoin+lnd"
    prune_size: int = Field(default=25, ge=10)        # GB
    p2p_mode: P2PMode = "tor"
    public_ipv4: str | None = None
    ssh_port: int = Field(default=22, ge=1, le=65535)

    @field_validator("network", mode="before")
    @classmethod
    def _network_by_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            return network_from_name(v)
        return v

    @field_validator("public_ipv4")
    @classmethod
    def _valid_ipv4(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        return str(ipaddress.IPv4Address(v.strip()))

    @model_validator(mode="after")
    def _hybrid_requirements(self) -> InstallConfig:
        if self.p2p_mode == "hybrid":
            if not self.has_lnd:
                raise ValueError("hybrid P2P mode requires the LND component")
            if not self.public_ipv4:
                raise ValueError("hybrid P2P mode requires a public IPv4 address")
        return self

    @property
    def has_lnd(self) -> bool:
        return self.components == "bitcoin+lnd"

    @property
    def exposes_lnd_p2p(self) -> bool:
        """Whether LND's P2P port must be reachable from clearnet."""
        return self.has_lnd and self.p2p_mode == "hybrid"

    def to_node_config(self, *, auto_unlock: bool = False) -> NodeConfig:
        return NodeConfig(
            network=self.network.name,
            components=self.components,
            prune_size=self.prune_size,
            p2p_mode=self.p2p_mode,
            auto_unlock=auto_unlock,
            ssh_port=self.ssh_port,
        )

    def summary(self) -> dict[str, str]:
        """Human-readable key/value rows for confirmation screens."""
        rows = {
            "Network": self.network.name,
            "Components": self.components,
            "Prune": f"{self.prune_size} GB",
        }
        if self.has_lnd:
            rows["P2P mode"] = (
                f"Hybrid (Tor + {self.public_ipv4})" if self.p2p_mode == "hybrid" else "Tor only"
            )
        rows["SSH port"] = str(self.ssh_port)
        return rows


class NodeConfig(BaseModel):
    """Persisted installation record (``/etc/rlvpn/config.json``)."""

    network: NetworkName = "testnet4"
    components: Components = "bitcoin+lnd"
    prune_size: int = 25
    p2p_mode: P2PMode = "tor"
    auto_unlock: bool = False
    ssh_port: int = 22

    @property
    def has_lnd(self) -> bool:
        return self.components == "bitcoin+lnd"

    @property
    def profile(self) -> NetworkProfile:
        return network_from_name(self.network)
