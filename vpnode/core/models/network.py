"""
Network profiles — every value that differs between mainnet and testnet4.

All other modules read ports, flags and paths from these profiles so
the network choice propagates everywhere automatically.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

NetworkName = Literal["mainnet", "testnet4"]


class NetworkProfile(BaseModel):
    """Fixed bundle of ports, paths and flags for one network."""

    model_config = ConfigDict(frozen=True)

    name: NetworkName
    bitcoin_flag: str          # bitcoin.conf directive ("" on mainnet)
    lnd_bitcoin_flag: str      # lnd.conf chain flag
    rpc_port: int
    p2p_port: int
    zmq_block_port: int
    zmq_tx_port: int
    lncli_network: str         # --network flag for lncli
    cookie_path: str           # relative to the bitcoin datadir


MAINNET = NetworkProfile(
    name="mainnet",
    bitcoin_flag="",
    lnd_bitcoin_flag="bitcoin.mainnet=true",
    rpc_port=8332,
    p2p_port=8333,
    zmq_block_port=28332,
    zmq_tx_port=28333,
    lncli_network="mainnet",
    cookie_path=".cookie",
)

TESTNET4 = NetworkProfile(
    name="testnet4",
    bitcoin_flag="testnet4=1",
    lnd_bitcoin_flag="bitcoin.testnet4=true",
    rpc_port=48332,
    p2p_port=48333,
    zmq_block_port=28334,
    zmq_tx_port=28335,
    lncli_network="testnet4",
    cookie_path="testnet4/.cookie",
)

NETWORKS: dict[str, NetworkProfile] = {p.name: p for p in (MAINNET, TESTNET4)}


def network_from_name(name: str) -> NetworkProfile:
    """Look up a profile by name.

    Raises:
        ValueError: Unknown network name.
    """
    try:
        return NETWORKS[name]
    except KeyError:
        raise ValueError(
            f"Unknown network '{name}' (expected one of: {', '.join(NETWORKS)})"
        ) from None
