"""
Generated file contents — torrc, node configs, systemd units, sysctl.

Pure functions of the install configuration. Paths inside the text are
canonical; the host root only affects where the files are written.
"""

from __future__ import annotations

from vpnode.core.models.install import LND_P2P_PORT, InstallConfig
from vpnode.core.services.provision.host import (
    BITCOIN_CONF,
    BITCOIN_DATA_DIR,
    LND_CONF,
    LND_DATA_DIR,
    LND_PASSWORD_FILE,
)

LND_GRPC_PORT = 10009
LND_REST_PORT = 8080
TOR_SOCKS_PORT = 9050
TOR_CONTROL_PORT = 9051

SYSCTL_DISABLE_IPV6 = """\
# Virtual Private Node: disable IPv6 to prevent Tor bypass
net.ipv6.conf.all.disable_ipv6 = 1
net.ipv6.conf.default.disable_ipv6 = 1
net.ipv6.conf.lo.disable_ipv6 = 1
"""


def hidden_services(config: InstallConfig) -> dict[str, int]:
    """Onion service name → local port, in torrc order."""
    services = {
        "bitcoin-rpc": config.network.rpc_port,
        "bitcoin-p2p": config.network.p2p_port,
    }
    if config.has_lnd:
        services["lnd-grpc"] = LND_GRPC_PORT
        services["lnd-rest"] = LND_REST_PORT
    return services


def torrc(config: InstallConfig) -> str:
    lines = [
        "# Virtual Private Node: Tor configuration",
        f"SOCKSPort {TOR_SOCKS_PORT}",
    ]
    if config.has_lnd:
        # LND manages its own P2P onion through the control port
        lines += [
            "",
            f"ControlPort {TOR_CONTROL_PORT}",
            "CookieAuthentication 1",
            "CookieAuthFileGroupReadable 1",
        ]
    for name, port in hidden_services(config).items():
        lines += [
            "",
            f"HiddenServiceDir /var/lib/tor/{name}/",
            f"HiddenServicePort {port} 127.0.0.1:{port}",
        ]
    return "\n".join(lines) + "\n"


def bitcoin_conf(config: InstallConfig) -> str:
    net = config.network
    head = [
        "# Virtual Private Node: Bitcoin Core configuration",
        "#",
        f"# Network: {net.name}",
        f"# Prune:   {config.prune_size} GB",
        "",
        "server=1",
    ]
    if net.bitcoin_flag:
        head.append(net.bitcoin_flag)
    head += [
        f"prune={config.prune_size * 1000}",
        "dbcache=512",
        "maxmempool=300",
        "disablewallet=1",
        "",
        "# Route all connections through Tor",
        f"proxy=127.0.0.1:{TOR_SOCKS_PORT}",
        "listen=1",
        "listenonion=1",
        "",
    ]

    # Non-mainnet networks only honour these inside their own section
    section = [f"[{net.name}]"] if net.name != "mainnet" else []
    section += [
        "bind=127.0.0.1",
        "rpcbind=127.0.0.1",
        f"rpcport={net.rpc_port}",
        "rpcallowip=127.0.0.1",
        "",
        f"zmqpubrawblock=tcp://127.0.0.1:{net.zmq_block_port}",
        f"zmqpubrawtx=tcp://127.0.0.1:{net.zmq_tx_port}",
    ]
    return "\n".join(head + section) + "\n"


def bitcoind_unit(user: str) -> str:
    return f"""\
[Unit]
Description=Bitcoin Core
After=network-online.target tor.service
Wants=network-online.target

[Service]
Type=simple
User={user}
Group={user}
ExecStart=/usr/local/bin/bitcoind -conf={BITCOIN_CONF} -datadir={BITCOIN_DATA_DIR}
Restart=on-failure
RestartSec=30
TimeoutStopSec=600
PrivateTmp=true
ProtectSystem=full
NoNewPrivileges=true

[Install]
WantedBy=multi-user.target
"""


def lnd_conf(config: InstallConfig, rest_onion: str | None = None) -> str:
    net = config.network

    if config.exposes_lnd_p2p:
        listen = [
            f"listen=0.0.0.0:{LND_P2P_PORT}",
            f"externalhosts={config.public_ipv4}:{LND_P2P_PORT}",
        ]
    else:
        listen = [f"listen=localhost:{LND_P2P_PORT}"]

    options = [
        "[Application Options]",
        f"lnddir={LND_DATA_DIR}",
        *listen,
        f"rpclisten=localhost:{LND_GRPC_PORT}",
        f"restlisten=localhost:{LND_REST_PORT}",
        "debuglevel=info",
    ]
    if rest_onion:
        options.append(f"tlsextradomain={rest_onion}")

    lines = [
        "# Virtual Private Node: LND configuration",
        "#",
        f"# Network: {net.name}",
        f"# P2P:     {config.p2p_mode}",
        "",
        *options,
        "",
        "[Bitcoin]",
        "bitcoin.active=true",
        net.lnd_bitcoin_flag,
        "bitcoin.node=bitcoind",
        "",
        "[Bitcoind]",
        f"bitcoind.dir={BITCOIN_DATA_DIR}",
        f"bitcoind.config={BITCOIN_CONF}",
        f"bitcoind.rpccookie={BITCOIN_DATA_DIR}/{net.cookie_path}",
        f"bitcoind.rpchost=127.0.0.1:{net.rpc_port}",
        f"bitcoind.zmqpubrawblock=tcp://127.0.0.1:{net.zmq_block_port}",
        f"bitcoind.zmqpubrawtx=tcp://127.0.0.1:{net.zmq_tx_port}",
        "",
        "[Tor]",
        "tor.active=true",
        f"tor.socks=127.0.0.1:{TOR_SOCKS_PORT}",
        f"tor.control=127.0.0.1:{TOR_CONTROL_PORT}",
        "tor.targetipaddress=127.0.0.1",
        "tor.v3=true",
        "tor.streamisolation=true",
    ]
    return "\n".join(lines) + "\n"


def lnd_unit(user: str, *, auto_unlock: bool = False) -> str:
    exec_start = f"/usr/local/bin/lnd --configfile={LND_CONF}"
    if auto_unlock:
        exec_start += f" --wallet-unlock-password-file={LND_PASSWORD_FILE}"
    return f"""\
[Unit]
Description=LND Lightning Network Daemon
After=bitcoind.service tor.service
Wants=bitcoind.service

[Service]
Type=simple
User={user}
Group={user}
ExecStart={exec_start}
Restart=on-failure
RestartSec=30
TimeoutStopSec=300
PrivateTmp=true
ProtectSystem=full
NoNewPrivileges=true

[Install]
WantedBy=multi-user.target
"""
