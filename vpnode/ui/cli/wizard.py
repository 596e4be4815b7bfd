"""
Install wizard — gather an InstallConfig from flags and prompts.

Every choice can be passed as a flag; anything missing is asked for
interactively, or takes its default when prompting is disabled. The
result is validated in one go, so the pipeline only ever sees a
finished, immutable config.
"""

from __future__ import annotations

from typing import Any

import click

from vpnode.adapters.shell.command import CommandRunner
from vpnode.core.config.answers import build_install_config
from vpnode.core.models.install import PRUNE_CHOICES, InstallConfig
from vpnode.core.services.provision.system import detect_public_ipv4


def gather_config(
    runner: CommandRunner,
    *,
    network: str | None = None,
    components: str | None = None,
    prune_size: int | None = None,
    p2p_mode: str | None = None,
    public_ipv4: str | None = None,
    ssh_port: int | None = None,
    interactive: bool = True,
) -> InstallConfig:
    """Fill in missing choices and validate.

    Raises:
        ConfigError: The combined answers are invalid.
    """

    def ask(value: Any, text: str, default: Any, **kw: Any) -> Any:
        if value is not None:
            return value
        if not interactive:
            return default
        return click.prompt(f"  ? {text}", default=default, **kw)

    answers: dict[str, Any] = {}
    answers["network"] = ask(
        network, "Network", "testnet4", type=click.Choice(["mainnet", "testnet4"]),
    )
    answers["components"] = ask(
        components, "Components", "bitcoin+lnd", type=click.Choice(["bitcoin", "bitcoin+lnd"]),
    )
    answers["prune_size"] = ask(
        prune_size,
        f"Prune size in GB (suggested: {', '.join(map(str, PRUNE_CHOICES))})",
        25,
        type=click.IntRange(min=10),
    )

    if answers["components"] == "bitcoin+lnd":
        answers["p2p_mode"] = ask(
            p2p_mode, "LND P2P mode", "tor", type=click.Choice(["tor", "hybrid"]),
        )
    else:
        answers["p2p_mode"] = "tor"

    if answers["p2p_mode"] == "hybrid":
        address = public_ipv4
        if address is None:
            detected = detect_public_ipv4(runner)
            if interactive and detected:
                address = click.prompt("  ? Public IPv4", default=detected)
            elif interactive:
                address = click.prompt("  ? Public IPv4 (leave empty for Tor only)", default="")
            else:
                address = detected
        answers["public_ipv4"] = address or None
    else:
        answers["public_ipv4"] = None

    answers["ssh_port"] = ask(
        ssh_port, "SSH port", 22, type=click.IntRange(1, 65535),
    )

    # No address for hybrid means Tor only, same as the answers file
    return build_install_config(answers)
