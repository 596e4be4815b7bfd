"""
CLI commands for the LND wallet.

``run_wallet_phase`` is also used by ``rlvpn install`` right after the
pipeline, before the node config is written.
"""

from __future__ import annotations

import sys

import click

from vpnode.core.models.network import NetworkProfile
from vpnode.core.services.provision.host import HostContext

_WALLET_INTRO = """
  ═══════════════════════════════════════════

  Automated setup complete.

  Next: Create your LND wallet.

  LND will ask you to:
    1. Enter a wallet password (min 8 characters)
    2. Confirm the password
    3. Optionally set a cipher seed passphrase
       (press Enter to skip)
    4. Write down your 24-word seed phrase
"""


def _ask_auto_unlock(host: HostContext) -> bool:
    """Offer auto-unlock; returns whether it was configured."""
    from vpnode.core.use_cases.wallet import enable_auto_unlock

    click.echo()
    click.echo("  Auto-unlock stores your wallet password on disk so LND")
    click.echo("  can start without manual intervention after reboot.")
    if not click.confirm("  ? Auto-unlock LND wallet on reboot?", default=True):
        return False

    password = click.prompt(
        "  ? Re-enter your wallet password for auto-unlock", hide_input=True,
    )
    result = enable_auto_unlock(host, password)
    for warning in result.warnings:
        click.secho(f"  ⚠️  {warning}", fg="yellow")
        click.echo("  You can set this up later with: rlvpn wallet auto-unlock")
    if result.auto_unlock:
        click.secho("  ✓ Auto-unlock configured", fg="green")
    return result.auto_unlock


def run_wallet_phase(host: HostContext, network: NetworkProfile) -> bool | None:
    """Interactive wallet creation + auto-unlock offer.

    Returns:
        Whether auto-unlock was configured, or None if the wallet could
        not be created.
    """
    from vpnode.core.use_cases.wallet import create_lnd_wallet

    click.echo(_WALLET_INTRO)
    click.secho("  ⚠️  Your seed phrase is the ONLY way to recover funds.", fg="yellow")
    click.secho("  ⚠️  No one can help you if you lose it.", fg="yellow")
    click.echo()
    click.pause("  Press Enter to continue...")

    click.echo("\n  Waiting for LND to be ready...")
    result = create_lnd_wallet(host, network)
    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        return None
    click.secho("\n  ✓ Wallet created", fg="green")

    return _ask_auto_unlock(host)


@click.group()
def wallet() -> None:
    """LND wallet — create, auto-unlock."""


def _require_lnd(ctx: click.Context) -> NetworkProfile:
    from vpnode.core.persistence.node_config import NodeConfigError, load_node_config

    layout = ctx.obj["host"].layout
    try:
        node = load_node_config(layout.node_config)
    except FileNotFoundError:
        click.secho("❌ Node is not installed yet. Run: rlvpn install", fg="red")
        sys.exit(1)
    except NodeConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    if not node.has_lnd:
        click.secho("❌ LND is not installed on this node", fg="red")
        sys.exit(1)
    return node.profile


@wallet.command("create")
@click.pass_context
def wallet_create(ctx: click.Context) -> None:
    """Create the LND wallet (hands the terminal to lncli)."""
    from vpnode.core.use_cases.wallet import create_lnd_wallet

    network = _require_lnd(ctx)
    result = create_lnd_wallet(ctx.obj["host"], network)
    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)
    click.secho("✅ Wallet created", fg="green", bold=True)


@wallet.command("auto-unlock")
@click.password_option(
    "--password", prompt="Wallet password", help="Wallet password (prompted if omitted).",
)
@click.pass_context
def wallet_auto_unlock(ctx: click.Context, password: str) -> None:
    """Store the wallet password so LND unlocks itself on boot."""
    from vpnode.core.persistence.node_config import load_node_config, save_node_config
    from vpnode.core.use_cases.wallet import enable_auto_unlock

    _require_lnd(ctx)
    host = ctx.obj["host"]
    result = enable_auto_unlock(host, password)
    if not result.auto_unlock:
        for warning in result.warnings:
            click.secho(f"❌ {warning}", fg="red")
        sys.exit(1)

    node = load_node_config(host.layout.node_config)
    save_node_config(node.model_copy(update={"auto_unlock": True}), host.layout.node_config)
    click.secho("✅ Auto-unlock configured", fg="green", bold=True)
