"""
Virtual Private Node — CLI entrypoint.

Usage:
    rlvpn                 first run: install; afterwards: status
    rlvpn install --network testnet4 --components bitcoin+lnd
    rlvpn status --json
    rlvpn verify bitcoin
    rlvpn wallet auto-unlock
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from vpnode import __version__
from vpnode.core.observability.logging_config import resolve_level, setup_logging


def _make_host(root: Path):
    from vpnode.adapters.shell.command import CommandRunner
    from vpnode.adapters.shell.fetch import ArtifactFetcher
    from vpnode.core.services.provision.host import HostContext, HostLayout

    runner = CommandRunner()
    return HostContext(runner=runner, fetcher=ArtifactFetcher(runner), layout=HostLayout(root))


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="rlvpn")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="VPN_ROOT",
    default="/",
    show_default=True,
    help="Host root to provision (a scratch tree for rehearsals).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool, root: Path) -> None:
    """Virtual Private Node — Bitcoin Core + LND over Tor on Debian."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(resolve_level(verbose=verbose, quiet=quiet, debug=debug))

    if "host" not in ctx.obj:
        ctx.obj["host"] = _make_host(root)

    # First-run marker: checked once here, passed down explicitly
    from vpnode.core.persistence.node_config import needs_install

    ctx.obj["first_run"] = needs_install(ctx.obj["host"].layout.node_config)

    if ctx.invoked_subcommand is None:
        ctx.invoke(install if ctx.obj["first_run"] else status)


@cli.command()
@click.option("--network", type=click.Choice(["mainnet", "testnet4"]), default=None)
@click.option("--components", type=click.Choice(["bitcoin", "bitcoin+lnd"]), default=None)
@click.option("--prune", "prune_size", type=click.IntRange(min=10), default=None, help="Prune size in GB.")
@click.option("--p2p-mode", type=click.Choice(["tor", "hybrid"]), default=None, help="LND P2P exposure.")
@click.option("--public-ip", "public_ipv4", default=None, help="Public IPv4 for hybrid mode.")
@click.option("--ssh-port", type=click.IntRange(1, 65535), default=None)
@click.option(
    "--answers",
    "answers_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML answers file (non-interactive).",
)
@click.option("--yes", "-y", is_flag=True, help="Don't prompt; use defaults for missing choices.")
@click.option("--force", is_flag=True, help="Run even if the node is already installed.")
@click.option("--skip-wallet", is_flag=True, help="Skip LND wallet creation.")
@click.pass_context
def install(
    ctx: click.Context,
    network: str | None,
    components: str | None,
    prune_size: int | None,
    p2p_mode: str | None,
    public_ipv4: str | None,
    ssh_port: int | None,
    answers_path: Path | None,
    yes: bool,
    force: bool,
    skip_wallet: bool,
) -> None:
    """Provision this server: Tor, Bitcoin Core and (optionally) LND.

    Examples:

        rlvpn install

        rlvpn install --network mainnet --components bitcoin --yes

        rlvpn install --answers node.yml --yes
    """
    from vpnode.core.config.answers import ConfigError, load_answers
    from vpnode.core.errors import PreconditionError
    from vpnode.core.observability.logging_config import run_log
    from vpnode.core.services.provision.system import detect_public_ipv4
    from vpnode.core.services.status_feed import StatusFeed
    from vpnode.core.use_cases.install import check_preconditions, finalize_install, run_install
    from vpnode.ui.cli.progress import ProgressRenderer
    from vpnode.ui.cli.wallet import run_wallet_phase
    from vpnode.ui.cli.wizard import gather_config

    host = ctx.obj["host"]
    quiet = ctx.obj.get("quiet", False)
    rehearsal = host.layout.root != Path("/")

    if not ctx.obj.get("first_run", True) and not force:
        click.secho("✅ Node is already installed", fg="green")
        click.echo("   Run 'rlvpn status', or 'rlvpn install --force' to re-provision.")
        return

    # ── Preflight ────────────────────────────────────────────────
    try:
        check_preconditions(host.layout, require_root=not rehearsal)
    except PreconditionError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    # ── Gather config ────────────────────────────────────────────
    try:
        if answers_path is not None:
            config = load_answers(answers_path, detect_ipv4=lambda: detect_public_ipv4(host.runner))
        else:
            config = gather_config(
                host.runner,
                network=network,
                components=components,
                prune_size=prune_size,
                p2p_mode=p2p_mode,
                public_ipv4=public_ipv4,
                ssh_port=ssh_port,
                interactive=not yes,
            )
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    click.secho("\n⚡ Virtual Private Node", fg="cyan", bold=True)
    for key, value in config.summary().items():
        click.echo(f"   {key + ':':<12} {value}")
    click.echo()
    if not yes:
        click.confirm("  ? Proceed with installation?", default=False, abort=True)

    # ── Pipeline ─────────────────────────────────────────────────
    feed = StatusFeed()
    renderer = ProgressRenderer(feed, quiet=quiet)
    renderer.start()
    try:
        with run_log(host.layout.install_log):
            result = run_install(config, host, feed=feed, require_root=not rehearsal)
    finally:
        feed.close()
        renderer.join(timeout=5)

    if not result.ok:
        click.echo()
        click.secho(f"❌ {result.error}", fg="red", bold=True)
        if result.output:
            for line in result.output.splitlines()[-20:]:
                click.echo(f"     │ {line}")
        click.echo(f"\n   Details: {host.layout.install_log}")
        click.echo("   Fix the problem and run 'rlvpn install' again.")
        sys.exit(1)

    # ── Wallet phase ─────────────────────────────────────────────
    auto_unlock = False
    if config.has_lnd and not skip_wallet:
        outcome = run_wallet_phase(host, config.network)
        if outcome is None:
            click.echo("   Create it later with 'rlvpn wallet create', then run 'rlvpn install --force'.")
            sys.exit(1)
        auto_unlock = outcome

    finalize_install(config, host.layout, auto_unlock=auto_unlock)

    click.echo()
    click.secho("✅ Installation complete", fg="green", bold=True)
    click.echo("   Run 'rlvpn status' to see services and onion addresses.")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show node configuration, services and onion addresses."""
    from vpnode.core.use_cases.status import get_status

    host = ctx.obj["host"]
    result = get_status(host.layout, host.runner)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    node = result.node
    assert node is not None  # guaranteed after error check above

    click.secho(f"\n📋 Virtual Private Node ({node.network})", fg="cyan", bold=True)
    click.echo(f"   Components: {node.components}")
    click.echo(f"   Prune:      {node.prune_size} GB")
    if node.has_lnd:
        click.echo(f"   P2P mode:   {node.p2p_mode}")
        click.echo(f"   Auto-unlock: {'yes' if node.auto_unlock else 'no'}")
    click.echo()

    click.secho("   Services:", fg="white", bold=True)
    for service, state in result.services.items():
        color = "green" if state == "active" else "red"
        marker = "✓" if state == "active" else "✗"
        click.secho(f"     {marker} {service:<10} {state}", fg=color)

    click.echo()
    click.secho("   Onion addresses:", fg="white", bold=True)
    for name, onion in result.onions.items():
        click.echo(f"     • {name:<12} {onion or '(not yet generated)'}")
    click.echo()


# ── Register sub-command groups from vpnode/ui/cli/ ────────────────

from vpnode.ui.cli.verify import verify  # noqa: E402
from vpnode.ui.cli.wallet import wallet  # noqa: E402

cli.add_command(verify)
cli.add_command(wallet)


if __name__ == "__main__":
    cli()
