"""
CLI commands for release verification.

Thin wrappers over ``vpnode.core.use_cases.verify``.
"""

from __future__ import annotations

import json
import sys

import click

from vpnode.core.use_cases.verify import Family, VerifyResult


def _show(result: VerifyResult, as_json: bool, verbose: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            sys.exit(1)
        return

    label = f"{result.family} {result.version}"
    if not result.ok:
        kind = "Trust violation" if result.violation else "Verification failed"
        click.secho(f"❌ {kind}: {label}", fg="red", bold=True)
        click.echo(f"   {result.error}")
        if verbose and result.output:
            for line in result.output.splitlines()[-20:]:
                click.echo(f"     │ {line}")
        sys.exit(1)

    report = result.report
    assert report is not None
    if report.degraded:
        click.secho(f"⚠️  {label}: no signed manifest published, not verified", fg="yellow")
        return

    click.secho(f"✅ {label} verified", fg="green", bold=True)
    click.echo(f"   Signers:  {', '.join(report.good_signers)} ({report.good_count}/{report.required} required)")
    click.echo(f"   Checksum: {'ok' if report.checksum_verified else 'not checked'}")


def _run(ctx: click.Context, family: Family, as_json: bool) -> None:
    from vpnode.core.use_cases.verify import verify_release

    result = verify_release(family, ctx.obj["host"])
    _show(result, as_json, ctx.obj.get("verbose", False))


@click.group()
def verify() -> None:
    """Download and verify a pinned release without installing it."""


@verify.command("bitcoin")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def verify_bitcoin(ctx: click.Context, as_json: bool) -> None:
    """Verify Bitcoin Core (2 of 5 builder signatures + checksum)."""
    _run(ctx, "bitcoin", as_json)


@verify.command("lnd")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def verify_lnd(ctx: click.Context, as_json: bool) -> None:
    """Verify LND (release manager signature + checksum)."""
    _run(ctx, "lnd", as_json)
