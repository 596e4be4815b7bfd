"""
Progress renderer — prints pipeline step events as they arrive.

Runs on its own daemon thread and only reads StepEvent snapshots from
the status feed, so drawing never delays the next step.
"""

from __future__ import annotations

import threading

import click

from vpnode.core.models.step import StepEvent, StepStatus
from vpnode.core.services.status_feed import StatusFeed


def render_event(event: StepEvent, *, quiet: bool = False) -> None:
    if event.status == StepStatus.RUNNING:
        if not quiet:
            click.echo(f"\n  [{event.position}] {event.name}...")
    elif event.status == StepStatus.SUCCEEDED:
        if not quiet:
            click.secho(f"  ✓ {event.name}", fg="green")
    elif event.status == StepStatus.FAILED:
        click.secho(f"  ✗ {event.name}", fg="red", bold=True)
        if event.error:
            click.echo(f"     {event.error}")


class ProgressRenderer(threading.Thread):
    """Consume a StatusFeed until it is closed."""

    def __init__(self, feed: StatusFeed, *, quiet: bool = False) -> None:
        super().__init__(name="rlvpn-progress", daemon=True)
        self._feed = feed
        self._quiet = quiet
        self.events: list[StepEvent] = []

    def run(self) -> None:
        for event in self._feed.subscribe():
            self.events.append(event)
            render_event(event, quiet=self._quiet)
