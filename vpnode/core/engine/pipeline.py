"""
Pipeline executor — run steps in order, stop at the first failure.

The executor owns every Step's mutable state. After each transition it
publishes an immutable StepEvent to the optional status feed; publishing
never blocks, so a slow renderer cannot delay the next step.

Failure policy: all-or-nothing, non-resumable. The first failing step
halts the run, later steps stay PENDING, nothing is rolled back, and
recovery is to fix the cause and re-run the whole pipeline (every step
is safe to repeat).

Flow:
    for each step: RUNNING → action() → SUCCEEDED | FAILED(StepError) → halt
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from vpnode.core.errors import StepError
from vpnode.core.models.step import Step, StepEvent, StepStatus
from vpnode.core.persistence.audit import AuditEntry, AuditWriter
from vpnode.core.services.status_feed import StatusFeed

logger = logging.getLogger(__name__)


@dataclass
class PipelineReport:
    """Result of one pipeline run."""

    run_id: str = ""
    steps: tuple[Step, ...] = ()
    duration_ms: int = 0
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def succeeded(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.SUCCEEDED)

    @property
    def pending(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.PENDING)

    @property
    def failed_index(self) -> int | None:
        for i, step in enumerate(self.steps):
            if step.status == StepStatus.FAILED:
                return i
        return None

    @property
    def failed_step(self) -> Step | None:
        index = self.failed_index
        return self.steps[index] if index is not None else None

    @property
    def error(self) -> StepError | None:
        failed = self.failed_step
        return failed.error if failed else None

    @property
    def ok(self) -> bool:
        return self.total > 0 and self.succeeded == self.total

    @property
    def status(self) -> str:
        return "ok" if self.ok else "failed"

    def raise_for_failure(self) -> None:
        """Raise the failing step's StepError, if any."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict:
        failed = self.failed_step
        return {
            "run_id": self.run_id,
            "status": self.status,
            "started_at": self.started_at,
            "duration_ms": self.duration_ms,
            "total": self.total,
            "succeeded": self.succeeded,
            "pending": self.pending,
            "failed_step": failed.name if failed else None,
            "error": str(self.error.cause) if self.error else None,
            "steps": [{"name": s.name, "status": str(s.status)} for s in self.steps],
        }


def _publish(feed: StatusFeed | None, step: Step, index: int, total: int) -> None:
    if feed is not None:
        feed.publish(StepEvent.of(step, index, total))


def run_pipeline(
    steps: Sequence[Step],
    *,
    feed: StatusFeed | None = None,
    run_id: str = "",
) -> PipelineReport:
    """Execute ``steps`` strictly in sequence, halting at the first failure.

    Never raises for a failing step; inspect the report or call
    ``raise_for_failure()``. KeyboardInterrupt is not caught: an abort
    leaves the current step RUNNING and its side effects in place.

    Args:
        steps: Steps from ``build_steps``, all PENDING.
        feed: Optional status feed receiving a StepEvent per transition.
        run_id: Identifier for logs and the audit ledger.
    """
    report = PipelineReport(run_id=run_id or generate_run_id(), steps=tuple(steps))
    total = report.total
    start = time.monotonic()

    for index, step in enumerate(report.steps):
        step.advance(StepStatus.RUNNING)
        _publish(feed, step, index, total)
        logger.info("[%d/%d] %s...", index + 1, total, step.name)

        try:
            step.action()
        except Exception as e:
            step.error = StepError(step.name, index, e)
            step.advance(StepStatus.FAILED)
            _publish(feed, step, index, total)
            logger.error("✗ %s failed: %s", step.name, e)
            if step.error.output:
                logger.debug("%s output:\n%s", step.name, step.error.output)
            break

        step.advance(StepStatus.SUCCEEDED)
        _publish(feed, step, index, total)
        logger.info("✓ %s", step.name)

    report.duration_ms = int((time.monotonic() - start) * 1000)
    return report


def write_audit_entry(
    report: PipelineReport,
    audit_writer: AuditWriter,
    *,
    context: dict[str, Any] | None = None,
) -> None:
    """Record a pipeline run in the audit ledger."""
    error = report.error
    entry = AuditEntry(
        run_id=report.run_id,
        operation="install",
        status=report.status,
        steps_total=report.total,
        steps_succeeded=report.succeeded,
        failed_step=report.failed_step.name if report.failed_step else "",
        errors=[str(error.cause)] if error else [],
        output=error.output if error else "",
        duration_ms=report.duration_ms,
        context=context or {},
    )
    audit_writer.write(entry)


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"
