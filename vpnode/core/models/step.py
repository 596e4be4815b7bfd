"""
Step and StepEvent — the unit of provisioning work and its snapshots.

A Step pairs a name with a no-argument action. Actions signal failure
by raising ProvisionError (or anything else); the executor captures it.
Status moves strictly forward:

    PENDING → RUNNING → SUCCEEDED | FAILED

Steps are owned by the executor. Consumers never see a Step; they
receive immutable StepEvent snapshots after every transition.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from vpnode.core.errors import StepError


class StepStatus(StrEnum):
    """Lifecycle of a single step."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_TRANSITIONS: dict[StepStatus, tuple[StepStatus, ...]] = {
    StepStatus.PENDING: (StepStatus.RUNNING,),
    StepStatus.RUNNING: (StepStatus.SUCCEEDED, StepStatus.FAILED),
    StepStatus.SUCCEEDED: (),
    StepStatus.FAILED: (),
}


@dataclass
class Step:
    """One named, ordered, fallible provisioning operation."""

    name: str
    action: Callable[[], None]
    status: StepStatus = StepStatus.PENDING
    error: StepError | None = None

    def advance(self, status: StepStatus) -> None:
        """Move to ``status``; each state is entered at most once."""
        if status not in _TRANSITIONS[self.status]:
            raise RuntimeError(
                f"Illegal step transition for '{self.name}': {self.status} → {status}"
            )
        self.status = status


class StepEvent(BaseModel):
    """Immutable snapshot published after a step transition."""

    model_config = ConfigDict(frozen=True)

    index: int          # 0-based position
    total: int
    name: str
    status: StepStatus
    error: str | None = None
    output: str = ""

    @property
    def position(self) -> str:
        """1-based ``i/N`` label for progress displays."""
        return f"{self.index + 1}/{self.total}"

    @classmethod
    def of(cls, step: Step, index: int, total: int) -> StepEvent:
        return cls(
            index=index,
            total=total,
            name=step.name,
            status=step.status,
            error=str(step.error.cause) if step.error else None,
            output=step.error.output if step.error else "",
        )
