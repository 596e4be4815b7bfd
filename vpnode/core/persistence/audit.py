"""
Audit ledger — append-only record of install runs.

Every pipeline run writes one entry to an NDJSON (newline-delimited
JSON) file, ``/var/log/rlvpn/install.ndjson`` on a real node. Entries
record what ran, how far it got, and the failing step's diagnostics,
so a failed install can be diagnosed after the terminal is gone.

The ledger is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 4000


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    operation: str = ""            # install, verify, auto-unlock

    # Results
    status: str = ""               # ok, failed
    steps_total: int = 0
    steps_succeeded: int = 0
    failed_step: str = ""
    duration_ms: int = 0

    # Errors (if any)
    errors: list[str] = Field(default_factory=list)
    output: str = ""

    # Extensible context (network, components, versions, ...)
    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an audit entry to the ledger.

        Write failures are logged, never raised: a full disk must not
        mask the install result being reported.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)

        data = entry.model_dump(mode="json")
        if len(data["output"]) > MAX_OUTPUT_CHARS:
            data["output"] = "…" + data["output"][-MAX_OUTPUT_CHARS:]
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s/%s", entry.operation, entry.run_id)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        with self._path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(AuditEntry.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)

        return entries
