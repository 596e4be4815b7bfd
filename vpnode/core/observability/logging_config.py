"""
Logging configuration — console output for every command, plus a
detailed log for each provisioning run.

Console records go to stderr so ``--json`` output on stdout stays
parseable. The console level is resolved in precedence order:
    CLI flag  >  VPN_LOG_LEVEL env var  >  WARNING (default)

VPN_LOG_FILE / VPN_LOG_FILE_LEVEL add a file handler for any command.
Independently, ``run_log`` copies every record of an install run into
``/var/log/rlvpn/install.log`` next to the audit ledger: the ledger says
which step failed, the run log holds the commands and output behind it.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

ENV_LOG_LEVEL = "VPN_LOG_LEVEL"
ENV_LOG_FILE = "VPN_LOG_FILE"
ENV_LOG_FILE_LEVEL = "VPN_LOG_FILE_LEVEL"

# ── Formats ─────────────────────────────────────────────────────

# Console format by the most verbose level it applies to
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

_FILE_FORMATTER = logging.Formatter(
    "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def parse_level(name: str | None, default: int = logging.WARNING) -> int:
    """Numeric level for a level name; unknown or empty names give ``default``."""
    if not name:
        return default
    return logging.getLevelNamesMapping().get(name.strip().upper(), default)


def resolve_level(
    *,
    verbose: bool = False,
    quiet: bool = False,
    debug: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Console level from CLI flags, falling back to VPN_LOG_LEVEL."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if environ is None else environ
    return env.get(ENV_LOG_LEVEL, "WARNING")


def _file_handler(path: Path, level: int) -> logging.FileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_FILE_FORMATTER)
    return handler


def setup_logging(level: str = "WARNING", *, environ: Mapping[str, str] | None = None) -> None:
    """Configure the root logger once per process.

    Args:
        level: Console level name.
        environ: Source of VPN_LOG_FILE / VPN_LOG_FILE_LEVEL
            (``os.environ`` by default).
    """
    env = os.environ if environ is None else environ
    console_level = parse_level(level)
    fmt, datefmt = next(
        (f, d) for threshold, f, d in _CONSOLE_FORMATS if console_level <= threshold
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(console_level)

    log_file = env.get(ENV_LOG_FILE)
    if log_file:
        file_level = parse_level(env.get(ENV_LOG_FILE_LEVEL), default=console_level)
        root.addHandler(_file_handler(Path(log_file), file_level))
        root.setLevel(min(console_level, file_level))

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False


@contextmanager
def run_log(path: Path, level: str = "DEBUG") -> Iterator[Path]:
    """Record everything logged inside the block into ``path`` (appended).

    The root level is lowered for the duration so DEBUG command traces
    reach the file without reaching the console.
    """
    file_level = parse_level(level, default=logging.DEBUG)
    handler = _file_handler(path, file_level)
    root = logging.getLogger()
    previous = root.level
    root.addHandler(handler)
    root.setLevel(min(previous, file_level) if previous else file_level)
    try:
        yield path
    finally:
        root.removeHandler(handler)
        handler.close()
        root.setLevel(previous)
