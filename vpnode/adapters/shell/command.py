"""
Command runner — execute external programs and capture their output.

This is the most fundamental adapter: every provisioning operation,
key import, signature check and service restart goes through it.
The runner NEVER raises for a failing command; the outcome is captured
in a CommandResult and the caller decides with ``check()``.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from collections.abc import Mapping, Sequence

from pydantic import BaseModel

from vpnode.core.errors import CommandError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1800  # seconds; apt and large downloads can be slow


def format_argv(argv: Sequence[str]) -> str:
    """Render an argv list the way it would be typed in a shell."""
    return " ".join(shlex.quote(a) for a in argv)


class CommandResult(BaseModel):
    """Outcome of one external command.

    ``output`` is combined stdout + stderr, in the order the program
    wrote it. Interactive commands leave it empty.
    """

    argv: list[str]
    returncode: int
    output: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self, operation: str = "") -> CommandResult:
        """Return self on success, raise CommandError otherwise."""
        if self.ok:
            return self
        label = operation or format_argv(self.argv)
        raise CommandError(
            f"{label}: exit status {self.returncode}",
            argv=self.argv,
            returncode=self.returncode,
            output=self.output.strip(),
        )


class CommandRunner:
    """Run commands with consistent logging and output capture.

    Args:
        timeout: Default per-command timeout in seconds.
        env: Extra environment variables applied to every command.
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._timeout = timeout
        self._env = dict(env or {})

    def which(self, program: str) -> str | None:
        """Locate a program on PATH."""
        return shutil.which(program)

    def run(
        self,
        argv: Sequence[str],
        *,
        input_text: str | None = None,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout: int | None = None,
        interactive: bool = False,
    ) -> CommandResult:
        """Execute ``argv`` and return its result.

        Args:
            argv: Program and arguments. Never passed through a shell.
            input_text: Text fed to stdin.
            cwd: Working directory.
            env: Extra environment variables for this command only.
            timeout: Override the default timeout.
            interactive: Inherit the terminal instead of capturing output
                (used to hand the operator to ``lncli create``).
        """
        argv_list = [str(a) for a in argv]
        logger.debug("CMD %s", format_argv(argv_list))

        full_env = dict(os.environ, **self._env, **(env or {}))
        limit = timeout if timeout is not None else self._timeout
        start = time.monotonic()

        try:
            if interactive:
                proc = subprocess.run(argv_list, cwd=cwd, env=full_env, timeout=limit)
                output = ""
            else:
                proc = subprocess.run(
                    argv_list,
                    input=input_text,
                    text=True,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    cwd=cwd,
                    env=full_env,
                    timeout=limit,
                )
                output = proc.stdout or ""
            returncode = proc.returncode
        except FileNotFoundError:
            output = f"{argv_list[0]}: command not found"
            returncode = 127
        except subprocess.TimeoutExpired:
            output = f"Command timed out after {limit}s"
            returncode = -1
        except OSError as e:
            output = f"Command execution error: {e}"
            returncode = 126

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if returncode != 0:
            logger.debug("EXIT %d %s\n%s", returncode, argv_list[0], output.strip())

        return CommandResult(
            argv=argv_list,
            returncode=returncode,
            output=output,
            duration_ms=elapsed_ms,
        )
