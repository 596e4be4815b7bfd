"""
Artifact fetcher — download a URL to a local file.

Uses whichever transfer tool the host has (wget preferred, curl as
fallback), through the command runner. There is no retry here; a
failed download is a FetchError and the caller's policy decides.
"""

from __future__ import annotations

import logging
from pathlib import Path

from vpnode.adapters.shell.command import CommandRunner
from vpnode.core.errors import FetchError

logger = logging.getLogger(__name__)

_TOOLS = ("wget", "curl")


class ArtifactFetcher:
    """Download files with wget or curl."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def resolve_tool(self) -> str:
        """Pick the transfer tool to use, or raise FetchError if none exists."""
        for tool in _TOOLS:
            if self._runner.which(tool):
                return tool
        raise FetchError("No download tool available (need wget or curl)")

    def fetch(self, url: str, dest: Path) -> Path:
        """Download ``url`` to ``dest``.

        A partially written destination is removed on failure so that a
        later existence check never mistakes it for a real download.
        """
        tool = self.resolve_tool()
        dest.parent.mkdir(parents=True, exist_ok=True)

        if tool == "wget":
            argv = ["wget", "-q", "-O", str(dest), url]
        else:
            # -f: HTTP errors must fail instead of saving an error page
            argv = ["curl", "-fsSL", "-o", str(dest), url]

        logger.info("Downloading %s", url)
        result = self._runner.run(argv)
        if not result.ok:
            dest.unlink(missing_ok=True)
            raise FetchError(
                f"download {url}: exit status {result.returncode}",
                url=url,
                output=result.output.strip(),
            )
        return dest
