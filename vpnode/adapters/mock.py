"""
Mock adapters — test doubles for the command runner and fetcher.

Used to simulate host behaviour without touching the system. By
default every command succeeds with empty output; rules configure
specific outputs, exit codes, or side effects.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from vpnode.adapters.shell.command import CommandResult, CommandRunner
from vpnode.adapters.shell.fetch import ArtifactFetcher
from vpnode.core.errors import FetchError


@dataclass
class _Rule:
    tokens: tuple[str, ...]
    output: str
    returncode: int
    effect: Callable[[list[str]], None] | None


class MockRunner(CommandRunner):
    """Universal mock runner.

    A rule matches when all of its tokens appear in the argv. The most
    recently added matching rule wins, so specific rules can be layered
    over general ones.
    """

    def __init__(self, available: Sequence[str] = ("wget", "gpg", "curl")) -> None:
        super().__init__()
        self._available = set(available)
        self._rules: list[_Rule] = []
        self._call_log: list[list[str]] = []

    @property
    def call_log(self) -> list[list[str]]:
        """Every argv this mock has received, in order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls_with(self, *tokens: str) -> list[list[str]]:
        """Logged argvs containing all of ``tokens``."""
        return [argv for argv in self._call_log if all(t in argv for t in tokens)]

    def on(
        self,
        *tokens: str,
        output: str = "",
        returncode: int = 0,
        effect: Callable[[list[str]], None] | None = None,
    ) -> None:
        """Configure the result for commands containing ``tokens``."""
        self._rules.append(_Rule(tuple(tokens), output, returncode, effect))

    def fail(self, *tokens: str, output: str = "mock failure", returncode: int = 1) -> None:
        """Configure commands containing ``tokens`` to fail."""
        self.on(*tokens, output=output, returncode=returncode)

    def which(self, program: str) -> str | None:
        return f"/usr/bin/{program}" if program in self._available else None

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
        argv_list = [str(a) for a in argv]
        self._call_log.append(argv_list)

        for rule in reversed(self._rules):
            if all(t in argv_list for t in rule.tokens):
                if rule.effect is not None:
                    rule.effect(argv_list)
                return CommandResult(
                    argv=argv_list, returncode=rule.returncode, output=rule.output
                )

        return CommandResult(argv=argv_list, returncode=0, output="")

    def reset(self) -> None:
        """Clear call log and rules."""
        self._call_log.clear()
        self._rules.clear()


class MockFetcher(ArtifactFetcher):
    """Serve downloads from an in-memory table keyed by URL suffix.

    Unknown URLs fail with FetchError, like a 404.
    """

    def __init__(self) -> None:
        super().__init__(MockRunner())
        self._content: dict[str, bytes] = {}
        self._fetched: list[str] = []

    @property
    def fetched(self) -> list[str]:
        """URLs successfully served, in order."""
        return self._fetched

    def serve(self, url_suffix: str, content: bytes | str) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._content[url_suffix] = content

    def withdraw(self, url_suffix: str) -> None:
        self._content.pop(url_suffix, None)

    def fetch(self, url: str, dest: Path) -> Path:
        for suffix, content in self._content.items():
            if url.endswith(suffix):
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(content)
                self._fetched.append(url)
                return dest
        raise FetchError(f"download {url}: 404 Not Found", url=url)
