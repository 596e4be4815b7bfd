"""
Tests for adapters — command runner, artifact fetcher, mock doubles.
"""

from pathlib import Path

import pytest

from vpnode.adapters.mock import MockFetcher, MockRunner
from vpnode.adapters.shell.command import CommandResult, CommandRunner, format_argv
from vpnode.adapters.shell.fetch import ArtifactFetcher
from vpnode.core.errors import CommandError, FetchError

# ── CommandRunner ────────────────────────────────────────────────────


class TestCommandRunner:
    def test_success_captures_output(self):
        result = CommandRunner().run(["sh", "-c", "echo hello"])
        assert result.ok
        assert result.returncode == 0
        assert result.output.strip() == "hello"

    def test_combined_stdout_stderr(self):
        result = CommandRunner().run(["sh", "-c", "echo out; echo err >&2; exit 3"])
        assert not result.ok
        assert result.returncode == 3
        assert "out" in result.output
        assert "err" in result.output

    def test_missing_program_does_not_raise(self):
        result = CommandRunner().run(["definitely-not-a-real-program-xyz"])
        assert result.returncode == 127
        assert "command not found" in result.output

    def test_timeout(self):
        result = CommandRunner().run(["sleep", "5"], timeout=1)
        assert result.returncode == -1
        assert "timed out" in result.output

    def test_input_text(self):
        result = CommandRunner().run(["cat"], input_text="piped")
        assert result.output == "piped"

    def test_extra_env(self):
        runner = CommandRunner(env={"VPN_TEST_VAR": "from-runner"})
        result = runner.run(["sh", "-c", "echo $VPN_TEST_VAR"])
        assert result.output.strip() == "from-runner"

    def test_which(self):
        assert CommandRunner().which("sh") is not None
        assert CommandRunner().which("definitely-not-a-real-program-xyz") is None


class TestCommandResult:
    def test_check_returns_self_on_success(self):
        result = CommandResult(argv=["true"], returncode=0)
        assert result.check() is result

    def test_check_raises_with_diagnostics(self):
        result = CommandResult(argv=["ufw", "--force", "enable"], returncode=1, output="ERROR: boom\n")
        with pytest.raises(CommandError) as exc:
            result.check("Enable firewall")
        assert "Enable firewall: exit status 1" in str(exc.value)
        assert exc.value.output == "ERROR: boom"
        assert exc.value.argv == ["ufw", "--force", "enable"]
        assert exc.value.returncode == 1

    def test_check_defaults_to_argv_label(self):
        result = CommandResult(argv=["usermod", "-aG", "debian-tor", "bitcoin"], returncode=6)
        with pytest.raises(CommandError, match="usermod -aG debian-tor bitcoin"):
            result.check()

    def test_format_argv_quotes(self):
        assert format_argv(["echo", "a b"]) == "echo 'a b'"


# ── ArtifactFetcher ──────────────────────────────────────────────────


class TestArtifactFetcher:
    def test_prefers_wget(self, tmp_path: Path):
        runner = MockRunner(available=("wget", "curl"))
        dest = ArtifactFetcher(runner).fetch("https://example.org/a.tar.gz", tmp_path / "a.tar.gz")
        assert dest == tmp_path / "a.tar.gz"
        assert runner.call_log == [["wget", "-q", "-O", str(dest), "https://example.org/a.tar.gz"]]

    def test_falls_back_to_curl(self, tmp_path: Path):
        runner = MockRunner(available=("curl",))
        ArtifactFetcher(runner).fetch("https://example.org/a", tmp_path / "a")
        assert runner.call_log[0][:2] == ["curl", "-fsSL"]

    def test_no_tool(self, tmp_path: Path):
        runner = MockRunner(available=())
        with pytest.raises(FetchError, match="No download tool"):
            ArtifactFetcher(runner).fetch("https://example.org/a", tmp_path / "a")
        assert runner.call_count == 0

    def test_failure_removes_partial_file(self, tmp_path: Path):
        runner = MockRunner()
        dest = tmp_path / "partial.bin"

        def write_partial(argv: list[str]) -> None:
            dest.write_bytes(b"half")

        runner.on("wget", output="404 Not Found", returncode=8, effect=write_partial)
        with pytest.raises(FetchError) as exc:
            ArtifactFetcher(runner).fetch("https://example.org/partial.bin", dest)
        assert exc.value.url == "https://example.org/partial.bin"
        assert "404" in exc.value.output
        assert not dest.exists()


# ── Mock doubles ─────────────────────────────────────────────────────


class TestMockRunner:
    def test_default_success(self):
        runner = MockRunner()
        assert runner.run(["anything"]).ok
        assert runner.call_count == 1

    def test_latest_matching_rule_wins(self):
        runner = MockRunner()
        runner.on("gpg", output="general")
        runner.on("gpg", "--verify", output="specific")
        assert runner.run(["gpg", "--verify", "x"]).output == "specific"
        assert runner.run(["gpg", "--import", "x"]).output == "general"

    def test_fail_and_calls_with(self):
        runner = MockRunner()
        runner.fail("systemctl", "start")
        runner.run(["systemctl", "enable", "tor"])
        assert not runner.run(["systemctl", "start", "tor"]).ok
        assert runner.calls_with("systemctl") == [
            ["systemctl", "enable", "tor"],
            ["systemctl", "start", "tor"],
        ]

    def test_reset(self):
        runner = MockRunner()
        runner.fail("x")
        runner.run(["x"])
        runner.reset()
        assert runner.call_count == 0
        assert runner.run(["x"]).ok


class TestMockFetcher:
    def test_serves_by_suffix(self, tmp_path: Path):
        fetcher = MockFetcher()
        fetcher.serve("SHA256SUMS", "abc")
        dest = fetcher.fetch("https://bitcoincore.org/bin/SHA256SUMS", tmp_path / "sums")
        assert dest.read_text() == "abc"
        assert fetcher.fetched == ["https://bitcoincore.org/bin/SHA256SUMS"]

    def test_unknown_url_is_404(self, tmp_path: Path):
        with pytest.raises(FetchError, match="404"):
            MockFetcher().fetch("https://example.org/missing", tmp_path / "m")

    def test_withdraw(self, tmp_path: Path):
        fetcher = MockFetcher()
        fetcher.serve("a.txt", "a")
        fetcher.withdraw("a.txt")
        with pytest.raises(FetchError):
            fetcher.fetch("https://example.org/a.txt", tmp_path / "a")
