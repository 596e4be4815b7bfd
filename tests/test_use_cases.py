"""
Tests for use cases — install, wallet, status, verify.

Install runs end to end against a simulated host: every command goes
to the MockRunner, every download to the MockFetcher, and files land
under the temporary host root.
"""

from unittest.mock import patch

import pytest

from tests.simulated_host import publish_bitcoin_core, publish_lnd
from vpnode.core.errors import ProvisionError
from vpnode.core.models import MAINNET, InstallConfig, NodeConfig, StepStatus
from vpnode.core.persistence.audit import AuditWriter
from vpnode.core.persistence.node_config import load_node_config, needs_install, save_node_config
from vpnode.core.services.status_feed import StatusFeed
from vpnode.core.use_cases.install import finalize_install, run_install
from vpnode.core.use_cases.status import get_status
from vpnode.core.use_cases.verify import verify_release
from vpnode.core.use_cases.wallet import create_lnd_wallet, enable_auto_unlock


@pytest.fixture
def no_user():
    """The service account does not exist yet."""
    with patch("vpnode.core.services.provision.system.pwd.getpwnam", side_effect=KeyError("bitcoin")):
        yield


# ── Install ──────────────────────────────────────────────────────────


class TestRunInstall:
    def test_full_install(self, host, gpg, layout, lnd_config, no_user):
        publish_bitcoin_core(gpg, layout)
        publish_lnd(gpg, layout)
        feed = StatusFeed(buffer_size=100)

        result = run_install(lnd_config, host, feed=feed, require_root=False)

        assert result.ok, result.error
        assert result.report.total == 18
        assert result.report.succeeded == 18
        assert len(feed.history()) == 36

        assert "HiddenServiceDir /var/lib/tor/lnd-rest/" in host.path("/etc/tor/torrc").read_text()
        assert "testnet4=1" in host.path("/etc/bitcoin/bitcoin.conf").read_text()
        assert host.path("/etc/lnd/lnd.conf").is_file()
        assert host.path("/etc/systemd/system/lnd.service").is_file()
        # Work directories are removed after placement
        assert not layout.work_dir("bitcoin-core").exists()
        assert not layout.work_dir("lnd").exists()

        [entry] = AuditWriter(layout.audit_log).read_all()
        assert entry.status == "ok"
        assert entry.steps_total == 18
        assert entry.context["network"] == "testnet4"
        assert entry.context["lnd"] == "0.20.0-beta"

        # The marker is written only by finalize_install
        assert needs_install(layout.node_config)

    def test_bitcoin_only(self, host, gpg, layout, base_config, no_user, mock_runner):
        publish_bitcoin_core(gpg, layout)
        result = run_install(base_config, host, require_root=False)
        assert result.ok, result.error
        assert result.report.total == 12
        assert not host.path("/etc/lnd").exists()
        assert mock_runner.calls_with("systemctl", "start", "lnd") == []

    def test_verification_failure_halts(self, host, gpg, layout, lnd_config, no_user, mock_runner):
        publish_bitcoin_core(gpg, layout, good_count=1)
        publish_lnd(gpg, layout)

        result = run_install(lnd_config, host, require_root=False)

        assert not result.ok
        report = result.report
        assert report.failed_step.name == "Installing Bitcoin Core 29.2"
        assert report.failed_index == 8
        assert all(s.status == StepStatus.PENDING for s in report.steps[9:])
        assert "Insufficient valid signatures: got 1, need 2" in result.error
        assert mock_runner.calls_with("systemctl", "start", "bitcoind") == []
        assert not host.path("/etc/bitcoin/bitcoin.conf").exists()

        [entry] = AuditWriter(layout.audit_log).read_all()
        assert entry.status == "failed"
        assert entry.failed_step == "Installing Bitcoin Core 29.2"
        assert needs_install(layout.node_config)

    def test_command_failure_carries_output(self, host, base_config, no_user, mock_runner):
        mock_runner.fail("systemctl", "restart", "tor", output="Job for tor.service failed")
        result = run_install(base_config, host, require_root=False)
        assert result.report.failed_step.name == "Starting Tor"
        assert "Job for tor.service failed" in result.output

    def test_rerun_after_failure(self, host, gpg, layout, base_config, no_user):
        publish_bitcoin_core(gpg, layout, corrupt_checksum=True)
        assert not run_install(base_config, host, require_root=False).ok
        # Artifacts from the failed attempt stay for inspection
        assert layout.work_dir("bitcoin-core").exists()

        publish_bitcoin_core(gpg, layout)
        assert run_install(base_config, host, require_root=False).ok
        assert len(AuditWriter(layout.audit_log).read_all()) == 2

    def test_non_debian_refused(self, host, layout, base_config, mock_runner):
        layout.path("/etc/os-release").write_text("ID=fedora\n")
        result = run_install(base_config, host, require_root=False)
        assert not result.ok
        assert result.report is None
        assert "Debian" in result.error
        assert mock_runner.call_count == 0
        assert not layout.audit_log.exists()

    def test_requires_root(self, host, base_config, mock_runner):
        with patch("vpnode.core.services.provision.system.os.geteuid", return_value=1000):
            result = run_install(base_config, host, require_root=True)
        assert "root" in result.error
        assert mock_runner.call_count == 0

    def test_to_dict(self, host, layout, base_config):
        layout.path("/etc/os-release").write_text("ID=arch\n")
        d = run_install(base_config, host, require_root=False).to_dict()
        assert d["ok"] is False
        assert d["config"]["Network"] == "testnet4"
        assert "Debian" in d["error"]


class TestFinalizeInstall:
    def test_writes_marker(self, layout, lnd_config):
        node = finalize_install(lnd_config, layout, auto_unlock=True)
        assert node.auto_unlock
        assert load_node_config(layout.node_config) == node
        assert not needs_install(layout.node_config)


# ── Wallet ───────────────────────────────────────────────────────────


class TestWallet:
    def test_create(self, host, mock_runner):
        result = create_lnd_wallet(host, MAINNET, wait=lambda: None)
        assert result.created
        assert mock_runner.calls_with("lncli", "create")

    def test_lnd_never_ready(self, host, mock_runner):
        def wait() -> None:
            raise ProvisionError("LND did not respond after 120 seconds")

        result = create_lnd_wallet(host, MAINNET, wait=wait)
        assert not result.created
        assert "did not respond" in result.error
        assert mock_runner.call_count == 0

    def test_lncli_aborted(self, host, mock_runner):
        mock_runner.fail("lncli", "create", returncode=130)
        result = create_lnd_wallet(host, MAINNET, wait=lambda: None)
        assert not result.created
        assert "lncli create" in result.error

    def test_auto_unlock(self, host):
        result = enable_auto_unlock(host, "hunter22")
        assert result.auto_unlock
        assert result.warnings == []

    def test_auto_unlock_failure_is_a_warning(self, host, mock_runner):
        mock_runner.fail("systemctl", "restart", "lnd")
        result = enable_auto_unlock(host, "hunter22")
        assert not result.auto_unlock
        assert result.error is None
        assert result.warnings and "Auto-unlock setup failed" in result.warnings[0]


# ── Status ───────────────────────────────────────────────────────────


class TestStatus:
    def test_not_installed(self, layout, mock_runner):
        result = get_status(layout, mock_runner)
        assert result.error == "Node is not installed yet. Run: rlvpn install"
        assert result.to_dict() == {"error": result.error}

    def test_installed(self, layout, mock_runner):
        save_node_config(NodeConfig(network="mainnet"), layout.node_config)
        mock_runner.on("is-active", output="active\n")
        mock_runner.on("is-active", "lnd", output="inactive\n", returncode=3)
        onion = layout.path("/var/lib/tor/bitcoin-rpc/hostname")
        onion.parent.mkdir(parents=True)
        onion.write_text("rpc.onion\n")

        result = get_status(layout, mock_runner)

        assert result.error is None
        assert result.services == {"tor": "active", "bitcoind": "active", "lnd": "inactive"}
        assert result.onions["bitcoin-rpc"] == "rpc.onion"
        assert result.onions["lnd-rest"] is None
        assert result.to_dict()["node"]["network"] == "mainnet"

    def test_bitcoin_only_services(self, layout, mock_runner):
        save_node_config(NodeConfig(components="bitcoin"), layout.node_config)
        result = get_status(layout, mock_runner)
        assert list(result.services) == ["tor", "bitcoind"]
        assert list(result.onions) == ["bitcoin-rpc", "bitcoin-p2p"]

    def test_corrupt_config(self, layout, mock_runner):
        layout.node_config.parent.mkdir(parents=True)
        layout.node_config.write_text("{oops")
        assert "Corrupt node config" in get_status(layout, mock_runner).error


# ── Verify ───────────────────────────────────────────────────────────


class TestVerifyRelease:
    def test_bitcoin_ok(self, host, gpg, layout):
        publish_bitcoin_core(gpg, layout, good_count=3)
        result = verify_release("bitcoin", host)
        assert result.ok
        assert result.version == "29.2"
        assert result.report.good_count == 3
        assert not layout.work_dir("bitcoin-core").exists()

    def test_bitcoin_violation_keeps_artifacts(self, host, gpg, layout):
        publish_bitcoin_core(gpg, layout, good_count=0)
        result = verify_release("bitcoin", host)
        assert not result.ok
        assert result.violation
        assert layout.work_dir("bitcoin-core").exists()

    def test_lnd_degraded(self, host, gpg, layout):
        publish_lnd(gpg, layout, manifest=False)
        result = verify_release("lnd", host)
        assert result.ok
        assert result.report.degraded
        assert result.to_dict()["report"]["degraded"] is True

    def test_lnd_unavailable_is_not_violation(self, host, gpg, layout):
        publish_lnd(gpg, layout)
        gpg.fetcher.withdraw("manifest-roasbeef-v0.20.0-beta.sig")
        result = verify_release("lnd", host)
        assert not result.ok
        assert not result.violation
        assert "signature unavailable" in result.error


def test_hybrid_install_opens_lnd_port(host, gpg, layout, no_user, mock_runner):
    publish_bitcoin_core(gpg, layout)
    publish_lnd(gpg, layout)
    config = InstallConfig(network="mainnet", p2p_mode="hybrid", public_ipv4="203.0.113.7")
    assert run_install(config, host, require_root=False).ok
    assert ["ufw", "allow", "9735/tcp"] in mock_runner.call_log
    assert "externalhosts=203.0.113.7:9735" in host.path("/etc/lnd/lnd.conf").read_text()
