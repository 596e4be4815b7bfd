"""
Shared test fixtures and configuration.

Hosts are rehearsed under ``tmp_path``: every canonical path resolves
inside the temporary root, commands go to a MockRunner and downloads
to a MockFetcher.
"""

import os
from pathlib import Path

import pytest

from tests.simulated_host import GpgScenario
from vpnode.adapters.mock import MockFetcher, MockRunner
from vpnode.core.models.install import InstallConfig
from vpnode.core.services.provision.host import HostContext, HostLayout

DEBIAN_OS_RELEASE = 'PRETTY_NAME="Debian GNU/Linux 12 (bookworm)"\nID=debian\nVERSION_ID="12"\n'


@pytest.fixture
def host_root(tmp_path: Path) -> Path:
    """A scratch host root that looks like a Debian system."""
    root = tmp_path / "host"
    (root / "etc").mkdir(parents=True)
    (root / "etc" / "os-release").write_text(DEBIAN_OS_RELEASE)
    return root


@pytest.fixture
def layout(host_root: Path) -> HostLayout:
    return HostLayout(host_root, work_owner=os.getuid())


@pytest.fixture
def mock_runner() -> MockRunner:
    return MockRunner()


@pytest.fixture
def mock_fetcher() -> MockFetcher:
    return MockFetcher()


@pytest.fixture
def host(mock_runner: MockRunner, mock_fetcher: MockFetcher, layout: HostLayout) -> HostContext:
    return HostContext(runner=mock_runner, fetcher=mock_fetcher, layout=layout)


@pytest.fixture
def base_config() -> InstallConfig:
    return InstallConfig(network="testnet4", components="bitcoin", prune_size=25, ssh_port=22)


@pytest.fixture
def lnd_config() -> InstallConfig:
    return InstallConfig(network="testnet4", components="bitcoin+lnd")


@pytest.fixture
def gpg(mock_runner: MockRunner, mock_fetcher: MockFetcher) -> GpgScenario:
    return GpgScenario(mock_runner, mock_fetcher)
