# tests/conftest.py
import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from minion_installer.config_models import AppSettings, Platform, PlatformFamily
from minion_installer.layout import InstallLayout


@pytest.fixture
def app_settings(tmp_path):
    """AppSettings that keep every path inside tmp_path."""
    return AppSettings(
        download_dir=tmp_path / "downloads",
        backup_root=tmp_path / "backups",
        log_file=str(tmp_path / "installer.log"),
        service_settle_seconds=0,
        symbols={
            "warning": "!",
            "gear": "⚙️",
            "error": "❌",
        },
    )


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def ubuntu_platform():
    return Platform(
        name="Ubuntu",
        version="22.04",
        architecture="x86_64",
        hostname="host-01",
        is_elevated=True,
        normalized_name="ubuntu",
        family=PlatformFamily.DEBIAN,
    )


@pytest.fixture
def centos_platform():
    return Platform(
        name="CentOS Stream",
        version="9",
        architecture="x86_64",
        hostname="build-02",
        is_elevated=True,
        normalized_name="centos",
        family=PlatformFamily.REDHAT,
    )


@pytest.fixture
def windows_platform():
    return Platform(
        name="Microsoft Windows 11 Pro",
        version="10.0.22631",
        architecture="64-bit",
        hostname="WIN-PC",
        is_elevated=True,
        normalized_name="windows",
        family=PlatformFamily.WINDOWS,
    )


@pytest.fixture
def tmp_layout(tmp_path) -> InstallLayout:
    """A Linux-like layout rooted in tmp_path."""
    root: Path = tmp_path / "root"
    return InstallLayout(
        binary_paths=[root / "usr/bin/salt-minion", root / "opt/salt-minion"],
        config_dirs=[root / "etc/salt"],
        log_dirs=[root / "var/log/salt"],
        cache_dirs=[root / "var/cache/salt/minion"],
        pki_dirs=[root / "etc/salt/pki/minion"],
        run_dirs=[root / "var/run/salt/minion"],
        removal_paths=[
            root / "etc/salt",
            root / "var/cache/salt",
            root / "var/log/salt",
            root / "opt/salt-minion",
        ],
        backup_sources=[
            (root / "etc/salt", "etc-salt"),
            (root / "var/log/salt", "var-log-salt"),
            (root / "var/cache/salt", "var-cache-salt"),
        ],
        uninstaller_paths=[root / "uninst.exe"],
        service_unit_dir=root / "etc/systemd/system",
        packaged_unit_dirs=[root / "lib/systemd/system"],
    )
