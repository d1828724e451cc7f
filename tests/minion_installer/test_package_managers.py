import sys
from pathlib import Path
from typing import Dict, List

import pytest
from pytest_mock import MockerFixture

from common.command_utils import ProcessOutcome
from minion_installer.config_models import InstallationRequest
from minion_installer.exceptions import InstallationError
from minion_installer.package_managers import (
    DebInstaller,
    PackageTool,
    RpmInstaller,
    TarballInstaller,
    WindowsExeInstaller,
)

REQUEST = InstallationRequest(
    version="3006.4", master_address="10.0.0.5", minion_id="host-01"
)


class CommandRecorder:
    """Stands in for run_elevated_command; answers by the first word(s) of a command."""

    def __init__(self, results: Dict[str, List[ProcessOutcome]]):
        self.results = results
        self.commands: List[List[str]] = []

    def __call__(self, command, app_settings, **kwargs):
        self.commands.append(list(command))
        for prefix, outcomes in self.results.items():
            if " ".join(command).startswith(prefix):
                return outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        return ProcessOutcome(exit_code=0)


@pytest.mark.parametrize(
    "mechanism_cls, filename, expected",
    [
        (DebInstaller, "salt-minion_3006.4.deb", True),
        (DebInstaller, "SALT.DEB", True),
        (RpmInstaller, "salt-minion-3006.4.noarch.rpm", True),
        (TarballInstaller, "salt-3006.4.tar.gz", True),
        (TarballInstaller, "salt-3006.4.tgz", True),
        (WindowsExeInstaller, "Salt-Minion-Setup.exe", True),
        (DebInstaller, "salt.msi", False),
    ],
)
def test_handles_by_extension(app_settings, mechanism_cls, filename, expected):
    assert mechanism_cls(app_settings).handles(Path(filename)) is expected


def test_rpm_tries_each_tool_once_in_order_and_keeps_last_error(
    mocker: MockerFixture, app_settings, mock_logger
):
    recorder = CommandRecorder(
        {
            "dnf": [ProcessOutcome(exit_code=127, stderr="dnf: not found")],
            "yum": [ProcessOutcome(exit_code=1, stderr="yum failed")],
            "zypper": [ProcessOutcome(exit_code=127, stderr="zypper: not found")],
            "rpm": [ProcessOutcome(exit_code=1, stderr="rpm: dependency problem")],
        }
    )
    mocker.patch(
        "minion_installer.package_managers.run_elevated_command", side_effect=recorder
    )

    with pytest.raises(InstallationError) as excinfo:
        RpmInstaller(app_settings, mock_logger).install(Path("/tmp/s.rpm"), REQUEST)

    assert [c[0] for c in recorder.commands] == ["dnf", "yum", "zypper", "rpm"]
    assert excinfo.value.last_error == "rpm: dependency problem"
    assert "rpm: dependency problem" in str(excinfo.value)


def test_rpm_stops_at_first_success(mocker: MockerFixture, app_settings, mock_logger):
    recorder = CommandRecorder(
        {"dnf": [ProcessOutcome(exit_code=127, stderr="missing")]}
    )
    mocker.patch(
        "minion_installer.package_managers.run_elevated_command", side_effect=recorder
    )

    RpmInstaller(app_settings, mock_logger).install(Path("/tmp/s.rpm"), REQUEST)

    assert recorder.commands == [
        ["dnf", "localinstall", "-y", "/tmp/s.rpm"],
        ["yum", "localinstall", "-y", "/tmp/s.rpm"],
    ]


def test_deb_success_without_repair(mocker: MockerFixture, app_settings, mock_logger):
    recorder = CommandRecorder({})
    mocker.patch(
        "minion_installer.package_managers.run_elevated_command", side_effect=recorder
    )

    DebInstaller(app_settings, mock_logger).install(Path("/tmp/s.deb"), REQUEST)

    assert recorder.commands == [
        ["apt-get", "update"],
        ["dpkg", "-i", "/tmp/s.deb"],
    ]


def test_deb_repairs_dependencies_and_retries_once(
    mocker: MockerFixture, app_settings, mock_logger
):
    recorder = CommandRecorder(
        {
            "dpkg": [
                ProcessOutcome(exit_code=1, stderr="dependency problems"),
                ProcessOutcome(exit_code=0),
            ]
        }
    )
    mocker.patch(
        "minion_installer.package_managers.run_elevated_command", side_effect=recorder
    )

    DebInstaller(app_settings, mock_logger).install(Path("/tmp/s.deb"), REQUEST)

    assert recorder.commands == [
        ["apt-get", "update"],
        ["dpkg", "-i", "/tmp/s.deb"],
        ["apt-get", "install", "-f", "-y"],
        ["dpkg", "-i", "/tmp/s.deb"],
    ]


def test_deb_retry_failure_raises(mocker: MockerFixture, app_settings, mock_logger):
    recorder = CommandRecorder(
        {
            "apt-get update": [ProcessOutcome(exit_code=100, stderr="no network")],
            "dpkg": [ProcessOutcome(exit_code=1, stderr="still broken")],
        }
    )
    mocker.patch(
        "minion_installer.package_managers.run_elevated_command", side_effect=recorder
    )

    with pytest.raises(InstallationError) as excinfo:
        DebInstaller(app_settings, mock_logger).install(Path("/tmp/s.deb"), REQUEST)

    assert excinfo.value.last_error == "still broken"
    assert [c[0] for c in recorder.commands].count("dpkg") == 2
    mock_logger.warning.assert_any_call("Failed to update package list")


def test_tarball_falls_back_to_pip_and_cleans_up(
    mocker: MockerFixture, app_settings, mock_logger, tmp_path
):
    work_dir = tmp_path / "work"
    (work_dir / "salt-3006.4").mkdir(parents=True)
    mocker.patch(
        "minion_installer.package_managers.tempfile.mkdtemp",
        return_value=str(work_dir),
    )
    mocker.patch(
        "minion_installer.package_managers.run_command",
        return_value=ProcessOutcome(exit_code=0),
    )
    recorder = CommandRecorder(
        {"python3 setup.py": [ProcessOutcome(exit_code=1, stderr="no setup.py")]}
    )
    mock_elevated = mocker.patch(
        "minion_installer.package_managers.run_elevated_command", side_effect=recorder
    )

    TarballInstaller(app_settings, mock_logger).install(
        Path("/tmp/salt-3006.4.tar.gz"), REQUEST
    )

    assert recorder.commands[-1] == ["python3", "-m", "pip", "install", "."]
    assert mock_elevated.call_args.kwargs["cwd"] == str(work_dir / "salt-3006.4")
    assert not work_dir.exists()


def test_tarball_extract_failure_raises(
    mocker: MockerFixture, app_settings, mock_logger, tmp_path
):
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    mocker.patch(
        "minion_installer.package_managers.tempfile.mkdtemp",
        return_value=str(work_dir),
    )
    mocker.patch(
        "minion_installer.package_managers.run_command",
        return_value=ProcessOutcome(exit_code=2, stderr="not in gzip format"),
    )

    with pytest.raises(InstallationError, match="extract"):
        TarballInstaller(app_settings, mock_logger).install(
            Path("/tmp/bad.tar.gz"), REQUEST
        )
    assert not work_dir.exists()


def test_windows_exe_passes_master_and_minion_id(
    mocker: MockerFixture, app_settings, mock_logger
):
    mock_elevated = mocker.patch(
        "minion_installer.package_managers.run_elevated_command",
        return_value=ProcessOutcome(exit_code=0),
    )

    WindowsExeInstaller(app_settings, mock_logger).install(
        Path("C:/dl/Salt-Minion-Setup.exe"), REQUEST
    )

    command = mock_elevated.call_args[0][0]
    assert command[1:] == [
        "/S",
        "/master=10.0.0.5",
        "/minion-name=host-01",
        "/start-service=1",
    ]


def test_windows_exe_failure_raises(mocker: MockerFixture, app_settings):
    mocker.patch(
        "minion_installer.package_managers.run_elevated_command",
        return_value=ProcessOutcome(exit_code=1603, stderr="fatal error"),
    )

    with pytest.raises(InstallationError) as excinfo:
        WindowsExeInstaller(app_settings).install(Path("setup.exe"), REQUEST)

    assert excinfo.value.last_error == "fatal error"


def test_rpm_chain_continues_past_undecodable_tool_output(
    mocker: MockerFixture, app_settings, mock_logger
):
    mocker.patch(
        "common.command_utils._get_elevated_command_prefix", return_value=[]
    )
    garbled = PackageTool(
        binary=sys.executable,
        args=("-c", "import sys; sys.stderr.buffer.write(b'\\xff\\xfe'); sys.exit(1)"),
    )
    working = PackageTool(binary=sys.executable, args=("-c", "pass"))

    RpmInstaller(app_settings, mock_logger, tools=[garbled, working]).install(
        Path("/tmp/s.rpm"), REQUEST
    )

    mock_logger.info.assert_any_call(f"Installed /tmp/s.rpm with {sys.executable}")
    mock_logger.warning.assert_called_once()
