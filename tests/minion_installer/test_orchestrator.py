from pathlib import Path
from typing import List
from unittest.mock import MagicMock, call

import pytest
import requests
from pytest_mock import MockerFixture

from common.command_utils import ProcessOutcome
from common.download_utils import DownloadMechanism
from minion_installer.cli_handler import CliPrompter
from minion_installer.config_generator import ConfigGenerator
from minion_installer.config_models import (
    InstallationRequest,
    MinionConfig,
    Platform,
    PlatformFamily,
    ServiceState,
    WorkflowResult,
)
from minion_installer.exceptions import (
    ConfigurationError,
    InstallationError,
    UnsupportedPlatformError,
)
from minion_installer.network_probe import NetworkProbe
from minion_installer.orchestrator import InstallationOrchestrator, default_minion_id
from minion_installer.package_installer import PackageInstaller
from minion_installer.platform_probe import PlatformProbe
from minion_installer.release_catalog import ReleaseCatalog


@pytest.fixture
def collaborators(ubuntu_platform):
    platform_probe = MagicMock(spec=PlatformProbe)
    platform_probe.detect.return_value = ubuntu_platform
    network_probe = MagicMock(spec=NetworkProbe)
    network_probe.validate_reachability.return_value = True
    network_probe.get_network_configuration.return_value = None
    release_catalog = MagicMock(spec=ReleaseCatalog)
    release_catalog.list_available_versions.return_value = ["3006.4", "3006.3"]
    release_catalog.download.return_value = Path("/tmp/salt-minion_3006.4.deb")
    package_installer = MagicMock(spec=PackageInstaller)
    package_installer.is_installed.return_value = False
    package_installer.get_service_status.return_value = ServiceState.RUNNING
    return {
        "platform_probe": platform_probe,
        "network_probe": network_probe,
        "release_catalog": release_catalog,
        "package_installer": package_installer,
        "config_generator": MagicMock(spec=ConfigGenerator),
        "prompter": MagicMock(spec=CliPrompter),
    }


@pytest.fixture
def orchestrator(app_settings, mock_logger, collaborators):
    return InstallationOrchestrator(
        app_settings, mock_logger, sleep=lambda seconds: None, **collaborators
    )


class StaticDownloader(DownloadMechanism):
    """Writes a fixed payload instead of fetching the URL."""

    name = "static"

    def __init__(self, app_settings, urls: List[str]):
        super().__init__(app_settings)
        self.urls = urls

    def download(self, url, destination, on_progress=None):
        self.urls.append(url)
        Path(destination).write_bytes(b"deb payload")
        return True


def logged_info(mock_logger):
    return [c[0][0] for c in mock_logger.info.call_args_list]


def test_default_minion_id(mocker: MockerFixture):
    mocker.patch("minion_installer.orchestrator.time.time", return_value=1700000000.5)

    assert default_minion_id("host-01") == "host-01-1700000000"


@pytest.mark.parametrize("workflow", ["interactive", "silent"])
def test_unsupported_platform_fails_before_side_effects(
    orchestrator, collaborators, workflow
):
    collaborators["platform_probe"].detect.return_value = Platform(
        name="Darwin", normalized_name="darwin", family=PlatformFamily.UNSUPPORTED
    )

    with pytest.raises(UnsupportedPlatformError):
        if workflow == "interactive":
            orchestrator.run_interactive_install()
        else:
            orchestrator.run_silent_install(InstallationRequest())

    for name in (
        "network_probe",
        "release_catalog",
        "package_installer",
        "config_generator",
        "prompter",
    ):
        assert collaborators[name].method_calls == [], name


def test_silent_install_end_to_end_on_ubuntu(
    mocker: MockerFixture,
    app_settings,
    mock_logger,
    collaborators,
    tmp_layout,
):
    ok = ProcessOutcome(exit_code=0, stdout="active\n")
    for target in (
        "minion_installer.package_installer.run_elevated_command",
        "minion_installer.package_installer.run_command",
        "minion_installer.service_managers.run_elevated_command",
        "minion_installer.service_managers.run_command",
        "minion_installer.config_generator.run_elevated_command",
    ):
        mocker.patch(target, return_value=ok)
    package_commands = mocker.patch(
        "minion_installer.package_managers.run_elevated_command", return_value=ok
    )
    mocker.patch(
        "minion_installer.release_catalog.requests.get",
        side_effect=requests.exceptions.ConnectionError("offline"),
    )
    downloaded_urls: List[str] = []
    mocker.patch(
        "minion_installer.release_catalog.default_download_mechanisms",
        return_value=[StaticDownloader(app_settings, downloaded_urls)],
    )
    orchestrator = InstallationOrchestrator(
        app_settings,
        mock_logger,
        platform_probe=collaborators["platform_probe"],
        network_probe=collaborators["network_probe"],
        release_catalog=ReleaseCatalog(app_settings, mock_logger),
        package_installer=PackageInstaller(app_settings, mock_logger, layout=tmp_layout),
        config_generator=ConfigGenerator(app_settings, mock_logger, layout=tmp_layout),
        prompter=collaborators["prompter"],
        sleep=lambda seconds: None,
    )
    request = InstallationRequest(
        version="3006.4", master_address="10.0.0.5", minion_id="host-01"
    )

    result = orchestrator.run_silent_install(request)

    assert result is WorkflowResult.COMPLETED
    artifact = Path(app_settings.download_dir) / "salt-minion_3006.4.deb"
    assert downloaded_urls == [
        "https://repo.saltproject.io/py3/ubuntu/20.04/3006.4/salt-minion_3006.4.deb"
    ]
    assert artifact.read_bytes() == b"deb payload"
    assert [c[0][0] for c in package_commands.call_args_list] == [
        ["apt-get", "update"],
        ["dpkg", "-i", str(artifact)],
    ]
    minion_config = (tmp_layout.config_dirs[0] / "minion").read_text()
    assert "master: 10.0.0.5" in minion_config
    assert "id: host-01" in minion_config
    assert (tmp_layout.service_unit_dir / "salt-minion.service").exists()
    assert any(
        "Silent installation completed" in message
        for message in logged_info(mock_logger)
    )
    collaborators["prompter"].confirm.assert_not_called()


def test_silent_install_derives_minion_id_and_backs_up(
    mocker: MockerFixture, orchestrator, collaborators
):
    mocker.patch("minion_installer.orchestrator.time.time", return_value=1700000000)
    collaborators["package_installer"].is_installed.return_value = True

    orchestrator.run_silent_install(InstallationRequest(master_address="10.0.0.5"))

    collaborators["package_installer"].backup.assert_called_once()
    request = collaborators["config_generator"].generate_minion_config.call_args[0][0]
    assert request.minion_id == "host-01-1700000000"
    assert request.version == "latest"


def test_silent_install_continues_when_master_unreachable(
    orchestrator, collaborators, mock_logger
):
    collaborators["network_probe"].validate_reachability.return_value = False

    result = orchestrator.run_silent_install(
        InstallationRequest(master_address="10.0.0.5", minion_id="host-01")
    )

    assert result is WorkflowResult.COMPLETED
    collaborators["release_catalog"].download.assert_called_once()
    mock_logger.warning.assert_called()


def test_interactive_cancel_when_installed(orchestrator, collaborators, mock_logger):
    collaborators["package_installer"].is_installed.return_value = True
    collaborators["prompter"].confirm.return_value = False

    assert orchestrator.run_interactive_install() is WorkflowResult.CANCELLED

    assert "Installation cancelled." in logged_info(mock_logger)
    collaborators["package_installer"].backup.assert_not_called()
    collaborators["release_catalog"].download.assert_not_called()


def test_interactive_install_collects_request(
    mocker: MockerFixture, orchestrator, collaborators, mock_logger
):
    mocker.patch("minion_installer.orchestrator.time.time", return_value=1700000000)
    prompter = collaborators["prompter"]
    prompter.choose.return_value = "3006.3"
    prompter.ask.side_effect = ["not-an-ip", "10.0.0.5", "70000", "web-01"]
    collaborators["network_probe"].validate_reachability.return_value = False
    prompter.confirm.return_value = True

    result = orchestrator.run_interactive_install()

    assert result is WorkflowResult.COMPLETED
    request = collaborators["config_generator"].generate_minion_config.call_args[0][0]
    assert request == InstallationRequest(
        version="3006.3", master_address="10.0.0.5", master_port=4506, minion_id="web-01"
    )
    assert prompter.ask.call_args_list[-1] == call("Minion ID", "host-01-1700000000")
    collaborators["release_catalog"].download.assert_called_once_with(
        "3006.3", collaborators["platform_probe"].detect.return_value
    )
    assert "Salt minion installation completed successfully!" in " ".join(
        logged_info(mock_logger)
    )


def test_interactive_install_steps_run_in_order(orchestrator, collaborators):
    manager = MagicMock()
    manager.attach_mock(collaborators["package_installer"], "pkg")
    manager.attach_mock(collaborators["config_generator"], "cfg")
    collaborators["prompter"].choose.return_value = "3006.4"
    collaborators["prompter"].ask.side_effect = ["10.0.0.5", "4506", "host-01"]

    orchestrator.run_interactive_install()

    steps = [
        name
        for name, _, _ in manager.mock_calls
        if name
        in (
            "pkg.install",
            "pkg.create_service",
            "cfg.generate_minion_config",
            "cfg.setup_directory_structure",
            "pkg.start_service",
            "pkg.get_service_status",
        )
    ]
    assert steps == [
        "pkg.install",
        "pkg.create_service",
        "cfg.generate_minion_config",
        "cfg.setup_directory_structure",
        "pkg.start_service",
        "pkg.get_service_status",
    ]


def test_interactive_invalid_master_three_times_raises(orchestrator, collaborators):
    collaborators["prompter"].choose.return_value = "3006.4"
    collaborators["prompter"].ask.side_effect = ["a", "b", "c"]

    with pytest.raises(ConfigurationError):
        orchestrator.run_interactive_install()

    collaborators["release_catalog"].download.assert_not_called()


def test_interactive_unreachable_master_declined(orchestrator, collaborators):
    collaborators["prompter"].choose.return_value = "3006.4"
    collaborators["prompter"].ask.side_effect = ["10.0.0.5", "4506", "host-01"]
    collaborators["network_probe"].validate_reachability.return_value = False
    collaborators["prompter"].confirm.return_value = False

    with pytest.raises(InstallationError, match="10.0.0.5:4506"):
        orchestrator.run_interactive_install()

    collaborators["release_catalog"].download.assert_not_called()


def test_service_not_running_only_warns(orchestrator, collaborators, mock_logger):
    collaborators["package_installer"].get_service_status.return_value = ServiceState.STOPPED

    result = orchestrator.run_silent_install(
        InstallationRequest(master_address="10.0.0.5", minion_id="host-01")
    )

    assert result is WorkflowResult.COMPLETED
    mock_logger.warning.assert_any_call(
        "Service may not have started correctly. Status: stopped"
    )


def test_uninstall_order(orchestrator, collaborators, ubuntu_platform):
    pkg = collaborators["package_installer"]

    assert orchestrator.uninstall() is WorkflowResult.COMPLETED
    assert orchestrator.uninstall() is WorkflowResult.COMPLETED

    assert pkg.method_calls[:3] == [
        call.stop_service("salt-minion", ubuntu_platform),
        call.remove_service("salt-minion", ubuntu_platform),
        call.remove_installation(ubuntu_platform),
    ]
    assert pkg.remove_installation.call_count == 2


def test_check_installation_reports_state(orchestrator, collaborators, mock_logger):
    pkg = collaborators["package_installer"]
    pkg.is_installed.return_value = True
    pkg.get_installed_version.return_value = "3006.4"
    collaborators["config_generator"].get_current_config.return_value = MinionConfig(
        master="10.0.0.5", id="host-01"
    )

    assert orchestrator.check_installation() is True
    assert "Minion ID:      host-01" in mock_logger.info.call_args[0][0]


def test_check_installation_not_installed(orchestrator, collaborators):
    assert orchestrator.check_installation() is False
    collaborators["package_installer"].get_installed_version.assert_not_called()
