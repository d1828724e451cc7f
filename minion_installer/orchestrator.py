# minion_installer/orchestrator.py
# -*- coding: utf-8 -*-
"""
Installation workflows: interactive install, silent install, uninstall and
status check.

Each workflow probes the platform once at its start and passes the result
to every later step. The unsupported-platform check runs before anything
touches the filesystem or the network.
"""

import logging
import time
from typing import Callable, List, Optional

from minion_installer.cli_handler import (
    CliPrompter,
    display_installation_status,
    display_network_configuration,
)
from minion_installer.config_generator import ConfigGenerator
from minion_installer.config_models import (
    AppSettings,
    InstallationRequest,
    Platform,
    ServiceState,
    WorkflowResult,
)
from minion_installer.exceptions import (
    ConfigurationError,
    InstallationError,
    UnsupportedPlatformError,
)
from minion_installer.network_probe import (
    NetworkProbe,
    validate_ip_address,
    validate_port,
)
from minion_installer.package_installer import PackageInstaller
from minion_installer.platform_probe import PlatformProbe
from minion_installer.release_catalog import ReleaseCatalog

module_logger = logging.getLogger(__name__)

MAX_PROMPT_ATTEMPTS = 3


def default_minion_id(hostname: str) -> str:
    """``<hostname>-<epoch seconds>``."""
    return f"{hostname}-{int(time.time())}"


class InstallationOrchestrator:
    """Runs the installer workflows against injectable collaborators."""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        platform_probe: Optional[PlatformProbe] = None,
        network_probe: Optional[NetworkProbe] = None,
        release_catalog: Optional[ReleaseCatalog] = None,
        package_installer: Optional[PackageInstaller] = None,
        config_generator: Optional[ConfigGenerator] = None,
        prompter: Optional[CliPrompter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger
        self.platform_probe = platform_probe or PlatformProbe(
            app_settings, self.logger
        )
        self._network_probe = network_probe
        self.release_catalog = release_catalog or ReleaseCatalog(
            app_settings, self.logger
        )
        self.package_installer = package_installer or PackageInstaller(
            app_settings, self.logger
        )
        self.config_generator = config_generator or ConfigGenerator(
            app_settings, self.logger
        )
        self.prompter = prompter or CliPrompter(app_settings, self.logger)
        self.sleep = sleep

    @property
    def service_name(self) -> str:
        return self.app_settings.service_name

    def network_probe(self, platform: Platform) -> NetworkProbe:
        if self._network_probe is None:
            self._network_probe = NetworkProbe(
                self.app_settings,
                self.logger,
                is_windows=platform.family.is_windows,
            )
        return self._network_probe

    # --- Workflows ---

    def run_interactive_install(self) -> WorkflowResult:
        """
        Prompt for the installation parameters and install.

        Returns:
            WorkflowResult.CANCELLED if the user declined to overwrite an
            existing installation, else WorkflowResult.COMPLETED.

        Raises:
            UnsupportedPlatformError: Before any side effect.
            InstallationError: If the master is unreachable and the user
                chose not to continue, or if installation failed.
        """
        symbols = self.app_settings.symbols
        self.logger.info("Starting interactive installation")
        platform = self._detect_supported_platform()

        if self.package_installer.is_installed(platform):
            if not self.prompter.confirm(
                "Salt minion is already installed. Overwrite?"
            ):
                self.logger.info("Installation cancelled.")
                return WorkflowResult.CANCELLED
            self.package_installer.backup(platform)

        request = self._collect_request(platform)

        if not self.network_probe(platform).validate_reachability(
            request.master_address, request.master_port
        ):
            if not self.prompter.confirm(
                "Cannot validate master connection. Continue anyway?"
            ):
                raise InstallationError(
                    f"Cannot connect to Salt Master at {request.master_address}:{request.master_port}"
                )

        state = self._install_configure_start(request, platform)

        self.logger.info(
            f"{symbols.get('sparkles', '✨')} Salt minion installation completed successfully!"
        )
        self.logger.info(f"Minion ID: {request.minion_id}")
        self.logger.info(
            f"Master: {request.master_address}:{request.master_port}"
        )
        self.logger.info(f"Service status: {state}")
        return WorkflowResult.COMPLETED

    def run_silent_install(self, request: InstallationRequest) -> WorkflowResult:
        """
        Install without prompting. An existing installation is backed up and
        overwritten; an unreachable master only produces a warning.
        """
        symbols = self.app_settings.symbols
        self.logger.info("Starting silent installation")
        platform = self._detect_supported_platform()

        if not request.minion_id:
            request = request.model_copy(
                update={"minion_id": default_minion_id(platform.hostname)}
            )

        if self.package_installer.is_installed(platform):
            self.package_installer.backup(platform)

        if not self.network_probe(platform).validate_reachability(
            request.master_address, request.master_port
        ):
            self.logger.warning(
                f"{symbols.get('warning', '!')} Cannot validate connection to {request.master_address}:{request.master_port}, continuing"
            )

        self._install_configure_start(request, platform)
        self.logger.info(
            f"{symbols.get('success', '✅')} Silent installation completed (minion {request.minion_id}, master {request.master_address}:{request.master_port})"
        )
        return WorkflowResult.COMPLETED

    def uninstall(self) -> WorkflowResult:
        """Stop and remove the service and the installation. Safe to repeat."""
        symbols = self.app_settings.symbols
        self.logger.info("Starting uninstallation")
        platform = self.platform_probe.detect()

        self.package_installer.stop_service(self.service_name, platform)
        self.package_installer.remove_service(self.service_name, platform)
        self.package_installer.remove_installation(platform)

        self.logger.info(
            f"{symbols.get('success', '✅')} Salt minion uninstalled successfully"
        )
        return WorkflowResult.COMPLETED

    def check_installation(self) -> bool:
        """Report installation state, version, service status and config."""
        platform = self.platform_probe.detect()
        installed = self.package_installer.is_installed(platform)
        version = None
        state = None
        minion_config = None
        if installed:
            version = self.package_installer.get_installed_version(platform)
            state = self.package_installer.get_service_status(
                self.service_name, platform
            )
            minion_config = self.config_generator.get_current_config(platform)
        display_installation_status(
            installed,
            version,
            state,
            minion_config,
            self.app_settings,
            self.logger,
        )
        return installed

    # --- Steps ---

    def _detect_supported_platform(self) -> Platform:
        platform = self.platform_probe.detect()
        self.logger.info(
            f"Detected platform: {platform.name} {platform.version} ({platform.architecture})"
        )
        if platform.normalized_name not in self.app_settings.supported_platforms:
            raise UnsupportedPlatformError(
                f"Platform {platform.name} is not supported"
            )
        if not platform.is_elevated:
            self.logger.warning(
                "Not running as root/Administrator; privileged steps may fail"
            )
        return platform

    def _collect_request(self, platform: Platform) -> InstallationRequest:
        display_network_configuration(
            self.network_probe(platform).get_network_configuration(),
            self.app_settings,
            self.logger,
        )

        versions: List[str] = self.release_catalog.list_available_versions()
        print("Configuration:")
        print(f"  Available versions: {', '.join(versions)}")
        version = self.prompter.choose("Select version", versions)

        master_address = self._ask_master_address()
        port_answer = self.prompter.ask(
            "Salt Master port", str(self.app_settings.default_master_port)
        )
        master_port = int(port_answer) if port_answer.isdigit() else 0
        if not validate_port(master_port):
            self.logger.warning(
                f"Invalid port '{port_answer}', using {self.app_settings.default_master_port}"
            )
            master_port = self.app_settings.default_master_port

        minion_id = self.prompter.ask(
            "Minion ID", default_minion_id(platform.hostname)
        )
        return InstallationRequest(
            version=version,
            master_address=master_address,
            master_port=master_port,
            minion_id=minion_id,
        )

    def _ask_master_address(self) -> str:
        for _ in range(MAX_PROMPT_ATTEMPTS):
            address = self.prompter.ask(
                "Salt Master IP address",
                self.app_settings.default_master_address,
            )
            if validate_ip_address(address):
                return address
            self.logger.warning(f"'{address}' is not a valid IPv4 address")
        raise ConfigurationError("No valid Salt Master IP address given")

    def _install_configure_start(
        self, request: InstallationRequest, platform: Platform
    ) -> ServiceState:
        symbols = self.app_settings.symbols

        artifact_path = self.release_catalog.download(request.version, platform)
        self.package_installer.install(artifact_path, request, platform)
        self.package_installer.create_service(request, platform)

        self.logger.info(f"{symbols.get('gear', '⚙️')} Configuring Salt minion...")
        self.config_generator.generate_minion_config(request, platform)
        self.config_generator.setup_directory_structure(platform)

        self.logger.info(
            f"{symbols.get('rocket', '🚀')} Starting Salt minion service..."
        )
        self.package_installer.start_service(self.service_name, platform)
        self.sleep(self.app_settings.service_settle_seconds)

        state = self.package_installer.get_service_status(
            self.service_name, platform
        )
        if state is ServiceState.RUNNING:
            self.logger.info(
                f"{symbols.get('success', '✅')} Service started successfully"
            )
        else:
            self.logger.warning(
                f"Service may not have started correctly. Status: {state}"
            )
        return state
