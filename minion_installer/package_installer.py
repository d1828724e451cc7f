# minion_installer/package_installer.py
# -*- coding: utf-8 -*-
"""
Installs, registers, controls and removes the Salt minion on the host.

Every operation takes the Platform detected at the start of the workflow
and picks its mechanisms from ``platform.family``. Mechanism lists and the
filesystem layout can be injected, which is how the tests run against
tmp_path and fake tools.
"""

import logging
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Sequence

from common.command_utils import run_command, run_elevated_command
from common.file_utils import (
    copy_path,
    create_directory,
    delete_path,
    first_existing_path,
    path_exists,
    write_text_file,
)
from minion_installer.config_models import (
    AppSettings,
    InstallationRequest,
    Platform,
    ServiceState,
)
from minion_installer.exceptions import (
    ServiceError,
    UnsupportedPackageFormatError,
)
from minion_installer.layout import InstallLayout, layout_for
from minion_installer.package_managers import (
    LINUX_INSTALL_MECHANISMS,
    LINUX_REMOVE_TOOLS,
    WINDOWS_INSTALL_MECHANISMS,
    InstallMechanism,
)
from minion_installer.service_managers import (
    SYSTEMD_UNIT_TEMPLATE,
    ServiceMechanism,
    default_service_mechanisms,
)

module_logger = logging.getLogger(__name__)

WINDOWS_WMI_UNINSTALL = (
    "Get-WmiObject -Class Win32_Product | "
    'Where-Object { $_.Name -like "*Salt*" } | '
    "ForEach-Object { $_.Uninstall() }"
)


class PackageInstaller:
    """Native package and service operations for the Salt minion."""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        layout: Optional[InstallLayout] = None,
        install_mechanisms: Optional[Sequence[InstallMechanism]] = None,
        service_mechanisms: Optional[Sequence[ServiceMechanism]] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger
        self._layout = layout
        self._install_mechanisms = install_mechanisms
        self._service_mechanisms = service_mechanisms

    def layout(self, platform: Platform) -> InstallLayout:
        if self._layout is not None:
            return self._layout
        return layout_for(platform.family, self.app_settings.agent_binary)

    def install_mechanisms(self, platform: Platform) -> List[InstallMechanism]:
        if self._install_mechanisms is not None:
            return list(self._install_mechanisms)
        classes = (
            WINDOWS_INSTALL_MECHANISMS
            if platform.family.is_windows
            else LINUX_INSTALL_MECHANISMS
        )
        return [cls(self.app_settings, self.logger) for cls in classes]

    def service_mechanisms(self, platform: Platform) -> List[ServiceMechanism]:
        if self._service_mechanisms is not None:
            return list(self._service_mechanisms)
        return default_service_mechanisms(
            platform.family, self.app_settings, self.logger
        )

    def _run_elevated(self, command: List[str]):
        return run_elevated_command(
            command, self.app_settings, current_logger=self.logger
        )

    # --- Detection ---

    def is_installed(self, platform: Platform) -> bool:
        """
        True when the service is registered with the host or the agent
        binary exists at one of the known install paths.
        """
        service_name = self.app_settings.service_name
        for mechanism in self.service_mechanisms(platform):
            if mechanism.is_registered(service_name):
                self.logger.debug(
                    f"Service {service_name} is registered ({mechanism.name})"
                )
                return True
        return any(
            path_exists(path) for path in self.layout(platform).binary_paths
        )

    def get_installed_version(self, platform: Platform) -> Optional[str]:
        """Version reported by the first installed binary that answers."""
        for binary in self.layout(platform).binary_paths:
            if not path_exists(binary):
                continue
            outcome = run_command(
                [str(binary), "--version"],
                self.app_settings,
                current_logger=self.logger,
            )
            if not outcome.ok:
                self.logger.debug(f"{binary} --version failed: {outcome.error_text}")
                continue
            # Output looks like "salt-minion 3006.4 (Sulfur)".
            parts = outcome.stdout.strip().split()
            if len(parts) >= 2:
                return parts[1]
        return None

    # --- Installation ---

    def install(
        self,
        artifact_path: Path,
        request: InstallationRequest,
        platform: Platform,
    ) -> None:
        """
        Install the downloaded artifact with the mechanism for its extension.

        Raises:
            UnsupportedPackageFormatError: No mechanism handles the extension.
            InstallationError: The mechanism's fallback chain was exhausted.
        """
        symbols = self.app_settings.symbols
        artifact_path = Path(artifact_path)
        self.logger.info(
            f"{symbols.get('step', '➡️')} Installing Salt minion from {artifact_path}"
        )
        for mechanism in self.install_mechanisms(platform):
            if mechanism.handles(artifact_path):
                mechanism.install(artifact_path, request)
                self.logger.info(
                    f"{symbols.get('success', '✅')} Salt minion installed ({mechanism.name})"
                )
                return
        raise UnsupportedPackageFormatError(
            f"Unsupported package format for {platform.name}: {artifact_path.name}"
        )

    # --- Service registration ---

    def create_service(
        self, request: InstallationRequest, platform: Platform
    ) -> None:
        """Register the service with the host. Each failed step only warns."""
        if platform.family.is_windows:
            self._create_windows_service(platform)
        else:
            self._create_systemd_service(platform)

    def _create_systemd_service(self, platform: Platform) -> None:
        service_name = self.app_settings.service_name
        layout = self.layout(platform)
        unit_name = f"{service_name}.service"
        unit_path = layout.service_unit_dir / unit_name

        packaged_unit = first_existing_path(
            [unit_path] + [d / unit_name for d in layout.packaged_unit_dirs]
        )
        if packaged_unit is not None:
            self.logger.info(f"Using existing service unit {packaged_unit}")
        else:
            self.logger.info("Creating systemd service")
            binary = first_existing_path(
                layout.binary_paths, default=layout.binary_paths[0]
            )
            if not write_text_file(
                unit_path,
                SYSTEMD_UNIT_TEMPLATE.format(exec_start=binary),
                self.app_settings,
                self.logger,
            ):
                self.logger.warning(f"Failed to create service file {unit_path}")

        if not self._run_elevated(["systemctl", "daemon-reload"]).ok:
            self.logger.warning("Failed to reload systemd daemon")
        if not self._run_elevated(["systemctl", "enable", service_name]).ok:
            self.logger.warning(f"Failed to enable {service_name} service")

    def _create_windows_service(self, platform: Platform) -> None:
        service_name = self.app_settings.service_name
        if run_command(
            ["sc", "query", service_name],
            self.app_settings,
            current_logger=self.logger,
        ).ok:
            self.logger.info("Service was created by the installer")
            return

        self.logger.warning("Service not found, attempting manual creation")
        layout = self.layout(platform)
        binary = first_existing_path(
            layout.binary_paths, default=layout.binary_paths[0]
        )
        outcome = self._run_elevated(
            [
                "sc",
                "create",
                service_name,
                "binPath=",
                str(binary),
                "start=",
                "auto",
                "DisplayName=",
                "Salt Minion",
            ]
        )
        if not outcome.ok:
            self.logger.warning(f"Failed to create service: {outcome.error_text}")

    def remove_service(self, service_name: str, platform: Platform) -> None:
        """Disable, stop and unregister the service. Best effort."""
        for mechanism in self.service_mechanisms(platform):
            mechanism.unregister(service_name)
        if not platform.family.is_windows:
            layout = self.layout(platform)
            delete_path(
                layout.service_unit_dir / f"{service_name}.service",
                self.app_settings,
                self.logger,
            )
            self._run_elevated(["systemctl", "daemon-reload"])

    # --- Service control ---

    def start_service(self, service_name: str, platform: Platform) -> None:
        """
        Start the service with the primary tool, falling back to the legacy one.

        Raises:
            ServiceError: If every mechanism failed.
        """
        first_error = ""
        for mechanism in self.service_mechanisms(platform):
            outcome = mechanism.start(service_name)
            if outcome.ok:
                self.logger.info(f"Started {service_name} ({mechanism.name})")
                return
            first_error = first_error or outcome.error_text
            self.logger.warning(
                f"{mechanism.name} could not start {service_name}: {outcome.error_text}"
            )
        raise ServiceError(f"Failed to start service {service_name}: {first_error}")

    def stop_service(self, service_name: str, platform: Platform) -> None:
        """Stop the service. Never raises; a failure is only logged."""
        for mechanism in self.service_mechanisms(platform):
            if mechanism.stop(service_name).ok:
                return
        self.logger.warning(f"Could not stop service {service_name}")

    def get_service_status(
        self, service_name: str, platform: Platform
    ) -> ServiceState:
        for mechanism in self.service_mechanisms(platform):
            state = mechanism.query_status(service_name)
            if state is not None:
                return state
        if platform.family.is_windows:
            return ServiceState.NOT_FOUND
        return ServiceState.UNKNOWN

    # --- Removal ---

    def remove_installation(self, platform: Platform) -> None:
        """
        Uninstall the package, then delete every known installation path.

        The cleanup runs whatever the uninstall chain reports, so calling
        this on a host without an installation succeeds as well.
        """
        symbols = self.app_settings.symbols
        self.logger.info(f"{symbols.get('step', '➡️')} Removing Salt minion installation")
        if platform.family.is_windows:
            removed = self._uninstall_windows(platform)
        else:
            removed = self._uninstall_linux()
        if not removed:
            self.logger.warning("Package removal failed, performing manual cleanup")

        for path in self.layout(platform).removal_paths:
            delete_path(path, self.app_settings, self.logger)

    def _uninstall_linux(self) -> bool:
        package = self.app_settings.package_name
        for tool in LINUX_REMOVE_TOOLS:
            outcome = self._run_elevated(tool.command(package))
            if outcome.ok:
                self.logger.info(f"Removed {package} with {tool.binary}")
                return True
        return False

    def _uninstall_windows(self, platform: Platform) -> bool:
        for uninstaller in self.layout(platform).uninstaller_paths:
            if path_exists(uninstaller):
                if self._run_elevated([str(uninstaller), "/S"]).ok:
                    return True
        self.logger.warning("Uninstaller not found, trying WMI removal")
        return self._run_elevated(
            ["powershell", "-NoProfile", "-Command", WINDOWS_WMI_UNINSTALL]
        ).ok

    def backup(self, platform: Platform) -> Path:
        """
        Copy existing configuration, log and cache directories into a new
        timestamped backup directory. Missing sources are skipped.

        A second backup within the same second gets a numeric suffix
        instead of merging into the earlier directory.
        """
        backup_root = Path(self.app_settings.backup_root or tempfile.gettempdir())
        base_name = f"salt-backup-{int(time.time())}"
        backup_dir = backup_root / base_name
        suffix = 1
        while path_exists(backup_dir):
            backup_dir = backup_root / f"{base_name}-{suffix}"
            suffix += 1
        self.logger.info("Creating backup of existing installation")
        create_directory(backup_dir, self.app_settings, self.logger)

        for source, name in self.layout(platform).backup_sources:
            if not path_exists(source):
                self.logger.debug(f"Skipping backup of missing {source}")
                continue
            copy_path(source, backup_dir / name, self.app_settings, self.logger)

        self.logger.info(f"Backup created at: {backup_dir}")
        return backup_dir
