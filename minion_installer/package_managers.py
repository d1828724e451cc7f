# minion_installer/package_managers.py
# -*- coding: utf-8 -*-
"""
Install and uninstall mechanisms.

Each InstallMechanism handles one family of artifact extensions and is a
fallback chain of its own. PackageInstaller picks the mechanism by file
extension; an extension nobody handles is rejected immediately.
"""

import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from common.command_utils import (
    ProcessOutcome,
    run_command,
    run_elevated_command,
)
from minion_installer.config_models import AppSettings, InstallationRequest
from minion_installer.exceptions import InstallationError


class PackageTool(BaseModel):
    """A package manager binary and the arguments for one operation."""

    model_config = ConfigDict(frozen=True)

    binary: str
    args: Tuple[str, ...]

    def command(self, target: str) -> List[str]:
        return [self.binary, *self.args, target]


RPM_INSTALL_TOOLS: Tuple[PackageTool, ...] = (
    PackageTool(binary="dnf", args=("localinstall", "-y")),
    PackageTool(binary="yum", args=("localinstall", "-y")),
    PackageTool(binary="zypper", args=("install", "-y")),
    PackageTool(binary="rpm", args=("-i",)),
)

LINUX_REMOVE_TOOLS: Tuple[PackageTool, ...] = (
    PackageTool(binary="apt-get", args=("remove", "--purge", "-y")),
    PackageTool(binary="dnf", args=("remove", "-y")),
    PackageTool(binary="yum", args=("remove", "-y")),
    PackageTool(binary="zypper", args=("remove", "-y")),
)


class InstallMechanism(ABC):
    """Installs artifacts with one of ``extensions``."""

    name: str = ""
    extensions: Tuple[str, ...] = ()

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def handles(self, artifact_path: Path) -> bool:
        return str(artifact_path).lower().endswith(self.extensions)

    @abstractmethod
    def install(
        self, artifact_path: Path, request: InstallationRequest
    ) -> None:
        """
        Install the artifact.

        Raises:
            InstallationError: When every step of the chain has failed. The
                error carries the last observed error text.
        """
        pass

    def _run_elevated(self, command: List[str], **kwargs) -> ProcessOutcome:
        return run_elevated_command(
            command, self.app_settings, current_logger=self.logger, **kwargs
        )


class DebInstaller(InstallMechanism):
    """
    dpkg based install: refresh the index, install, and on failure repair
    dependencies with apt-get and retry the install exactly once.
    """

    name = "deb"
    extensions = (".deb",)

    def install(
        self, artifact_path: Path, request: InstallationRequest
    ) -> None:
        update_result = self._run_elevated(["apt-get", "update"])
        if not update_result.ok:
            self.logger.warning("Failed to update package list")

        install_result = self._run_elevated(["dpkg", "-i", str(artifact_path)])
        if install_result.ok:
            return

        self.logger.info("Fixing dependencies...")
        fix_result = self._run_elevated(["apt-get", "install", "-f", "-y"])
        if not fix_result.ok:
            self.logger.warning(
                f"Dependency repair failed: {fix_result.error_text}"
            )

        retry_result = self._run_elevated(["dpkg", "-i", str(artifact_path)])
        if retry_result.ok:
            return

        raise InstallationError(
            f"Failed to install Salt minion: {retry_result.error_text}",
            last_error=retry_result.error_text,
        )


class RpmInstaller(InstallMechanism):
    """Tries each rpm-capable package manager once, in order."""

    name = "rpm"
    extensions = (".rpm",)

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        tools: Sequence[PackageTool] = RPM_INSTALL_TOOLS,
    ):
        super().__init__(app_settings, logger)
        self.tools = list(tools)

    def install(
        self, artifact_path: Path, request: InstallationRequest
    ) -> None:
        last_error = ""
        for tool in self.tools:
            result = self._run_elevated(tool.command(str(artifact_path)))
            if result.ok:
                self.logger.info(f"Installed {artifact_path} with {tool.binary}")
                return
            last_error = result.error_text
            self.logger.warning(
                f"{tool.binary} could not install {artifact_path}: {last_error}"
            )

        raise InstallationError(
            f"Failed to install Salt minion with all package managers: {last_error}",
            last_error=last_error,
        )


class TarballInstaller(InstallMechanism):
    """Source install: extract, then setup.py install or pip install."""

    name = "tarball"
    extensions = (".tar.gz", ".tgz")

    def install(
        self, artifact_path: Path, request: InstallationRequest
    ) -> None:
        self.logger.info("Installing from tarball (this may take a while)")
        temp_dir = Path(tempfile.mkdtemp(prefix="salt-install-"))
        try:
            extract_result = run_command(
                ["tar", "-xzf", str(artifact_path), "-C", str(temp_dir)],
                self.app_settings,
                current_logger=self.logger,
            )
            if not extract_result.ok:
                raise InstallationError(
                    f"Failed to extract tarball: {extract_result.error_text}",
                    last_error=extract_result.error_text,
                )

            source_dirs = sorted(p for p in temp_dir.iterdir() if p.is_dir())
            source_dir = source_dirs[0] if source_dirs else temp_dir

            last_error = ""
            for command in (
                ["python3", "setup.py", "install"],
                ["python3", "-m", "pip", "install", "."],
            ):
                result = self._run_elevated(command, cwd=str(source_dir))
                if result.ok:
                    return
                last_error = result.error_text
                self.logger.warning(
                    f"Source install step failed: {last_error}"
                )
            raise InstallationError(
                f"Failed to install from source: {last_error}",
                last_error=last_error,
            )
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)


class WindowsExeInstaller(InstallMechanism):
    """Runs the NSIS installer silently with master and minion id."""

    name = "exe"
    extensions = (".exe",)

    def install(
        self, artifact_path: Path, request: InstallationRequest
    ) -> None:
        result = self._run_elevated(
            [
                str(artifact_path),
                "/S",
                f"/master={request.master_address}",
                f"/minion-name={request.minion_id}",
                "/start-service=1",
            ]
        )
        if not result.ok:
            raise InstallationError(
                f"Failed to install Salt minion: {result.error_text}",
                last_error=result.error_text,
            )


LINUX_INSTALL_MECHANISMS = (DebInstaller, RpmInstaller, TarballInstaller)
WINDOWS_INSTALL_MECHANISMS = (WindowsExeInstaller,)
