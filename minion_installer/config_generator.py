# minion_installer/config_generator.py
# -*- coding: utf-8 -*-
"""
Writes the Salt minion configuration and prepares its directory tree.

Files produced under the configuration directory:
    minion                   main ``key: value`` config (master, id, ...)
    minion.d/installer.conf  paths chosen by the installer
    logging.conf             logging setup for the agent
    scripts/                 maintenance scripts (see script_generator)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from common.command_utils import run_elevated_command
from common.file_utils import create_directory, read_text_file, write_text_file
from minion_installer.config_models import (
    MASTER_ADDRESS_DEFAULT,
    MASTER_PORT_DEFAULT,
    MINION_LOG_LEVEL_DEFAULT,
    AppSettings,
    InstallationRequest,
    MinionConfig,
    Platform,
)
from minion_installer.exceptions import ConfigurationError
from minion_installer.layout import InstallLayout, layout_for
from minion_installer.script_generator import ScriptGenerator

module_logger = logging.getLogger(__name__)

MINION_CONFIG_TEMPLATE = """# Salt minion configuration
# Managed by the Salt minion installer, generated {generated_at}

master: {master}
id: {minion_id}
master_port: {master_port}
log_level: {log_level}
file_client: remote
"""

INSTALLER_FRAGMENT_TEMPLATE = """# Paths selected by the Salt minion installer
log_file: {log_file}
pki_dir: {pki_dir}
cachedir: {cache_dir}
"""

LOGGING_CONFIG_TEMPLATE = """# Salt Minion Logging Configuration

[loggers]
keys=root,salt

[handlers]
keys=console,file

[formatters]
keys=generic

[logger_root]
level={level}
handlers=console,file

[logger_salt]
level={level}
handlers=console,file
qualname=salt

[handler_console]
class=StreamHandler
args=(sys.stderr,)
level={level}
formatter=generic

[handler_file]
class=handlers.RotatingFileHandler
args=('{log_file}', 'a', 10485760, 5)
level={level}
formatter=generic

[formatter_generic]
format=%(asctime)s [%(name)-15s][%(levelname)-8s] %(message)s
datefmt=%Y-%m-%d %H:%M:%S
"""

PKI_SUBDIRECTORIES = ("accepted_keys", "pending_keys", "rejected_keys")


def render_minion_config(
    request: InstallationRequest, log_level: str = MINION_LOG_LEVEL_DEFAULT
) -> str:
    return MINION_CONFIG_TEMPLATE.format(
        generated_at=datetime.now().isoformat(timespec="seconds"),
        master=request.master_address,
        minion_id=request.minion_id,
        master_port=request.master_port,
        log_level=log_level,
    )


def parse_minion_config(content: str) -> MinionConfig:
    """
    Read master, id, master_port and log_level from ``key: value`` lines.

    Comments, blank lines and unknown keys are ignored. Missing keys and an
    unparsable port fall back to the defaults.
    """
    values = {
        "master": MASTER_ADDRESS_DEFAULT,
        "id": "unknown",
        "master_port": MASTER_PORT_DEFAULT,
        "log_level": MINION_LOG_LEVEL_DEFAULT,
    }
    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#") or ":" not in trimmed:
            continue
        key, value = (part.strip() for part in trimmed.split(":", 1))
        if key == "master_port":
            try:
                values[key] = int(value)
            except ValueError:
                values[key] = MASTER_PORT_DEFAULT
        elif key in values:
            values[key] = value
    return MinionConfig(**values)


class ConfigGenerator:
    """Generates agent configuration files for a detected platform."""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        layout: Optional[InstallLayout] = None,
        script_generator: Optional[ScriptGenerator] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger
        self._layout = layout
        self.script_generator = script_generator or ScriptGenerator(
            app_settings, self.logger
        )

    def layout(self, platform: Platform) -> InstallLayout:
        if self._layout is not None:
            return self._layout
        return layout_for(platform.family, self.app_settings.agent_binary)

    def generate_minion_config(
        self, request: InstallationRequest, platform: Platform
    ) -> Path:
        """
        Write the main config file and its companions.

        Returns:
            Path of the main ``minion`` config file.

        Raises:
            ConfigurationError: If the main config file could not be written.
        """
        symbols = self.app_settings.symbols
        self.logger.info(
            f"{symbols.get('gear', '⚙️')} Generating minion configuration"
        )
        layout = self.layout(platform)
        config_dir = layout.config_dir()
        config_file = config_dir / "minion"

        create_directory(config_dir, self.app_settings, self.logger)
        create_directory(config_dir / "minion.d", self.app_settings, self.logger)

        if not write_text_file(
            config_file,
            render_minion_config(request, self.app_settings.minion_log_level),
            self.app_settings,
            self.logger,
        ):
            raise ConfigurationError(
                f"Failed to write minion configuration file {config_file}"
            )

        self._write_installer_fragment(layout)
        self._write_logging_config(layout)
        self._create_pki_directories(layout)
        self.script_generator.generate_scripts(
            config_dir / "scripts", platform, layout
        )

        self.logger.info(
            f"{symbols.get('success', '✅')} Configuration files generated successfully"
        )
        return config_file

    def _write_installer_fragment(self, layout: InstallLayout) -> None:
        content = INSTALLER_FRAGMENT_TEMPLATE.format(
            log_file=layout.log_dir() / "minion",
            pki_dir=layout.pki_dir(),
            cache_dir=layout.cache_dir().parent,
        )
        fragment = layout.config_dir() / "minion.d" / "installer.conf"
        if not write_text_file(fragment, content, self.app_settings, self.logger):
            self.logger.warning(f"Failed to write {fragment}")

    def _write_logging_config(self, layout: InstallLayout) -> None:
        log_dir = layout.log_dir()
        create_directory(log_dir, self.app_settings, self.logger)
        content = LOGGING_CONFIG_TEMPLATE.format(
            level=self.app_settings.minion_log_level.upper(),
            log_file=(log_dir / "minion.log").as_posix(),
        )
        logging_conf = layout.config_dir() / "logging.conf"
        if not write_text_file(
            logging_conf, content, self.app_settings, self.logger
        ):
            self.logger.warning(f"Failed to write {logging_conf}")

    def _create_pki_directories(self, layout: InstallLayout) -> None:
        pki_dir = layout.pki_dir()
        for subdirectory in PKI_SUBDIRECTORIES:
            create_directory(pki_dir / subdirectory, self.app_settings, self.logger)

    def setup_directory_structure(self, platform: Platform) -> None:
        """Create the agent's directories and tighten their permissions."""
        self.logger.info("Setting up directory structure")
        layout = self.layout(platform)
        directories: List[Path] = [
            layout.config_dir(),
            layout.log_dir(),
            layout.cache_dir(),
            layout.pki_dir(),
            layout.run_dir(),
        ]
        for directory in directories:
            if not create_directory(directory, self.app_settings, self.logger):
                self.logger.warning(f"Failed to create directory: {directory}")

        if not platform.family.is_windows:
            self._set_linux_permissions(layout)

    def _set_linux_permissions(self, layout: InstallLayout) -> None:
        config_dir = str(layout.config_dir())
        log_dir = str(layout.log_dir())
        pki_dir = str(layout.pki_dir())
        for command in (
            ["chown", "-R", "root:root", config_dir],
            ["chmod", "-R", "755", config_dir],
            ["chmod", "-R", "700", pki_dir],
            ["chown", "-R", "root:root", log_dir],
            ["chmod", "-R", "755", log_dir],
        ):
            outcome = run_elevated_command(
                command, self.app_settings, current_logger=self.logger
            )
            if not outcome.ok:
                self.logger.warning(
                    f"Failed to set permissions ({' '.join(command)}): {outcome.error_text}"
                )

    def get_current_config(self, platform: Platform) -> Optional[MinionConfig]:
        """Parse the existing main config file, or None if it is absent."""
        config_file = self.layout(platform).config_dir() / "minion"
        content = read_text_file(config_file)
        if content is None:
            self.logger.debug(f"No readable minion config at {config_file}")
            return None
        return parse_minion_config(content)
