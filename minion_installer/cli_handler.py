# minion_installer/cli_handler.py
# -*- coding: utf-8 -*-
"""
Handles Command Line Interface (CLI) interactions for the minion installer:
prompts, confirmations and the installation status report.
"""

import logging
from typing import List, Optional

from common.command_utils import log_event
from minion_installer.config_models import (
    AppSettings,
    MinionConfig,
    NetworkConfig,
    ServiceState,
)

module_logger = logging.getLogger(__name__)


def cli_confirm(
    prompt_message: str,
    app_settings: AppSettings,
    current_logger_instance: Optional[logging.Logger] = None,
) -> bool:
    """
    Ask a yes/no question. Anything but "y"/"yes" is a no, and so is EOF.

    Parameters:
    prompt_message : str
        The question to display.
    app_settings : AppSettings
        Settings providing the log symbols.
    current_logger_instance : Optional[logging.Logger]
        Logger for the EOF warning. Defaults to the module logger.

    Returns:
    bool
        True only if the user confirmed.
    """
    logger_to_use = (
        current_logger_instance if current_logger_instance else module_logger
    )
    symbols = app_settings.symbols
    try:
        user_input = (
            input(f"   {symbols.get('info', 'ℹ️')} {prompt_message} (y/N): ")
            .strip()
            .lower()
        )
        return user_input in ("y", "yes")
    except EOFError:
        log_event(
            f"{symbols.get('warning', '!')} No user input (EOF), defaulting to 'N' for prompt: '{prompt_message}'",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False


def cli_prompt(
    prompt_message: str,
    default: str,
    app_settings: AppSettings,
    current_logger_instance: Optional[logging.Logger] = None,
) -> str:
    """Ask for a value. Empty input and EOF both select ``default``."""
    logger_to_use = (
        current_logger_instance if current_logger_instance else module_logger
    )
    symbols = app_settings.symbols
    try:
        user_input = input(
            f"   {symbols.get('step', '➡️')} {prompt_message} [{default}]: "
        ).strip()
    except EOFError:
        log_event(
            f"{symbols.get('warning', '!')} No user input (EOF), using default '{default}' for prompt: '{prompt_message}'",
            "warning",
            logger_to_use,
            app_settings,
        )
        return default
    return user_input or default


class CliPrompter:
    """Interactive prompts bound to one set of settings and one logger."""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger

    def confirm(self, message: str) -> bool:
        return cli_confirm(message, self.app_settings, self.logger)

    def ask(self, message: str, default: str) -> str:
        return cli_prompt(message, default, self.app_settings, self.logger)

    def choose(self, message: str, options: List[str]) -> str:
        """List ``options`` and return the chosen one. The first is the default."""
        for index, option in enumerate(options, start=1):
            print(f"     {index}. {option}")
        answer = self.ask(message, options[0])
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        return answer


def display_network_configuration(
    network_config: Optional[NetworkConfig],
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    if network_config is None:
        return
    lines = ["Local network configuration:"]
    lines.extend(
        f"  {interface.name}: {interface.ip}"
        for interface in network_config.interfaces
    )
    lines.append(f"  Default gateway: {network_config.default_gateway or 'N/A'}")
    lines.append(
        f"  DNS servers: {', '.join(network_config.dns_servers) or 'N/A'}"
    )
    log_event("\n".join(lines), "debug", logger_to_use, app_settings)


def display_installation_status(
    installed: bool,
    version: Optional[str],
    service_state: Optional[ServiceState],
    minion_config: Optional[MinionConfig],
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Log the report produced by ``install.py --check``."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols

    if not installed:
        log_event(
            f"{symbols.get('info', 'ℹ️')} Salt minion is not installed",
            "info",
            logger_to_use,
            app_settings,
        )
        return

    status_text = f"{symbols.get('success', '✅')} Salt minion is installed\n"
    status_text += f"  Version:        {version or 'unknown'}\n"
    status_text += f"  Service status: {service_state or ServiceState.UNKNOWN}\n"
    if minion_config is not None:
        status_text += f"  Master:         {minion_config.master}:{minion_config.master_port}\n"
        status_text += f"  Minion ID:      {minion_config.id}\n"
        status_text += f"  Log level:      {minion_config.log_level}\n"
    log_event(status_text.rstrip(), "info", logger_to_use, app_settings)
