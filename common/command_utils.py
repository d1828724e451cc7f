# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing external commands and logging their output.

Every invocation produces a ProcessOutcome. Non-zero exits, missing
executables and runner-imposed timeouts are reported through the outcome
rather than raised, so callers can walk a fallback chain by inspecting
``outcome.ok`` alone.
"""

import logging
import os
import shutil
import subprocess
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from minion_installer.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)

EXIT_TIMEOUT = 124
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


class ProcessOutcome(BaseModel):
    """Exit code and captured streams of one external command."""

    model_config = ConfigDict(frozen=True)

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def error_text(self) -> str:
        """Best description of a failure: stderr, else stdout, else the exit code."""
        return (
            self.stderr.strip()
            or self.stdout.strip()
            or f"exit code {self.exit_code}"
        )


def get_symbols(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    return (
        app_settings.symbols
        if app_settings and app_settings.symbols
        else SYMBOLS_DEFAULT
    )


def log_event(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    app_settings: Optional[AppSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a message to the installer logger at the named level.

    Args:
        message (str): The log message to be recorded.
        level (str): "debug", "info", "warning", "error" or "critical". Any
            other value (for example "success") is logged at info.
        current_logger (Optional[logging.Logger]): Logger to use. Defaults to
            the module logger.
        app_settings (Optional[AppSettings]): Accepted so call sites can pass
            the settings they already hold.
        exc_info (bool): Include exception details in the log.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def _get_elevated_command_prefix() -> List[str]:
    """
    Returns ["sudo"] when the process is not already root.

    Windows has no euid; an elevated console is expected there and no
    prefix is added.
    """
    if not hasattr(os, "geteuid"):
        return []
    return [] if os.geteuid() == 0 else ["sudo"]


def run_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> ProcessOutcome:
    """
    Executes a command and returns its ProcessOutcome.

    Args:
        command: The command and its arguments.
        app_settings: Settings providing log symbols. May be None.
        check: Raise subprocess.CalledProcessError on a non-zero exit.
        cmd_input: Text passed to the command's standard input.
        current_logger: Logger to use. Defaults to the module logger.
        cwd: Working directory for the command.
        env: Environment for the command. Defaults to the inherited one.
        timeout: Seconds to wait before giving up. None waits forever.

    Returns:
        ProcessOutcome. A missing executable yields exit code 127, an
        unexecutable one 126 and an expired timeout 124. Output that is not
        valid UTF-8 is decoded with replacement characters.

    Raises:
        subprocess.CalledProcessError: Only when ``check`` is True and the
            command did not succeed.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    command_to_log_str = subprocess.list2cmdline(command)

    log_event(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str} {f'(in {cwd})' if cwd else ''}",
        "debug",
        effective_logger,
        app_settings,
    )
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            input=cmd_input,
            cwd=cwd,
            env=env,
            timeout=timeout,
        )
        outcome = ProcessOutcome(
            exit_code=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
    except FileNotFoundError as e:
        log_event(
            f"{symbols.get('warning', '!')} Command not found: {e.filename or command[0]}.",
            "debug",
            effective_logger,
            app_settings,
        )
        outcome = ProcessOutcome(
            exit_code=EXIT_NOT_FOUND,
            stderr=f"{command[0]}: command not found",
        )
    except PermissionError as e:
        log_event(
            f"{symbols.get('warning', '!')} Command not executable: {command[0]}: {e}",
            "warning",
            effective_logger,
            app_settings,
        )
        outcome = ProcessOutcome(exit_code=EXIT_NOT_EXECUTABLE, stderr=str(e))
    except subprocess.TimeoutExpired:
        log_event(
            f"{symbols.get('warning', '!')} Command `{command_to_log_str}` timed out after {timeout}s.",
            "warning",
            effective_logger,
            app_settings,
        )
        outcome = ProcessOutcome(
            exit_code=EXIT_TIMEOUT,
            stderr=f"timed out after {timeout}s",
        )

    if outcome.ok:
        if outcome.stdout.strip():
            log_event(
                f"   stdout: {outcome.stdout.strip()}",
                "debug",
                effective_logger,
                app_settings,
            )
    else:
        log_event(
            f"{symbols.get('warning', '!')} Command `{command_to_log_str}` failed (rc {outcome.exit_code}): {outcome.error_text}",
            "debug",
            effective_logger,
            app_settings,
        )
        if check:
            raise subprocess.CalledProcessError(
                outcome.exit_code,
                command,
                output=outcome.stdout,
                stderr=outcome.stderr,
            )
    return outcome


def run_elevated_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> ProcessOutcome:
    """
    Executes a command with elevated permissions by prefixing ``sudo`` when
    the current process is not root. Arguments are as for run_command.
    """
    prefix = _get_elevated_command_prefix()
    return run_command(
        prefix + list(command),
        app_settings,
        check=check,
        cmd_input=cmd_input,
        current_logger=current_logger,
        cwd=cwd,
        env=env,
        timeout=timeout,
    )


def command_exists(command_name: str) -> bool:
    """Check if a command exists in the system's PATH."""
    return shutil.which(command_name) is not None
