# common/logging_config.py
# -*- coding: utf-8 -*-
"""
Logging configuration for the installer.

setup_logging() is called once at process start. It attaches a console
handler that prefixes records with a level symbol and an append-only file
handler for the installer log, and returns the installer logger that is
then passed explicitly to every component. shutdown_logging() flushes and
closes the handlers at exit.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from minion_installer.config_models import SYMBOLS_DEFAULT

INSTALLER_LOGGER_NAME = "minion_installer"

CONSOLE_LOG_FORMAT = "%(symbol)s %(message)s"
FILE_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class SymbolFormatter(logging.Formatter):
    """
    A custom formatter that adds symbols to log messages based on the log level.
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        style: str = "%",
        validate: bool = True,
        symbols: Optional[Dict[str, str]] = None,
    ):
        super().__init__(fmt, datefmt, style, validate)
        self.symbols = symbols or SYMBOLS_DEFAULT

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.DEBUG:
            record.symbol = self.symbols.get("debug", "🐛")
        elif record.levelno == logging.INFO:
            record.symbol = self.symbols.get("info", "ℹ️")
        elif record.levelno == logging.WARNING:
            record.symbol = self.symbols.get("warning", "⚠️")
        elif record.levelno == logging.ERROR:
            record.symbol = self.symbols.get("error", "❌")
        elif record.levelno == logging.CRITICAL:
            record.symbol = self.symbols.get("critical", "🔥")
        else:
            record.symbol = ""

        return super().format(record)


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    symbols: Optional[Dict[str, str]] = None,
) -> logging.Logger:
    """
    Configures the root logger and returns the installer logger.

    Parameters:
    log_level: int
        Level for the console handler and the root logger.
    log_file: Optional[str]
        Append-only log file. Every record at DEBUG and above is written
        here. If the file cannot be opened a warning is printed to stderr
        and logging continues without it.
    log_to_console: bool
        Whether to log to stdout.
    symbols: Optional[Dict[str, str]]
        Level symbols for console output.

    Returns:
    logging.Logger
        The logger to pass down to the installer components.
    """
    handlers: List[logging.Handler] = []

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(
            SymbolFormatter(fmt=CONSOLE_LOG_FORMAT, symbols=symbols)
        )
        handlers.append(console_handler)

    if log_file:
        try:
            log_file_path = Path(log_file)
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                log_file_path, mode="a", encoding="utf-8"
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                logging.Formatter(FILE_LOG_FORMAT, datefmt=DATE_FORMAT)
            )
            handlers.append(file_handler)
        except OSError as e:
            print(
                f"Warning: Could not create file handler for log file {log_file}: {e}",
                file=sys.stderr,
            )

    if not handlers:  # pragma: no cover
        handlers.append(logging.StreamHandler(sys.stdout))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if log_file else log_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(INSTALLER_LOGGER_NAME)
    logger.debug(
        f"Logging configured. Level: {logging.getLevelName(log_level)}. Log file: {log_file or 'none'}"
    )
    return logger


def shutdown_logging() -> None:
    """Flush and close every handler."""
    logging.shutdown()
