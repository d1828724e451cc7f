#!/usr/bin/env python3
# filename: install.py
# -*- coding: utf-8 -*-
"""
Entry point for the Salt minion universal installer.
"""

import argparse
import logging
import sys
from typing import List, Optional

from common.logging_config import setup_logging, shutdown_logging
from minion_installer.config_loader import load_app_settings
from minion_installer.config_models import (
    INSTALLER_VERSION,
    LATEST_VERSION,
    MASTER_PORT_DEFAULT,
    AppSettings,
    InstallationRequest,
)
from minion_installer.exceptions import ConfigurationError, FatalWorkflowError
from minion_installer.network_probe import validate_port
from minion_installer.orchestrator import InstallationOrchestrator

# Value of --version when the flag is given without an argument.
VERSION_FLAG_ONLY = ""

EPILOG = """
examples:
  # Interactive installation
  ./install.py

  # Silent installation with custom master
  ./install.py --silent --master 192.168.1.100 --minion-id web-server-01

  # Check installation status
  ./install.py --check

  # Uninstall
  ./install.py --uninstall
"""


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Salt minion universal installer",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--silent",
        action="store_true",
        help="Run silent installation with default/provided options",
    )
    mode.add_argument(
        "--uninstall", action="store_true", help="Uninstall the Salt minion"
    )
    mode.add_argument(
        "--check", action="store_true", help="Check installation status"
    )
    parser.add_argument(
        "--version",
        nargs="?",
        const=VERSION_FLAG_ONLY,
        default=None,
        metavar="VERSION",
        help=(
            "Alone: show installer version. With --silent: Salt version to "
            "install (default: latest). A VERSION value requires --silent"
        ),
    )

    silent_group = parser.add_argument_group("silent installation options")
    silent_group.add_argument(
        "--master", help="Salt Master IP address (default: 127.0.0.1)"
    )
    silent_group.add_argument(
        "--port", type=int, help="Salt Master port (default: 4506)"
    )
    silent_group.add_argument(
        "--minion-id",
        dest="minion_id",
        help="Minion ID (default: <hostname>-<timestamp>)",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "--log-file", dest="log_file", default=None, help="Installer log file"
    )
    parsed_args = parser.parse_args(args)
    if parsed_args.version and not parsed_args.silent:
        parser.error("--version VERSION is only valid with --silent")
    return parsed_args


def build_silent_request(
    parsed_args: argparse.Namespace,
    app_settings: AppSettings,
    logger: Optional[logging.Logger] = None,
) -> InstallationRequest:
    logger = logger or logging.getLogger(__name__)
    version = parsed_args.version or LATEST_VERSION
    master_port = app_settings.default_master_port
    if not validate_port(master_port):
        logger.warning(
            f"Invalid port '{master_port}', using {MASTER_PORT_DEFAULT}"
        )
        master_port = MASTER_PORT_DEFAULT
    return InstallationRequest(
        version=version,
        master_address=app_settings.default_master_address,
        master_port=master_port,
        minion_id=parsed_args.minion_id or "",
    )


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the Salt minion installer."""
    parsed_args = parse_args(args)

    print(f"=== Salt Minion Universal Installer v{INSTALLER_VERSION} ===")
    print()

    if parsed_args.version == VERSION_FLAG_ONLY and not parsed_args.silent:
        print(f"Salt Minion Universal Installer v{INSTALLER_VERSION}")
        return 0

    try:
        app_settings = load_app_settings(parsed_args, parsed_args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    logger = setup_logging(
        log_level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        log_file=app_settings.log_file,
        symbols=app_settings.symbols,
    )

    try:
        orchestrator = InstallationOrchestrator(app_settings, logger)
        if parsed_args.silent:
            orchestrator.run_silent_install(
                build_silent_request(parsed_args, app_settings, logger)
            )
        elif parsed_args.uninstall:
            orchestrator.uninstall()
        elif parsed_args.check:
            orchestrator.check_installation()
        else:
            orchestrator.run_interactive_install()
        return 0
    except FatalWorkflowError as e:
        logger.error(f"Installation failed: {e}")
        print("Installation failed. Check logs for details.")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1
    except Exception as e:
        logger.critical(f"Unexpected error: {e}", exc_info=True)
        print("Installation failed. Check logs for details.")
        return 1
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())
