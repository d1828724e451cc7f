# minion_installer/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the installer.

Handles loading settings from Pydantic model defaults, environment
variables, a YAML file and command-line arguments, applying this order of
precedence:
1. Pydantic Model Defaults
2. Environment Variables (MINION_INSTALLER_* via Pydantic's BaseSettings)
3. YAML Configuration File
4. Command-Line Arguments
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from minion_installer.config_models import AppSettings
from minion_installer.exceptions import ConfigurationError

module_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"

# argparse destination -> AppSettings field
CLI_SETTING_FIELDS: Dict[str, str] = {
    "master": "default_master_address",
    "port": "default_master_port",
    "log_file": "log_file",
}


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates a dictionary `source` with values from `overrides`.

    Nested dictionaries are merged key by key. A None value in `overrides`
    never replaces an existing value in `source`.

    Returns:
        Dict[str, Any]: The updated `source` dictionary.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def load_yaml_config(
    config_file_path: Path,
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Read a YAML mapping from `config_file_path`.

    A missing file yields an empty dict. A file that is not valid YAML, or
    whose top level is not a mapping, raises ConfigurationError.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if not config_file_path.is_file():
        logger_to_use.debug(
            f"Configuration file '{config_file_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}

    try:
        with open(config_file_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Could not parse YAML config file '{config_file_path}': {e}"
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Could not read config file '{config_file_path}': {e}"
        ) from e

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        raise ConfigurationError(
            f"Config file '{config_file_path}' does not contain a YAML dictionary."
        )
    logger_to_use.info(f"Loaded configuration from {config_file_path}")
    return yaml_data


def load_app_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Loads installer settings.

    Args:
        cli_args: Parsed command-line arguments (from argparse). Only the
            attributes listed in CLI_SETTING_FIELDS are taken into account.
        config_file_path: Path to the YAML configuration file. Defaults to
            ``config.yaml`` in the working directory.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        An instance of AppSettings with the fully resolved configuration.

    Raises:
        ConfigurationError: If the YAML file is malformed or the merged
            values fail validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    # Model defaults < environment variables.
    try:
        current_values_dict = AppSettings().model_dump(exclude_defaults=False)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid MINION_INSTALLER_* environment variable: {e}"
        ) from e

    yaml_path = Path(config_file_path or DEFAULT_CONFIG_FILE)
    current_values_dict = _deep_update(
        current_values_dict, load_yaml_config(yaml_path, logger_to_use)
    )

    if cli_args:
        cli_arg_dict = vars(cli_args)
        mapped_cli_values = {
            field: cli_arg_dict[cli_key]
            for cli_key, field in CLI_SETTING_FIELDS.items()
            if cli_arg_dict.get(cli_key) is not None
        }
        current_values_dict = _deep_update(
            current_values_dict, mapped_cli_values
        )

    try:
        final_settings = AppSettings(**current_values_dict)
    except ValidationError as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise ConfigurationError(f"Configuration error: {e}") from e

    logger_to_use.debug("Successfully loaded and validated installer settings")
    return final_settings
