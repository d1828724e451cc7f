# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: existence checks, directory creation and
removal, copying, text I/O and checksums.

Operations that are best effort by nature (delete, copy, chmod) return a
bool and log on failure instead of raising.
"""

import hashlib
import logging
import os
import shutil
import stat
from pathlib import Path
from typing import Iterable, Optional, Union

from minion_installer.config_models import AppSettings

from .command_utils import get_symbols, log_event

module_logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

CHECKSUM_CHUNK_SIZE = 65536


def path_exists(path: PathLike) -> bool:
    return Path(path).exists()


def first_existing_path(
    candidates: Iterable[PathLike], default: Optional[PathLike] = None
) -> Optional[Path]:
    """
    Return the first candidate that exists on disk, else ``default``.
    """
    for candidate in candidates:
        if path_exists(candidate):
            return Path(candidate)
    return Path(default) if default is not None else None


def create_directory(
    dir_path: PathLike,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """Create a directory and its parents. Existing directories count as success."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    try:
        Path(dir_path).mkdir(parents=True, exist_ok=True)
        return True
    except OSError as e:
        log_event(
            f"{symbols.get('warning', '!')} Failed to create directory {dir_path}: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False


def delete_path(
    target: PathLike,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Remove a file or a directory tree.

    Returns True when the path no longer exists afterwards, including the
    case where it never existed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    path = Path(target)

    if not path.exists() and not path.is_symlink():
        log_event(
            f"{symbols.get('info', 'ℹ️')} {path} does not exist. Nothing to remove.",
            "debug",
            logger_to_use,
            app_settings,
        )
        return True
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
        log_event(
            f"{symbols.get('success', '✅')} Removed {path}",
            "info",
            logger_to_use,
            app_settings,
        )
        return True
    except OSError as e:
        log_event(
            f"{symbols.get('error', '❌')} Error removing {path}: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False


def copy_path(
    source: PathLike,
    destination: PathLike,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """Copy a file or a whole directory tree to ``destination``."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    src = Path(source)
    dst = Path(destination)
    try:
        if src.is_dir():
            shutil.copytree(src, dst, dirs_exist_ok=True)
        else:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, dst)
        return True
    except (OSError, shutil.Error) as e:
        log_event(
            f"{symbols.get('warning', '!')} Failed to copy {src} to {dst}: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False


def read_text_file(path: PathLike) -> Optional[str]:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def write_text_file(
    path: PathLike,
    content: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """Write ``content`` to ``path``, creating parent directories as needed."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    file_path = Path(path)
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
        return True
    except OSError as e:
        log_event(
            f"{symbols.get('error', '❌')} Failed to write {file_path}: {e}",
            "error",
            logger_to_use,
            app_settings,
        )
        return False


def make_executable(
    path: PathLike,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """Add execute permission for user, group and others."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    try:
        mode = os.stat(path).st_mode
        os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return True
    except OSError as e:
        log_event(
            f"{symbols.get('warning', '!')} Failed to set execute permission on {path}: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False


def calculate_checksum(path: PathLike) -> str:
    """
    Return the SHA-256 hex digest of a file.

    Raises:
        OSError: If the file cannot be read.
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHECKSUM_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()
