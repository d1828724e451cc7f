# minion_installer/script_generator.py
# -*- coding: utf-8 -*-
"""
Maintenance scripts dropped next to the minion configuration: a backup
script for the configuration directory and an integrity check of the
installed configuration.
"""

import logging
from pathlib import Path
from typing import List, Optional

from common.file_utils import create_directory, make_executable, write_text_file
from minion_installer.config_models import AppSettings, Platform
from minion_installer.layout import InstallLayout, layout_for

module_logger = logging.getLogger(__name__)

BACKUP_RETENTION_DAYS = 7

BACKUP_SCRIPT_SH = """#!/bin/bash
# Back up the Salt minion configuration.

CONFIG_DIR="{config_dir}"
BACKUP_PATH="{backup_dir}"
TIMESTAMP=$(date +"%Y%m%d_%H%M%S")

mkdir -p "$BACKUP_PATH"

if [ -d "$CONFIG_DIR" ]; then
    tar -czf "$BACKUP_PATH/minion_config_$TIMESTAMP.tar.gz" -C "$CONFIG_DIR" .
    echo "Backup created: minion_config_$TIMESTAMP.tar.gz"
else
    echo "Configuration directory $CONFIG_DIR not found"
    exit 1
fi

# Remove backups older than {retention} days
find "$BACKUP_PATH" -name "minion_config_*.tar.gz" -mtime +{retention} -delete 2>/dev/null
"""

INTEGRITY_SCRIPT_SH = """#!/bin/bash
# Check that the Salt minion configuration is present and complete.

CONFIG_FILE="{config_dir}/minion"
PKI_DIR="{pki_dir}"
STATUS=0

echo "Checking Salt minion integrity..."

if [ -f "$CONFIG_FILE" ]; then
    echo "[OK] minion config found"
    for KEY in master id; do
        if grep -q "^$KEY:" "$CONFIG_FILE"; then
            echo "[OK] $KEY is set"
        else
            echo "[ERROR] $KEY is missing from $CONFIG_FILE"
            STATUS=1
        fi
    done
else
    echo "[ERROR] $CONFIG_FILE not found"
    exit 1
fi

if [ -d "$PKI_DIR" ]; then
    echo "[OK] PKI directory found"
else
    echo "[WARN] PKI directory $PKI_DIR not found"
fi

if command -v {binary} > /dev/null 2>&1; then
    echo "[OK] {binary} is installed"
else
    echo "[WARN] {binary} not found in PATH"
fi

exit $STATUS
"""

BACKUP_SCRIPT_BAT = """@echo off
setlocal enabledelayedexpansion
rem Back up the Salt minion configuration.

set CONFIG_DIR={config_dir}
set BACKUP_PATH={backup_dir}
set TIMESTAMP=%date:~-4,4%%date:~-10,2%%date:~-7,2%_%time:~0,2%%time:~3,2%%time:~6,2%
set TIMESTAMP=!TIMESTAMP: =0!

if not exist "%BACKUP_PATH%" mkdir "%BACKUP_PATH%"

if exist "%CONFIG_DIR%" (
    xcopy "%CONFIG_DIR%" "%BACKUP_PATH%\\minion_config_%TIMESTAMP%\\" /E /I /Q /Y
    echo Backup created: minion_config_%TIMESTAMP%
) else (
    echo Configuration directory %CONFIG_DIR% not found
    exit /b 1
)

rem Remove backups older than {retention} days
forfiles /p "%BACKUP_PATH%" /m "minion_config_*" /d -{retention} /c "cmd /c rmdir /s /q @path" 2>nul

endlocal
"""

INTEGRITY_SCRIPT_BAT = """@echo off
setlocal
rem Check that the Salt minion configuration is present and complete.

set CONFIG_FILE={config_dir}\\minion
set PKI_DIR={pki_dir}
set STATUS=0

echo Checking Salt minion integrity...

if not exist "%CONFIG_FILE%" (
    echo [ERROR] %CONFIG_FILE% not found
    exit /b 1
)
echo [OK] minion config found

findstr /b /c:"master:" "%CONFIG_FILE%" >nul || (echo [ERROR] master is missing & set STATUS=1)
findstr /b /c:"id:" "%CONFIG_FILE%" >nul || (echo [ERROR] id is missing & set STATUS=1)

if exist "%PKI_DIR%" (
    echo [OK] PKI directory found
) else (
    echo [WARN] PKI directory %PKI_DIR% not found
)

exit /b %STATUS%
"""


class ScriptGenerator:
    """Writes the backup and integrity-check scripts for a platform."""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger

    def generate_scripts(
        self,
        scripts_dir: Path,
        platform: Platform,
        layout: Optional[InstallLayout] = None,
    ) -> List[Path]:
        """
        Write ``backup_minion`` and ``check_integrity`` into ``scripts_dir``.

        Unix scripts are ``.sh`` and made executable; Windows gets ``.bat``.
        Failures are logged and the script is left out of the result.
        """
        create_directory(scripts_dir, self.app_settings, self.logger)
        layout = layout or layout_for(
            platform.family, self.app_settings.agent_binary
        )
        config_dir = scripts_dir.parent
        values = {
            "config_dir": config_dir,
            "backup_dir": layout.cache_dir().parent / "backups",
            "pki_dir": layout.pki_dir(),
            "binary": self.app_settings.agent_binary,
            "retention": BACKUP_RETENTION_DAYS,
        }

        if platform.family.is_windows:
            scripts = {
                "backup_minion.bat": BACKUP_SCRIPT_BAT,
                "check_integrity.bat": INTEGRITY_SCRIPT_BAT,
            }
        else:
            scripts = {
                "backup_minion.sh": BACKUP_SCRIPT_SH,
                "check_integrity.sh": INTEGRITY_SCRIPT_SH,
            }

        written: List[Path] = []
        for filename, template in scripts.items():
            script_path = scripts_dir / filename
            if not write_text_file(
                script_path,
                template.format(**values),
                self.app_settings,
                self.logger,
            ):
                self.logger.warning(f"Failed to write script {script_path}")
                continue
            if not platform.family.is_windows:
                make_executable(script_path, self.app_settings, self.logger)
            written.append(script_path)
        self.logger.debug(f"Generated maintenance scripts: {written}")
        return written
