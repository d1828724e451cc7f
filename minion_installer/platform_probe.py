# minion_installer/platform_probe.py
# -*- coding: utf-8 -*-
"""
Host platform detection.

PlatformProbe.detect() never raises. Each field is read from the OS
information source first (/etc/os-release or WMI), then from uname, and
finally replaced by a conservative default so that detection can never
block a workflow.
"""

import logging
import sys
from typing import Dict, Optional, Tuple

from common.command_utils import run_command
from minion_installer.config_models import AppSettings, Platform, PlatformFamily

module_logger = logging.getLogger(__name__)

DEFAULT_HOSTNAME = "unknown-host"
DEFAULT_VERSION = "unknown"
DEFAULT_LINUX_ARCH = "x86_64"
DEFAULT_WINDOWS_ARCH = "x64"

WINDOWS_ADMIN_CHECK = (
    "([Security.Principal.WindowsPrincipal]"
    "[Security.Principal.WindowsIdentity]::GetCurrent())"
    ".IsInRole([Security.Principal.WindowsBuiltInRole]::Administrator)"
)

# Ordered: the first matching keyword decides. "red hat" must be tested
# before the generic "linux" catch-all.
PLATFORM_KEYWORDS: Tuple[Tuple[str, str, PlatformFamily], ...] = (
    ("windows", "windows", PlatformFamily.WINDOWS),
    ("ubuntu", "ubuntu", PlatformFamily.DEBIAN),
    ("debian", "debian", PlatformFamily.DEBIAN),
    ("centos", "centos", PlatformFamily.REDHAT),
    ("red hat", "rhel", PlatformFamily.REDHAT),
    ("rhel", "rhel", PlatformFamily.REDHAT),
    ("fedora", "fedora", PlatformFamily.REDHAT),
    ("rocky", "rhel", PlatformFamily.REDHAT),
    ("almalinux", "rhel", PlatformFamily.REDHAT),
    ("opensuse", "opensuse", PlatformFamily.SUSE),
    ("suse", "opensuse", PlatformFamily.SUSE),
    ("linux", "linux", PlatformFamily.GENERIC_LINUX),
)


def normalize_platform_name(raw_name: str) -> Tuple[str, PlatformFamily]:
    """
    Map a raw OS name such as "Ubuntu" or "Microsoft Windows 11 Pro" to a
    normalized lookup key and its family.

    Unknown names keep their lower-cased form and are tagged UNSUPPORTED.
    """
    lowered = (raw_name or "").strip().lower()
    for keyword, normalized, family in PLATFORM_KEYWORDS:
        if keyword in lowered:
            return normalized, family
    return lowered, PlatformFamily.UNSUPPORTED


def parse_os_release(content: str) -> Dict[str, str]:
    """Parse KEY=value lines of an os-release file, stripping quotes."""
    values: Dict[str, str] = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def parse_wmic_value(output: str, key: str) -> Optional[str]:
    """Extract ``key`` from ``wmic ... /value`` output (Key=Value lines)."""
    prefix = f"{key}="
    for line in output.splitlines():
        line = line.strip()
        if line.startswith(prefix):
            value = line[len(prefix):].strip()
            return value or None
    return None


class PlatformProbe:
    """Produces a Platform snapshot of the current host."""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        is_windows: Optional[bool] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger
        self.is_windows = (
            sys.platform.startswith("win") if is_windows is None else is_windows
        )

    def _run(self, command) -> Optional[str]:
        """Return stripped stdout of a successful command, else None."""
        outcome = run_command(
            command, self.app_settings, current_logger=self.logger
        )
        if outcome.ok and outcome.stdout.strip():
            return outcome.stdout.strip()
        return None

    def detect(self) -> Platform:
        try:
            if self.is_windows:
                name, version, architecture = self._detect_windows()
                is_elevated = self._check_admin_privileges()
            else:
                name, version, architecture = self._detect_unix()
                is_elevated = self._check_root_privileges()
            hostname = self._run(["hostname"]) or DEFAULT_HOSTNAME
        except Exception as e:
            # Platform detection must never block the workflow.
            self.logger.warning(f"Platform detection failed, using defaults: {e}")
            name = "Windows" if self.is_windows else "Linux"
            version = DEFAULT_VERSION
            architecture = (
                DEFAULT_WINDOWS_ARCH if self.is_windows else DEFAULT_LINUX_ARCH
            )
            hostname = DEFAULT_HOSTNAME
            is_elevated = False

        normalized_name, family = normalize_platform_name(name)
        platform = Platform(
            name=name,
            version=version,
            architecture=architecture,
            hostname=hostname,
            is_elevated=is_elevated,
            normalized_name=normalized_name,
            family=family,
        )
        self.logger.debug(f"Detected platform: {platform}")
        return platform

    def _detect_unix(self) -> Tuple[str, str, str]:
        os_release: Dict[str, str] = {}
        content = self._run(["cat", "/etc/os-release"])
        if content:
            os_release = parse_os_release(content)

        name = os_release.get("NAME") or self._run(["uname", "-s"]) or "Linux"
        version = (
            os_release.get("VERSION_ID")
            or self._run(["uname", "-r"])
            or DEFAULT_VERSION
        )
        architecture = self._run(["uname", "-m"]) or DEFAULT_LINUX_ARCH
        return name, version, architecture

    def _detect_windows(self) -> Tuple[str, str, str]:
        def wmic(key: str) -> Optional[str]:
            output = self._run(["wmic", "os", "get", key, "/value"])
            return parse_wmic_value(output, key) if output else None

        name = wmic("Caption") or "Windows"
        version = wmic("Version") or DEFAULT_VERSION
        architecture = wmic("OSArchitecture") or DEFAULT_WINDOWS_ARCH
        return name, version, architecture

    def _check_root_privileges(self) -> bool:
        return self._run(["id", "-u"]) == "0"

    def _check_admin_privileges(self) -> bool:
        output = self._run(
            ["powershell", "-NoProfile", "-Command", WINDOWS_ADMIN_CHECK]
        )
        return bool(output) and output.lower() == "true"
