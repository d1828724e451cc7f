# minion_installer/layout.py
# -*- coding: utf-8 -*-
"""
Filesystem layout of a Salt minion installation per platform family.

Directory locations are ordered candidate lists: the first candidate that
exists on the host wins, otherwise the first candidate is the default.
"""

from pathlib import Path
from typing import List, Tuple

from pydantic import BaseModel, Field

from common.file_utils import first_existing_path
from minion_installer.config_models import PlatformFamily

WINDOWS_DATA_ROOT = r"C:\ProgramData\SaltProject\Salt"
WINDOWS_PROGRAM_ROOT = r"C:\Program Files\Salt Project\Salt"
WINDOWS_LEGACY_ROOT = r"C:\salt"


class InstallLayout(BaseModel):
    """Known locations of an installation on one platform family."""

    binary_paths: List[Path] = Field(
        default_factory=list,
        description="Where the agent binary may live, most likely first.",
    )
    config_dirs: List[Path] = Field(default_factory=list)
    log_dirs: List[Path] = Field(default_factory=list)
    cache_dirs: List[Path] = Field(default_factory=list)
    pki_dirs: List[Path] = Field(default_factory=list)
    run_dirs: List[Path] = Field(default_factory=list)
    removal_paths: List[Path] = Field(
        default_factory=list,
        description="Deleted by a manual cleanup after uninstall.",
    )
    backup_sources: List[Tuple[Path, str]] = Field(
        default_factory=list,
        description="(source, name inside the backup directory) pairs.",
    )
    uninstaller_paths: List[Path] = Field(default_factory=list)
    service_unit_dir: Path = Field(default=Path("/etc/systemd/system"))
    packaged_unit_dirs: List[Path] = Field(default_factory=list)

    @staticmethod
    def _resolve(candidates: List[Path]) -> Path:
        return first_existing_path(candidates, default=candidates[0])

    def config_dir(self) -> Path:
        return self._resolve(self.config_dirs)

    def log_dir(self) -> Path:
        return self._resolve(self.log_dirs)

    def cache_dir(self) -> Path:
        return self._resolve(self.cache_dirs)

    def pki_dir(self) -> Path:
        return self._resolve(self.pki_dirs)

    def run_dir(self) -> Path:
        return self._resolve(self.run_dirs)


def _windows_candidates(*parts: str) -> List[Path]:
    return [
        Path(root, *parts)
        for root in (WINDOWS_DATA_ROOT, WINDOWS_PROGRAM_ROOT, WINDOWS_LEGACY_ROOT)
    ]


def layout_for(
    family: PlatformFamily, binary_name: str = "salt-minion"
) -> InstallLayout:
    if family.is_windows:
        exe = f"{binary_name}.exe"
        return InstallLayout(
            binary_paths=[
                Path(WINDOWS_LEGACY_ROOT, exe),
                Path(WINDOWS_PROGRAM_ROOT, exe),
            ],
            config_dirs=_windows_candidates("conf"),
            log_dirs=_windows_candidates("var", "log", "salt"),
            cache_dirs=_windows_candidates("var", "cache", "salt", "minion"),
            pki_dirs=_windows_candidates("conf", "pki", "minion"),
            run_dirs=_windows_candidates("var", "run", "salt", "minion"),
            removal_paths=[
                Path(WINDOWS_LEGACY_ROOT),
                Path(WINDOWS_PROGRAM_ROOT),
            ],
            backup_sources=[
                (Path(WINDOWS_DATA_ROOT, "conf"), "conf"),
                (Path(WINDOWS_PROGRAM_ROOT, "conf"), "program-conf"),
                (Path(WINDOWS_LEGACY_ROOT, "conf"), "legacy-conf"),
            ],
            uninstaller_paths=[
                Path(WINDOWS_LEGACY_ROOT, "uninst.exe"),
                Path(WINDOWS_PROGRAM_ROOT, "uninst.exe"),
            ],
        )

    return InstallLayout(
        binary_paths=[
            Path("/usr/bin", binary_name),
            Path("/usr/local/bin", binary_name),
            Path("/opt/saltstack/salt/bin", binary_name),
        ],
        config_dirs=[Path("/etc/salt")],
        log_dirs=[Path("/var/log/salt")],
        cache_dirs=[Path("/var/cache/salt/minion")],
        pki_dirs=[Path("/etc/salt/pki/minion")],
        run_dirs=[Path("/var/run/salt/minion"), Path("/run/salt/minion")],
        removal_paths=[
            Path("/etc/salt"),
            Path("/var/cache/salt"),
            Path("/var/log/salt"),
            Path("/var/run/salt"),
            Path("/opt/saltstack"),
            Path("/usr/local/bin", binary_name),
        ],
        backup_sources=[
            (Path("/etc/salt"), "etc-salt"),
            (Path("/var/log/salt"), "var-log-salt"),
            (Path("/var/cache/salt"), "var-cache-salt"),
        ],
        service_unit_dir=Path("/etc/systemd/system"),
        packaged_unit_dirs=[
            Path("/lib/systemd/system"),
            Path("/usr/lib/systemd/system"),
        ],
    )
