# minion_installer/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for installer configuration and the data passed between
workflow steps.

AppSettings holds the tunable settings (defaults < ENV < YAML < CLI). The
remaining models are immutable snapshots produced by one step and read by
the next: Platform, InstallationRequest, ReleaseArtifact, MinionConfig and
the network description models.
"""

import enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
INSTALLER_VERSION: str = "1.0.0"
LATEST_VERSION: str = "latest"
SERVICE_NAME_DEFAULT: str = "salt-minion"
AGENT_BINARY_DEFAULT: str = "salt-minion"
PACKAGE_NAME_DEFAULT: str = "salt-minion"
RELEASE_BASE_URL_DEFAULT: str = "https://repo.saltproject.io"
VERSIONS_URL_DEFAULT: str = "https://repo.saltproject.io/releases.json"
FALLBACK_VERSIONS_DEFAULT: List[str] = [
    "3006.4",
    "3006.3",
    "3006.2",
    "3006.1",
    "3005.4",
]
MASTER_ADDRESS_DEFAULT: str = "127.0.0.1"
MASTER_PORT_DEFAULT: int = 4506
MINION_LOG_LEVEL_DEFAULT: str = "warning"
DOWNLOAD_DIR_DEFAULT: str = "downloads"
INSTALLER_LOG_FILE_DEFAULT: str = "salt-installer.log"
SERVICE_SETTLE_SECONDS_DEFAULT: float = 2.0
SUPPORTED_PLATFORMS_DEFAULT: List[str] = [
    "linux",
    "ubuntu",
    "centos",
    "rhel",
    "debian",
    "fedora",
    "windows",
]

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}


class PlatformFamily(str, enum.Enum):
    """Family tag computed once by the platform probe."""

    DEBIAN = "debian"
    REDHAT = "redhat"
    SUSE = "suse"
    GENERIC_LINUX = "linux"
    WINDOWS = "windows"
    UNSUPPORTED = "unsupported"

    @property
    def is_windows(self) -> bool:
        return self is PlatformFamily.WINDOWS


class ServiceState(str, enum.Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    STARTING = "starting"
    STOPPING = "stopping"
    UNKNOWN = "unknown"
    NOT_FOUND = "not-found"

    def __str__(self):
        return self.value


class WorkflowResult(str, enum.Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Platform(BaseModel):
    """Snapshot of the host produced by a single probe."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Raw OS name as reported by the host.")
    version: str = Field(default="unknown", description="OS version string.")
    architecture: str = Field(default="x86_64")
    hostname: str = Field(default="unknown-host")
    is_elevated: bool = Field(
        default=False, description="True when running as root/Administrator."
    )
    normalized_name: str = Field(
        default="", description="Lookup key such as 'ubuntu' or 'windows'."
    )
    family: PlatformFamily = Field(default=PlatformFamily.UNSUPPORTED)


class InstallationRequest(BaseModel):
    """What the user asked for. Built once, read-only afterwards."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(default=LATEST_VERSION)
    master_address: str = Field(default=MASTER_ADDRESS_DEFAULT)
    master_port: int = Field(default=MASTER_PORT_DEFAULT)
    minion_id: str = Field(
        default="", description="Empty means derive one from the hostname."
    )


class ReleaseArtifact(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    download_url: str
    filename: str
    expected_checksum: str = Field(
        default="", description="SHA-256 hex digest; empty skips verification."
    )
    size_bytes: int = Field(default=0, description="Advisory size only.")


class MinionConfig(BaseModel):
    """Values read back from an existing agent config file."""

    master: str = MASTER_ADDRESS_DEFAULT
    id: str = "unknown"
    master_port: int = MASTER_PORT_DEFAULT
    log_level: str = MINION_LOG_LEVEL_DEFAULT


class NetworkInterface(BaseModel):
    name: str
    ip: str


class NetworkConfig(BaseModel):
    interfaces: List[NetworkInterface] = Field(default_factory=list)
    default_gateway: Optional[str] = None
    dns_servers: List[str] = Field(default_factory=list)


class AppSettings(BaseSettings):
    """Main installer settings."""

    model_config = SettingsConfigDict(
        env_prefix="MINION_INSTALLER_", extra="ignore"
    )

    service_name: str = Field(
        default=SERVICE_NAME_DEFAULT,
        description="Name of the managed service registered with the host.",
    )
    agent_binary: str = Field(
        default=AGENT_BINARY_DEFAULT,
        description="Executable name of the agent, used for install checks.",
    )
    package_name: str = Field(
        default=PACKAGE_NAME_DEFAULT,
        description="Native package name passed to package managers on removal.",
    )
    release_base_url: str = Field(
        default=RELEASE_BASE_URL_DEFAULT,
        description="Base URL that release artifacts are served from.",
    )
    versions_url: str = Field(
        default=VERSIONS_URL_DEFAULT,
        description="URL of the JSON release manifest.",
    )
    fallback_versions: List[str] = Field(
        default_factory=lambda: list(FALLBACK_VERSIONS_DEFAULT),
        description="Versions offered when the manifest is unreachable, newest first.",
    )
    default_master_address: str = Field(default=MASTER_ADDRESS_DEFAULT)
    default_master_port: int = Field(default=MASTER_PORT_DEFAULT)
    minion_log_level: str = Field(
        default=MINION_LOG_LEVEL_DEFAULT,
        description="log_level written into the generated agent config.",
    )
    download_dir: Path = Field(
        default=Path(DOWNLOAD_DIR_DEFAULT),
        description="Where downloaded artifacts are stored.",
    )
    backup_root: Optional[Path] = Field(
        default=None,
        description="Parent directory for backups. Defaults to the system temp dir.",
    )
    log_file: str = Field(
        default=INSTALLER_LOG_FILE_DEFAULT,
        description="Append-only installer log file.",
    )
    service_settle_seconds: float = Field(
        default=SERVICE_SETTLE_SECONDS_DEFAULT,
        description="Pause between starting the service and re-checking it.",
    )
    supported_platforms: List[str] = Field(
        default_factory=lambda: list(SUPPORTED_PLATFORMS_DEFAULT),
        description="Normalized platform names the installer will run on.",
    )
    http_timeout: int = Field(
        default=120, description="Timeout in seconds for HTTP requests."
    )

    symbols: Dict[str, str] = Field(
        default_factory=lambda: dict(SYMBOLS_DEFAULT)
    )
