# minion_installer/release_catalog.py
# -*- coding: utf-8 -*-
"""
Release resolution: from a version request ("latest" or an explicit
version) and a Platform to a downloadable ReleaseArtifact.

The remote JSON manifest is consulted first. When it cannot be fetched or
parsed, the hardcoded fallback list from AppSettings is used instead.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import requests
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from common.download_utils import (
    DownloadMechanism,
    ProgressCallback,
    default_download_mechanisms,
    download_with_checksum,
)
from common.file_utils import create_directory
from minion_installer.config_models import (
    LATEST_VERSION,
    AppSettings,
    Platform,
    PlatformFamily,
    ReleaseArtifact,
)
from minion_installer.exceptions import DownloadError

module_logger = logging.getLogger(__name__)

# Repository path per normalized OS name.
DISTRO_PATHS: Dict[str, str] = {
    "ubuntu": "ubuntu/20.04",
    "debian": "debian/10",
    "centos": "centos/8",
    "rhel": "rhel/8",
    "fedora": "fedora/36",
    "opensuse": "opensuse/15",
}
DEFAULT_DISTRO_PATH = "ubuntu/20.04"

ADVISORY_SIZES: Dict[PlatformFamily, int] = {
    PlatformFamily.WINDOWS: 50_000_000,
    PlatformFamily.DEBIAN: 30_000_000,
    PlatformFamily.REDHAT: 30_000_000,
    PlatformFamily.SUSE: 30_000_000,
    PlatformFamily.GENERIC_LINUX: 20_000_000,
}


class ReleaseDownload(BaseModel):
    url: str
    checksum: str = ""
    size: int = 0


class ReleaseManifestEntry(BaseModel):
    version: str
    release_date: Optional[str] = Field(default=None, alias="releaseDate")
    downloads: Dict[str, ReleaseDownload] = Field(default_factory=dict)


MANIFEST_ADAPTER = TypeAdapter(List[ReleaseManifestEntry])


def version_sort_key(version: str) -> Tuple:
    """Sort key comparing the numeric components of a version string."""
    return tuple(
        (int(part), "") if part.isdigit() else (-1, part)
        for part in re.split(r"[.\-]", version)
    )


def artifact_filename(version: str, platform: Platform) -> str:
    if platform.family is PlatformFamily.WINDOWS:
        return f"Salt-Minion-{version}-Py3-AMD64-Setup.exe"
    if platform.family is PlatformFamily.DEBIAN:
        return f"salt-minion_{version}.deb"
    if platform.family in (PlatformFamily.REDHAT, PlatformFamily.SUSE):
        return f"salt-minion-{version}.noarch.rpm"
    return f"salt-{version}.tar.gz"


class ReleaseCatalog:
    """Lists versions and resolves them to artifacts for a platform."""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger

    def _fetch_manifest(self) -> Optional[List[ReleaseManifestEntry]]:
        """Fetch and parse the remote manifest. Returns None on any failure."""
        url = self.app_settings.versions_url
        self.logger.info("Fetching available versions...")
        try:
            response = requests.get(url, timeout=self.app_settings.http_timeout)
            response.raise_for_status()
            entries = MANIFEST_ADAPTER.validate_python(response.json())
        except requests.exceptions.RequestException as e:
            self.logger.warning(f"Failed to fetch versions from remote: {e}")
            return None
        except (ValueError, ValidationError) as e:
            self.logger.warning(f"Failed to parse release manifest {url}: {e}")
            return None
        if not entries:
            self.logger.warning(f"Release manifest {url} lists no versions")
            return None
        return entries

    def _load_releases(
        self,
    ) -> Tuple[List[str], Dict[str, ReleaseManifestEntry]]:
        entries = self._fetch_manifest()
        if entries is None:
            self.logger.info("Using built-in version list")
            return list(self.app_settings.fallback_versions), {}
        by_version = {entry.version: entry for entry in entries}
        versions = sorted(by_version, key=version_sort_key, reverse=True)
        return versions, by_version

    def list_available_versions(self) -> List[str]:
        """Available versions, most recent first."""
        versions, _ = self._load_releases()
        return versions

    def resolve(
        self, version_request: str, platform: Platform
    ) -> ReleaseArtifact:
        """
        Resolve ``version_request`` for ``platform``.

        "latest" becomes the first element of the version list obtained in
        this call. Manifest download records, when present for the platform,
        override the constructed URL and supply a checksum.
        """
        versions, manifest = self._load_releases()
        version = (
            versions[0]
            if version_request.strip().lower() == LATEST_VERSION
            else version_request.strip()
        )

        filename = artifact_filename(version, platform)
        artifact = ReleaseArtifact(
            version=version,
            download_url=self._build_url(version, platform, filename),
            filename=filename,
            expected_checksum="",
            size_bytes=ADVISORY_SIZES.get(platform.family, 0),
        )

        entry = manifest.get(version)
        record = entry.downloads.get(platform.normalized_name) if entry else None
        if record:
            artifact = artifact.model_copy(
                update={
                    "download_url": record.url,
                    "expected_checksum": record.checksum,
                    "size_bytes": record.size or artifact.size_bytes,
                }
            )
        self.logger.debug(f"Resolved {version_request} to {artifact}")
        return artifact

    def _build_url(
        self, version: str, platform: Platform, filename: str
    ) -> str:
        base_url = self.app_settings.release_base_url.rstrip("/")
        if platform.family is PlatformFamily.WINDOWS:
            return f"{base_url}/windows/{filename}"
        if platform.family is PlatformFamily.GENERIC_LINUX:
            return f"{base_url}/py3/source/{version}/{filename}"
        distro = DISTRO_PATHS.get(platform.normalized_name, DEFAULT_DISTRO_PATH)
        return f"{base_url}/py3/{distro}/{version}/{filename}"

    def download(
        self,
        version_request: str,
        platform: Platform,
        mechanisms: Optional[Sequence[DownloadMechanism]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """
        Resolve and download an artifact, verifying its checksum.

        Raises:
            DownloadError: If every download mechanism failed or the
                checksum did not match.
        """
        artifact = self.resolve(version_request, platform)
        symbols = self.app_settings.symbols
        self.logger.info(
            f"{symbols.get('package', '📦')} Downloading Salt minion {artifact.version} for {platform.name}"
        )

        download_dir = Path(self.app_settings.download_dir)
        create_directory(download_dir, self.app_settings, self.logger)
        destination = download_dir / artifact.filename

        if mechanisms is None:
            mechanisms = default_download_mechanisms(
                platform.family, self.app_settings, self.logger
            )
        if not download_with_checksum(
            artifact.download_url,
            destination,
            artifact.expected_checksum,
            mechanisms,
            app_settings=self.app_settings,
            current_logger=self.logger,
            on_progress=on_progress,
        ):
            raise DownloadError(
                f"Failed to download Salt minion version {artifact.version}"
            )

        self.logger.info(f"Download completed: {destination}")
        return destination
