# common/download_utils.py
# -*- coding: utf-8 -*-
"""
Downloading release artifacts.

Downloads walk an ordered list of DownloadMechanism implementations: an
in-process HTTP client first, then whichever command line clients the host
provides. The first mechanism that produces the file wins.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import requests

from minion_installer.config_models import AppSettings, PlatformFamily

from .command_utils import get_symbols, log_event, run_command
from .file_utils import calculate_checksum, delete_path

module_logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

DOWNLOAD_CHUNK_SIZE = 8192


class DownloadMechanism(ABC):
    """One way of fetching a URL to a local file."""

    name: str = ""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def download(
        self,
        url: str,
        destination: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        """Fetch ``url`` into ``destination``. Returns True on success."""
        pass


class RequestsDownloader(DownloadMechanism):
    name = "requests"

    def _content_length(self, response: requests.Response) -> int:
        """Declared body size, or 0 when the header is missing or malformed."""
        header = response.headers.get("Content-Length") or 0
        try:
            return max(int(header), 0)
        except ValueError:
            self.logger.debug(f"Ignoring malformed Content-Length: {header!r}")
            return 0

    def download(
        self,
        url: str,
        destination: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        response: Optional[requests.Response] = None
        try:
            response = requests.get(
                url, stream=True, timeout=self.app_settings.http_timeout
            )
            response.raise_for_status()
            total = self._content_length(response)
            downloaded = 0
            with open(destination, "wb") as f:
                for chunk in response.iter_content(
                    chunk_size=DOWNLOAD_CHUNK_SIZE
                ):
                    if chunk:
                        f.write(chunk)
                        downloaded += len(chunk)
                        if on_progress:
                            on_progress(downloaded, total)
            return True
        except requests.exceptions.HTTPError as http_err:
            status_code = (
                response.status_code if response is not None else "Unknown"
            )
            self.logger.warning(
                f"HTTP error occurred: {http_err} - Status code: {status_code}"
            )
        except requests.exceptions.ConnectionError as conn_err:
            self.logger.warning(f"Connection error occurred: {conn_err}")
        except requests.exceptions.Timeout as timeout_err:
            self.logger.warning(f"Timeout error occurred: {timeout_err}")
        except requests.exceptions.RequestException as req_err:
            self.logger.warning(
                f"An unexpected error occurred during download: {req_err}"
            )
        except OSError as io_err:
            self.logger.warning(
                f"File I/O error when saving download: {io_err}"
            )
        finally:
            if response is not None:
                response.close()
        return False


class WgetDownloader(DownloadMechanism):
    name = "wget"

    def download(
        self,
        url: str,
        destination: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        return run_command(
            ["wget", "--progress=bar", f"--output-document={destination}", url],
            self.app_settings,
            current_logger=self.logger,
        ).ok


class CurlDownloader(DownloadMechanism):
    name = "curl"

    def download(
        self,
        url: str,
        destination: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        return run_command(
            ["curl", "-fL", "-o", str(destination), url],
            self.app_settings,
            current_logger=self.logger,
        ).ok


class PowerShellDownloader(DownloadMechanism):
    name = "powershell"

    def download(
        self,
        url: str,
        destination: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        ps_command = (
            f"Invoke-WebRequest -Uri '{url}' -OutFile '{destination}' "
            "-UseBasicParsing"
        )
        return run_command(
            ["powershell", "-NoProfile", "-Command", ps_command],
            self.app_settings,
            current_logger=self.logger,
        ).ok


def default_download_mechanisms(
    family: PlatformFamily,
    app_settings: AppSettings,
    logger: Optional[logging.Logger] = None,
) -> List[DownloadMechanism]:
    """Ordered download mechanisms for a platform family."""
    if family.is_windows:
        classes = [RequestsDownloader, PowerShellDownloader, CurlDownloader]
    else:
        classes = [RequestsDownloader, WgetDownloader, CurlDownloader]
    return [cls(app_settings, logger) for cls in classes]


def download(
    url: str,
    destination: Union[str, Path],
    mechanisms: Sequence[DownloadMechanism],
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> bool:
    """
    Try each mechanism in order until one downloads ``url`` to ``destination``.

    A partial file left behind by a failed mechanism is removed before the
    next one runs.

    Returns:
        True if any mechanism succeeded, False if all failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    dest_path = Path(destination)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    for mechanism in mechanisms:
        log_event(
            f"{symbols.get('package', '📦')} Downloading {url} via {mechanism.name}",
            "info",
            logger_to_use,
            app_settings,
        )
        if mechanism.download(url, dest_path, on_progress):
            log_event(
                f"{symbols.get('success', '✅')} Downloaded {dest_path} via {mechanism.name}",
                "info",
                logger_to_use,
                app_settings,
            )
            return True
        log_event(
            f"{symbols.get('warning', '!')} Download via {mechanism.name} failed, trying next mechanism.",
            "warning",
            logger_to_use,
            app_settings,
        )
        delete_path(dest_path, app_settings, logger_to_use)

    log_event(
        f"{symbols.get('error', '❌')} All download mechanisms failed for {url}",
        "error",
        logger_to_use,
        app_settings,
    )
    return False


def validate_checksum(
    file_path: Union[str, Path],
    expected_checksum: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Compare a file's SHA-256 digest with ``expected_checksum``.

    An empty expected checksum means "not known" and always validates.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if not expected_checksum:
        return True
    try:
        actual_checksum = calculate_checksum(file_path)
    except OSError as e:
        log_event(
            f"Failed to calculate checksum of {file_path}: {e}",
            "error",
            logger_to_use,
            app_settings,
        )
        return False

    if actual_checksum.lower() == expected_checksum.strip().lower():
        log_event(
            "Checksum validation passed", "info", logger_to_use, app_settings
        )
        return True
    log_event(
        f"Checksum validation failed. Expected: {expected_checksum}, Got: {actual_checksum}",
        "error",
        logger_to_use,
        app_settings,
    )
    return False


def download_with_checksum(
    url: str,
    destination: Union[str, Path],
    expected_checksum: str,
    mechanisms: Sequence[DownloadMechanism],
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> bool:
    """
    Download ``url`` and verify it against ``expected_checksum``.

    Returns False if the download failed or if a non-empty checksum does not
    match, even though the raw download itself succeeded.
    """
    if not download(
        url,
        destination,
        mechanisms,
        app_settings=app_settings,
        current_logger=current_logger,
        on_progress=on_progress,
    ):
        return False
    return validate_checksum(
        destination, expected_checksum, app_settings, current_logger
    )
