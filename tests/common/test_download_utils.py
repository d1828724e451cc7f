import hashlib
from pathlib import Path
from typing import List
from unittest.mock import MagicMock

import pytest
import requests
from pytest_mock import MockerFixture

from common.command_utils import ProcessOutcome
from common.download_utils import (
    CurlDownloader,
    DownloadMechanism,
    PowerShellDownloader,
    RequestsDownloader,
    WgetDownloader,
    default_download_mechanisms,
    download,
    download_with_checksum,
    validate_checksum,
)
from minion_installer.config_models import PlatformFamily

PAYLOAD = b"salt-minion package payload"


class FakeDownloader(DownloadMechanism):
    """Writes PAYLOAD (or a partial file) and reports a fixed result."""

    def __init__(self, app_settings, name: str, succeed: bool, calls: List[str]):
        super().__init__(app_settings)
        self.name = name
        self.succeed = succeed
        self.calls = calls

    def download(self, url: str, destination: Path, on_progress=None) -> bool:
        self.calls.append(self.name)
        destination.write_bytes(PAYLOAD if self.succeed else b"partial")
        return self.succeed


def test_download_first_success_wins(app_settings, tmp_path, mock_logger):
    calls: List[str] = []
    mechanisms = [
        FakeDownloader(app_settings, "first", False, calls),
        FakeDownloader(app_settings, "second", True, calls),
        FakeDownloader(app_settings, "third", True, calls),
    ]
    destination = tmp_path / "dl" / "salt.deb"

    assert download("http://x/salt.deb", destination, mechanisms, app_settings, mock_logger)

    assert calls == ["first", "second"]
    assert destination.read_bytes() == PAYLOAD


def test_download_all_fail_removes_partial_file(app_settings, tmp_path, mock_logger):
    calls: List[str] = []
    mechanisms = [
        FakeDownloader(app_settings, "first", False, calls),
        FakeDownloader(app_settings, "second", False, calls),
    ]
    destination = tmp_path / "salt.deb"

    assert not download("http://x/salt.deb", destination, mechanisms, app_settings, mock_logger)

    assert calls == ["first", "second"]
    assert not destination.exists()


def test_validate_checksum_empty_expected_always_passes(tmp_path):
    assert validate_checksum(tmp_path / "does-not-matter", "")


def test_validate_checksum_is_case_insensitive(tmp_path):
    artifact = tmp_path / "a.bin"
    artifact.write_bytes(PAYLOAD)
    digest = hashlib.sha256(PAYLOAD).hexdigest()

    assert validate_checksum(artifact, digest.upper())


def test_download_with_checksum_mismatch_returns_false(
    app_settings, tmp_path, mock_logger
):
    calls: List[str] = []
    mechanisms = [FakeDownloader(app_settings, "only", True, calls)]

    result = download_with_checksum(
        "http://x/salt.deb",
        tmp_path / "salt.deb",
        "0" * 64,
        mechanisms,
        app_settings,
        mock_logger,
    )

    assert result is False
    assert calls == ["only"]


def test_download_with_checksum_match_returns_true(app_settings, tmp_path):
    calls: List[str] = []
    mechanisms = [FakeDownloader(app_settings, "only", True, calls)]

    assert download_with_checksum(
        "http://x/salt.deb",
        tmp_path / "salt.deb",
        hashlib.sha256(PAYLOAD).hexdigest(),
        mechanisms,
        app_settings,
    )


def test_requests_downloader_streams_and_reports_progress(
    mocker: MockerFixture, app_settings, tmp_path
):
    response = MagicMock()
    response.headers = {"Content-Length": "6"}
    response.iter_content.return_value = [b"abc", b"", b"def"]
    mock_get = mocker.patch("common.download_utils.requests.get", return_value=response)
    progress: List[tuple] = []
    destination = tmp_path / "file.bin"

    ok = RequestsDownloader(app_settings).download(
        "http://x/file.bin", destination, lambda done, total: progress.append((done, total))
    )

    assert ok
    mock_get.assert_called_once_with(
        "http://x/file.bin", stream=True, timeout=app_settings.http_timeout
    )
    assert destination.read_bytes() == b"abcdef"
    assert progress == [(3, 6), (6, 6)]
    response.close.assert_called_once()


@pytest.mark.parametrize("header", ["abc", "12 bytes", "-5"])
def test_requests_downloader_ignores_malformed_content_length(
    mocker: MockerFixture, app_settings, tmp_path, mock_logger, header
):
    response = MagicMock()
    response.headers = {"Content-Length": header}
    response.iter_content.return_value = [b"abc"]
    mocker.patch("common.download_utils.requests.get", return_value=response)
    progress: List[tuple] = []
    destination = tmp_path / "file.bin"

    ok = RequestsDownloader(app_settings, mock_logger).download(
        "http://x/file.bin", destination, lambda done, total: progress.append((done, total))
    )

    assert ok
    assert destination.read_bytes() == b"abc"
    assert progress == [(3, 0)]
    response.close.assert_called_once()


@pytest.mark.parametrize(
    "error",
    [
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.Timeout("slow"),
        requests.exceptions.HTTPError("404"),
    ],
)
def test_requests_downloader_returns_false_on_request_errors(
    mocker: MockerFixture, app_settings, tmp_path, mock_logger, error
):
    mocker.patch("common.download_utils.requests.get", side_effect=error)

    assert not RequestsDownloader(app_settings, mock_logger).download(
        "http://x/file.bin", tmp_path / "file.bin"
    )
    mock_logger.warning.assert_called_once()


def test_curl_downloader_command(mocker: MockerFixture, app_settings, tmp_path):
    mock_run = mocker.patch(
        "common.download_utils.run_command",
        return_value=ProcessOutcome(exit_code=0),
    )
    destination = tmp_path / "f.rpm"

    assert CurlDownloader(app_settings).download("http://x/f.rpm", destination)

    assert mock_run.call_args[0][0] == ["curl", "-fL", "-o", str(destination), "http://x/f.rpm"]


def test_default_download_mechanisms_per_family(app_settings):
    linux = default_download_mechanisms(PlatformFamily.DEBIAN, app_settings)
    windows = default_download_mechanisms(PlatformFamily.WINDOWS, app_settings)

    assert [type(m) for m in linux] == [RequestsDownloader, WgetDownloader, CurlDownloader]
    assert [type(m) for m in windows] == [
        RequestsDownloader,
        PowerShellDownloader,
        CurlDownloader,
    ]
