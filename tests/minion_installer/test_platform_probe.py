import pytest
from pytest_mock import MockerFixture

from common.command_utils import ProcessOutcome
from minion_installer.config_models import PlatformFamily
from minion_installer.platform_probe import (
    DEFAULT_HOSTNAME,
    PlatformProbe,
    normalize_platform_name,
    parse_os_release,
    parse_wmic_value,
)

OS_RELEASE = """NAME="Ubuntu"
VERSION_ID="22.04"
# comment
ID=ubuntu
"""


def fake_run_command(responses):
    """Return a run_command replacement answering from a {cmd tuple: stdout} map."""

    def _run(command, app_settings, current_logger=None, **kwargs):
        stdout = responses.get(tuple(command))
        if stdout is None:
            return ProcessOutcome(exit_code=127, stderr="not found")
        return ProcessOutcome(exit_code=0, stdout=stdout)

    return _run


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Ubuntu", ("ubuntu", PlatformFamily.DEBIAN)),
        ("Debian GNU/Linux", ("debian", PlatformFamily.DEBIAN)),
        ("CentOS Stream", ("centos", PlatformFamily.REDHAT)),
        ("Red Hat Enterprise Linux", ("rhel", PlatformFamily.REDHAT)),
        ("Fedora Linux", ("fedora", PlatformFamily.REDHAT)),
        ("openSUSE Leap", ("opensuse", PlatformFamily.SUSE)),
        ("Arch Linux", ("linux", PlatformFamily.GENERIC_LINUX)),
        ("Microsoft Windows 11 Pro", ("windows", PlatformFamily.WINDOWS)),
        ("Darwin", ("darwin", PlatformFamily.UNSUPPORTED)),
    ],
)
def test_normalize_platform_name(raw, expected):
    assert normalize_platform_name(raw) == expected


def test_parse_os_release_strips_quotes_and_comments():
    values = parse_os_release(OS_RELEASE)

    assert values == {"NAME": "Ubuntu", "VERSION_ID": "22.04", "ID": "ubuntu"}


def test_parse_wmic_value():
    output = "\r\n\r\nCaption=Microsoft Windows 10 Pro\r\n\r\n"

    assert parse_wmic_value(output, "Caption") == "Microsoft Windows 10 Pro"
    assert parse_wmic_value(output, "Version") is None


def test_detect_linux_from_os_release(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        "minion_installer.platform_probe.run_command",
        side_effect=fake_run_command(
            {
                ("cat", "/etc/os-release"): OS_RELEASE,
                ("uname", "-m"): "aarch64\n",
                ("id", "-u"): "0\n",
                ("hostname",): "host-01\n",
            }
        ),
    )

    platform = PlatformProbe(app_settings, mock_logger, is_windows=False).detect()

    assert platform.name == "Ubuntu"
    assert platform.version == "22.04"
    assert platform.architecture == "aarch64"
    assert platform.hostname == "host-01"
    assert platform.is_elevated
    assert platform.normalized_name == "ubuntu"
    assert platform.family is PlatformFamily.DEBIAN


def test_detect_linux_falls_back_to_uname_and_defaults(
    mocker: MockerFixture, app_settings, mock_logger
):
    mocker.patch(
        "minion_installer.platform_probe.run_command",
        side_effect=fake_run_command(
            {("uname", "-s"): "Linux\n", ("id", "-u"): "1000\n"}
        ),
    )

    platform = PlatformProbe(app_settings, mock_logger, is_windows=False).detect()

    assert platform.name == "Linux"
    assert platform.version == "unknown"
    assert platform.architecture == "x86_64"
    assert platform.hostname == DEFAULT_HOSTNAME
    assert not platform.is_elevated
    assert platform.family is PlatformFamily.GENERIC_LINUX


def test_detect_windows_uses_wmic(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        "minion_installer.platform_probe.run_command",
        side_effect=fake_run_command(
            {
                ("wmic", "os", "get", "Caption", "/value"): "Caption=Microsoft Windows 11 Pro\n",
                ("wmic", "os", "get", "Version", "/value"): "Version=10.0.22631\n",
                ("wmic", "os", "get", "OSArchitecture", "/value"): "OSArchitecture=64-bit\n",
                ("hostname",): "WIN-PC\n",
            }
        ),
    )
    mocker.patch(
        "minion_installer.platform_probe.PlatformProbe._check_admin_privileges",
        return_value=True,
    )

    platform = PlatformProbe(app_settings, mock_logger, is_windows=True).detect()

    assert platform.family is PlatformFamily.WINDOWS
    assert platform.version == "10.0.22631"
    assert platform.architecture == "64-bit"
    assert platform.is_elevated


def test_detect_never_raises(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        "minion_installer.platform_probe.run_command",
        side_effect=RuntimeError("boom"),
    )

    platform = PlatformProbe(app_settings, mock_logger, is_windows=False).detect()

    assert platform.name == "Linux"
    assert platform.hostname == DEFAULT_HOSTNAME
    assert not platform.is_elevated
    mock_logger.warning.assert_called_once()
