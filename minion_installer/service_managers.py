# minion_installer/service_managers.py
# -*- coding: utf-8 -*-
"""
Service control mechanisms.

A platform family gets an ordered list of ServiceMechanism objects: the
primary tool first (systemctl, sc) and the legacy tool second (service,
net). PackageInstaller walks the list and stops at the first success.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from common.command_utils import (
    ProcessOutcome,
    run_command,
    run_elevated_command,
)
from minion_installer.config_models import (
    AppSettings,
    PlatformFamily,
    ServiceState,
)

# Ordered (substring, state) pairs. The first substring found in the tool
# output decides, so longer words that contain shorter ones come first.
SYSTEMD_VOCABULARY: Tuple[Tuple[str, ServiceState], ...] = (
    ("deactivating", ServiceState.STOPPING),
    ("activating", ServiceState.STARTING),
    ("inactive", ServiceState.STOPPED),
    ("failed", ServiceState.STOPPED),
    ("active", ServiceState.RUNNING),
)
SYSV_VOCABULARY: Tuple[Tuple[str, ServiceState], ...] = (
    ("not running", ServiceState.STOPPED),
    ("stopped", ServiceState.STOPPED),
    ("running", ServiceState.RUNNING),
)
SC_VOCABULARY: Tuple[Tuple[str, ServiceState], ...] = (
    ("START_PENDING", ServiceState.STARTING),
    ("STOP_PENDING", ServiceState.STOPPING),
    ("RUNNING", ServiceState.RUNNING),
    ("STOPPED", ServiceState.STOPPED),
)

SYSTEMD_UNIT_TEMPLATE = """[Unit]
Description=The Salt Minion
Documentation=man:salt-minion(1) file:///usr/share/doc/salt/html/contents.html https://docs.saltproject.io/en/latest/
After=network.target salt-master.service

[Service]
KillMode=process
Type=notify
NotifyAccess=all
ExecStart={exec_start}
LimitNOFILE=8192
User=root
Group=root
Restart=always
RestartSec=10

[Install]
WantedBy=multi-user.target
"""


def classify_status(
    output: str, vocabulary: Sequence[Tuple[str, ServiceState]]
) -> Optional[ServiceState]:
    """Map tool output to a ServiceState using the first matching substring."""
    for needle, state in vocabulary:
        if needle in output:
            return state
    return None


class ServiceMechanism(ABC):
    """One way of controlling a registered service."""

    name: str = ""
    vocabulary: Sequence[Tuple[str, ServiceState]] = ()
    # systemctl is-active exits non-zero for a stopped unit but still
    # prints its state.
    state_on_failure: bool = False

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def _run_elevated(self, command: List[str]) -> ProcessOutcome:
        return run_elevated_command(
            command, self.app_settings, current_logger=self.logger
        )

    def _run(self, command: List[str]) -> ProcessOutcome:
        return run_command(command, self.app_settings, current_logger=self.logger)

    @abstractmethod
    def start(self, service_name: str) -> ProcessOutcome:
        pass

    @abstractmethod
    def stop(self, service_name: str) -> ProcessOutcome:
        pass

    @abstractmethod
    def _status_command(self, service_name: str) -> List[str]:
        pass

    def query_status(self, service_name: str) -> Optional[ServiceState]:
        """
        Query the service state.

        Returns None when the query itself failed so that the caller can try
        the next mechanism.
        """
        outcome = self._run(self._status_command(service_name))
        state = self._classify(service_name, outcome.stdout)
        if outcome.ok:
            return state or ServiceState.UNKNOWN
        return state if self.state_on_failure else None

    def _classify(self, service_name: str, output: str) -> Optional[ServiceState]:
        return classify_status(output, self.vocabulary)

    def is_registered(self, service_name: str) -> bool:
        """Whether the host knows about the service. Legacy tools cannot tell."""
        return False

    def unregister(self, service_name: str) -> None:
        """Remove the service registration, best effort."""
        pass


class SystemdServiceManager(ServiceMechanism):
    name = "systemctl"
    vocabulary = SYSTEMD_VOCABULARY
    state_on_failure = True

    def start(self, service_name: str) -> ProcessOutcome:
        return self._run_elevated(["systemctl", "start", service_name])

    def stop(self, service_name: str) -> ProcessOutcome:
        return self._run_elevated(["systemctl", "stop", service_name])

    def _status_command(self, service_name: str) -> List[str]:
        return ["systemctl", "is-active", service_name]

    def _classify(self, service_name: str, output: str) -> Optional[ServiceState]:
        # is-active prints exactly one state word.
        return classify_status(output.strip().lower(), self.vocabulary)

    def is_registered(self, service_name: str) -> bool:
        unit = f"{service_name}.service"
        outcome = self._run(["systemctl", "list-unit-files", unit])
        return outcome.ok and unit in outcome.stdout

    def unregister(self, service_name: str) -> None:
        self._run_elevated(["systemctl", "disable", service_name])
        self.stop(service_name)


class SysVServiceManager(ServiceMechanism):
    name = "service"
    vocabulary = SYSV_VOCABULARY

    def start(self, service_name: str) -> ProcessOutcome:
        return self._run_elevated(["service", service_name, "start"])

    def stop(self, service_name: str) -> ProcessOutcome:
        return self._run_elevated(["service", service_name, "stop"])

    def _status_command(self, service_name: str) -> List[str]:
        return ["service", service_name, "status"]

    def _classify(self, service_name: str, output: str) -> Optional[ServiceState]:
        return classify_status(output.lower(), self.vocabulary)


class ScServiceManager(ServiceMechanism):
    name = "sc"
    vocabulary = SC_VOCABULARY

    def start(self, service_name: str) -> ProcessOutcome:
        return self._run_elevated(["sc", "start", service_name])

    def stop(self, service_name: str) -> ProcessOutcome:
        return self._run_elevated(["sc", "stop", service_name])

    def _status_command(self, service_name: str) -> List[str]:
        return ["sc", "query", service_name]

    def is_registered(self, service_name: str) -> bool:
        return self._run(["sc", "query", service_name]).ok

    def unregister(self, service_name: str) -> None:
        self.stop(service_name)
        self._run_elevated(["sc", "delete", service_name])


class NetServiceManager(ServiceMechanism):
    """``net start`` without a name lists the running services."""

    name = "net"

    def start(self, service_name: str) -> ProcessOutcome:
        return self._run_elevated(["net", "start", service_name])

    def stop(self, service_name: str) -> ProcessOutcome:
        return self._run_elevated(["net", "stop", service_name])

    def _status_command(self, service_name: str) -> List[str]:
        return ["net", "start"]

    def _classify(self, service_name: str, output: str) -> Optional[ServiceState]:
        if service_name.lower() in output.lower():
            return ServiceState.RUNNING
        return ServiceState.STOPPED


def default_service_mechanisms(
    family: PlatformFamily,
    app_settings: AppSettings,
    logger: Optional[logging.Logger] = None,
) -> List[ServiceMechanism]:
    """Primary then legacy service mechanism for a platform family."""
    if family.is_windows:
        return [
            ScServiceManager(app_settings, logger),
            NetServiceManager(app_settings, logger),
        ]
    return [
        SystemdServiceManager(app_settings, logger),
        SysVServiceManager(app_settings, logger),
    ]
