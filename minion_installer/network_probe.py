# minion_installer/network_probe.py
# -*- coding: utf-8 -*-
"""
Network checks for the master connection and local network enumeration.
"""

import logging
import re
import socket
from typing import List, Optional

from common.command_utils import run_command
from minion_installer.config_models import (
    AppSettings,
    NetworkConfig,
    NetworkInterface,
)

module_logger = logging.getLogger(__name__)

TCP_CONNECT_TIMEOUT = 5
PROBE_WAIT_SECONDS = 3

IPV4_RE = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")
IP_ADDR_INTERFACE_RE = re.compile(r"^\d+:\s+([^:\s]+):")


def validate_ip_address(ip: str) -> bool:
    """True for a dotted-quad IPv4 address with every octet in 0-255."""
    if not isinstance(ip, str) or not IPV4_RE.match(ip):
        return False
    return all(0 <= int(octet) <= 255 for octet in ip.split("."))


def validate_port(port: int) -> bool:
    return isinstance(port, int) and 1 <= port <= 65535


def parse_ip_addr_output(output: str) -> List[NetworkInterface]:
    """Parse ``ip addr show`` output into (interface, IPv4) pairs."""
    interfaces: List[NetworkInterface] = []
    current_interface: Optional[str] = None
    for line in output.splitlines():
        trimmed = line.strip()
        match = IP_ADDR_INTERFACE_RE.match(trimmed)
        if match:
            current_interface = match.group(1).split("@")[0]
            continue
        if trimmed.startswith("inet ") and current_interface:
            ip = trimmed.split()[1].split("/")[0]
            interfaces.append(NetworkInterface(name=current_interface, ip=ip))
    return interfaces


def parse_ifconfig_output(output: str) -> List[NetworkInterface]:
    interfaces: List[NetworkInterface] = []
    for block in output.split("\n\n"):
        lines = block.strip().splitlines()
        if not lines:
            continue
        name = lines[0].split(":")[0].split()[0].strip()
        for line in lines[1:]:
            parts = line.split()
            if "inet" in parts:
                ip = parts[parts.index("inet") + 1]
                interfaces.append(
                    NetworkInterface(name=name, ip=ip.replace("addr:", ""))
                )
                break
    return interfaces


class NetworkProbe:
    """Reachability checks against the master and local network discovery."""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        is_windows: bool = False,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger
        self.is_windows = is_windows

    def validate_reachability(self, address: str, port: int) -> bool:
        """
        True if either the TCP check or the ICMP check succeeds.

        Never raises: any unexpected error counts as "not reachable" and the
        caller decides whether to continue without validation.
        """
        symbols = self.app_settings.symbols
        self.logger.info(
            f"{symbols.get('gear', '⚙️')} Validating connection to master at {address}:{port}"
        )
        try:
            tcp_ok = self.check_tcp_connection(address, port)
            icmp_ok = self.ping_host(address)
            reachable = tcp_ok or icmp_ok
        except Exception as e:
            self.logger.error(f"Connection validation error: {e}")
            return False

        if reachable:
            self.logger.info(
                f"{symbols.get('success', '✅')} Master connection validation successful"
            )
        else:
            self.logger.warning(
                f"{symbols.get('warning', '!')} Master connection validation failed"
            )
        return reachable

    def check_tcp_connection(self, host: str, port: int) -> bool:
        """Socket probe, then nc, then telnet. First success wins."""
        for check in (
            self._tcp_socket_check,
            self._tcp_netcat_check,
            self._tcp_telnet_check,
        ):
            try:
                if check(host, port):
                    return True
            except Exception as e:
                self.logger.debug(f"TCP check {check.__name__} failed: {e}")
        return False

    def _tcp_socket_check(self, host: str, port: int) -> bool:
        try:
            with socket.create_connection(
                (host, port), timeout=TCP_CONNECT_TIMEOUT
            ):
                return True
        except OSError as e:
            self.logger.debug(f"Socket connection to {host}:{port} failed: {e}")
            return False

    def _tcp_netcat_check(self, host: str, port: int) -> bool:
        return run_command(
            ["nc", "-z", "-w", str(PROBE_WAIT_SECONDS), host, str(port)],
            self.app_settings,
            current_logger=self.logger,
            timeout=PROBE_WAIT_SECONDS + 2,
        ).ok

    def _tcp_telnet_check(self, host: str, port: int) -> bool:
        outcome = run_command(
            ["timeout", str(PROBE_WAIT_SECONDS), "telnet", host, str(port)],
            self.app_settings,
            current_logger=self.logger,
            timeout=PROBE_WAIT_SECONDS + 2,
        )
        return "Connected" in outcome.stdout or outcome.ok

    def ping_host(self, host: str) -> bool:
        if self.is_windows:
            command = ["ping", "-n", "1", "-w", str(PROBE_WAIT_SECONDS * 1000), host]
        else:
            command = ["ping", "-c", "1", "-W", str(PROBE_WAIT_SECONDS), host]
        try:
            return run_command(
                command,
                self.app_settings,
                current_logger=self.logger,
                timeout=PROBE_WAIT_SECONDS + 2,
            ).ok
        except Exception as e:
            self.logger.debug(f"Ping failed: {e}")
            return False

    def get_network_configuration(self) -> Optional[NetworkConfig]:
        try:
            return NetworkConfig(
                interfaces=self.get_network_interfaces(),
                default_gateway=self.get_default_gateway(),
                dns_servers=self.get_dns_servers(),
            )
        except Exception as e:
            self.logger.error(f"Failed to get network configuration: {e}")
            return None

    def get_network_interfaces(self) -> List[NetworkInterface]:
        outcome = run_command(
            ["ip", "addr", "show"], self.app_settings, current_logger=self.logger
        )
        if outcome.ok:
            return parse_ip_addr_output(outcome.stdout)

        outcome = run_command(
            ["ifconfig"], self.app_settings, current_logger=self.logger
        )
        if outcome.ok:
            return parse_ifconfig_output(outcome.stdout)

        self.logger.warning("Failed to get network interfaces")
        return []

    def get_default_gateway(self) -> Optional[str]:
        outcome = run_command(
            ["ip", "route", "show", "default"],
            self.app_settings,
            current_logger=self.logger,
        )
        if not outcome.ok:
            return None
        for line in outcome.stdout.splitlines():
            if "default via" in line:
                return line.split("via ", 1)[1].split()[0]
        return None

    def get_dns_servers(self) -> List[str]:
        outcome = run_command(
            ["cat", "/etc/resolv.conf"],
            self.app_settings,
            current_logger=self.logger,
        )
        if not outcome.ok:
            return []
        return [
            line.split()[1]
            for line in outcome.stdout.splitlines()
            if line.startswith("nameserver ") and len(line.split()) > 1
        ]
