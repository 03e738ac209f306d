"""Settings of an application node and helpers for their defaults."""

from __future__ import annotations

import enum
import ipaddress
import logging
import queue
import socket
import ssl
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import psutil

from dqcluster.roles import NodeInfo, RolesConfig

MAX_CONCURRENT_LEADER_CONNS = 10
"""Default cap on connections opened while searching for the leader."""

DEFAULT_PORT = 9000

_logger = logging.getLogger("dqcluster")


class LogLevel(enum.IntEnum):
    """Severity of a log message."""

    NONE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4

    def __str__(self) -> str:
        return self.name


LogFunc = Callable[..., None]
DialFunc = Callable[[str], socket.socket]
RolesHook = Callable[[NodeInfo, Sequence[NodeInfo]], None]


def default_log_func(level: LogLevel, message: str, *args: object) -> None:
    """Log only error messages, prefixed with their level."""
    if level != LogLevel.ERROR:
        return
    text = message % args if args else message
    _logger.error("%s", f"[{level}] dqlite: {text}")


def _no_hook(leader: NodeInfo, cluster: Sequence[NodeInfo]) -> None:
    return None


@dataclass
class AppOptions:
    """Parameters of an application node.

    Durations are expressed in seconds.
    """

    address: str = ""
    cluster: list[str] = field(default_factory=list)
    log: LogFunc = default_log_func
    tracing: LogLevel = LogLevel.NONE
    tls_listen: ssl.SSLContext | None = None
    tls_dial: ssl.SSLContext | None = None
    external_dial: DialFunc | None = None
    external_accept: queue.Queue | None = None
    voters: int = 3
    standbys: int = 3
    roles_adjustment_frequency: float = 30.0
    on_roles_adjustment: RolesHook = _no_hook
    failure_domain: int = 0
    network_latency: float = 0.0
    concurrent_leader_conns: int = MAX_CONCURRENT_LEADER_CONNS
    unix_socket: str = ""
    snapshot_threshold: int = 0
    snapshot_trailing: int = 0
    disk_mode: bool = False
    auto_recovery: bool = True

    def __post_init__(self) -> None:
        if self.voters < 3 or self.voters % 2 == 0:
            raise ValueError(
                f"invalid voters {self.voters}: must be an odd number greater than 1"
            )

    @property
    def roles(self) -> RolesConfig:
        """Target role counts for the roles algorithm."""
        return RolesConfig(voters=self.voters, standbys=self.standbys)

    @property
    def tls_enabled(self) -> bool:
        """Whether network traffic is encrypted."""
        return self.tls_listen is not None and self.tls_dial is not None


def is_ipv4(ip: str) -> bool:
    """Return True if the given address, possibly with a port, is IPv4."""
    return ip.count(":") < 2


def _is_loopback(flags: str, ip: str) -> bool:
    if "loopback" in (flag.strip() for flag in flags.split(",")):
        return True
    try:
        return ipaddress.ip_address(ip).is_loopback
    except ValueError:
        return False


def default_address() -> str:
    """Return the first non-loopback interface address with port 9000."""
    stats = psutil.net_if_stats()
    for name, addrs in psutil.net_if_addrs().items():
        ip_addrs = [a for a in addrs if a.family in (socket.AF_INET, socket.AF_INET6)]
        if not ip_addrs:
            continue
        ip = ip_addrs[0].address.split("%", 1)[0]
        flags = getattr(stats.get(name), "flags", "") or ""
        if _is_loopback(flags, ip):
            continue
        if is_ipv4(ip):
            return f"{ip}:{DEFAULT_PORT}"
        return f"[{ip}]:{DEFAULT_PORT}"
    raise OSError("no suitable network interface found")