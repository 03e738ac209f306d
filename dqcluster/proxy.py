"""Byte-level forwarding between network connections and local sockets."""

from __future__ import annotations

import queue
import socket
import ssl
import sys
import threading
from collections.abc import Callable

KEEPALIVE_IDLE = 3
"""Seconds of idle time before the first keepalive probe."""

KEEPALIVE_INTERVAL = 3
"""Seconds between unacknowledged keepalive probes."""

KEEPALIVE_PROBES = 3
"""Unacknowledged probes before the connection is dropped."""

USER_TIMEOUT_MS = 30000
"""Milliseconds transmitted data may stay unacknowledged before the kernel gives up."""

if sys.platform == "darwin":
    # From netinet/tcp.h.
    _TCP_KEEPINTVL: int | None = 0x101
    _TCP_KEEPCNT: int | None = 0x102
else:
    _TCP_KEEPINTVL = getattr(socket, "TCP_KEEPINTVL", None)
    _TCP_KEEPCNT = getattr(socket, "TCP_KEEPCNT", None)

_TCP_KEEPIDLE = getattr(socket, "TCP_KEEPIDLE", None) or getattr(socket, "TCP_KEEPALIVE", None)
_TCP_USER_TIMEOUT = getattr(socket, "TCP_USER_TIMEOUT", None)

_TCP_FAMILIES = (socket.AF_INET, socket.AF_INET6)
_REMOTE_TO_LOCAL = "remote -> local"
_LOCAL_TO_REMOTE = "local -> remote"
_POLL_INTERVAL = 0.05
_CHUNK = 64 * 1024

DialFunc = Callable[[str], socket.socket]


class ProxyError(Exception):
    """One or both copy directions of a proxied connection failed."""

    def __init__(self, first: str | None = None, second: str | None = None) -> None:
        self.first = first
        self.second = second
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = []
        if self.first is not None:
            parts.append(f"first: {self.first}")
        if self.second is not None:
            parts.append(f"second: {self.second}")
        return " ".join(parts)


def set_keepalive(sock: socket.socket) -> None:
    """Enable aggressive TCP keepalive and a short user timeout on ``sock``."""
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    if _TCP_KEEPIDLE is not None:
        sock.setsockopt(socket.IPPROTO_TCP, _TCP_KEEPIDLE, KEEPALIVE_IDLE)
    if _TCP_KEEPCNT is not None:
        sock.setsockopt(socket.IPPROTO_TCP, _TCP_KEEPCNT, KEEPALIVE_PROBES)
    if _TCP_KEEPINTVL is not None:
        sock.setsockopt(socket.IPPROTO_TCP, _TCP_KEEPINTVL, KEEPALIVE_INTERVAL)
    if _TCP_USER_TIMEOUT is not None:
        sock.setsockopt(socket.IPPROTO_TCP, _TCP_USER_TIMEOUT, USER_TIMEOUT_MS)


def socketpair() -> tuple[socket.socket, socket.socket]:
    """Return a pair of connected local stream sockets."""
    return socket.socketpair()


def _copy(src: socket.socket, dst: socket.socket, direction: str, results: queue.Queue) -> None:
    error: Exception | None = None
    try:
        while True:
            data = src.recv(_CHUNK)
            if not data:
                break
            dst.sendall(data)
    except (OSError, ValueError) as exc:
        error = exc
    results.put((direction, error))


def _shutdown(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except (OSError, ValueError):
        pass


def _close(*socks: socket.socket) -> None:
    for sock in socks:
        try:
            sock.close()
        except OSError:
            pass


def _force_close(*socks: socket.socket) -> None:
    for sock in socks:
        _shutdown(sock)
    _close(*socks)


def _wrap(remote: socket.socket, ssl_context: ssl.SSLContext) -> ssl.SSLSocket:
    if ssl_context.protocol == ssl.PROTOCOL_TLS_SERVER:
        return ssl_context.wrap_socket(remote, server_side=True)
    server_name = getattr(ssl_context, "server_name", None) or None
    return ssl_context.wrap_socket(remote, server_hostname=server_name)


def _wait_first(results: queue.Queue, stop: threading.Event | None):
    if stop is None:
        return results.get()
    while not stop.is_set():
        try:
            return results.get(timeout=_POLL_INTERVAL)
        except queue.Empty:
            continue
    return None


def proxy(
    remote: socket.socket,
    local: socket.socket,
    ssl_context: ssl.SSLContext | None = None,
    stop: threading.Event | None = None,
) -> None:
    """Copy data between ``remote`` and ``local`` until either side ends.

    ``remote`` is wrapped with TLS when ``ssl_context`` is given: as the
    server if it is a server-side context, as the client otherwise. Returns
    when either peer closes, when ``stop`` is set, or after a copy error, in
    which case :class:`ProxyError` is raised.
    """
    if remote.family in _TCP_FAMILIES:
        set_keepalive(remote)

    remote.settimeout(None)
    local.settimeout(None)

    if ssl_context is not None:
        try:
            remote = _wrap(remote, ssl_context)
        except (OSError, ValueError) as exc:
            _force_close(remote, local)
            raise ProxyError(first=f"{_REMOTE_TO_LOCAL}: {exc}") from exc

    results: queue.Queue = queue.Queue()
    threads = [
        threading.Thread(
            target=_copy, args=(remote, local, _REMOTE_TO_LOCAL, results), daemon=True
        ),
        threading.Thread(
            target=_copy, args=(local, remote, _LOCAL_TO_REMOTE, results), daemon=True
        ),
    ]
    for thread in threads:
        thread.start()

    first = _wait_first(results, stop)
    if first is None:
        _force_close(remote, local)
        for thread in threads:
            thread.join()
        return None

    direction, error = first
    first_msg = f"{direction}: {error}" if error is not None else None

    # One direction is over: stop the other one too.
    _shutdown(local if direction == _REMOTE_TO_LOCAL else remote)

    other_direction, other_error = results.get()
    second_msg = f"{other_direction}: {other_error}" if other_error is not None else None

    _close(remote, local)
    for thread in threads:
        thread.join()

    if first_msg is not None or second_msg is not None:
        raise ProxyError(first=first_msg, second=second_msg)
    return None


def _split_host_port(address: str) -> tuple[str, int]:
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"address {address}: missing ']' in address")
        if address[end + 1 : end + 2] != ":":
            raise ValueError(f"address {address}: missing port in address")
        host, port = address[1:end], address[end + 2 :]
    else:
        host, sep, port = address.rpartition(":")
        if not sep:
            raise ValueError(f"address {address}: missing port in address")
        if ":" in host:
            raise ValueError(f"address {address}: too many colons in address")
    try:
        return host, int(port)
    except ValueError as exc:
        raise ValueError(f"address {address}: invalid port {port!r}") from exc


def _serve_in_background(target: Callable[[], None]) -> None:
    threading.Thread(target=target, daemon=True).start()


def make_node_dial_func(stop: threading.Event, ssl_context: ssl.SSLContext) -> DialFunc:
    """Return a dial function that reaches a node over TLS through a local socket.

    The returned function connects to the given address, starts forwarding
    in the background and hands back the local end of a socket pair.
    """

    def dial(address: str, timeout: float | None = None) -> socket.socket:
        host, port = _split_host_port(address)
        server_name = getattr(ssl_context, "server_name", None) or host
        conn = socket.create_connection((host, port), timeout=timeout)
        conn.settimeout(None)
        try:
            forward_end, caller_end = socketpair()
        except OSError as exc:
            _close(conn)
            raise OSError(f"create pair of Unix sockets: {exc}") from exc

        def serve() -> None:
            try:
                tls_conn = ssl_context.wrap_socket(conn, server_hostname=server_name)
            except (OSError, ValueError):
                _force_close(conn, forward_end)
                return
            try:
                proxy(tls_conn, forward_end, None, stop)
            except (ProxyError, OSError):
                pass

        _serve_in_background(serve)
        return caller_end

    return dial


def ext_dial_func_with_proxy(stop: threading.Event, dial_func: DialFunc) -> DialFunc:
    """Return a dial function forwarding ``dial_func`` connections through a local socket."""

    def dial(address: str) -> socket.socket:
        try:
            forward_end, caller_end = socketpair()
        except OSError as exc:
            raise OSError(f"create pair of Unix sockets: {exc}") from exc
        try:
            conn = dial_func(address)
        except BaseException:
            _close(forward_end, caller_end)
            raise

        def serve() -> None:
            try:
                proxy(conn, forward_end, None, stop)
            except (ProxyError, OSError):
                pass

        _serve_in_background(serve)
        return caller_end

    return dial