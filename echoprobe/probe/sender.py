"""
One-shot timed probes against a UDP or TCP reflector.
"""

import enum
import errno
import logging
import os
import select
import socket
from dataclasses import dataclass
from typing import Optional

from ..core.cancellation import CancellationToken, CancelledError
from ..core.errors import DialError, ProbeError, ProbeTimeoutError
from ..core.timing import elapsed_ms, now_ns, stamp

logger = logging.getLogger(__name__)

# Longest single blocking wait before the cancellation token is re-checked
WAIT_SLICE = 0.1
RECV_SIZE = 2048
_CONNECT_PENDING = (0, errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EALREADY)


class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of a single probe: an RTT, a timeout, an error or a cancellation."""
    kind: OutcomeKind
    rtt_ms: float = -1.0
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def timed_out(self) -> bool:
        return self.kind is OutcomeKind.TIMEOUT

    @property
    def failed(self) -> bool:
        return self.kind is OutcomeKind.ERROR

    @property
    def cancelled(self) -> bool:
        return self.kind is OutcomeKind.CANCELLED


def send_timed_packet(target: str, port: int, timeout: float, payload: bytes = b'',
                      protocol: str = "udp",
                      cancel: Optional[CancellationToken] = None) -> float:
    """Send one timestamped packet to a reflector and return the RTT in ms.

    ``payload`` is filler appended after the send timestamp header. The wait
    for the echo is bounded by ``timeout`` seconds from the moment of sending.

    Raises:
        DialError: the target could not be resolved or connected to.
        ProbeTimeoutError: no echo arrived within ``timeout``.
        ProbeError: any other socket failure.
        CancelledError: ``cancel`` was triggered while waiting.
    """
    if cancel is not None:
        cancel.raise_if_cancelled()

    if protocol == "udp":
        return _send_udp(target, port, timeout, payload, cancel)
    if protocol == "tcp":
        return _send_tcp(target, port, timeout, payload, cancel)
    raise ValueError(f"Unknown probe protocol: {protocol}")


def probe(target: str, port: int, timeout: float, payload: bytes = b'',
          protocol: str = "udp",
          cancel: Optional[CancellationToken] = None) -> ProbeOutcome:
    """Like :func:`send_timed_packet` but reports failures as an outcome."""
    try:
        rtt = send_timed_packet(target, port, timeout, payload, protocol, cancel)
        return ProbeOutcome(OutcomeKind.SUCCESS, rtt)
    except ProbeTimeoutError as e:
        logger.debug(f"{protocol} probe to {target}:{port} timed out: {e}")
        return ProbeOutcome(OutcomeKind.TIMEOUT, error=e)
    except ProbeError as e:
        logger.debug(f"{protocol} probe to {target}:{port} failed: {e}")
        return ProbeOutcome(OutcomeKind.ERROR, error=e)
    except CancelledError as e:
        return ProbeOutcome(OutcomeKind.CANCELLED, error=e)


def _resolve(target: str, port: int, sock_type: int):
    try:
        infos = socket.getaddrinfo(target, port, type=sock_type)
    except socket.gaierror as e:
        raise DialError(f"cannot resolve {target}: {e}") from e
    family, _, proto, _, address = infos[0]
    return family, proto, address


def _send_udp(target, port, timeout, payload, cancel) -> float:
    family, proto, address = _resolve(target, port, socket.SOCK_DGRAM)
    with socket.socket(family, socket.SOCK_DGRAM, proto) as sock:
        try:
            sock.connect(address)
        except OSError as e:
            raise DialError(f"cannot reach {target}:{port}: {e}") from e

        send_ns = now_ns()
        try:
            sock.send(stamp(send_ns, payload))
        except ConnectionRefusedError as e:
            raise DialError(f"{target}:{port} refused: {e}") from e
        except OSError as e:
            raise ProbeError(f"send to {target}:{port} failed: {e}") from e

        recv_ns = _await_echo(sock, send_ns, timeout, cancel, target, port)
        return elapsed_ms(send_ns, recv_ns)


def _send_tcp(target, port, timeout, payload, cancel) -> float:
    conn = _connect_tcp(target, port, timeout, cancel)

    with conn:
        send_ns = now_ns()
        try:
            conn.sendall(stamp(send_ns, payload))
        except OSError as e:
            raise ProbeError(f"send to {target}:{port} failed: {e}") from e

        recv_ns = _await_echo(conn, send_ns, timeout, cancel, target, port)
        return elapsed_ms(send_ns, recv_ns)


def _connect_tcp(target: str, port: int, timeout: float,
                 cancel: Optional[CancellationToken]) -> socket.socket:
    """Non-blocking connect, waited on in slices so a cancel is seen promptly."""
    family, proto, address = _resolve(target, port, socket.SOCK_STREAM)
    sock = socket.socket(family, socket.SOCK_STREAM, proto)
    try:
        sock.setblocking(False)
        err = sock.connect_ex(address)
        if err not in _CONNECT_PENDING:
            raise DialError(f"cannot connect to {target}:{port}: {os.strerror(err)}")

        deadline_ns = now_ns() + int(timeout * 1e9)
        while err != 0:
            remaining = (deadline_ns - now_ns()) / 1e9
            if remaining <= 0:
                raise ProbeTimeoutError(f"connect to {target}:{port} timed out after {timeout}s")
            _, writable, _ = select.select([], [sock], [], min(remaining, WAIT_SLICE))
            if writable:
                err = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
                if err:
                    raise DialError(f"cannot connect to {target}:{port}: {os.strerror(err)}")
                break
            if cancel is not None:
                cancel.raise_if_cancelled()

        sock.settimeout(timeout)
        return sock
    except OSError as e:
        sock.close()
        raise DialError(f"cannot connect to {target}:{port}: {e}") from e
    except Exception:
        sock.close()
        raise


def _await_echo(sock: socket.socket, send_ns: int, timeout: float,
                cancel: Optional[CancellationToken], target: str, port: int) -> int:
    """Block until the first echoed bytes arrive; return their arrival time."""
    deadline_ns = send_ns + int(timeout * 1e9)
    while True:
        remaining = (deadline_ns - now_ns()) / 1e9
        if remaining <= 0:
            raise ProbeTimeoutError(f"no echo from {target}:{port} within {timeout}s")
        sock.settimeout(min(remaining, WAIT_SLICE) if cancel is not None else remaining)
        try:
            data = sock.recv(RECV_SIZE)
            recv_ns = now_ns()
        except socket.timeout:
            if cancel is not None:
                cancel.raise_if_cancelled()
            continue
        except ConnectionRefusedError as e:
            raise DialError(f"{target}:{port} refused: {e}") from e
        except OSError as e:
            raise ProbeError(f"receive from {target}:{port} failed: {e}") from e

        if not data:
            raise ProbeError(f"{target}:{port} closed the connection before echoing")
        return recv_ns
