"""
UDP and TCP echo reflectors.

A reflector binds one port and echoes every byte it receives back to the
sender, serving as the far end of a timed probe.
"""

import logging
import socket
import threading
from abc import ABC, abstractmethod
from typing import Optional, Set

from ..core.cancellation import CancellationToken
from ..core.config import ReflectorConfig
from ..core.errors import BindError, ReflectorStateError, TransientIOError

LISTEN_BACKLOG = 128


class Reflector(ABC):
    """Echo service bound to a single port.

    ``start`` binds and returns once the receive loop is running on its own
    thread. ``stop`` cancels the loop; blocking receives are bounded by the
    poll interval, so the loop exits within roughly one poll interval.
    """

    proto = ""

    def __init__(self, config: Optional[ReflectorConfig] = None):
        self.config = config or ReflectorConfig(protocol=self.proto)
        self.logger = logging.getLogger(__name__)

        self._sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._token = CancellationToken()
        self._bound_port: Optional[int] = None

    @property
    def port(self) -> int:
        """Bound port while running, configured port otherwise."""
        if self._bound_port is not None:
            return self._bound_port
        return self.config.port

    def set_port(self, port: int) -> None:
        if self.running:
            raise ReflectorStateError(f"cannot change port of running {self.proto} reflector")
        self.config.port = port
        self._bound_port = None

    @property
    def running(self) -> bool:
        return (self._thread is not None and self._thread.is_alive()
                and not self._token.cancelled)

    def start(self) -> None:
        """Bind the socket and start the echo loop."""
        if self.running:
            self.logger.warning(f"{self.proto} reflector already running on port {self.port}")
            return

        self._sock = self._bind()
        self._bound_port = self._sock.getsockname()[1]
        self._token = CancellationToken()

        self._thread = threading.Thread(
            target=self._run,
            name=f"{self.proto}-reflector-{self._bound_port}",
            daemon=True,
        )
        self._thread.start()

        self.logger.info(f"{self.proto.upper()} reflector started on {self.config.host}:{self._bound_port}")

    def stop(self, timeout: Optional[float] = 5) -> None:
        """Stop the echo loop and release the socket."""
        self._token.cancel("reflector stopped")

        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                self.logger.warning(f"{self.proto} reflector loop did not exit within {timeout}s")

        if self._sock:
            self._sock.close()
            self._sock = None

        self.logger.info(f"{self.proto.upper()} reflector on port {self.port} stopped")

    def _bind(self) -> socket.socket:
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            self._prepare(sock)
        except OSError as e:
            sock.close()
            err = BindError(self.proto, self.config.host, self.config.port, e)
            self.logger.error(str(err))
            raise err from e
        sock.settimeout(self.config.poll_interval)
        return sock

    def _prepare(self, sock: socket.socket) -> None:
        """Hook run after bind, before the loop starts."""

    @abstractmethod
    def _create_socket(self) -> socket.socket:
        ...

    @abstractmethod
    def _run(self) -> None:
        ...


class UdpReflector(Reflector):
    """Echoes each datagram verbatim to its source address."""

    proto = "udp"

    def _create_socket(self) -> socket.socket:
        return socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    def _run(self) -> None:
        sock = self._sock
        while not self._token.cancelled:
            try:
                data, addr = sock.recvfrom(self.config.buffer_size)
            except socket.timeout:
                continue
            except OSError as e:
                if self._token.cancelled:
                    break
                self.logger.warning(f"UDP reflector receive error: {e}")
                continue

            try:
                sock.sendto(data, addr)
            except OSError as e:
                self.logger.warning(f"UDP reflector failed to echo to {addr}: {e}")

        self.logger.debug(f"UDP reflector loop on port {self._bound_port} exited")


class TcpReflector(Reflector):
    """Accepts any number of connections and echoes each on its own thread."""

    proto = "tcp"

    def __init__(self, config: Optional[ReflectorConfig] = None):
        super().__init__(config)
        self._connections: Set[socket.socket] = set()
        self._conn_lock = threading.Lock()

    @property
    def connection_count(self) -> int:
        with self._conn_lock:
            return len(self._connections)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return sock

    def _prepare(self, sock: socket.socket) -> None:
        sock.listen(LISTEN_BACKLOG)

    def stop(self, timeout: Optional[float] = 5) -> None:
        super().stop(timeout)
        with self._conn_lock:
            connections = list(self._connections)
            self._connections.clear()
        for conn in connections:
            try:
                conn.close()
            except OSError:
                pass

    def _run(self) -> None:
        sock = self._sock
        while not self._token.cancelled:
            try:
                conn, addr = sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._token.cancelled:
                    break
                self.logger.warning(f"TCP reflector accept error: {e}")
                continue

            conn.settimeout(self.config.poll_interval)
            with self._conn_lock:
                self._connections.add(conn)
            threading.Thread(
                target=self._serve,
                args=(conn, addr),
                name=f"tcp-reflector-conn-{addr[0]}:{addr[1]}",
                daemon=True,
            ).start()

        self.logger.debug(f"TCP reflector loop on port {self._bound_port} exited")

    def _serve(self, conn: socket.socket, addr) -> None:
        """Echo one connection until the peer closes or an error occurs."""
        self.logger.debug(f"TCP reflector accepted connection from {addr}")
        try:
            self._echo(conn, addr)
        except TransientIOError as e:
            self.logger.warning(str(e))
        finally:
            with self._conn_lock:
                self._connections.discard(conn)
            conn.close()
        self.logger.debug(f"TCP reflector closed connection from {addr}")

    def _echo(self, conn: socket.socket, addr) -> None:
        token = self._token
        while not token.cancelled:
            try:
                data = conn.recv(self.config.buffer_size)
            except socket.timeout:
                continue
            except OSError as e:
                if token.cancelled:
                    return
                raise TransientIOError(f"read from {addr} failed: {e}") from e

            if not data:
                return

            try:
                conn.sendall(data)
            except OSError as e:
                raise TransientIOError(f"write to {addr} failed: {e}") from e
