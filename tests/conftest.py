import socket
import threading

import pytest

from echoprobe.core.config import ReflectorConfig
from echoprobe.reflector import TcpReflector, UdpReflector

LOCALHOST = "127.0.0.1"


def reflector_config(protocol):
    return ReflectorConfig(protocol=protocol, port=0, host=LOCALHOST, poll_interval=0.1)


@pytest.fixture
def udp_reflector():
    reflector = UdpReflector(reflector_config("udp"))
    reflector.start()
    yield reflector
    reflector.stop()


@pytest.fixture
def tcp_reflector():
    reflector = TcpReflector(reflector_config("tcp"))
    reflector.start()
    yield reflector
    reflector.stop()


@pytest.fixture
def closed_port():
    """A TCP port on localhost with nothing listening."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind((LOCALHOST, 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def silent_tcp_listener():
    """Accepts connections but never writes back."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind((LOCALHOST, 0))
    server.listen(16)
    server.settimeout(0.1)
    accepted = []
    done = threading.Event()

    def accept_loop():
        while not done.is_set():
            try:
                conn, _ = server.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            accepted.append(conn)

    thread = threading.Thread(target=accept_loop, daemon=True)
    thread.start()
    yield server.getsockname()[1]
    done.set()
    thread.join(1)
    for conn in accepted:
        conn.close()
    server.close()


@pytest.fixture
def stalled_tcp_port():
    """A listener whose accept queue is full, so new handshakes hang."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind((LOCALHOST, 0))
    server.listen(0)
    port = server.getsockname()[1]

    fillers = []
    for _ in range(4):
        filler = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        filler.setblocking(False)
        filler.connect_ex((LOCALHOST, port))
        fillers.append(filler)

    yield port
    for filler in fillers:
        filler.close()
    server.close()


@pytest.fixture
def silent_udp_socket():
    """A bound UDP socket that swallows every datagram."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind((LOCALHOST, 0))
    yield sock.getsockname()[1]
    sock.close()
