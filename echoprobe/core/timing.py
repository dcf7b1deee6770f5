"""
Timestamping and probe payload framing for EchoProbe.

Every probe payload starts with the sender's monotonic send time as an
unsigned 64-bit big-endian nanosecond count, followed by filler bytes.
"""

import itertools
import struct
import time

HEADER = struct.Struct('!Q')
HEADER_SIZE = HEADER.size

_FILLER = b'abcdefghijklmnopqrstuvwxyz0123456789'


def now_ns() -> int:
    """Monotonic clock reading in nanoseconds."""
    return time.monotonic_ns()


def elapsed_ms(start_ns: int, end_ns: int) -> float:
    """Convert a nanosecond interval to milliseconds."""
    return (end_ns - start_ns) / 1e6


def make_filler(payload_size: int) -> bytes:
    """Filler that brings a stamped payload up to ``payload_size`` bytes."""
    length = max(0, payload_size - HEADER_SIZE)
    return bytes(itertools.islice(itertools.cycle(_FILLER), length))


def stamp(send_ns: int, filler: bytes = b'') -> bytes:
    """Prefix ``filler`` with the send timestamp header."""
    return HEADER.pack(send_ns) + filler


def read_stamp(data: bytes) -> int:
    """Extract the send timestamp from an echoed payload."""
    if len(data) < HEADER_SIZE:
        raise ValueError(f"Payload of {len(data)} bytes has no timestamp header")
    return HEADER.unpack_from(data)[0]
