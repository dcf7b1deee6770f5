"""
Exception types raised by EchoProbe components.
"""


class EchoProbeError(Exception):
    """Base class for all EchoProbe errors."""


class BindError(EchoProbeError):
    """A reflector could not acquire its socket."""

    def __init__(self, proto: str, host: str, port: int, cause: Exception):
        self.proto = proto
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(f"{proto} reflector failed to bind {host}:{port}: {cause}")


class ProbeError(EchoProbeError):
    """A timed probe failed."""


class DialError(ProbeError):
    """The probe sender could not reach the target."""


class ProbeTimeoutError(ProbeError):
    """No echo arrived within the configured timeout."""


class TransientIOError(EchoProbeError):
    """A read or write failed on an established reflector connection."""


class EmptyStatisticsError(EchoProbeError):
    """An aggregate was requested over zero samples."""


class WorkerStateError(EchoProbeError):
    """A worker lifecycle call was made in the wrong state."""


class ReflectorStateError(EchoProbeError):
    """A reflector was reconfigured while running."""


class WorkerNotFoundError(EchoProbeError, KeyError):
    """No worker is registered under the requested id."""

    def __str__(self) -> str:
        return Exception.__str__(self)
