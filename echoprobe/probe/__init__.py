from .sender import OutcomeKind, ProbeOutcome, probe, send_timed_packet
from .worker import ProbeWorker, WorkerState

__all__ = [
    "OutcomeKind",
    "ProbeOutcome",
    "ProbeWorker",
    "WorkerState",
    "probe",
    "send_timed_packet",
]
