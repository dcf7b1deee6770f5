"""
EchoProbe - Active round-trip latency probing

Echo reflectors, timed one-shot probes and independently scheduled probe
workers that keep thread-safe rolling statistics of the round-trip times
they observe.
"""

__version__ = "1.0.0"
__author__ = "EchoProbe Authors"
__license__ = "MIT"

from .core.config import Config, ProbeWorkerConfig, ReflectorConfig
from .core.logger import setup_logging
from .probe import ProbeOutcome, ProbeWorker, probe, send_timed_packet
from .reflector import TcpReflector, UdpReflector
from .registry import WorkerRegistry
from .stats import Sample, StatisticsStore

__all__ = [
    "Config",
    "ProbeOutcome",
    "ProbeWorker",
    "ProbeWorkerConfig",
    "ReflectorConfig",
    "Sample",
    "StatisticsStore",
    "TcpReflector",
    "UdpReflector",
    "WorkerRegistry",
    "probe",
    "send_timed_packet",
    "setup_logging",
]
