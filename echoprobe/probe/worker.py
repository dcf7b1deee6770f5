"""
Recurring probe worker.

Each worker owns one statistics store and one thread, and probes a single
target/port pair on a fixed interval independently of every other worker.
"""

import enum
import logging
import threading
import time
from typing import Any, Dict, Optional

from ..core.cancellation import CancellationToken
from ..core.config import ProbeWorkerConfig, validate_worker_config
from ..core.errors import WorkerStateError
from ..core.timing import make_filler
from ..stats.store import StatisticsStore
from .sender import ProbeOutcome, probe


class WorkerState(enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class ProbeWorker:
    """Probes one reflector every ``interval`` seconds and records outcomes.

    Scheduling is deadline-from-last-start: the next deadline is taken before
    each probe, so a probe that outlasts the interval pushes the schedule back
    rather than triggering catch-up probes.
    """

    def __init__(self, config: Optional[ProbeWorkerConfig] = None,
                 store: Optional[StatisticsStore] = None):
        self.logger = logging.getLogger(__name__)
        self.config: Optional[ProbeWorkerConfig] = None
        self.store = store or StatisticsStore()

        self._state = WorkerState.CREATED
        self._state_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._token = CancellationToken()
        self._cycles = 0
        self._last_outcome: Optional[ProbeOutcome] = None

        if config is not None:
            self.set_options(config)

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is WorkerState.RUNNING

    @property
    def cycles(self) -> int:
        """Number of completed probe cycles."""
        return self._cycles

    def set_options(self, config: ProbeWorkerConfig) -> None:
        """Configure the worker. Must be called before :meth:`start`."""
        with self._state_lock:
            if self._state is not WorkerState.CREATED:
                raise WorkerStateError(f"cannot reconfigure a {self._state.value} worker")
            validate_worker_config(config)
            if not config.target:
                raise ValueError("Worker target is required")
            self.config = config

    def start(self) -> None:
        """Start the probe loop on its own thread and return immediately."""
        with self._state_lock:
            if self._state is WorkerState.RUNNING:
                self.logger.warning(f"Worker for {self._describe()} already running")
                return
            if self._state is WorkerState.STOPPED:
                raise WorkerStateError("a stopped worker cannot be restarted")
            if self.config is None:
                raise WorkerStateError("set_options must be called before start")

            self._state = WorkerState.RUNNING
            self._thread = threading.Thread(
                target=self._run,
                name=f"probe-worker-{self._describe()}",
                daemon=True,
            )
            self._thread.start()

        self.logger.info(
            f"Probe worker started: {self._describe()} every {self.config.interval}s "
            f"(timeout {self.config.timeout}s, {self.config.payload_size} bytes)"
        )

    def stop(self) -> None:
        """Request the loop to exit. Returns without waiting for it."""
        with self._state_lock:
            if self._state is WorkerState.STOPPED:
                return
            self._state = WorkerState.STOPPED
            self._token.cancel("worker stopped")

        self.logger.info(f"Probe worker for {self._describe()} stopped")

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop thread to exit; return True if it has."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        """Main probe loop."""
        config = self.config
        payload = make_filler(config.payload_size)

        while not self._token.cancelled:
            next_deadline = time.monotonic() + config.interval

            try:
                outcome = probe(
                    config.target,
                    config.port,
                    config.timeout,
                    payload,
                    protocol=config.protocol,
                    cancel=self._token,
                )
            except Exception as e:
                self.logger.error(f"Unexpected error probing {self._describe()}: {e}")
                self.store.add_error()
                outcome = None

            if outcome is not None:
                if outcome.cancelled:
                    break
                self.store.record(outcome)
                self._last_outcome = outcome
            self._cycles += 1

            self._token.wait(next_deadline - time.monotonic())

        self.logger.debug(f"Probe loop for {self._describe()} exited after {self._cycles} cycles")

    def _describe(self) -> str:
        if self.config is None:
            return "unconfigured"
        return f"{self.config.protocol}://{self.config.target}:{self.config.port}"

    def average(self) -> float:
        return self.store.average()

    def stddev(self) -> float:
        return self.store.stddev()

    def summary(self, include_samples: bool = False) -> Dict[str, Any]:
        return self.store.summary(include_samples)

    def get_status(self) -> Dict[str, Any]:
        """Get current status of the worker."""
        last = self._last_outcome
        return {
            'state': self._state.value,
            'target': self.config.target if self.config else None,
            'port': self.config.port if self.config else None,
            'protocol': self.config.protocol if self.config else None,
            'cycles': self._cycles,
            'last_outcome': last.kind.value if last else None,
            'last_rtt_ms': last.rtt_ms if last and last.succeeded else None,
        }
