"""
Thread-safe rolling statistics for round-trip time samples.

Windowed queries (``average_period``, ``stddev_period``, ``last_n_sec``) are
measured back from the timestamp of the most recently appended sample, not
from the current time. Once a worker stops producing samples those aggregates
stop moving and keep describing the final window, however old it is.
"""

import threading
from typing import Any, Callable, Dict, List, NamedTuple, Sequence, Tuple

import numpy as np

from ..core.errors import EmptyStatisticsError
from ..core.timing import now_ns

NS_PER_SECOND = 1_000_000_000


class Sample(NamedTuple):
    """One recorded round trip."""
    timestamp: int  # monotonic nanoseconds
    value: float    # milliseconds


class StatisticsStore:
    """Append-only RTT samples with timeout and error counters.

    Every mutation happens under a single lock, so ``count``, ``timeouts``
    and the sample sequence never diverge. Aggregates copy what they need
    under the lock and do their arithmetic outside it.
    """

    def __init__(self, clock: Callable[[], int] = now_ns):
        self._clock = clock
        self._lock = threading.Lock()
        self._samples: List[Sample] = []
        self._count = 0
        self._timeouts = 0
        self._errors = 0

    def add(self, value: float) -> None:
        """Append ``value`` as a sample, or count a timeout if it is negative."""
        with self._lock:
            if value >= 0:
                self._samples.append(Sample(self._clock(), float(value)))
                self._count += 1
            else:
                self._timeouts += 1

    def add_error(self) -> None:
        """Count a probe that failed for a reason other than a timeout."""
        with self._lock:
            self._errors += 1

    def record(self, outcome) -> None:
        """Record a :class:`~echoprobe.probe.sender.ProbeOutcome`."""
        if outcome.succeeded:
            self.add(outcome.rtt_ms)
        elif outcome.timed_out:
            self.add(-1)
        elif outcome.failed:
            self.add_error()

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def timeouts(self) -> int:
        with self._lock:
            return self._timeouts

    @property
    def errors(self) -> int:
        with self._lock:
            return self._errors

    def __len__(self) -> int:
        return self.count

    def samples(self) -> Tuple[Sample, ...]:
        """Snapshot of every stored sample in append order."""
        with self._lock:
            return tuple(self._samples)

    def average(self) -> float:
        """Mean RTT over every stored sample."""
        return _mean(self.samples())

    def stddev(self) -> float:
        """Population standard deviation over every stored sample."""
        return _stddev(self.samples())

    def average_period(self, seconds: float) -> float:
        """Mean RTT over the trailing ``seconds`` before the last sample."""
        return _mean(self.last_n_sec(seconds))

    def stddev_period(self, seconds: float) -> float:
        """Population standard deviation over the trailing window."""
        return _stddev(self.last_n_sec(seconds))

    def first_n_sec(self, seconds: float) -> Tuple[Sample, ...]:
        """Samples recorded less than ``seconds`` after the first sample."""
        with self._lock:
            if not self._samples:
                return ()
            cutoff = self._samples[0].timestamp + int(seconds * NS_PER_SECOND)
            window = []
            for sample in self._samples:
                if sample.timestamp >= cutoff:
                    break
                window.append(sample)
        return tuple(window)

    def last_n_sec(self, seconds: float) -> Tuple[Sample, ...]:
        """Samples recorded less than ``seconds`` before the last sample.

        Returned in chronological (append) order.
        """
        with self._lock:
            if not self._samples:
                return ()
            cutoff = self._samples[-1].timestamp - int(seconds * NS_PER_SECOND)
            window = []
            for sample in reversed(self._samples):
                if sample.timestamp <= cutoff:
                    break
                window.append(sample)
        window.reverse()
        return tuple(window)

    def summary(self, include_samples: bool = False) -> Dict[str, Any]:
        """Counters plus aggregates; aggregates are ``None`` when empty."""
        with self._lock:
            samples = tuple(self._samples)
            result: Dict[str, Any] = {
                'count': self._count,
                'timeouts': self._timeouts,
                'errors': self._errors,
            }
        result['average'] = _mean(samples) if samples else None
        result['stddev'] = _stddev(samples) if samples else None
        if include_samples:
            result['samples'] = [s._asdict() for s in samples]
        return result


def _values(samples: Sequence[Sample]) -> np.ndarray:
    if not samples:
        raise EmptyStatisticsError("no samples recorded")
    return np.fromiter((s.value for s in samples), dtype=float, count=len(samples))


def _mean(samples: Sequence[Sample]) -> float:
    return float(np.mean(_values(samples)))


def _stddev(samples: Sequence[Sample]) -> float:
    # ddof=0: divide by N
    return float(np.std(_values(samples)))
