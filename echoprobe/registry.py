"""
Registry of running probe workers keyed by opaque ids.
"""

import logging
import threading
import uuid
from collections import Counter
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .core.config import ProbeWorkerConfig
from .core.errors import WorkerNotFoundError
from .probe.worker import ProbeWorker


class WorkerRegistry:
    """Creates, looks up and deletes :class:`ProbeWorker` instances.

    Every operation is serialized by one lock. Workers are stopped outside the
    lock, since stopping only signals the worker and never blocks on it.
    """

    def __init__(self, defaults: Optional[ProbeWorkerConfig] = None):
        self.logger = logging.getLogger(__name__)
        self.defaults = (defaults or ProbeWorkerConfig()).with_defaults()
        self._workers: Dict[str, ProbeWorker] = {}
        self._lock = threading.Lock()

    def create(self, target: str, config: Optional[ProbeWorkerConfig] = None,
               start: bool = True) -> str:
        """Register a worker for ``target`` and return its id."""
        config = replace(config or ProbeWorkerConfig(), target=target)
        config = config.with_defaults(self.defaults)

        worker = ProbeWorker(config)
        worker_id = str(uuid.uuid4())
        with self._lock:
            self._workers[worker_id] = worker

        # reset_all may stop it before it starts; start() then raises WorkerStateError
        if start:
            worker.start()

        self.logger.debug(f"Created {config.protocol} worker {worker_id} for {target}:{config.port}")
        return worker_id

    def get(self, worker_id: str) -> ProbeWorker:
        with self._lock:
            try:
                return self._workers[worker_id]
            except KeyError:
                raise WorkerNotFoundError(f"no probe worker with id {worker_id}") from None

    def overview(self, worker_id: str, include_samples: bool = True) -> Dict[str, Any]:
        """Summary of one worker's results."""
        return self.get(worker_id).summary(include_samples)

    def delete(self, worker_id: str, include_samples: bool = True) -> Dict[str, Any]:
        """Stop and remove a worker, returning its final summary."""
        with self._lock:
            worker = self._workers.pop(worker_id, None)
        if worker is None:
            raise WorkerNotFoundError(f"no probe worker with id {worker_id}")

        worker.stop()
        self.logger.debug(f"Deleted worker {worker_id}")
        return worker.summary(include_samples)

    def reset_all(self) -> Dict[str, int]:
        """Stop and remove every worker; return how many per protocol."""
        with self._lock:
            workers = list(self._workers.values())
            self._workers.clear()

        stopped = Counter({"udp": 0, "tcp": 0})
        for worker in workers:
            worker.stop()
            stopped[worker.config.protocol] += 1

        self.logger.info(f"Stopped {stopped['udp']} udp workers and {stopped['tcp']} tcp workers")
        return dict(stopped)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._workers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._workers)

    def __contains__(self, worker_id: str) -> bool:
        with self._lock:
            return worker_id in self._workers
