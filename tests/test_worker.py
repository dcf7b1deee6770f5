import time

import pytest

from echoprobe.core.config import ProbeWorkerConfig
from echoprobe.core.errors import WorkerStateError
from echoprobe.probe.worker import ProbeWorker, WorkerState

from conftest import LOCALHOST


def worker_config(port, **overrides):
    options = dict(target=LOCALHOST, port=port, interval=1, timeout=1,
                   payload_size=16, protocol="udp")
    options.update(overrides)
    return ProbeWorkerConfig(**options)


def outcomes(worker):
    store = worker.store
    return store.count + store.timeouts + store.errors


def wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def test_interval_schedule_produces_expected_outcomes(udp_reflector):
    worker = ProbeWorker(worker_config(udp_reflector.port))
    worker.start()
    time.sleep(5)
    worker.stop()
    assert worker.join(2)

    assert 4 <= outcomes(worker) <= 6
    assert worker.store.count == outcomes(worker)
    assert worker.average() > 0


def test_tcp_worker_records_samples(tcp_reflector):
    worker = ProbeWorker(worker_config(tcp_reflector.port, protocol="tcp", interval=0.2))
    worker.start()
    assert wait_for(lambda: worker.store.count >= 3)
    worker.stop()
    assert worker.join(2)


def test_stop_returns_immediately_and_freezes_results(udp_reflector):
    worker = ProbeWorker(worker_config(udp_reflector.port, interval=30))
    worker.start()
    assert wait_for(lambda: worker.store.count == 1)

    start = time.monotonic()
    worker.stop()
    assert time.monotonic() - start < 0.5
    assert worker.state is WorkerState.STOPPED

    # the inter-probe wait is cancelled, so the loop exits long before 30s
    assert worker.join(1)
    recorded = outcomes(worker)
    time.sleep(1.5)
    assert outcomes(worker) == recorded


def test_stop_during_timeout_wait_is_bounded(silent_udp_socket):
    worker = ProbeWorker(worker_config(silent_udp_socket, timeout=10, interval=30))
    worker.start()
    time.sleep(0.3)

    worker.stop()
    assert worker.join(1)
    assert worker.store.timeouts == 0


def test_failed_probes_do_not_stop_worker(closed_port):
    worker = ProbeWorker(worker_config(closed_port, protocol="tcp", interval=0.2))
    worker.start()
    assert wait_for(lambda: worker.store.errors >= 3)
    assert worker.running
    assert worker.store.count == 0
    worker.stop()
    assert worker.join(2)


def test_timeouts_are_counted(silent_udp_socket):
    worker = ProbeWorker(worker_config(silent_udp_socket, timeout=0.2, interval=0.3))
    worker.start()
    assert wait_for(lambda: worker.store.timeouts >= 2)
    worker.stop()
    assert worker.join(2)
    assert worker.store.count == 0
    assert worker.get_status()['last_outcome'] == "timeout"


def test_double_start_is_ignored(udp_reflector):
    worker = ProbeWorker(worker_config(udp_reflector.port, interval=30))
    worker.start()
    thread = worker._thread
    worker.start()
    assert worker._thread is thread
    worker.stop()
    assert worker.join(2)


def test_stopped_worker_cannot_restart(udp_reflector):
    worker = ProbeWorker(worker_config(udp_reflector.port, interval=30))
    worker.start()
    worker.stop()
    with pytest.raises(WorkerStateError):
        worker.start()


def test_start_requires_options():
    with pytest.raises(WorkerStateError):
        ProbeWorker().start()


def test_options_locked_after_start(udp_reflector):
    worker = ProbeWorker(worker_config(udp_reflector.port, interval=30))
    worker.start()
    try:
        with pytest.raises(WorkerStateError):
            worker.set_options(worker_config(udp_reflector.port))
    finally:
        worker.stop()


def test_invalid_options_rejected():
    worker = ProbeWorker()
    with pytest.raises(ValueError):
        worker.set_options(worker_config(9000, payload_size=2))
    with pytest.raises(ValueError):
        worker.set_options(worker_config(9000, target=""))
    with pytest.raises(ValueError):
        worker.set_options(worker_config(9000, interval=0))
    assert worker.state is WorkerState.CREATED


def test_stop_before_start():
    worker = ProbeWorker(worker_config(9000))
    worker.stop()
    assert worker.state is WorkerState.STOPPED
    assert worker.join(0.1)


def test_stop_during_hanging_tcp_connect_is_bounded(stalled_tcp_port):
    worker = ProbeWorker(worker_config(stalled_tcp_port, protocol="tcp", timeout=5, interval=30))
    worker.start()
    time.sleep(0.3)

    worker.stop()
    assert worker.join(1)
    assert worker.store.timeouts == 0
    assert worker.store.errors == 0
