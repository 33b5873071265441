"""
Unit tests for the queue-backed firewall worker.

Tests cover:
- Synchronous admit and counter reads run on the worker thread
- Timeouts and backend failures mapped to worker errors
- Synchronous calls refused from inside the worker thread
- Fire-and-forget revoke, retries with backoff, giving up
- Revokes superseded by a later admit of the same client
- Lifecycle (not running, stop drains the queue, stop during backoff)
- Bounded backlog for sync calls; revokes never dropped
"""

import threading

import pytest

from captive.core.config import CaptiveSettings
from captive.core.errors import WorkerError, WorkerUnavailableError
from captive.worker import FirewallWorkerClient, QueuedFirewallWorker
from tests.fixtures.firewall import InMemoryFirewallBackend

CLIENT = ("eth1", "10.0.0.5", "aa:bb:cc:dd:ee:01")


@pytest.fixture
def backend():
    return InMemoryFirewallBackend()


@pytest.fixture
def firewall(backend, settings):
    worker = QueuedFirewallWorker(backend, settings, name="test-worker")
    worker.start()
    yield worker
    worker.stop(timeout=2)


class TestSynchronousChannel:
    """admit / get_*_counters."""

    def test_is_a_worker_client(self, firewall):
        assert isinstance(firewall, FirewallWorkerClient)

    def test_admit_runs_on_worker_thread(self, firewall, backend):
        firewall.admit(*CLIENT, max_upload_bandwidth=256, max_download_bandwidth=1024)

        assert backend.admitted[CLIENT] == {"max_upload_bandwidth": 256, "max_download_bandwidth": 1024}
        assert backend.threads == ["test-worker"]

    def test_counters(self, firewall, backend):
        backend.set_counters(CLIENT, octets=(1500, 64000), packets=(12, 48))

        assert firewall.get_byte_counters(*CLIENT) == (1500, 64000)
        assert firewall.get_packet_counters(*CLIENT) == (12, 48)

    def test_malformed_counters(self, firewall, backend):
        backend.byte_counters[CLIENT] = (1, 2, 3)

        with pytest.raises(WorkerError) as exc_info:
            firewall.get_byte_counters(*CLIENT)
        assert exc_info.value.operation == "get_byte_counters"

    def test_backend_failure_becomes_worker_error(self, firewall, backend):
        backend.add_error = RuntimeError("iptables: chain does not exist")

        with pytest.raises(WorkerError) as exc_info:
            firewall.admit(*CLIENT)

        assert "chain does not exist" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert CLIENT not in backend.admitted

    def test_timeout(self, backend):
        settings = CaptiveSettings(WORKER_TIMEOUT=0.1)
        backend.add_delay = 0.3
        with QueuedFirewallWorker(backend, settings) as worker:
            with pytest.raises(WorkerUnavailableError) as exc_info:
                worker.admit(*CLIENT)
            assert exc_info.value.recoverable is True

            # The instruction was already running and still lands late
            assert worker.join_pending(timeout=2)
            assert CLIENT in backend.admitted

    def test_not_running(self, backend, settings):
        worker = QueuedFirewallWorker(backend, settings)

        with pytest.raises(WorkerUnavailableError):
            worker.admit(*CLIENT)
        assert backend.threads == []

    def test_sync_call_from_worker_thread_refused(self, firewall, backend):
        """A synchronous call back into the worker would deadlock; it fails fast instead."""
        seen = []

        def inside_worker(key):
            try:
                firewall.get_byte_counters(*key)
            except WorkerUnavailableError as e:
                seen.append(e)

        backend.on_add = inside_worker
        firewall.admit(*CLIENT)

        assert len(seen) == 1
        assert "deadlock" in seen[0].message


class TestAsynchronousChannel:
    """revoke_async."""

    def test_revoke_returns_before_execution(self, firewall, backend):
        busy = threading.Event()
        gate = threading.Event()

        def hold_worker(key):
            busy.set()
            gate.wait(2)

        backend.on_add = hold_worker
        admit_thread = threading.Thread(target=firewall.admit, args=CLIENT)
        admit_thread.start()
        assert busy.wait(2)

        # Worker is busy with the admit; the revoke only queues
        firewall.revoke_async(*CLIENT)
        assert backend.removed == []

        gate.set()
        admit_thread.join()
        assert firewall.join_pending(timeout=2)
        assert backend.removed == [CLIENT]
        assert CLIENT not in backend.admitted

    def test_revoke_retried_until_success(self, firewall, backend):
        backend.remove_failures = 2

        firewall.revoke_async(*CLIENT)

        assert firewall.join_pending(timeout=2)
        assert backend.removed == [CLIENT]
        assert firewall.failed_revocations == []

    def test_revoke_gives_up_and_reports(self, firewall, backend, settings):
        backend.remove_failures = 10

        firewall.revoke_async(*CLIENT)

        assert firewall.join_pending(timeout=2)
        assert backend.removed == []
        assert len(firewall.failed_revocations) == 1
        failed = firewall.failed_revocations[0]
        assert (failed.interface, failed.ip_address, failed.mac_address) == CLIENT
        assert failed.attempts == settings.REVOKE_MAX_ATTEMPTS

    def test_revoke_from_worker_thread(self, firewall, backend):
        """Enqueueing from inside the worker never blocks."""
        backend.on_add = lambda key: firewall.revoke_async(*key)

        firewall.admit(*CLIENT)

        assert firewall.join_pending(timeout=2)
        assert backend.removed == [CLIENT]

    def test_revoke_queued_while_stopped_runs_on_start(self, backend, settings):
        worker = QueuedFirewallWorker(backend, settings)
        worker.revoke_async(*CLIENT)
        assert backend.removed == []

        with worker:
            assert worker.join_pending(timeout=2)
        assert backend.removed == [CLIENT]


class TestLifecycle:

    def test_stop_drains_queue(self, backend, settings):
        worker = QueuedFirewallWorker(backend, settings)
        worker.start()
        for i in range(5):
            worker.revoke_async("eth1", f"10.0.0.{i}", "aa:bb:cc:dd:ee:01")
        worker.stop(timeout=2)

        assert len(backend.removed) == 5
        assert worker.is_running() is False

    def test_start_is_idempotent(self, firewall):
        firewall.start()
        assert firewall.is_running() is True

    def test_in_worker_context_false_outside(self, firewall):
        assert firewall.in_worker_context() is False


class TestSupersededRevoke:
    """A later admit for the same client wins over an older revoke."""

    def test_retry_dropped_after_readmission(self, backend):
        settings = CaptiveSettings(REVOKE_BACKOFF_SECONDS=0.2, REVOKE_BACKOFF_MULTIPLIER=1.0)
        backend.remove_failures = 1
        with QueuedFirewallWorker(backend, settings) as worker:
            worker.admit(*CLIENT)
            worker.revoke_async(*CLIENT)
            # Runs after the first, failing, revoke attempt
            worker.admit(*CLIENT)

            assert worker.join_pending(timeout=2)
            assert CLIENT in backend.admitted
            assert backend.removed == []
            assert worker.failed_revocations == []

    def test_revoke_after_admit_still_runs(self, firewall, backend):
        firewall.admit(*CLIENT)
        firewall.revoke_async(*CLIENT)

        assert firewall.join_pending(timeout=2)
        assert backend.removed == [CLIENT]

    def test_other_clients_unaffected(self, firewall, backend):
        other = ("eth1", "10.0.0.9", "aa:bb:cc:dd:ee:09")
        firewall.admit(*CLIENT)
        firewall.revoke_async(*CLIENT)
        firewall.admit(*other)

        assert firewall.join_pending(timeout=2)
        assert backend.removed == [CLIENT]
        assert list(backend.admitted) == [other]


class TestStopDuringBackoff:

    def test_pending_retry_reported_on_stop(self, backend):
        settings = CaptiveSettings(REVOKE_BACKOFF_SECONDS=5.0)
        backend.remove_failures = 10
        worker = QueuedFirewallWorker(backend, settings)
        worker.start()
        worker.revoke_async(*CLIENT)
        # Queued behind the revoke: returns once its first attempt failed
        worker.get_byte_counters(*CLIENT)

        worker.stop(timeout=2)

        assert worker.join_pending(timeout=0.5)
        [failed] = worker.failed_revocations
        assert failed.attempts == 1
        assert "stopped" in failed.error
        assert backend.removed == []


class TestBoundedQueue:

    def test_revokes_never_dropped(self, backend):
        settings = CaptiveSettings(WORKER_QUEUE_SIZE=1)
        busy = threading.Event()
        gate = threading.Event()

        def hold_worker(key):
            busy.set()
            gate.wait(2)

        backend.on_add = hold_worker
        with QueuedFirewallWorker(backend, settings) as worker:
            admit_thread = threading.Thread(target=worker.admit, args=CLIENT)
            admit_thread.start()
            assert busy.wait(2)

            for i in range(5):
                worker.revoke_async("eth1", f"10.0.0.{i}", "aa:bb:cc:dd:ee:01")
            # Backlog over the limit refuses synchronous calls only
            with pytest.raises(WorkerUnavailableError) as exc_info:
                worker.get_byte_counters(*CLIENT)
            assert "queue full" in exc_info.value.message

            gate.set()
            admit_thread.join(2)
            assert worker.join_pending(timeout=2)

        assert len(backend.removed) == 5
        assert worker.failed_revocations == []

    def test_failure_report_bounded(self, backend):
        settings = CaptiveSettings(REVOKE_MAX_ATTEMPTS=1, FAILED_REVOCATIONS_MAX_ENTRIES=2)
        backend.remove_failures = 10
        with QueuedFirewallWorker(backend, settings) as worker:
            for i in range(3):
                worker.revoke_async("eth1", f"10.0.0.{i}", "aa:bb:cc:dd:ee:01")
            assert worker.join_pending(timeout=2)

        assert [f.ip_address for f in worker.failed_revocations] == ["10.0.0.1", "10.0.0.2"]
