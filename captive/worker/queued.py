"""
Queue-backed firewall worker.

A single daemon thread executes firewall instructions one at a time, in
submission order. Synchronous calls wait on a Future with a timeout;
revocations are fire-and-forget and retried with exponential backoff.

Every instruction carries the generation of its client: an admit starts a
new generation, and a revoke issued under an older one is dropped instead
of undoing the newer admission.

Thread-safe: any thread may submit; only the worker thread touches the
backend.
"""

import logging
import queue
import threading
from collections import deque
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from captive.core.config import CaptiveSettings, get_settings
from captive.core.errors import CaptiveError, WorkerError, WorkerUnavailableError
from captive.worker.client import CounterPair, FirewallBackend, FirewallWorkerClient

logger = logging.getLogger(__name__)

_STOP = object()

Target = Tuple[str, str, str]


@dataclass
class _Job:
    operation: str
    fn: Callable[[], Any]
    future: Optional[Future] = None  # None for fire-and-forget
    max_attempts: int = 1
    attempts: int = 0
    target: Target = ("", "", "")
    generation: int = 0


@dataclass
class FailedRevocation:
    """A revoke instruction that exhausted its retries."""
    interface: str
    ip_address: str
    mac_address: str
    attempts: int
    error: str


def _compute_backoff_seconds(attempts: int, settings: CaptiveSettings) -> float:
    """Exponential backoff based on attempt number (1-indexed)."""
    factor = settings.REVOKE_BACKOFF_MULTIPLIER ** max(attempts - 1, 0)
    return settings.REVOKE_BACKOFF_SECONDS * factor


class QueuedFirewallWorker(FirewallWorkerClient):
    """
    FirewallWorkerClient running a FirewallBackend on its own thread.

    Usage:
        with QueuedFirewallWorker(backend) as worker:
            worker.admit("eth1", "10.0.0.5", "aa:bb:cc:dd:ee:ff")
    """

    def __init__(
        self,
        backend: FirewallBackend,
        settings: Optional[CaptiveSettings] = None,
        name: str = "captive-firewall-worker",
    ):
        self.backend = backend
        self.settings = settings or get_settings()
        self.name = name
        # Unbounded: revokes are never dropped, WORKER_QUEUE_SIZE only limits sync calls
        self._queue: queue.Queue = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        # Jobs submitted but not yet resolved, retries included
        self._outstanding = 0
        self._idle = threading.Condition(self._lock)
        self._generations: Dict[Target, int] = {}
        # id(job) -> (timer, job) for revokes waiting out their backoff
        self._backoff: Dict[int, Tuple[threading.Timer, _Job]] = {}
        self._stopping = False
        self._failed: Deque[FailedRevocation] = deque(maxlen=self.settings.FAILED_REVOCATIONS_MAX_ENTRIES)

    @property
    def failed_revocations(self) -> List[FailedRevocation]:
        """Most recent revokes that were given up on, oldest first."""
        with self._lock:
            return list(self._failed)

    # Lifecycle

    def start(self) -> None:
        """Start the worker thread if it is not already running."""
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._stopping = False
            self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
            self._thread.start()
        logger.info("Firewall worker %s started", self.name)

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop after the instructions already queued have been executed.

        Revokes waiting to be retried are given up on and reported in
        failed_revocations.
        """
        with self._lock:
            thread = self._thread
            self._stopping = True
            waiting = list(self._backoff.values())
            self._backoff.clear()
        for timer, job in waiting:
            timer.cancel()
            self._give_up(job, "worker stopped before retry")
        if thread is None:
            return
        self._queue.put(_STOP)
        thread.join(timeout)
        with self._lock:
            self._thread = None
        logger.info("Firewall worker %s stopped", self.name)

    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def in_worker_context(self) -> bool:
        """True when called from the worker thread itself."""
        return threading.current_thread() is self._thread

    def join_pending(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every submitted instruction is resolved, retries included.

        Returns:
            True if the worker drained within timeout
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout)

    def __enter__(self) -> "QueuedFirewallWorker":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # FirewallWorkerClient

    def admit(
        self,
        interface: str,
        ip_address: str,
        mac_address: str,
        max_upload_bandwidth: Optional[float] = None,
        max_download_bandwidth: Optional[float] = None,
    ) -> None:
        self._call(
            "admit",
            lambda: self.backend.add_user(
                cp_interface=interface,
                address=ip_address,
                mac=mac_address,
                max_upload_bandwidth=max_upload_bandwidth,
                max_download_bandwidth=max_download_bandwidth,
            ),
            target=(interface, ip_address, mac_address),
            supersedes=True,
        )

    def revoke_async(self, interface: str, ip_address: str, mac_address: str) -> None:
        self._submit(_Job(
            operation="revoke",
            fn=lambda: self.backend.remove_user(cp_interface=interface, address=ip_address, mac=mac_address),
            max_attempts=self.settings.REVOKE_MAX_ATTEMPTS,
            target=(interface, ip_address, mac_address),
        ))

    def get_byte_counters(self, interface: str, ip_address: str, mac_address: str) -> CounterPair:
        return self._counters(
            "get_byte_counters",
            lambda: self.backend.get_user_bytes_counters(
                cp_interface=interface, address=ip_address, mac=mac_address
            ),
        )

    def get_packet_counters(self, interface: str, ip_address: str, mac_address: str) -> CounterPair:
        return self._counters(
            "get_packet_counters",
            lambda: self.backend.get_user_packets_counters(
                cp_interface=interface, address=ip_address, mac=mac_address
            ),
        )

    # Internals

    def _counters(self, operation: str, fn: Callable[[], CounterPair]) -> CounterPair:
        result = self._call(operation, fn)
        try:
            uploaded, downloaded = result
            return int(uploaded), int(downloaded)
        except (TypeError, ValueError) as e:
            raise WorkerError(operation, f"malformed counters {result!r}") from e

    def _call(
        self,
        operation: str,
        fn: Callable[[], Any],
        target: Target = ("", "", ""),
        supersedes: bool = False,
    ) -> Any:
        if self.in_worker_context():
            raise WorkerUnavailableError(operation, "synchronous call from the worker thread would deadlock")
        if not self.is_running():
            raise WorkerUnavailableError(operation, "worker is not running")
        limit = self.settings.WORKER_QUEUE_SIZE
        if limit and self._queue.qsize() >= limit:
            raise WorkerUnavailableError(operation, "instruction queue full")

        timeout = self.settings.WORKER_TIMEOUT
        future: Future = Future()
        self._submit(_Job(operation=operation, fn=fn, future=future, target=target), supersedes=supersedes)

        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            # Only a job still waiting in the queue can be withdrawn
            future.cancel()
            raise WorkerUnavailableError(operation, f"no reply within {timeout}s")
        except CaptiveError:
            raise
        except Exception as e:
            raise WorkerError(operation, str(e)) from e

    def _submit(self, job: _Job, supersedes: bool = False) -> None:
        with self._lock:
            generation = self._generations.get(job.target, 0)
            if supersedes:
                generation += 1
                self._generations[job.target] = generation
            job.generation = generation
            self._outstanding += 1
            self._queue.put_nowait(job)

    def _superseded(self, job: _Job) -> bool:
        with self._lock:
            return self._generations.get(job.target, 0) != job.generation

    def _resolved(self) -> None:
        with self._idle:
            self._outstanding -= 1
            if self._outstanding == 0:
                self._idle.notify_all()

    def _requeue(self, job: _Job) -> None:
        with self._lock:
            if self._backoff.pop(id(job), None) is None:
                return  # stop() already gave up on it
            self._queue.put_nowait(job)

    def _run_loop(self) -> None:
        while True:
            job = self._queue.get()
            if job is _STOP:
                return
            self._execute(job)

    def _execute(self, job: _Job) -> None:
        if job.future is not None:
            # Caller already gave up on this instruction
            if not job.future.set_running_or_notify_cancel():
                self._resolved()
                return
            try:
                result = job.fn()
            except Exception as e:
                job.future.set_exception(e)
            else:
                job.future.set_result(result)
            self._resolved()
            return

        interface, ip_address, mac_address = job.target
        if self._superseded(job):
            logger.debug(
                "Dropping %s for %s/%s on %s: client admitted again",
                job.operation, ip_address, mac_address, interface,
            )
            self._resolved()
            return

        job.attempts += 1
        try:
            job.fn()
        except Exception as e:
            if job.attempts >= job.max_attempts:
                self._give_up(job, str(e))
                return
            self._schedule_retry(job, e)
            return
        logger.debug("Firewall %s done after %d attempt(s)", job.operation, job.attempts)
        self._resolved()

    def _schedule_retry(self, job: _Job, error: Exception) -> None:
        delay = _compute_backoff_seconds(job.attempts, self.settings)
        with self._lock:
            stopping = self._stopping
            if not stopping:
                timer = threading.Timer(delay, self._requeue, args=(job,))
                timer.daemon = True
                self._backoff[id(job)] = (timer, job)
                timer.start()
        if stopping:
            self._give_up(job, f"{error} (worker stopping)")
            return
        logger.warning(
            "Firewall %s failed (attempt %d/%d), retrying in %.2fs: %s",
            job.operation, job.attempts, job.max_attempts, delay, error,
        )

    def _give_up(self, job: _Job, error: str) -> None:
        interface, ip_address, mac_address = job.target
        logger.error(
            "Giving up on %s for %s/%s on %s after %d attempt(s): %s",
            job.operation, ip_address, mac_address, interface, job.attempts, error,
        )
        with self._lock:
            self._failed.append(FailedRevocation(interface, ip_address, mac_address, job.attempts, error))
        self._resolved()
