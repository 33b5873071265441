"""
Activity monitor and timeout policy.

Pulls traffic counters from the firewall worker into the session store and
exposes the expiry predicates an external scheduler uses to decide when to
terminate a session. Nothing here tears a session down by itself.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from captive.core.errors import CaptiveError
from captive.core.portal import PortalDirectory
from captive.core.types import ActivityCounters
from captive.session.audit import AuditEvent, AuditLog
from captive.session.errors import CounterRegressionError, SessionNotFoundError
from captive.session.record import SessionRecord
from captive.session.store import SessionKey, SessionStore
from captive.worker.client import FirewallWorkerClient

logger = logging.getLogger(__name__)

SESSION_TIMEOUT = "session_timeout"
IDLE_TIMEOUT = "idle_timeout"


class RefreshOutcome(Enum):
    """Result of a successful refresh."""
    UPDATED = "UPDATED"
    UNCHANGED = "UNCHANGED"


@dataclass
class RefreshReport:
    """Per-session result of a refresh sweep."""
    session_token: str
    outcome: Optional[RefreshOutcome] = None
    error: Optional[CaptiveError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def session_age(record: SessionRecord, now: float) -> int:
    return record.session_age(now)


def idle_age(record: SessionRecord, now: float) -> int:
    return record.idle_age(now)


def is_expired(record: SessionRecord, now: float) -> bool:
    return record.is_expired(now)


def is_inactive(record: SessionRecord, now: float) -> bool:
    return record.is_inactive(now)


def expiry_reason(record: SessionRecord, now: float) -> Optional[str]:
    """
    Why a session should be terminated, if at all.

    Session timeout takes precedence over idle timeout.

    Returns:
        "session_timeout", "idle_timeout" or None
    """
    if record.is_expired(now):
        return SESSION_TIMEOUT
    if record.is_inactive(now):
        return IDLE_TIMEOUT
    return None


class ActivityMonitor:
    """
    Refreshes session traffic counters.

    Refreshes of the same session are serialized; the store lock is never
    held while waiting on the worker.
    """

    def __init__(
        self,
        store: SessionStore,
        worker: FirewallWorkerClient,
        portals: PortalDirectory,
        audit: Optional[AuditLog] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.worker = worker
        self.portals = portals
        self.audit = audit
        self.clock = clock
        self._guard = threading.Lock()
        # key -> [lock, number of callers holding or waiting on it]
        self._in_flight: Dict[SessionKey, list] = {}

    def refresh(self, session: SessionRecord) -> RefreshOutcome:
        """
        Pull counters for one session and store them if they changed.

        Args:
            session: Session to refresh (only its portal and token are used)

        Returns:
            UPDATED if counters changed, UNCHANGED if nothing was written

        Raises:
            SessionNotFoundError: Session was terminated (never resurrected)
            CounterRegressionError: Worker reported lower counters; record untouched
            WorkerUnavailableError: Worker timed out; record untouched
            WorkerError: Worker failed to read counters; record untouched
        """
        key = (session.portal_id, session.session_token)
        with self._serialized(key):
            current = self.store.get(*key)
            interface = self.portals.interface_for(current.portal_id)

            uploaded_octets, downloaded_octets = self.worker.get_byte_counters(
                interface, current.ip_address, current.mac_address
            )
            uploaded_packets, downloaded_packets = self.worker.get_packet_counters(
                interface, current.ip_address, current.mac_address
            )
            counters = ActivityCounters(uploaded_octets, downloaded_octets, uploaded_packets, downloaded_packets)

            try:
                changed = self.store.update_activity(*key, counters, now=self.clock())
            except CounterRegressionError as e:
                logger.warning("Ignoring regressed counters for session %s: %s", current.session_token[:8], e.regressed)
                self._audit(AuditEvent.REGRESSION, current, regressed=e.regressed)
                raise

        if not changed:
            logger.debug("Session %s unchanged", current.session_token[:8])
            return RefreshOutcome.UNCHANGED

        logger.debug("Session %s updated: %s", current.session_token[:8], counters)
        self._audit(AuditEvent.REFRESHED, current, **counters._asdict())
        return RefreshOutcome.UPDATED

    def refresh_all(self, portal_id: Optional[str] = None) -> Dict[str, RefreshReport]:
        """
        Refresh every stored session, one at a time.

        A failure on one session is logged and reported, never raised.
        Sessions terminated during the sweep are reported as not found.

        Returns:
            {session_token: RefreshReport}
        """
        reports: Dict[str, RefreshReport] = {}
        for record in self.store.list(portal_id):
            report = RefreshReport(session_token=record.session_token)
            try:
                report.outcome = self.refresh(record)
            except SessionNotFoundError as e:
                report.error = e
            except CaptiveError as e:
                logger.warning("Refresh of session %s failed: %s", record.session_token[:8], e)
                report.error = e
            reports[record.session_token] = report
        return reports

    def find_stale(
        self,
        portal_id: Optional[str] = None,
        now: Optional[float] = None,
    ) -> List[Tuple[SessionRecord, str]]:
        """
        List sessions past their session or idle timeout.

        Returns:
            [(record, reason)] for the caller to terminate
        """
        now = self.clock() if now is None else now
        stale = []
        for record in self.store.list(portal_id):
            reason = expiry_reason(record, now)
            if reason is not None:
                stale.append((record, reason))
        return stale

    @contextmanager
    def _serialized(self, key: SessionKey):
        with self._guard:
            entry = self._in_flight.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._in_flight[key]

    def _audit(self, event: AuditEvent, record: SessionRecord, **details) -> None:
        if self.audit is not None:
            self.audit.record(event, record.portal_id, record.username, record.session_token, **details)
