"""
Session store for the captive core.

Keyed storage of session records scoped to a captive portal:
- INSERT: insert-if-absent, enforcing per-portal uniqueness
- GET / FIND: lookups by token, username or address pair
- ACTIVATE: mark a record as admitted by the firewall
- UPDATE ACTIVITY: atomic compare-and-update of traffic counters
- REMOVE: delete-if-present

Thread-safe using a lock for concurrent access. Records handed out are
copies; stored state changes only through the methods below.
"""

import copy
import threading
import time
from typing import Dict, List, Optional, Tuple

from captive.core.types import ActivityCounters
from captive.session.record import SessionRecord, SessionStatus
from captive.session.errors import (
    CounterRegressionError,
    DuplicateSessionError,
    SessionNotFoundError,
)

SessionKey = Tuple[str, str]


class SessionStore:
    """
    In-memory session store.

    Keyed by (portal_id, session_token).
    Tracks (portal_id, username) -> session_token for the uniqueness check.
    """

    def __init__(self):
        """Initialize session store."""
        self._sessions: Dict[SessionKey, SessionRecord] = {}
        self._usernames: Dict[Tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def insert(self, record: SessionRecord) -> SessionRecord:
        """
        Insert a new session record.

        Args:
            record: Record to store

        Returns:
            Snapshot of the stored record

        Raises:
            DuplicateSessionError: If username or session token is already
                taken on the record's portal
        """
        with self._lock:
            if (record.portal_id, record.username) in self._usernames:
                raise DuplicateSessionError(record.portal_id, "username", record.username)
            if record.key in self._sessions:
                raise DuplicateSessionError(record.portal_id, "session_token", record.session_token)

            stored = copy.copy(record)
            self._sessions[stored.key] = stored
            self._usernames[(stored.portal_id, stored.username)] = stored.session_token
            return copy.copy(stored)

    def get(self, portal_id: str, session_token: str) -> SessionRecord:
        """
        Get session by token.

        Raises:
            SessionNotFoundError: If session does not exist
        """
        with self._lock:
            return copy.copy(self._get_locked(portal_id, session_token))

    def find_by_username(self, portal_id: str, username: str) -> Optional[SessionRecord]:
        with self._lock:
            token = self._usernames.get((portal_id, username))
            if token is None:
                return None
            return copy.copy(self._sessions[(portal_id, token)])

    def find_by_address(self, portal_id: str, ip_address: str, mac_address: str) -> Optional[SessionRecord]:
        """
        Find the session of a client by its address pair.

        Returns:
            Snapshot of the matching record, None if the client has no session
        """
        with self._lock:
            for record in self._sessions.values():
                if (record.portal_id == portal_id
                        and record.ip_address == ip_address
                        and record.mac_address == mac_address):
                    return copy.copy(record)
            return None

    def list(self, portal_id: Optional[str] = None) -> List[SessionRecord]:
        """
        Get all sessions, optionally restricted to one portal.

        Returns:
            List of record snapshots ordered by creation time
        """
        with self._lock:
            records = [
                copy.copy(r) for r in self._sessions.values()
                if portal_id is None or r.portal_id == portal_id
            ]
        return sorted(records, key=lambda r: r.created_at)

    def activate(self, portal_id: str, session_token: str) -> SessionRecord:
        """
        Mark a pending session as admitted.

        Raises:
            SessionNotFoundError: If the session was removed meanwhile
        """
        with self._lock:
            record = self._get_locked(portal_id, session_token)
            record.status = SessionStatus.ACTIVE
            return copy.copy(record)

    def update_activity(
        self,
        portal_id: str,
        session_token: str,
        counters: ActivityCounters,
        now: Optional[float] = None,
    ) -> bool:
        """
        Apply freshly read traffic counters to a session.

        All four counters and last_activity_at change together or not at all.

        Args:
            portal_id: Owning captive portal
            session_token: Session identifier
            counters: Counters read from the firewall worker
            now: Activity timestamp (defaults to current time)

        Returns:
            True if the record was updated, False if nothing changed

        Raises:
            SessionNotFoundError: If the session was removed
            CounterRegressionError: If any counter is below the stored value
        """
        counters = ActivityCounters(*counters)
        with self._lock:
            record = self._get_locked(portal_id, session_token)
            stored = record.counters()

            regressed = {
                name: {"stored": old, "observed": new}
                for name, old, new in zip(ActivityCounters._fields, stored, counters)
                if new < old
            }
            if regressed:
                raise CounterRegressionError(session_token, regressed)

            if counters == stored:
                return False

            record.uploaded_octets = counters.uploaded_octets
            record.downloaded_octets = counters.downloaded_octets
            record.uploaded_packets = counters.uploaded_packets
            record.downloaded_packets = counters.downloaded_packets
            record.last_activity_at = max(time.time() if now is None else now, record.created_at)
            return True

    def remove(self, portal_id: str, session_token: str) -> SessionRecord:
        """
        Remove a session.

        Returns:
            Snapshot of the removed record

        Raises:
            SessionNotFoundError: If session does not exist
        """
        with self._lock:
            record = self._sessions.pop((portal_id, session_token), None)
            if record is None:
                raise SessionNotFoundError(portal_id, session_token)
            self._usernames.pop((portal_id, record.username), None)
            return record

    def count(self, portal_id: Optional[str] = None) -> int:
        with self._lock:
            if portal_id is None:
                return len(self._sessions)
            return sum(1 for key in self._sessions if key[0] == portal_id)

    def clear_all(self) -> None:
        """Clear all sessions (for testing)."""
        with self._lock:
            self._sessions.clear()
            self._usernames.clear()

    def _get_locked(self, portal_id: str, session_token: str) -> SessionRecord:
        record = self._sessions.get((portal_id, session_token))
        if record is None:
            raise SessionNotFoundError(portal_id, session_token)
        return record
