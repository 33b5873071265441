"""
Audit logging for captive portal sessions.

Records every lifecycle transition: admission (and failed admission),
counter refreshes, counter regressions and terminations.
In-memory, bounded, thread-safe.
"""

import time
import threading
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional
from enum import Enum

from captive.core.config import get_settings


class AuditEvent(Enum):
    """Lifecycle event recorded in the audit log."""
    ADMITTED = "ADMITTED"
    ADMISSION_FAILED = "ADMISSION_FAILED"
    REFRESHED = "REFRESHED"
    REGRESSION = "REGRESSION"
    TERMINATED = "TERMINATED"


@dataclass
class AuditLogEntry:
    """
    Single audit log entry.

    Fields:
        timestamp: When the event happened
        portal_id: Owning captive portal
        session_token: Session identifier (None if no session was stored)
        username: User the session belongs to
        event: One of AuditEvent values
        details: Event specific data (counters, reason, error code)
    """
    timestamp: float
    portal_id: str
    session_token: Optional[str]
    username: str
    event: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


class AuditLog:
    """
    In-memory audit log for session activity.

    Oldest entries are dropped once max_entries is reached.
    """

    def __init__(self, max_entries: Optional[int] = None):
        """
        Initialize audit log.

        Args:
            max_entries: Maximum entries to keep in memory
                (defaults to the AUDIT_MAX_ENTRIES setting)
        """
        self._entries: List[AuditLogEntry] = []
        self._max_entries = max_entries or get_settings().AUDIT_MAX_ENTRIES
        self._lock = threading.Lock()

    def record(
        self,
        event: AuditEvent,
        portal_id: str,
        username: str,
        session_token: Optional[str] = None,
        **details: Any,
    ) -> AuditLogEntry:
        """
        Append an event.

        Args:
            event: Lifecycle event
            portal_id: Owning captive portal
            username: User the event concerns
            session_token: Session identifier, if one exists
            **details: Extra event data
        """
        entry = AuditLogEntry(
            timestamp=time.time(),
            portal_id=portal_id,
            session_token=session_token,
            username=username,
            event=event.value,
            details=details,
        )
        with self._lock:
            self._entries.append(entry)
            # Enforce max size by removing oldest entries
            if len(self._entries) > self._max_entries:
                self._entries = self._entries[-self._max_entries:]
        return entry

    def get_logs(
        self,
        session_token: Optional[str] = None,
        event: Optional[AuditEvent] = None,
        limit: Optional[int] = None,
    ) -> List[dict]:
        """
        Get audit log entries.

        Args:
            session_token: Optional filter by session token
            event: Optional filter by event type
            limit: Optional limit on number of (most recent) entries

        Returns:
            List of log entries as dictionaries
        """
        with self._lock:
            entries = self._entries

            if session_token:
                entries = [e for e in entries if e.session_token == session_token]

            if event:
                entries = [e for e in entries if e.event == event.value]

            if limit:
                entries = entries[-limit:]

            return [e.to_dict() for e in entries]

    def cleanup_by_retention(self, retention_days: int) -> int:
        """
        Remove logs older than retention period.

        Returns:
            Count of entries removed
        """
        cutoff = time.time() - (retention_days * 86400)

        with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.timestamp > cutoff]
            return before - len(self._entries)

    def count_entries(self) -> int:
        """Get total number of log entries."""
        with self._lock:
            return len(self._entries)

    def clear_all(self) -> None:
        """Clear all log entries (for testing)."""
        with self._lock:
            self._entries.clear()
