"""
Session lifecycle for captive portals.

Exports:
- SessionRecord, SessionStatus: Session data model
- SessionStore: Keyed session storage
- AdmissionController: Create session + firewall admission
- ActivityMonitor, RefreshOutcome: Counter refresh and timeout policy
- TeardownController: Session removal + asynchronous revoke
- AuditLog: Audit logging
- Session errors: All session-specific exceptions
"""

from .record import SessionRecord, SessionStatus
from .store import SessionStore
from .admission import AdmissionController
from .monitor import (
    ActivityMonitor,
    RefreshOutcome,
    RefreshReport,
    session_age,
    idle_age,
    is_expired,
    is_inactive,
    expiry_reason,
)
from .teardown import TeardownController
from .audit import AuditLog, AuditLogEntry, AuditEvent
from .errors import (
    SessionError,
    SessionNotFoundError,
    DuplicateSessionError,
    AdmissionError,
    CounterRegressionError,
)

__all__ = [
    # Session data
    'SessionRecord',
    'SessionStatus',
    # Store
    'SessionStore',
    # Controllers
    'AdmissionController',
    'ActivityMonitor',
    'RefreshOutcome',
    'RefreshReport',
    'TeardownController',
    # Policy
    'session_age',
    'idle_age',
    'is_expired',
    'is_inactive',
    'expiry_reason',
    # Audit
    'AuditLog',
    'AuditLogEntry',
    'AuditEvent',
    # Errors
    'SessionError',
    'SessionNotFoundError',
    'DuplicateSessionError',
    'AdmissionError',
    'CounterRegressionError',
]
