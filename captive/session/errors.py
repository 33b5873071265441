"""
Session-specific error types.

Includes the store invariant violations and the admission/refresh failures
surfaced by the session controllers.
"""

from typing import Dict, Any, Optional

from captive.core.errors import CaptiveError, ErrorCode


class SessionError(CaptiveError):
    """Base exception for all session-related errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        super().__init__(code=code, message=message, details=details, recoverable=recoverable)


class SessionNotFoundError(SessionError):
    """Session does not exist (never created, or already terminated)."""

    def __init__(self, portal_id: str, session_token: str):
        """
        Initialize error.

        Args:
            portal_id: Owning captive portal
            session_token: The requested session token
        """
        super().__init__(
            ErrorCode.SESSION_NOT_FOUND.value,
            f"Session not found: {portal_id}/{session_token}",
            details={"portal_id": portal_id, "session_token": session_token},
        )
        self.portal_id = portal_id
        self.session_token = session_token


class DuplicateSessionError(SessionError):
    """A uniqueness invariant of the store would be violated."""

    def __init__(self, portal_id: str, field: str, value: str):
        """
        Initialize error.

        Args:
            portal_id: Owning captive portal
            field: Unique field that clashed ("username" or "session_token")
            value: The clashing value
        """
        super().__init__(
            ErrorCode.DUPLICATE_SESSION.value,
            f"Session already exists for {field}={value} on portal {portal_id}",
            details={"portal_id": portal_id, "field": field, "value": value},
        )
        self.portal_id = portal_id
        self.field = field
        self.value = value


class AdmissionError(SessionError):
    """Firewall worker could not admit the client; the record was rolled back."""

    def __init__(self, username: str, ip_address: str, reason: str):
        """
        Initialize error.

        Args:
            username: User whose admission failed
            ip_address: Client address
            reason: Why the worker did not acknowledge
        """
        super().__init__(
            ErrorCode.ADMISSION_FAILED.value,
            f"Could not admit {username} ({ip_address}): {reason}",
            details={"username": username, "ip_address": ip_address, "reason": reason},
            recoverable=True,
        )


class CounterRegressionError(SessionError):
    """Worker reported counters lower than the stored ones."""

    def __init__(self, session_token: str, regressed: Dict[str, Dict[str, int]]):
        """
        Initialize error.

        Args:
            session_token: Session whose counters went backwards
            regressed: {counter_name: {"stored": n, "observed": m}}
        """
        names = ", ".join(sorted(regressed))
        super().__init__(
            ErrorCode.COUNTER_REGRESSION.value,
            f"Counters regressed for session {session_token}: {names}",
            details={"session_token": session_token, "regressed": regressed},
        )
        self.session_token = session_token
        self.regressed = regressed
