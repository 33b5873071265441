"""
Captive core error codes and base exceptions.

Every failure in the session lifecycle is raised as a CaptiveError subclass
carrying a stable code, so an outer service can map it to its own surface.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(Enum):
    """Standard captive core error codes."""
    VALIDATION_FAILED = "VALIDATION_FAILED"
    DUPLICATE_SESSION = "DUPLICATE_SESSION"
    ADMISSION_FAILED = "ADMISSION_FAILED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    COUNTER_REGRESSION = "COUNTER_REGRESSION"
    WORKER_UNAVAILABLE = "WORKER_UNAVAILABLE"
    WORKER_FAILED = "WORKER_FAILED"
    PORTAL_NOT_FOUND = "PORTAL_NOT_FOUND"


@dataclass
class CaptiveError(Exception):
    """
    Base exception for captive core errors.

    Attributes:
        code: Standard error code
        message: Human-readable error message
        details: Additional error details (dict)
        recoverable: Whether retrying the same operation may succeed
    """

    code: str
    message: str
    details: Dict[str, Any] = None
    recoverable: bool = False

    def __post_init__(self):
        if self.details is None:
            self.details = {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "error_code": self.code,
            "error_message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class WorkerUnavailableError(CaptiveError):
    """Firewall worker timed out or could not be reached."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            code=ErrorCode.WORKER_UNAVAILABLE.value,
            message=f"Firewall worker unavailable during {operation}: {reason}",
            details={"operation": operation, "reason": reason},
            recoverable=True,
        )
        self.operation = operation


class WorkerError(CaptiveError):
    """Firewall worker executed the instruction and reported a failure."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            code=ErrorCode.WORKER_FAILED.value,
            message=f"Firewall worker failed {operation}: {reason}",
            details={"operation": operation, "reason": reason},
            recoverable=False,
        )
        self.operation = operation


class PortalNotFoundError(CaptiveError):
    """No captive portal is registered under the given id."""

    def __init__(self, portal_id: str):
        super().__init__(
            code=ErrorCode.PORTAL_NOT_FOUND.value,
            message=f"Captive portal not found: {portal_id}",
            details={"portal_id": portal_id},
            recoverable=False,
        )
        self.portal_id = portal_id


class ValidationError(CaptiveError):
    """
    One or more admission fields are malformed or out of range.

    Carries the structured list of FieldError entries so the caller can
    report every offending field at once.
    """

    def __init__(self, errors, recoverable: bool = False):
        errors = list(errors)
        fields = ", ".join(e.field for e in errors)
        super().__init__(
            code=ErrorCode.VALIDATION_FAILED.value,
            message=f"Invalid admission request: {fields}",
            details={"errors": [e.to_dict() for e in errors]},
            recoverable=recoverable,
        )
        self.errors = errors

    @property
    def fields(self):
        """Names of the offending fields, in report order."""
        return [e.field for e in self.errors]
