"""Captive core: foundational types, errors, settings and validation."""

from captive.core.errors import (
    CaptiveError,
    ErrorCode,
    ValidationError,
    WorkerUnavailableError,
    WorkerError,
    PortalNotFoundError,
)
from captive.core.types import (
    FieldError,
    ActivityCounters,
    SessionToken,
)
from captive.core.config import (
    CaptiveSettings,
    get_settings,
    configure_logging,
)
from captive.core.portal import (
    CaptivePortal,
    PortalDirectory,
)
from captive.core.validation import (
    AdmissionRequest,
    collect_errors,
    validate_admission,
)

__all__ = [
    "CaptiveError",
    "ErrorCode",
    "ValidationError",
    "WorkerUnavailableError",
    "WorkerError",
    "PortalNotFoundError",
    "FieldError",
    "ActivityCounters",
    "SessionToken",
    "CaptiveSettings",
    "get_settings",
    "configure_logging",
    "CaptivePortal",
    "PortalDirectory",
    "AdmissionRequest",
    "collect_errors",
    "validate_admission",
]
