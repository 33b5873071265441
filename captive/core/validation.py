"""
Admission request validation.

Implements:
- Admission request schema (Pydantic)
- Field format checks (IPv4 dotted quad, lowercase MAC)
- Numeric bounds on timeouts and bandwidth caps
- Portal existence check
"""

import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic import ValidationError as PydanticValidationError

from captive.core.errors import ValidationError
from captive.core.portal import PortalDirectory
from captive.core.types import FieldError

_OCTET = r"(25[0-5]|2[0-4][0-9]|1[0-9]{2}|[1-9]?[0-9])"
IPV4_RE = re.compile(rf"{_OCTET}(\.{_OCTET}){{3}}")
MAC_RE = re.compile(r"([0-9a-f]{2}:){5}[0-9a-f]{2}")


class AdmissionRequest(BaseModel):
    """Everything needed to admit one authenticated client."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    portal_id: str
    username: str
    password_token: str
    ip_address: str
    mac_address: str
    is_radius_session: StrictBool
    session_timeout: Optional[float] = Field(default=None, ge=0)
    idle_timeout: Optional[float] = Field(default=None, ge=0)
    max_upload_bandwidth: Optional[float] = Field(default=None, gt=0)
    max_download_bandwidth: Optional[float] = Field(default=None, gt=0)

    @field_validator("portal_id", "username", "password_token")
    @classmethod
    def present(cls, v):
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator(
        "session_timeout", "idle_timeout", "max_upload_bandwidth", "max_download_bandwidth", mode="before"
    )
    @classmethod
    def not_bool(cls, v):
        if isinstance(v, bool):
            raise ValueError("must be a number, not a boolean")
        return v

    @field_validator("ip_address")
    @classmethod
    def valid_ip(cls, v):
        if not IPV4_RE.fullmatch(v):
            raise ValueError(f"Invalid IPv4 address: {v}")
        return v

    @field_validator("mac_address")
    @classmethod
    def valid_mac(cls, v):
        if not MAC_RE.fullmatch(v):
            raise ValueError(f"Invalid MAC address: {v}")
        return v


def _field_errors(exc: PydanticValidationError) -> List[FieldError]:
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "request"
        errors.append(FieldError(field=field, message=err["msg"]))
    return errors


def _portal_errors(portal_id: Any, portals: Optional[PortalDirectory]) -> List[FieldError]:
    if portals is None or not isinstance(portal_id, str) or portal_id in portals:
        return []
    return [FieldError(field="portal_id", message=f"Unknown captive portal: {portal_id}")]


def collect_errors(
    data: Union[AdmissionRequest, Dict[str, Any]],
    portals: Optional[PortalDirectory] = None,
) -> List[FieldError]:
    """
    Validate an admission request without raising.

    Args:
        data: Request as dict (or an already built AdmissionRequest)
        portals: Optional directory used to reject unknown portal ids

    Returns:
        List of field errors, empty when the request is valid
    """
    try:
        request = AdmissionRequest.model_validate(data)
    except PydanticValidationError as e:
        errors = _field_errors(e)
        if not any(err.field == "portal_id" for err in errors) and isinstance(data, dict):
            errors.extend(_portal_errors(data.get("portal_id"), portals))
        return errors

    return _portal_errors(request.portal_id, portals)


def validate_admission(
    data: Union[AdmissionRequest, Dict[str, Any]],
    portals: Optional[PortalDirectory] = None,
) -> AdmissionRequest:
    """
    Validate an admission request.

    Args:
        data: Request as dict (or an already built AdmissionRequest)
        portals: Optional directory used to reject unknown portal ids

    Returns:
        Validated AdmissionRequest

    Raises:
        ValidationError: Listing every offending field
    """
    errors = collect_errors(data, portals)
    if errors:
        raise ValidationError(errors)
    return AdmissionRequest.model_validate(data)
