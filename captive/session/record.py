"""
Session record for the captive core.

Represents one client admitted through a captive portal.
Includes traffic counters and the timeout policy predicates.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from captive.core.types import ActivityCounters


class SessionStatus(Enum):
    """Session lifecycle states."""
    PENDING = "PENDING"  # stored, firewall admission in flight
    ACTIVE = "ACTIVE"


@dataclass
class SessionRecord:
    """
    Represents an admitted client.

    Fields:
        portal_id: Owning captive portal
        username: Authenticated user (unique per portal)
        password_token: Credential reference, never serialized
        session_token: Opaque unique id, also the RADIUS session id
        ip_address: Client IPv4 address
        mac_address: Client MAC address
        is_radius_session: True when authenticated by RADIUS
        session_timeout: Max session duration in seconds (None = unbounded)
        idle_timeout: Max seconds without traffic (None = unbounded)
        max_upload_bandwidth: Upload cap given to the shaper
        max_download_bandwidth: Download cap given to the shaper
        uploaded_octets / downloaded_octets: Cumulative byte counters
        uploaded_packets / downloaded_packets: Cumulative packet counters
        created_at: Admission timestamp
        last_activity_at: Timestamp of the last counter change
        status: PENDING until the firewall acknowledged, then ACTIVE
    """

    portal_id: str
    username: str
    password_token: str
    session_token: str
    ip_address: str
    mac_address: str
    is_radius_session: bool
    session_timeout: Optional[float] = None
    idle_timeout: Optional[float] = None
    max_upload_bandwidth: Optional[float] = None
    max_download_bandwidth: Optional[float] = None
    uploaded_octets: int = 0
    downloaded_octets: int = 0
    uploaded_packets: int = 0
    downloaded_packets: int = 0
    created_at: float = field(default_factory=time.time)
    last_activity_at: Optional[float] = None
    status: SessionStatus = SessionStatus.PENDING

    def __post_init__(self):
        if self.last_activity_at is None:
            self.last_activity_at = self.created_at

    @property
    def key(self):
        return (self.portal_id, self.session_token)

    @property
    def is_radius_user(self) -> bool:
        return self.is_radius_session

    @property
    def is_local_user(self) -> bool:
        return not self.is_radius_session

    def counters(self) -> ActivityCounters:
        return ActivityCounters(
            self.uploaded_octets,
            self.downloaded_octets,
            self.uploaded_packets,
            self.downloaded_packets,
        )

    def session_age(self, now: Optional[float] = None) -> int:
        """Whole seconds since admission."""
        now = time.time() if now is None else now
        return int(now - self.created_at)

    def idle_age(self, now: Optional[float] = None) -> int:
        """Whole seconds since the last observed traffic."""
        now = time.time() if now is None else now
        return int(now - self.last_activity_at)

    def is_expired(self, now: Optional[float] = None) -> bool:
        """
        Check if the session outlived its session timeout.

        Returns:
            False when no session timeout is set
        """
        if self.session_timeout is None:
            return False
        return self.session_age(now) > self.session_timeout

    def is_inactive(self, now: Optional[float] = None) -> bool:
        """
        Check if the client has been idle longer than its idle timeout.

        Returns:
            False when no idle timeout is set
        """
        if self.idle_timeout is None:
            return False
        return self.idle_age(now) > self.idle_timeout

    def to_dict(self) -> dict:
        """
        Serialize record to dictionary.

        Returns:
            Dictionary representation without the password token
        """
        return {
            'portal_id': self.portal_id,
            'username': self.username,
            'session_token': self.session_token,
            'ip_address': self.ip_address,
            'mac_address': self.mac_address,
            'is_radius_session': self.is_radius_session,
            'session_timeout': self.session_timeout,
            'idle_timeout': self.idle_timeout,
            'max_upload_bandwidth': self.max_upload_bandwidth,
            'max_download_bandwidth': self.max_download_bandwidth,
            'uploaded_octets': self.uploaded_octets,
            'downloaded_octets': self.downloaded_octets,
            'uploaded_packets': self.uploaded_packets,
            'downloaded_packets': self.downloaded_packets,
            'created_at': self.created_at,
            'last_activity_at': self.last_activity_at,
            'status': self.status.value,
        }
