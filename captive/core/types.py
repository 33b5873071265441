"""Common types used throughout the captive core."""

from dataclasses import dataclass, asdict
from hashlib import sha256
from typing import NamedTuple
import secrets
import time


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation failure."""
    field: str
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


class ActivityCounters(NamedTuple):
    """Cumulative traffic counters for one admitted client."""
    uploaded_octets: int = 0
    downloaded_octets: int = 0
    uploaded_packets: int = 0
    downloaded_packets: int = 0


@dataclass(frozen=True)
class SessionToken:
    """Opaque session identifier, also used as the RADIUS session id."""
    value: str

    @staticmethod
    def generate(username: str, password_token: str, ip_address: str, mac_address: str) -> "SessionToken":
        """
        Derive a token from the client identity, the current time and a nonce.

        The nonce keeps two admissions within the same clock tick apart.
        """
        material = "|".join([
            username,
            password_token,
            ip_address,
            mac_address,
            str(time.time_ns()),
            secrets.token_hex(16),
        ])
        return SessionToken(sha256(material.encode()).hexdigest())

    def __str__(self) -> str:
        return self.value
