"""
Captive portal instances.

A portal owns a set of sessions and maps to the network interface the
firewall worker enforces admissions on.
"""

from threading import Lock
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from captive.core.errors import PortalNotFoundError


class CaptivePortal(BaseModel):
    """A captive portal bound to one firewall interface."""
    model_config = ConfigDict(frozen=True)

    portal_id: str
    interface: str
    name: Optional[str] = None

    @field_validator("portal_id", "interface")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v


class PortalDirectory:
    """Thread-safe registry of captive portals keyed by portal_id."""

    def __init__(self, portals: Optional[List[CaptivePortal]] = None):
        self._portals: Dict[str, CaptivePortal] = {}
        self._lock = Lock()
        for portal in portals or []:
            self.register(portal)

    def register(self, portal: CaptivePortal) -> CaptivePortal:
        with self._lock:
            self._portals[portal.portal_id] = portal
        return portal

    def get(self, portal_id: str) -> CaptivePortal:
        """
        Get portal by id.

        Raises:
            PortalNotFoundError: If no portal is registered under portal_id
        """
        with self._lock:
            portal = self._portals.get(portal_id)
        if portal is None:
            raise PortalNotFoundError(portal_id)
        return portal

    def interface_for(self, portal_id: str) -> str:
        return self.get(portal_id).interface

    def __contains__(self, portal_id: str) -> bool:
        with self._lock:
            return portal_id in self._portals
