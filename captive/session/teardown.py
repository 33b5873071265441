"""
Teardown controller.

Removes a session record and revokes the client's firewall admission. The
revoke only goes through the worker's asynchronous channel, so terminate is
safe to call from inside the worker thread.
"""

import logging
from typing import Optional

from captive.core.errors import PortalNotFoundError
from captive.core.portal import PortalDirectory
from captive.session.audit import AuditEvent, AuditLog
from captive.session.errors import SessionNotFoundError
from captive.session.record import SessionRecord
from captive.session.store import SessionStore
from captive.worker.client import FirewallWorkerClient

logger = logging.getLogger(__name__)


class TeardownController:
    """Terminates sessions."""

    def __init__(
        self,
        store: SessionStore,
        worker: FirewallWorkerClient,
        portals: PortalDirectory,
        audit: Optional[AuditLog] = None,
    ):
        self.store = store
        self.worker = worker
        self.portals = portals
        self.audit = audit

    def terminate(self, session: SessionRecord, reason: str = "admin") -> bool:
        """
        Terminate a session.

        The record is removed first, so no later lookup can observe it, then
        the revoke is enqueued without waiting for it. Removal is never
        rolled back, even if the revoke later fails. If the portal is no
        longer registered there is no interface to revoke on; the record is
        still removed and the skipped revoke is logged.

        Args:
            session: Session to terminate (only its portal and token are used)
            reason: Why the session ends (logged and audited)

        Returns:
            True if this call removed the session, False if it was already gone
        """
        try:
            removed = self.store.remove(session.portal_id, session.session_token)
        except SessionNotFoundError:
            logger.debug("Session %s already terminated", session.session_token[:8])
            return False

        details = {"reason": reason}
        try:
            interface = self.portals.interface_for(removed.portal_id)
        except PortalNotFoundError:
            logger.error(
                "Portal %s not registered, revoke skipped for %s/%s (session %s)",
                removed.portal_id, removed.ip_address, removed.mac_address, removed.session_token[:8],
            )
            details["revoke_skipped"] = True
        else:
            self.worker.revoke_async(interface, removed.ip_address, removed.mac_address)

        logger.info(
            "Terminated session %s of %s (%s/%s) on portal %s: %s",
            removed.session_token[:8], removed.username, removed.ip_address,
            removed.mac_address, removed.portal_id, reason,
        )
        if self.audit is not None:
            self.audit.record(
                AuditEvent.TERMINATED,
                removed.portal_id,
                removed.username,
                removed.session_token,
                **details,
                **removed.counters()._asdict(),
            )
        return True
