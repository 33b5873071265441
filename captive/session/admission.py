"""
Admission controller.

Creates a session record and admits the client through the firewall
worker before reporting success. A failed or timed-out admission never
leaves a record behind.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional, Union

from captive.core.errors import ValidationError
from captive.core.portal import PortalDirectory
from captive.core.types import FieldError, SessionToken
from captive.core.validation import AdmissionRequest, validate_admission
from captive.session.audit import AuditEvent, AuditLog
from captive.session.errors import AdmissionError, DuplicateSessionError, SessionNotFoundError
from captive.session.record import SessionRecord, SessionStatus
from captive.session.store import SessionStore
from captive.worker.client import FirewallWorkerClient

logger = logging.getLogger(__name__)


class AdmissionController:
    """
    Admits authenticated clients.

    Steps, in order:
    1. Validate the request (nothing stored on failure)
    2. Generate the session token
    3. Insert the record as PENDING
    4. Admit through the worker, synchronously
    5. Activate the record, or roll it back if the worker failed
    """

    def __init__(
        self,
        store: SessionStore,
        worker: FirewallWorkerClient,
        portals: PortalDirectory,
        audit: Optional[AuditLog] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.worker = worker
        self.portals = portals
        self.audit = audit
        self.clock = clock

    def admit(self, request: Union[AdmissionRequest, Dict[str, Any]]) -> SessionRecord:
        """
        Create a session and let the client through the firewall.

        Args:
            request: Admission request (dict or AdmissionRequest)

        Returns:
            The ACTIVE session record

        Raises:
            ValidationError: Malformed request, unknown portal or token collision
            DuplicateSessionError: User already has a session on this portal
            AdmissionError: Worker failed or timed out; nothing was kept
        """
        req = validate_admission(request, self.portals)
        interface = self.portals.interface_for(req.portal_id)

        token = SessionToken.generate(req.username, req.password_token, req.ip_address, req.mac_address)
        record = SessionRecord(
            portal_id=req.portal_id,
            username=req.username,
            password_token=req.password_token,
            session_token=token.value,
            ip_address=req.ip_address,
            mac_address=req.mac_address,
            is_radius_session=req.is_radius_session,
            session_timeout=req.session_timeout,
            idle_timeout=req.idle_timeout,
            max_upload_bandwidth=req.max_upload_bandwidth,
            max_download_bandwidth=req.max_download_bandwidth,
            created_at=self.clock(),
            status=SessionStatus.PENDING,
        )

        try:
            self.store.insert(record)
        except DuplicateSessionError as e:
            if e.field == "session_token":
                raise ValidationError(
                    [FieldError(field="session_token", message="Generated token already in use")],
                    recoverable=True,
                ) from e
            raise

        try:
            self.worker.admit(
                interface,
                record.ip_address,
                record.mac_address,
                record.max_upload_bandwidth,
                record.max_download_bandwidth,
            )
        except Exception as e:
            self._rollback(record, interface, str(e))
            raise AdmissionError(record.username, record.ip_address, str(e)) from e

        try:
            admitted = self.store.activate(record.portal_id, record.session_token)
        except SessionNotFoundError as e:
            # Terminated while the admit was in flight; its revoke may have run first
            self.worker.revoke_async(interface, record.ip_address, record.mac_address)
            self._audit(AuditEvent.ADMISSION_FAILED, record, reason="terminated during admission")
            raise AdmissionError(record.username, record.ip_address, "terminated during admission") from e

        logger.info(
            "Admitted %s (%s/%s) on portal %s, session %s",
            admitted.username, admitted.ip_address, admitted.mac_address,
            admitted.portal_id, admitted.session_token[:8],
        )
        self._audit(AuditEvent.ADMITTED, admitted, radius=admitted.is_radius_session)
        return admitted

    def _rollback(self, record: SessionRecord, interface: str, reason: str) -> None:
        try:
            self.store.remove(record.portal_id, record.session_token)
        except SessionNotFoundError:
            pass
        # A timed-out admit may still be executed by the worker later
        self.worker.revoke_async(interface, record.ip_address, record.mac_address)
        logger.warning(
            "Admission of %s (%s) on portal %s rolled back: %s",
            record.username, record.ip_address, record.portal_id, reason,
        )
        self._audit(AuditEvent.ADMISSION_FAILED, record, reason=reason)

    def _audit(self, event: AuditEvent, record: SessionRecord, **details) -> None:
        if self.audit is not None:
            self.audit.record(event, record.portal_id, record.username, record.session_token, **details)
