from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import is_blank
from ..core.constants import DEFAULT_AUDIT_RECENT_LIMIT
from ..core.exceptions import ValidationError
from ..database.storage import Storage, StorageSession
from .model import AuditLogEntry, NewAuditEntry

logger = logging.getLogger(__name__)


class AuditLog:
    """Append-only ledger of what happened to visitors and requests, and why."""

    def __init__(self, storage: Storage, *, clock: Callable = now_local):
        self._storage = storage
        self._clock = clock

    def append(self, entry: NewAuditEntry, *, session: Optional[StorageSession] = None) -> AuditLogEntry:
        """Write one entry.

        With ``session`` the entry joins the caller's transaction and is committed
        (or rolled back) together with the caller's other writes.
        """
        if is_blank(entry.action):
            raise ValidationError("action is required", field="action")
        if is_blank(entry.performed_by):
            raise ValidationError("performed_by is required", field="performed_by")

        if session is not None:
            return self._append(session, entry)
        with self._storage.transaction() as tx:
            return self._append(tx, entry)

    def _append(self, tx: StorageSession, entry: NewAuditEntry) -> AuditLogEntry:
        created_at = self._clock()
        entry_id = tx.audit.insert(entry, created_at=created_at)
        logger.debug("audit %s visitor=%s request=%s by=%s", entry.action, entry.visitor_id, entry.request_id, entry.performed_by)
        return AuditLogEntry(
            entry_id=entry_id,
            action=entry.action,
            performed_by=entry.performed_by,
            created_at=created_at,
            visitor_id=entry.visitor_id,
            request_id=entry.request_id,
            reason=entry.reason,
            details=dict(entry.details or {}),
        )

    def find_by_visitor(self, visitor_id: int) -> Sequence[AuditLogEntry]:
        with self._storage.transaction() as tx:
            return tuple(tx.audit.list_by_visitor(int(visitor_id)))

    def find_by_request(self, request_id: int) -> Sequence[AuditLogEntry]:
        with self._storage.transaction() as tx:
            return tuple(tx.audit.list_by_request(int(request_id)))

    def recent(self, limit: int = DEFAULT_AUDIT_RECENT_LIMIT) -> Sequence[AuditLogEntry]:
        with self._storage.transaction() as tx:
            return tuple(tx.audit.list_recent(int(limit)))
