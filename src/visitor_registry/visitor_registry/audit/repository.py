from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import AuditLogEntry, NewAuditEntry


class AuditRepository(Protocol):
    """Append-only audit_log rows. There is deliberately no update or delete."""

    def insert(self, entry: NewAuditEntry, *, created_at: datetime) -> int:
        raise NotImplementedError

    def get(self, entry_id: int) -> Optional[AuditLogEntry]:
        raise NotImplementedError

    def list_by_visitor(self, visitor_id: int) -> Sequence[AuditLogEntry]:
        """Ordered by created_at, then id."""

        raise NotImplementedError

    def list_by_request(self, request_id: int) -> Sequence[AuditLogEntry]:
        raise NotImplementedError

    def list_recent(self, limit: int) -> Sequence[AuditLogEntry]:
        raise NotImplementedError

    def find_orphaned(self) -> Sequence[AuditLogEntry]:
        """Entries with a visitor_id that matches no visitor row."""

        raise NotImplementedError
