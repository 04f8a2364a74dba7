from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..database.mysql_base import fetchall, fetchone, from_json, to_json
from .model import AuditLogEntry, NewAuditEntry
from .repository import AuditRepository

_COLUMNS = "a.id, a.request_id, a.visitor_id, a.action, a.performed_by, a.reason, a.details, a.created_at"


def _to_entry(r: Dict[str, Any]) -> AuditLogEntry:
    return AuditLogEntry(
        entry_id=int(r["id"]),
        action=r["action"],
        performed_by=r["performed_by"],
        created_at=r["created_at"],
        visitor_id=int(r["visitor_id"]) if r.get("visitor_id") is not None else None,
        request_id=int(r["request_id"]) if r.get("request_id") is not None else None,
        reason=r.get("reason"),
        details=from_json(r.get("details")) or {},
    )


class MySQLAuditRepository(AuditRepository):
    def __init__(self, cur):
        self._cur = cur

    def insert(self, entry: NewAuditEntry, *, created_at: datetime) -> int:
        self._cur.execute(
            """
            INSERT INTO audit_log(request_id, visitor_id, action, performed_by, reason, details, created_at)
            VALUES(%s,%s,%s,%s,%s,%s,%s)
            """,
            (
                entry.request_id,
                entry.visitor_id,
                entry.action,
                entry.performed_by,
                entry.reason,
                to_json(entry.details or {}),
                created_at,
            ),
        )
        return int(self._cur.lastrowid)

    def get(self, entry_id: int) -> Optional[AuditLogEntry]:
        self._cur.execute(f"SELECT {_COLUMNS} FROM audit_log a WHERE a.id=%s", (int(entry_id),))
        r = fetchone(self._cur)
        return _to_entry(r) if r else None

    def list_by_visitor(self, visitor_id: int) -> Sequence[AuditLogEntry]:
        self._cur.execute(
            f"SELECT {_COLUMNS} FROM audit_log a WHERE a.visitor_id=%s ORDER BY a.created_at, a.id",
            (int(visitor_id),),
        )
        return [_to_entry(r) for r in fetchall(self._cur)]

    def list_by_request(self, request_id: int) -> Sequence[AuditLogEntry]:
        self._cur.execute(
            f"SELECT {_COLUMNS} FROM audit_log a WHERE a.request_id=%s ORDER BY a.created_at, a.id",
            (int(request_id),),
        )
        return [_to_entry(r) for r in fetchall(self._cur)]

    def list_recent(self, limit: int) -> Sequence[AuditLogEntry]:
        self._cur.execute(
            f"SELECT {_COLUMNS} FROM audit_log a ORDER BY a.created_at DESC, a.id DESC LIMIT %s",
            (int(limit),),
        )
        return [_to_entry(r) for r in fetchall(self._cur)]

    def find_orphaned(self) -> Sequence[AuditLogEntry]:
        self._cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM audit_log a
            LEFT JOIN visitors v ON v.id = a.visitor_id
            WHERE a.visitor_id IS NOT NULL AND v.id IS NULL
            ORDER BY a.id
            """
        )
        return [_to_entry(r) for r in fetchall(self._cur)]
