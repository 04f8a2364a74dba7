from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Sequence

from ..core.enums import VisitorStatus
from ..database.mysql_base import fetchall, fetchone
from .model import VISITOR_DATA_FIELDS, Visitor, VisitorStats
from .repository import VisitorRepository

_COLUMNS = (
    "id, full_name, phone_number, email, address, institution, purpose, person_to_meet, "
    "location, id_number, id_type, document_type, photo_url, signature_url, status, "
    "check_in_time, check_out_time, input_by, checkout_by, deleted_at, deleted_by, updated_at"
)


def _to_visitor(r: Dict[str, Any]) -> Visitor:
    return Visitor(
        visitor_id=int(r["id"]),
        full_name=r["full_name"],
        status=VisitorStatus(r["status"]),
        check_in_time=r["check_in_time"],
        phone_number=r.get("phone_number"),
        email=r.get("email"),
        address=r.get("address"),
        institution=r.get("institution"),
        purpose=r.get("purpose"),
        person_to_meet=r.get("person_to_meet"),
        location=r.get("location"),
        id_number=r.get("id_number"),
        id_type=r.get("id_type"),
        document_type=r.get("document_type"),
        photo_url=r.get("photo_url"),
        signature_url=r.get("signature_url"),
        input_by=r.get("input_by"),
        check_out_time=r.get("check_out_time"),
        checkout_by=r.get("checkout_by"),
        deleted_at=r.get("deleted_at"),
        deleted_by=r.get("deleted_by"),
        updated_at=r.get("updated_at"),
    )


class MySQLVisitorRepository(VisitorRepository):
    def __init__(self, cur):
        self._cur = cur

    def insert(self, *, data: Mapping[str, Any], check_in_time: datetime, input_by: Optional[str]) -> int:
        cols = [c for c in VISITOR_DATA_FIELDS if c in data]
        values = [data[c] for c in cols]
        cols += ["status", "check_in_time", "input_by"]
        values += [VisitorStatus.CHECKED_IN.value, check_in_time, input_by]
        placeholders = ",".join(["%s"] * len(cols))
        self._cur.execute(
            f"INSERT INTO visitors({', '.join(cols)}) VALUES({placeholders})",
            tuple(values),
        )
        return int(self._cur.lastrowid)

    def get(self, visitor_id: int, *, for_update: bool = False) -> Optional[Visitor]:
        lock = " FOR UPDATE" if for_update else ""
        self._cur.execute(f"SELECT {_COLUMNS} FROM visitors WHERE id=%s{lock}", (int(visitor_id),))
        r = fetchone(self._cur)
        return _to_visitor(r) if r else None

    def list_active(
        self,
        *,
        search: Optional[str] = None,
        location: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 200,
    ) -> Sequence[Visitor]:
        clauses = ["deleted_at IS NULL"]
        params: list[object] = []
        if search:
            like = f"%{search}%"
            clauses.append("(full_name LIKE %s OR institution LIKE %s OR purpose LIKE %s)")
            params += [like, like, like]
        if location:
            clauses.append("location LIKE %s")
            params.append(f"%{location}%")
        if start is not None:
            clauses.append("check_in_time >= %s")
            params.append(start)
        if end is not None:
            clauses.append("check_in_time <= %s")
            params.append(end)

        where = " AND ".join(clauses)
        self._cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM visitors
            WHERE {where}
            ORDER BY check_in_time DESC, id DESC
            LIMIT %s
            """,
            tuple(params + [int(limit)]),
        )
        return [_to_visitor(r) for r in fetchall(self._cur)]

    def mark_checked_out(self, *, visitor_id: int, check_out_time: datetime, checkout_by: str) -> bool:
        self._cur.execute(
            """
            UPDATE visitors
            SET status=%s, check_out_time=%s, checkout_by=%s, updated_at=%s
            WHERE id=%s AND status=%s AND deleted_at IS NULL
            """,
            (
                VisitorStatus.CHECKED_OUT.value,
                check_out_time,
                checkout_by,
                check_out_time,
                int(visitor_id),
                VisitorStatus.CHECKED_IN.value,
            ),
        )
        return self._cur.rowcount > 0

    def update_fields(self, *, visitor_id: int, values: Mapping[str, Any], updated_at: datetime) -> bool:
        cols = [c for c in VISITOR_DATA_FIELDS if c in values]
        if not cols:
            return False
        assignments = ", ".join(f"{c}=%s" for c in cols)
        self._cur.execute(
            f"UPDATE visitors SET {assignments}, updated_at=%s WHERE id=%s",
            tuple([values[c] for c in cols] + [updated_at, int(visitor_id)]),
        )
        # rowcount is 0 when the new values equal the old ones, so re-check existence.
        if self._cur.rowcount > 0:
            return True
        return self.get(visitor_id) is not None

    def mark_deleted(
        self,
        *,
        visitor_id: int,
        deleted_at: datetime,
        deleted_by: str,
        check_out_time: Optional[datetime] = None,
    ) -> bool:
        if check_out_time is None:
            self._cur.execute(
                """
                UPDATE visitors
                SET deleted_at=%s, deleted_by=%s, updated_at=%s
                WHERE id=%s AND deleted_at IS NULL
                """,
                (deleted_at, deleted_by, deleted_at, int(visitor_id)),
            )
        else:
            self._cur.execute(
                """
                UPDATE visitors
                SET deleted_at=%s, deleted_by=%s, updated_at=%s,
                    status=%s, check_out_time=%s, checkout_by=%s
                WHERE id=%s AND deleted_at IS NULL
                """,
                (
                    deleted_at,
                    deleted_by,
                    deleted_at,
                    VisitorStatus.CHECKED_OUT.value,
                    check_out_time,
                    deleted_by,
                    int(visitor_id),
                ),
            )
        return self._cur.rowcount > 0

    def counts(self) -> VisitorStats:
        self._cur.execute(
            """
            SELECT COUNT(*) AS total,
                   COALESCE(SUM(deleted_at IS NULL), 0) AS active,
                   COALESCE(SUM(deleted_at IS NOT NULL), 0) AS deleted,
                   COALESCE(SUM(deleted_at IS NULL AND status=%s), 0) AS checked_in
            FROM visitors
            """,
            (VisitorStatus.CHECKED_IN.value,),
        )
        r = fetchone(self._cur) or {}
        return VisitorStats(
            total=int(r.get("total") or 0),
            active=int(r.get("active") or 0),
            deleted=int(r.get("deleted") or 0),
            checked_in=int(r.get("checked_in") or 0),
        )

    def find_status_mismatches(self) -> Sequence[Visitor]:
        self._cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM visitors
            WHERE (deleted_at IS NOT NULL AND status=%s)
               OR (status=%s AND check_out_time IS NULL)
               OR (status=%s AND check_out_time IS NOT NULL)
            ORDER BY id
            """,
            (
                VisitorStatus.CHECKED_IN.value,
                VisitorStatus.CHECKED_OUT.value,
                VisitorStatus.CHECKED_IN.value,
            ),
        )
        return [_to_visitor(r) for r in fetchall(self._cur)]
