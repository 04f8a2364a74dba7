from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import mysql.connector

from ..core.enums import RequestStatus, RequestType
from ..core.exceptions import ConflictError
from ..database.mysql_base import DUPLICATE_KEY_ERRNO, fetchall, fetchone, from_json, to_json
from .model import ChangeRequest, RequestStats
from .repository import RequestRepository

_COLUMNS = (
    "r.id, r.visitor_id, r.request_type, r.status, r.reason, r.original_data, r.proposed_data, "
    "r.requested_by, r.requested_by_role, r.created_at, r.processed_by, r.processed_at, r.rejection_reason"
)


def _to_request(r: Dict[str, Any]) -> ChangeRequest:
    return ChangeRequest(
        request_id=int(r["id"]),
        visitor_id=int(r["visitor_id"]),
        request_type=RequestType(r["request_type"]),
        status=RequestStatus(r["status"]),
        reason=r["reason"],
        requested_by=r["requested_by"],
        created_at=r["created_at"],
        original_data=from_json(r.get("original_data")) or {},
        proposed_data=from_json(r.get("proposed_data")),
        requested_by_role=r.get("requested_by_role"),
        processed_by=r.get("processed_by"),
        processed_at=r.get("processed_at"),
        rejection_reason=r.get("rejection_reason"),
    )


class MySQLRequestRepository(RequestRepository):
    def __init__(self, cur):
        self._cur = cur

    def insert(
        self,
        *,
        visitor_id: int,
        request_type: RequestType,
        original_data: Mapping[str, Any],
        proposed_data: Optional[Mapping[str, Any]],
        reason: str,
        requested_by: str,
        requested_by_role: Optional[str],
        created_at: datetime,
    ) -> int:
        try:
            self._cur.execute(
                """
                INSERT INTO change_requests(
                    visitor_id, request_type, status, reason, original_data, proposed_data,
                    requested_by, requested_by_role, created_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(visitor_id),
                    request_type.value,
                    RequestStatus.PENDING.value,
                    reason,
                    to_json(dict(original_data)),
                    to_json(dict(proposed_data)) if proposed_data is not None else None,
                    requested_by,
                    requested_by_role,
                    created_at,
                ),
            )
        except mysql.connector.IntegrityError as exc:
            # uq_change_requests_pending: one pending request per visitor and type.
            if getattr(exc, "errno", None) == DUPLICATE_KEY_ERRNO:
                raise ConflictError(
                    f"Visitor {visitor_id} already has a pending {request_type.value} request"
                ) from exc
            raise
        return int(self._cur.lastrowid)

    def get(self, request_id: int, *, for_update: bool = False) -> Optional[ChangeRequest]:
        lock = " FOR UPDATE" if for_update else ""
        self._cur.execute(f"SELECT {_COLUMNS} FROM change_requests r WHERE r.id=%s{lock}", (int(request_id),))
        r = fetchone(self._cur)
        return _to_request(r) if r else None

    def find_pending(self, *, visitor_id: int, request_type: RequestType) -> Optional[ChangeRequest]:
        self._cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM change_requests r
            WHERE r.visitor_id=%s AND r.request_type=%s AND r.status=%s
            ORDER BY r.id
            LIMIT 1
            """,
            (int(visitor_id), request_type.value, RequestStatus.PENDING.value),
        )
        r = fetchone(self._cur)
        return _to_request(r) if r else None

    def list(
        self,
        *,
        status: Optional[RequestStatus] = None,
        request_type: Optional[RequestType] = None,
        visitor_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[ChangeRequest]:
        clauses = ["1=1"]
        params: list[object] = []

        if status is not None:
            clauses.append("r.status=%s")
            params.append(status.value)
        if request_type is not None:
            clauses.append("r.request_type=%s")
            params.append(request_type.value)
        if visitor_id is not None:
            clauses.append("r.visitor_id=%s")
            params.append(int(visitor_id))

        where = " AND ".join(clauses)
        self._cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM change_requests r
            WHERE {where}
            ORDER BY r.created_at DESC, r.id DESC
            LIMIT %s
            """,
            tuple(params + [int(limit)]),
        )
        return [_to_request(r) for r in fetchall(self._cur)]

    def resolve(
        self,
        *,
        request_id: int,
        status: RequestStatus,
        processed_by: str,
        processed_at: datetime,
        rejection_reason: Optional[str] = None,
    ) -> bool:
        self._cur.execute(
            """
            UPDATE change_requests
            SET status=%s, processed_by=%s, processed_at=%s, rejection_reason=%s
            WHERE id=%s AND status=%s
            """,
            (
                status.value,
                processed_by,
                processed_at,
                rejection_reason,
                int(request_id),
                RequestStatus.PENDING.value,
            ),
        )
        return self._cur.rowcount > 0

    def pending_ids_for(self, visitor_ids: Iterable[int]) -> Dict[int, Dict[RequestType, int]]:
        ids = sorted({int(v) for v in visitor_ids})
        if not ids:
            return {}
        placeholders = ",".join(["%s"] * len(ids))
        self._cur.execute(
            f"""
            SELECT r.visitor_id, r.request_type, MIN(r.id) AS request_id
            FROM change_requests r
            WHERE r.status=%s AND r.visitor_id IN ({placeholders})
            GROUP BY r.visitor_id, r.request_type
            """,
            tuple([RequestStatus.PENDING.value] + ids),
        )
        out: Dict[int, Dict[RequestType, int]] = {}
        for r in fetchall(self._cur):
            out.setdefault(int(r["visitor_id"]), {})[RequestType(r["request_type"])] = int(r["request_id"])
        return out

    def counts(self) -> RequestStats:
        self._cur.execute(
            """
            SELECT COUNT(*) AS total,
                   COALESCE(SUM(status=%s), 0) AS pending,
                   COALESCE(SUM(status=%s), 0) AS approved,
                   COALESCE(SUM(status=%s), 0) AS rejected,
                   COALESCE(SUM(status=%s AND request_type=%s), 0) AS pending_edit,
                   COALESCE(SUM(status=%s AND request_type=%s), 0) AS pending_delete
            FROM change_requests
            """,
            (
                RequestStatus.PENDING.value,
                RequestStatus.APPROVED.value,
                RequestStatus.REJECTED.value,
                RequestStatus.PENDING.value,
                RequestType.EDIT.value,
                RequestStatus.PENDING.value,
                RequestType.DELETE.value,
            ),
        )
        r = fetchone(self._cur) or {}
        return RequestStats(
            total=int(r.get("total") or 0),
            pending=int(r.get("pending") or 0),
            approved=int(r.get("approved") or 0),
            rejected=int(r.get("rejected") or 0),
            pending_edit=int(r.get("pending_edit") or 0),
            pending_delete=int(r.get("pending_delete") or 0),
        )

    def find_orphaned(self) -> Sequence[ChangeRequest]:
        self._cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM change_requests r
            LEFT JOIN visitors v ON v.id = r.visitor_id
            WHERE v.id IS NULL
            ORDER BY r.id
            """
        )
        return [_to_request(r) for r in fetchall(self._cur)]

    def find_duplicate_pending(self) -> Sequence[Tuple[int, RequestType, Tuple[int, ...]]]:
        self._cur.execute(
            """
            SELECT visitor_id, request_type, GROUP_CONCAT(id ORDER BY id) AS request_ids
            FROM change_requests
            WHERE status=%s
            GROUP BY visitor_id, request_type
            HAVING COUNT(*) > 1
            ORDER BY visitor_id, request_type
            """,
            (RequestStatus.PENDING.value,),
        )
        out: list[Tuple[int, RequestType, Tuple[int, ...]]] = []
        for r in fetchall(self._cur):
            ids = tuple(int(x) for x in str(r["request_ids"]).split(","))
            out.append((int(r["visitor_id"]), RequestType(r["request_type"]), ids))
        return out
