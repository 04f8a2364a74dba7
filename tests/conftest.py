from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional

import pytest

from src.visitor_registry.visitor_registry.audit.model import AuditLogEntry, NewAuditEntry
from src.visitor_registry.visitor_registry.container import build_services
from src.visitor_registry.visitor_registry.core.enums import RequestStatus, RequestType, VisitorStatus
from src.visitor_registry.visitor_registry.core.exceptions import ConflictError, StorageError
from src.visitor_registry.visitor_registry.core.identity import Actor
from src.visitor_registry.visitor_registry.requests.model import ChangeRequest, RequestStats
from src.visitor_registry.visitor_registry.visitors.model import VISITOR_DATA_FIELDS, Visitor, VisitorStats


@dataclass
class Tables:
    visitors: Dict[int, Visitor] = field(default_factory=dict)
    requests: Dict[int, ChangeRequest] = field(default_factory=dict)
    audit: Dict[int, AuditLogEntry] = field(default_factory=dict)
    next_id: Dict[str, int] = field(default_factory=lambda: {"visitors": 1, "requests": 1, "audit": 1})

    def take_id(self, table: str) -> int:
        value = self.next_id[table]
        self.next_id[table] = value + 1
        return value


# visitors columns declared NOT NULL in database/schema.sql among the editable data.
NOT_NULL_VISITOR_COLUMNS = ("full_name",)


class InMemoryVisitors:
    def __init__(self, tables: Tables, storage: "InMemoryStorage"):
        self._t = tables
        self._s = storage

    def insert(self, *, data, check_in_time, input_by):
        self._s.maybe_fail("visitors.insert")
        self._s.check_not_null("visitors", data)
        vid = self._t.take_id("visitors")
        values = {k: data[k] for k in VISITOR_DATA_FIELDS if k in data}
        self._t.visitors[vid] = Visitor(
            visitor_id=vid,
            status=VisitorStatus.CHECKED_IN,
            check_in_time=check_in_time,
            input_by=input_by,
            **values,
        )
        return vid

    def get(self, visitor_id, *, for_update=False):
        self._s.visitor_reads.append((int(visitor_id), for_update))
        return self._t.visitors.get(int(visitor_id))

    def list_active(self, *, search=None, location=None, start=None, end=None, limit=200):
        rows = [v for v in self._t.visitors.values() if v.deleted_at is None]
        if location:
            rows = [v for v in rows if location.lower() in (v.location or "").lower()]
        if start is not None:
            rows = [v for v in rows if v.check_in_time >= start]
        if end is not None:
            rows = [v for v in rows if v.check_in_time <= end]
        if search:
            needle = search.lower()
            rows = [
                v
                for v in rows
                if any(needle in (getattr(v, f) or "").lower() for f in ("full_name", "institution", "purpose"))
            ]
        rows.sort(key=lambda v: (v.check_in_time, v.visitor_id), reverse=True)
        return rows[:limit]

    def mark_checked_out(self, *, visitor_id, check_out_time, checkout_by):
        v = self._t.visitors.get(int(visitor_id))
        if not v or v.status != VisitorStatus.CHECKED_IN or v.deleted_at is not None:
            return False
        self._t.visitors[v.visitor_id] = replace(
            v,
            status=VisitorStatus.CHECKED_OUT,
            check_out_time=check_out_time,
            checkout_by=checkout_by,
            updated_at=check_out_time,
        )
        return True

    def update_fields(self, *, visitor_id, values, updated_at):
        self._s.maybe_fail("visitors.update_fields")
        v = self._t.visitors.get(int(visitor_id))
        if not v:
            return False
        clean = {k: val for k, val in values.items() if k in VISITOR_DATA_FIELDS}
        self._s.check_not_null("visitors", clean)
        self._t.visitors[v.visitor_id] = replace(v, updated_at=updated_at, **clean)
        return True

    def mark_deleted(self, *, visitor_id, deleted_at, deleted_by, check_out_time=None):
        self._s.maybe_fail("visitors.mark_deleted")
        v = self._t.visitors.get(int(visitor_id))
        if not v or v.deleted_at is not None:
            return False
        changes: Dict[str, Any] = {"deleted_at": deleted_at, "deleted_by": deleted_by, "updated_at": deleted_at}
        if check_out_time is not None:
            changes.update(status=VisitorStatus.CHECKED_OUT, check_out_time=check_out_time, checkout_by=deleted_by)
        self._t.visitors[v.visitor_id] = replace(v, **changes)
        return True

    def counts(self):
        rows = list(self._t.visitors.values())
        return VisitorStats(
            total=len(rows),
            active=sum(1 for v in rows if v.deleted_at is None),
            deleted=sum(1 for v in rows if v.deleted_at is not None),
            checked_in=sum(1 for v in rows if v.deleted_at is None and v.status == VisitorStatus.CHECKED_IN),
        )

    def find_status_mismatches(self):
        out = []
        for v in sorted(self._t.visitors.values(), key=lambda v: v.visitor_id):
            if (
                (v.deleted_at is not None and v.status == VisitorStatus.CHECKED_IN)
                or (v.status == VisitorStatus.CHECKED_OUT and v.check_out_time is None)
                or (v.status == VisitorStatus.CHECKED_IN and v.check_out_time is not None)
            ):
                out.append(v)
        return out


class InMemoryRequests:
    def __init__(self, tables: Tables, storage: "InMemoryStorage"):
        self._t = tables
        self._s = storage

    def insert(
        self,
        *,
        visitor_id,
        request_type,
        original_data,
        proposed_data,
        reason,
        requested_by,
        requested_by_role,
        created_at,
    ):
        self._s.maybe_fail("requests.insert")
        if self.find_pending(visitor_id=visitor_id, request_type=request_type):
            raise ConflictError("duplicate pending request")
        rid = self._t.take_id("requests")
        self._t.requests[rid] = ChangeRequest(
            request_id=rid,
            visitor_id=int(visitor_id),
            request_type=request_type,
            status=RequestStatus.PENDING,
            reason=reason,
            requested_by=requested_by,
            requested_by_role=requested_by_role,
            created_at=created_at,
            original_data=copy.deepcopy(dict(original_data)),
            proposed_data=copy.deepcopy(dict(proposed_data)) if proposed_data is not None else None,
        )
        return rid

    def get(self, request_id, *, for_update=False):
        return self._t.requests.get(int(request_id))

    def find_pending(self, *, visitor_id, request_type):
        for r in sorted(self._t.requests.values(), key=lambda r: r.request_id):
            if r.visitor_id == int(visitor_id) and r.request_type == request_type and r.status == RequestStatus.PENDING:
                return r
        return None

    def list(self, *, status=None, request_type=None, visitor_id=None, limit=200):
        rows = [
            r
            for r in self._t.requests.values()
            if (status is None or r.status == status)
            and (request_type is None or r.request_type == request_type)
            and (visitor_id is None or r.visitor_id == int(visitor_id))
        ]
        rows.sort(key=lambda r: (r.created_at, r.request_id), reverse=True)
        return rows[:limit]

    def resolve(self, *, request_id, status, processed_by, processed_at, rejection_reason=None):
        self._s.maybe_fail("requests.resolve")
        if self._s.resolved_elsewhere:
            return False
        r = self._t.requests.get(int(request_id))
        if not r or r.status != RequestStatus.PENDING:
            return False
        self._t.requests[r.request_id] = replace(
            r,
            status=status,
            processed_by=processed_by,
            processed_at=processed_at,
            rejection_reason=rejection_reason,
        )
        return True

    def pending_ids_for(self, visitor_ids):
        wanted = {int(v) for v in visitor_ids}
        out: Dict[int, Dict[RequestType, int]] = {}
        for r in sorted(self._t.requests.values(), key=lambda r: r.request_id):
            if r.status == RequestStatus.PENDING and r.visitor_id in wanted:
                out.setdefault(r.visitor_id, {}).setdefault(r.request_type, r.request_id)
        return out

    def counts(self):
        rows = list(self._t.requests.values())
        pending = [r for r in rows if r.status == RequestStatus.PENDING]
        return RequestStats(
            total=len(rows),
            pending=len(pending),
            approved=sum(1 for r in rows if r.status == RequestStatus.APPROVED),
            rejected=sum(1 for r in rows if r.status == RequestStatus.REJECTED),
            pending_edit=sum(1 for r in pending if r.request_type == RequestType.EDIT),
            pending_delete=sum(1 for r in pending if r.request_type == RequestType.DELETE),
        )

    def find_orphaned(self):
        return [r for r in sorted(self._t.requests.values(), key=lambda r: r.request_id) if r.visitor_id not in self._t.visitors]

    def find_duplicate_pending(self):
        groups: Dict[tuple, list] = {}
        for r in sorted(self._t.requests.values(), key=lambda r: r.request_id):
            if r.status == RequestStatus.PENDING:
                groups.setdefault((r.visitor_id, r.request_type), []).append(r.request_id)
        return [(vid, rtype, tuple(ids)) for (vid, rtype), ids in sorted(groups.items(), key=lambda g: (g[0][0], g[0][1].value)) if len(ids) > 1]


class InMemoryAudit:
    def __init__(self, tables: Tables, storage: "InMemoryStorage"):
        self._t = tables
        self._s = storage

    def insert(self, entry: NewAuditEntry, *, created_at):
        self._s.maybe_fail("audit.insert")
        eid = self._t.take_id("audit")
        self._t.audit[eid] = AuditLogEntry(
            entry_id=eid,
            action=entry.action,
            performed_by=entry.performed_by,
            created_at=created_at,
            visitor_id=entry.visitor_id,
            request_id=entry.request_id,
            reason=entry.reason,
            details=copy.deepcopy(dict(entry.details or {})),
        )
        return eid

    def get(self, entry_id):
        return self._t.audit.get(int(entry_id))

    def _ordered(self, rows):
        return sorted(rows, key=lambda e: (e.created_at, e.entry_id))

    def list_by_visitor(self, visitor_id):
        return self._ordered(e for e in self._t.audit.values() if e.visitor_id == int(visitor_id))

    def list_by_request(self, request_id):
        return self._ordered(e for e in self._t.audit.values() if e.request_id == int(request_id))

    def list_recent(self, limit):
        return list(reversed(self._ordered(self._t.audit.values())))[:limit]

    def find_orphaned(self):
        return [
            e
            for e in sorted(self._t.audit.values(), key=lambda e: e.entry_id)
            if e.visitor_id is not None and e.visitor_id not in self._t.visitors
        ]


@dataclass
class InMemorySession:
    visitors: InMemoryVisitors
    requests: InMemoryRequests
    audit: InMemoryAudit


class InMemoryStorage:
    """Serialisable transactions over copied tables: commit swaps, an exception discards."""

    def __init__(self):
        self._lock = threading.RLock()
        self.tables = Tables()
        self.fail_on: set[str] = set()
        self.resolved_elsewhere = False
        self.visitor_reads: list[tuple] = []
        self.commits = 0

    def maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StorageError(f"simulated failure in {operation}")

    def check_not_null(self, table: str, values) -> None:
        # Same outcome as MySQLStorage translating an IntegrityError.
        for column in NOT_NULL_VISITOR_COLUMNS:
            if column in values and values[column] is None:
                raise StorageError(f"Column '{column}' cannot be null ({table})")

    @contextmanager
    def transaction(self):
        with self._lock:
            work = copy.deepcopy(self.tables)
            yield InMemorySession(
                visitors=InMemoryVisitors(work, self),
                requests=InMemoryRequests(work, self),
                audit=InMemoryAudit(work, self),
            )
            self.tables = work
            self.commits += 1

    # Writes from outside the subsystem, used to plant anomalies.
    def hard_delete_visitor(self, visitor_id: int) -> None:
        with self._lock:
            del self.tables.visitors[int(visitor_id)]

    def put_visitor(self, visitor: Visitor) -> None:
        with self._lock:
            self.tables.visitors[visitor.visitor_id] = visitor
            self.tables.next_id["visitors"] = max(self.tables.next_id["visitors"], visitor.visitor_id + 1)

    def put_request(self, request: ChangeRequest) -> None:
        with self._lock:
            self.tables.requests[request.request_id] = request
            self.tables.next_id["requests"] = max(self.tables.next_id["requests"], request.request_id + 1)

    def put_audit(self, entry: AuditLogEntry) -> None:
        with self._lock:
            self.tables.audit[entry.entry_id] = entry
            self.tables.next_id["audit"] = max(self.tables.next_id["audit"], entry.entry_id + 1)

    def snapshot(self) -> Tables:
        with self._lock:
            return copy.deepcopy(self.tables)


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def services(storage):
    return build_services(storage)


@pytest.fixture
def admin() -> Actor:
    return Actor(name="admin", role="admin", user_id=1)


@pytest.fixture
def receptionist() -> Actor:
    return Actor(name="reception", role="staff", user_id=2)


@pytest.fixture
def checked_in(services, receptionist):
    """Factory: check in a visitor with sensible defaults."""
    from src.visitor_registry.visitor_registry.visitors.model import CheckInPolicy

    def _make(**overrides):
        data = {
            "full_name": "Test User",
            "phone_number": "0812000111",
            "institution": "Universitas Contoh",
            "purpose": "Meeting",
            "person_to_meet": "Dr. Rahma",
        }
        data.update(overrides)
        return services.visitor_store.check_in(data, CheckInPolicy(), input_by=receptionist)

    return _make


def make_visitor(visitor_id: int, **overrides) -> Visitor:
    values = dict(
        visitor_id=visitor_id,
        full_name=f"Visitor {visitor_id}",
        status=VisitorStatus.CHECKED_IN,
        check_in_time=datetime(2026, 2, 1, 9, 0, 0),
    )
    values.update(overrides)
    return Visitor(**values)


def make_request(request_id: int, visitor_id: int, **overrides) -> ChangeRequest:
    values = dict(
        request_id=request_id,
        visitor_id=visitor_id,
        request_type=RequestType.DELETE,
        status=RequestStatus.PENDING,
        reason="duplicate entry",
        requested_by="reception",
        created_at=datetime(2026, 2, 1, 10, 0, 0),
    )
    values.update(overrides)
    return ChangeRequest(**values)


@pytest.fixture
def factories():
    return {"visitor": make_visitor, "request": make_request}
