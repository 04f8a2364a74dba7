from __future__ import annotations

import types
from datetime import datetime

from src.visitor_registry.visitor_registry.audit.model import AuditLogEntry
from src.visitor_registry.visitor_registry.core.enums import RequestStatus, RequestType, VisitorStatus
from src.visitor_registry.visitor_registry.diagnostics.model import (
    CHECKED_IN_WITH_CHECK_OUT_TIME,
    CHECKED_OUT_WITHOUT_TIME,
    DELETED_BUT_CHECKED_IN,
    DuplicatePendingRequest,
    OrphanedAuditEntry,
    OrphanedRequest,
    StatusMismatch,
)


def test_clean_store_has_no_anomalies(services, checked_in, receptionist, admin):
    visitor = checked_in()
    services.visitor_store.check_out(visitor.visitor_id, receptionist)
    req = services.change_requests.create_edit_request(visitor.visitor_id, {"purpose": "x"}, "r", receptionist)
    services.approval_engine.approve(req.request_id, admin)

    report = services.consistency_checker.report()
    assert report.is_clean
    assert report.to_dict() == {"clean": True, "counts": {}, "anomalies": []}


def test_request_for_missing_visitor_is_exactly_one_orphan(services, storage, factories):
    storage.put_request(factories["request"](5, visitor_id=77))

    anomalies = list(services.consistency_checker.scan())

    assert anomalies == [OrphanedRequest(request_id=5, visitor_id=77)]


def test_hard_removed_visitor_orphans_requests_and_audit_rows(services, storage, checked_in, receptionist):
    visitor = checked_in()
    req = services.change_requests.create_delete_request(visitor.visitor_id, "dup", receptionist)
    storage.hard_delete_visitor(visitor.visitor_id)

    report = services.consistency_checker.report()

    assert report.counts == {"orphaned_request": 1, "orphaned_audit_entry": 1}
    orphan_entry = next(a for a in report.anomalies if isinstance(a, OrphanedAuditEntry))
    assert orphan_entry.visitor_id == visitor.visitor_id
    assert next(a for a in report.anomalies if isinstance(a, OrphanedRequest)).request_id == req.request_id


def test_audit_entries_without_visitor_are_not_orphans(services, storage):
    storage.put_audit(
        AuditLogEntry(entry_id=1, action="note", performed_by="ops", created_at=datetime(2026, 2, 1), visitor_id=None)
    )

    assert list(services.consistency_checker.scan()) == []


def test_duplicate_pending_requests_are_reported(services, storage, factories):
    storage.put_visitor(factories["visitor"](1))
    storage.put_request(factories["request"](10, 1, request_type=RequestType.EDIT, proposed_data={"purpose": "a"}))
    storage.put_request(factories["request"](11, 1, request_type=RequestType.EDIT, proposed_data={"purpose": "b"}))
    storage.put_request(factories["request"](12, 1, request_type=RequestType.EDIT, status=RequestStatus.REJECTED))
    storage.put_request(factories["request"](13, 1, request_type=RequestType.DELETE))

    anomalies = list(services.consistency_checker.scan())

    assert anomalies == [DuplicatePendingRequest(visitor_id=1, request_type=RequestType.EDIT, request_ids=(10, 11))]


def test_status_mismatches(services, storage, factories):
    t = datetime(2026, 2, 1, 12, 0)
    storage.put_visitor(factories["visitor"](1, deleted_at=t, deleted_by="admin"))
    storage.put_visitor(factories["visitor"](2, status=VisitorStatus.CHECKED_OUT, check_out_time=None))
    storage.put_visitor(factories["visitor"](3, check_out_time=t))
    storage.put_visitor(factories["visitor"](4, status=VisitorStatus.CHECKED_OUT, check_out_time=t))

    anomalies = list(services.consistency_checker.scan())

    assert anomalies == [
        StatusMismatch(visitor_id=1, problem=DELETED_BUT_CHECKED_IN),
        StatusMismatch(visitor_id=2, problem=CHECKED_OUT_WITHOUT_TIME),
        StatusMismatch(visitor_id=3, problem=CHECKED_IN_WITH_CHECK_OUT_TIME),
    ]


def test_scan_is_lazy_and_read_only(services, storage, factories):
    storage.put_request(factories["request"](1, visitor_id=500))
    storage.put_request(factories["request"](2, visitor_id=501))
    before = storage.snapshot()

    scan = services.consistency_checker.scan()
    assert isinstance(scan, types.GeneratorType)
    assert next(scan) == OrphanedRequest(request_id=1, visitor_id=500)
    scan.close()

    after = storage.snapshot()
    assert after.visitors == before.visitors
    assert after.requests == before.requests
    assert after.audit == before.audit


def test_report_dict_is_json_friendly(services, storage, factories):
    storage.put_visitor(factories["visitor"](1))
    storage.put_request(factories["request"](1, 1))
    storage.put_request(factories["request"](2, 1))

    data = services.consistency_checker.report().to_dict()

    assert data["clean"] is False
    assert data["counts"] == {"duplicate_pending_request": 1}
    assert data["anomalies"] == [
        {"visitor_id": 1, "request_type": "delete", "request_ids": [1, 2], "kind": "duplicate_pending_request"}
    ]
