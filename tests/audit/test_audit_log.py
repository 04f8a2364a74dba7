from __future__ import annotations

import pytest

from src.visitor_registry.visitor_registry.audit.model import NewAuditEntry
from src.visitor_registry.visitor_registry.core.exceptions import StorageError, ValidationError


def test_append_assigns_id_and_timestamp(services):
    entry = services.audit_log.append(
        NewAuditEntry(action="note", performed_by="admin", visitor_id=3, details={"k": "v"})
    )

    assert entry.entry_id == 1
    assert entry.created_at is not None
    assert services.audit_log.find_by_visitor(3) == (entry,)


def test_find_by_visitor_and_request_are_ordered_and_restartable(services):
    for i in range(3):
        services.audit_log.append(NewAuditEntry(action=f"a{i}", performed_by="admin", visitor_id=1, request_id=9))
    services.audit_log.append(NewAuditEntry(action="other", performed_by="admin", visitor_id=2))

    first = services.audit_log.find_by_visitor(1)
    assert [e.action for e in first] == ["a0", "a1", "a2"]
    assert services.audit_log.find_by_visitor(1) == first
    assert [e.action for e in services.audit_log.find_by_request(9)] == ["a0", "a1", "a2"]
    assert [e.created_at for e in first] == sorted(e.created_at for e in first)


def test_recent_returns_newest_first(services):
    for i in range(4):
        services.audit_log.append(NewAuditEntry(action=f"a{i}", performed_by="admin"))

    assert [e.action for e in services.audit_log.recent(limit=2)] == ["a3", "a2"]


def test_append_requires_action_and_performer(services):
    with pytest.raises(ValidationError):
        services.audit_log.append(NewAuditEntry(action="", performed_by="admin"))
    with pytest.raises(ValidationError):
        services.audit_log.append(NewAuditEntry(action="x", performed_by=" "))


def test_failed_append_leaves_log_unchanged(services, storage):
    storage.fail_on.add("audit.insert")

    with pytest.raises(StorageError):
        services.audit_log.append(NewAuditEntry(action="x", performed_by="admin", visitor_id=1))

    storage.fail_on.clear()
    assert services.audit_log.find_by_visitor(1) == ()


def test_audit_log_has_no_mutation_api(services):
    assert not hasattr(services.audit_log, "update")
    assert not hasattr(services.audit_log, "delete")
