from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Union

from ..audit.model import NewAuditEntry
from ..audit.service import AuditLog
from ..common.datetime_utils import now_local
from ..common.validators import require_non_empty
from ..core.enums import AuditAction, RequestStatus, RequestType
from ..core.exceptions import InvalidStateError, NotFoundError
from ..core.identity import Actor
from ..database.storage import Storage, StorageSession
from ..visitors.service import VisitorStore
from .model import ChangeRequest

logger = logging.getLogger(__name__)


def diff_fields(original: Mapping[str, Any], proposed: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Split a proposed edit into the fields that actually change and their previous values."""
    changes: Dict[str, Any] = {}
    previous: Dict[str, Any] = {}
    for key, value in proposed.items():
        if original.get(key) != value:
            changes[key] = value
            previous[key] = original.get(key)
    return {"changes": changes, "original": previous}


class ApprovalEngine:
    """State machine for change requests: PENDING -> APPROVED | REJECTED.

    Each resolution is one storage transaction covering the visitor mutation,
    the request status and the audit entry. The request row is claimed with a
    compare-and-set on its status, so concurrent resolutions of the same
    request have exactly one winner; the others raise InvalidStateError and
    their transaction rolls back without side effects.
    """

    def __init__(self, storage: Storage, visitors: VisitorStore, audit: AuditLog, *, clock: Callable = now_local):
        self._storage = storage
        self._visitors = visitors
        self._audit = audit
        self._clock = clock

    @staticmethod
    def _load_pending(tx: StorageSession, request_id: int) -> ChangeRequest:
        req = tx.requests.get(int(request_id), for_update=True)
        if req is None:
            raise NotFoundError(f"Request {request_id} not found")
        if not req.is_pending:
            raise InvalidStateError(f"Request {request_id} has already been {req.status.value}")
        return req

    def _claim(self, tx: StorageSession, req: ChangeRequest, *, status: RequestStatus, actor: Actor, rejection_reason=None):
        processed_at = self._clock()
        won = tx.requests.resolve(
            request_id=req.request_id,
            status=status,
            processed_by=actor.name,
            processed_at=processed_at,
            rejection_reason=rejection_reason,
        )
        if not won:
            logger.warning("Request %s was resolved concurrently; %s by %s refused", req.request_id, status.value, actor.name)
            raise InvalidStateError(f"Request {req.request_id} has already been resolved")

    def approve(self, request_id: int, approver: Union[Actor, str]) -> ChangeRequest:
        actor = Actor.coerce(approver, "approver")

        with self._storage.transaction() as tx:
            req = self._load_pending(tx, request_id)
            self._claim(tx, req, status=RequestStatus.APPROVED, actor=actor)

            details: Dict[str, Any] = {"request_type": req.request_type.value}
            if req.request_type == RequestType.EDIT:
                proposed = dict(req.proposed_data or {})
                before, _ = self._visitors.apply_edit(req.visitor_id, proposed, session=tx)
                details.update(diff_fields(before.data(), proposed))
            else:
                visitor = self._visitors.soft_delete(req.visitor_id, actor.name, session=tx)
                details["visitor_name"] = visitor.full_name

            self._audit.append(
                NewAuditEntry(
                    action=AuditAction.APPROVED.value,
                    performed_by=actor.name,
                    visitor_id=req.visitor_id,
                    request_id=req.request_id,
                    reason=req.reason,
                    details=details,
                ),
                session=tx,
            )
            resolved = tx.requests.get(req.request_id)

        logger.info("%s request %s approved by %s", req.request_type.value.capitalize(), req.request_id, actor.name)
        return resolved

    def reject(self, request_id: int, approver: Union[Actor, str], rejection_reason: str) -> ChangeRequest:
        actor = Actor.coerce(approver, "approver")
        rejection_reason = require_non_empty(rejection_reason, "rejection_reason")

        with self._storage.transaction() as tx:
            req = self._load_pending(tx, request_id)
            self._claim(tx, req, status=RequestStatus.REJECTED, actor=actor, rejection_reason=rejection_reason)
            self._audit.append(
                NewAuditEntry(
                    action=AuditAction.REJECTED.value,
                    performed_by=actor.name,
                    visitor_id=req.visitor_id,
                    request_id=req.request_id,
                    reason=rejection_reason,
                    details={
                        "request_type": req.request_type.value,
                        "rejected_by_role": actor.role,
                    },
                ),
                session=tx,
            )
            resolved = tx.requests.get(req.request_id)

        logger.info("%s request %s rejected by %s", req.request_type.value.capitalize(), req.request_id, actor.name)
        return resolved
