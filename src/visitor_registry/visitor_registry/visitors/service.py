from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from ..audit.model import NewAuditEntry
from ..audit.service import AuditLog
from ..common.datetime_utils import now_local
from ..common.validators import is_blank
from ..core.constants import DEFAULT_LIST_LIMIT, REQUIRED_IDENTITY_FIELDS
from ..core.enums import AuditAction, VisitorStatus
from ..core.exceptions import InvalidStateError, NotFoundError, ValidationError
from ..core.identity import Actor
from ..database.storage import Storage, StorageSession
from .model import VISITOR_DATA_FIELDS, CheckInPolicy, Visitor, VisitorStats

logger = logging.getLogger(__name__)


class VisitorStore:
    """Owns visitor rows: check-in, check-out, approved edits and soft deletes.

    Knows nothing about change requests. ``apply_edit`` and ``soft_delete`` are
    only meant to be called by the approval workflow, inside its transaction.
    """

    def __init__(self, storage: Storage, audit: AuditLog, *, clock: Callable = now_local):
        self._storage = storage
        self._audit = audit
        self._clock = clock

    @staticmethod
    def _clean(data: Mapping[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name in VISITOR_DATA_FIELDS:
            if name not in data:
                continue
            value = data[name]
            if isinstance(value, str):
                value = value.strip()
            out[name] = None if is_blank(value) else value
        return out

    @staticmethod
    def _required_fields(policy: CheckInPolicy) -> list[str]:
        required = list(REQUIRED_IDENTITY_FIELDS)
        required += [f for f in policy.required_fields if f not in required]
        if policy.require_photo and "photo_url" not in required:
            required.append("photo_url")
        if policy.require_signature and "signature_url" not in required:
            required.append("signature_url")
        return required

    def check_in(
        self,
        data: Mapping[str, Any],
        policy: CheckInPolicy,
        *,
        input_by: Optional[Union[Actor, str]] = None,
    ) -> Visitor:
        values = self._clean(data or {})
        for name in self._required_fields(policy):
            if is_blank(values.get(name)):
                raise ValidationError(f"{name} is required", field=name)

        operator = Actor.coerce(input_by, "input_by").name if input_by is not None else None
        now = self._clock()
        with self._storage.transaction() as tx:
            visitor_id = tx.visitors.insert(data=values, check_in_time=now, input_by=operator)
            self._audit.append(
                NewAuditEntry(
                    action=AuditAction.CHECKED_IN.value,
                    performed_by=operator or "system",
                    visitor_id=visitor_id,
                    details={"full_name": values.get("full_name")},
                ),
                session=tx,
            )
            visitor = tx.visitors.get(visitor_id)

        logger.info("Visitor %s checked in by %s", visitor_id, operator or "system")
        return visitor

    def check_out(self, visitor_id: int, operator: Union[Actor, str]) -> Visitor:
        actor = Actor.coerce(operator, "operator")
        now = self._clock()
        with self._storage.transaction() as tx:
            current = tx.visitors.get(int(visitor_id), for_update=True)
            if current is None or current.is_deleted:
                raise NotFoundError(f"Visitor {visitor_id} not found")
            if current.status == VisitorStatus.CHECKED_OUT:
                raise InvalidStateError(f"Visitor {visitor_id} is already checked out")

            if not tx.visitors.mark_checked_out(visitor_id=int(visitor_id), check_out_time=now, checkout_by=actor.name):
                raise InvalidStateError(f"Visitor {visitor_id} is already checked out")

            self._audit.append(
                NewAuditEntry(
                    action=AuditAction.CHECKED_OUT.value,
                    performed_by=actor.name,
                    visitor_id=int(visitor_id),
                    details={"check_out_time": now.isoformat()},
                ),
                session=tx,
            )
            visitor = tx.visitors.get(int(visitor_id))

        logger.info("Visitor %s checked out by %s", visitor_id, actor.name)
        return visitor

    def apply_edit(
        self, visitor_id: int, proposed_data: Mapping[str, Any], *, session: StorageSession
    ) -> Tuple[Visitor, Visitor]:
        """Merge only the fields present in ``proposed_data``; everything else stays as is.

        Returns the row as read under lock before the merge, and the row after it.
        """
        values = {k: v for k, v in proposed_data.items() if k in VISITOR_DATA_FIELDS}
        for name in REQUIRED_IDENTITY_FIELDS:
            if name in values and is_blank(values[name]):
                raise ValidationError(f"{name} cannot be empty", field=name)
        current = session.visitors.get(int(visitor_id), for_update=True)
        if current is None:
            raise NotFoundError(f"Visitor {visitor_id} not found")
        if current.is_deleted:
            raise InvalidStateError(f"Visitor {visitor_id} has been deleted")
        if values:
            session.visitors.update_fields(visitor_id=int(visitor_id), values=values, updated_at=self._clock())
        return current, session.visitors.get(int(visitor_id))

    def soft_delete(self, visitor_id: int, deleted_by: str, *, session: StorageSession) -> Visitor:
        current = session.visitors.get(int(visitor_id), for_update=True)
        if current is None:
            raise NotFoundError(f"Visitor {visitor_id} not found")
        if current.is_deleted:
            raise InvalidStateError(f"Visitor {visitor_id} is already deleted")

        now = self._clock()
        # A deleted visitor is no longer on site.
        check_out_time = now if current.status == VisitorStatus.CHECKED_IN else None
        if not session.visitors.mark_deleted(
            visitor_id=int(visitor_id),
            deleted_at=now,
            deleted_by=deleted_by,
            check_out_time=check_out_time,
        ):
            raise InvalidStateError(f"Visitor {visitor_id} is already deleted")
        return session.visitors.get(int(visitor_id))

    def get_active(
        self,
        *,
        search: Optional[str] = None,
        location: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[Visitor]:
        """Non-deleted visitors, newest check-in first.

        ``search`` matches name, institution or purpose; ``location`` is a substring
        match; ``start``/``end`` bound ``check_in_time`` inclusively. ``limit`` is
        clamped to 1..DEFAULT_LIST_LIMIT.
        """
        if start is not None and end is not None and start > end:
            raise ValidationError("start must not be after end", field="start")
        term = (search or "").strip() or None
        place = (location or "").strip() or None
        limit = max(1, min(int(limit), DEFAULT_LIST_LIMIT))
        with self._storage.transaction() as tx:
            return tuple(
                tx.visitors.list_active(search=term, location=place, start=start, end=end, limit=limit)
            )

    def get_by_id(self, visitor_id: int) -> Visitor:
        """Fetch a visitor, soft-deleted ones included."""
        with self._storage.transaction() as tx:
            visitor = tx.visitors.get(int(visitor_id))
        if visitor is None:
            raise NotFoundError(f"Visitor {visitor_id} not found")
        return visitor

    def stats(self) -> VisitorStats:
        with self._storage.transaction() as tx:
            return tx.visitors.counts()
