from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Union

from ..common.datetime_utils import now_local
from ..common.validators import is_blank, require_non_empty
from ..core.constants import DEFAULT_LIST_LIMIT, DEFAULT_PENDING_LIMIT, EDITABLE_FIELDS, REQUIRED_IDENTITY_FIELDS
from ..core.enums import RequestStatus, RequestType
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.identity import Actor
from ..database.storage import Storage, StorageSession
from .model import ChangeRequest, PendingStatus, RequestStats

logger = logging.getLogger(__name__)


class ChangeRequestManager:
    """Creates edit/delete requests. Resolving them is the ApprovalEngine's job."""

    def __init__(self, storage: Storage, *, clock: Callable = now_local):
        self._storage = storage
        self._clock = clock

    @staticmethod
    def _filter_edit_payload(proposed_data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for key, value in (proposed_data or {}).items():
            if key in EDITABLE_FIELDS:
                payload[key] = value.strip() if isinstance(value, str) else value
        for name in REQUIRED_IDENTITY_FIELDS:
            if name in payload and is_blank(payload[name]):
                raise ValidationError(f"{name} cannot be empty", field=name)
        if not payload:
            raise ValidationError("No valid fields to edit", field="proposed_data")
        return payload

    def create_edit_request(
        self,
        visitor_id: int,
        proposed_data: Mapping[str, Any],
        reason: str,
        requester: Union[Actor, str],
    ) -> ChangeRequest:
        payload = self._filter_edit_payload(proposed_data)
        return self._create(
            visitor_id=int(visitor_id),
            request_type=RequestType.EDIT,
            proposed_data=payload,
            reason=reason,
            requester=requester,
        )

    def create_delete_request(self, visitor_id: int, reason: str, requester: Union[Actor, str]) -> ChangeRequest:
        return self._create(
            visitor_id=int(visitor_id),
            request_type=RequestType.DELETE,
            proposed_data=None,
            reason=reason,
            requester=requester,
        )

    def _create(
        self,
        *,
        visitor_id: int,
        request_type: RequestType,
        proposed_data: Optional[Dict[str, Any]],
        reason: str,
        requester: Union[Actor, str],
    ) -> ChangeRequest:
        reason = require_non_empty(reason, "reason")
        actor = Actor.coerce(requester, "requester")

        with self._storage.transaction() as tx:
            visitor = tx.visitors.get(visitor_id, for_update=True)
            if visitor is None or visitor.is_deleted:
                raise NotFoundError(f"Visitor {visitor_id} not found or already deleted")

            existing = tx.requests.find_pending(visitor_id=visitor_id, request_type=request_type)
            if existing is not None:
                raise ConflictError(
                    f"Visitor {visitor_id} already has a pending {request_type.value} request (#{existing.request_id})"
                )

            request_id = tx.requests.insert(
                visitor_id=visitor_id,
                request_type=request_type,
                original_data=visitor.snapshot(),
                proposed_data=proposed_data,
                reason=reason,
                requested_by=actor.name,
                requested_by_role=actor.role,
                created_at=self._clock(),
            )
            created = self._load(tx, request_id)

        logger.info(
            "%s request %s created for visitor %s by %s",
            request_type.value.capitalize(),
            request_id,
            visitor_id,
            actor.name,
        )
        return created

    @staticmethod
    def _load(tx: StorageSession, request_id: int) -> ChangeRequest:
        req = tx.requests.get(int(request_id))
        if req is None:
            raise NotFoundError(f"Request {request_id} not found")
        return req

    def get_request(self, request_id: int) -> ChangeRequest:
        with self._storage.transaction() as tx:
            return self._load(tx, request_id)

    def list_pending(
        self,
        *,
        request_type: Optional[RequestType] = None,
        limit: int = DEFAULT_PENDING_LIMIT,
    ) -> Sequence[ChangeRequest]:
        with self._storage.transaction() as tx:
            return tuple(tx.requests.list(status=RequestStatus.PENDING, request_type=request_type, limit=int(limit)))

    def list_for_visitor(self, visitor_id: int, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[ChangeRequest]:
        with self._storage.transaction() as tx:
            return tuple(tx.requests.list(visitor_id=int(visitor_id), limit=int(limit)))

    def pending_status(self, visitor_ids: Iterable[int]) -> Dict[int, PendingStatus]:
        ids = [int(v) for v in visitor_ids]
        if not ids:
            return {}
        with self._storage.transaction() as tx:
            found = tx.requests.pending_ids_for(ids)
        return {
            vid: PendingStatus(
                visitor_id=vid,
                pending_edit_id=found.get(vid, {}).get(RequestType.EDIT),
                pending_delete_id=found.get(vid, {}).get(RequestType.DELETE),
            )
            for vid in ids
        }

    def stats(self) -> RequestStats:
        with self._storage.transaction() as tx:
            return tx.requests.counts()
