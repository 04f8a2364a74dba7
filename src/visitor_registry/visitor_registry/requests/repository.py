from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Sequence, Tuple

from ..core.enums import RequestStatus, RequestType
from .model import ChangeRequest, RequestStats


class RequestRepository(Protocol):
    """change_requests rows, bound to the caller's storage transaction."""

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
        """Persist a pending request. Raises ConflictError if one is already pending."""

        raise NotImplementedError

    def get(self, request_id: int, *, for_update: bool = False) -> Optional[ChangeRequest]:
        raise NotImplementedError

    def find_pending(self, *, visitor_id: int, request_type: RequestType) -> Optional[ChangeRequest]:
        raise NotImplementedError

    def list(
        self,
        *,
        status: Optional[RequestStatus] = None,
        request_type: Optional[RequestType] = None,
        visitor_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[ChangeRequest]:
        raise NotImplementedError

    def resolve(
        self,
        *,
        request_id: int,
        status: RequestStatus,
        processed_by: str,
        processed_at: datetime,
        rejection_reason: Optional[str] = None,
    ) -> bool:
        """Compare-and-set from PENDING. False means the request was already resolved."""

        raise NotImplementedError

    def pending_ids_for(self, visitor_ids: Iterable[int]) -> Dict[int, Dict[RequestType, int]]:
        raise NotImplementedError

    def counts(self) -> RequestStats:
        raise NotImplementedError

    def find_orphaned(self) -> Sequence[ChangeRequest]:
        """Requests whose visitor row no longer exists at all."""

        raise NotImplementedError

    def find_duplicate_pending(self) -> Sequence[Tuple[int, RequestType, Tuple[int, ...]]]:
        """(visitor_id, request_type, request_ids) for every group with more than one pending request."""

        raise NotImplementedError
