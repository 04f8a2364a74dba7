from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..core.enums import RequestStatus, RequestType


@dataclass(frozen=True)
class ChangeRequest:
    """Proposal to edit or delete a visitor. Immutable once resolved."""

    request_id: int
    visitor_id: int
    request_type: RequestType
    status: RequestStatus
    reason: str
    requested_by: str
    created_at: datetime
    original_data: Dict[str, Any] = field(default_factory=dict)
    proposed_data: Optional[Dict[str, Any]] = None
    requested_by_role: Optional[str] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING


@dataclass(frozen=True)
class RequestStats:
    total: int
    pending: int
    approved: int
    rejected: int
    pending_edit: int
    pending_delete: int


@dataclass(frozen=True)
class PendingStatus:
    """Batch check row: does a visitor currently have pending requests?"""

    visitor_id: int
    pending_edit_id: Optional[int] = None
    pending_delete_id: Optional[int] = None

    @property
    def has_pending(self) -> bool:
        return self.pending_edit_id is not None or self.pending_delete_id is not None
