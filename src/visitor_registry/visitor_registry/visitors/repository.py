from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence

from .model import Visitor, VisitorStats


class VisitorRepository(Protocol):
    """Visitor rows, bound to the caller's storage transaction."""

    def insert(self, *, data: Mapping[str, Any], check_in_time: datetime, input_by: Optional[str]) -> int:
        raise NotImplementedError

    def get(self, visitor_id: int, *, for_update: bool = False) -> Optional[Visitor]:
        """Return the row even when soft-deleted."""

        raise NotImplementedError

    def list_active(
        self,
        *,
        search: Optional[str] = None,
        location: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 200,
    ) -> Sequence[Visitor]:
        """Non-deleted rows, newest check-in first; start/end bound check_in_time inclusively."""

        raise NotImplementedError

    def mark_checked_out(self, *, visitor_id: int, check_out_time: datetime, checkout_by: str) -> bool:
        """Compare-and-set: only a checked-in, non-deleted row transitions."""

        raise NotImplementedError

    def update_fields(self, *, visitor_id: int, values: Mapping[str, Any], updated_at: datetime) -> bool:
        raise NotImplementedError

    def mark_deleted(
        self,
        *,
        visitor_id: int,
        deleted_at: datetime,
        deleted_by: str,
        check_out_time: Optional[datetime] = None,
    ) -> bool:
        """Soft delete. When check_out_time is given the row is also checked out by deleted_by."""

        raise NotImplementedError

    def counts(self) -> VisitorStats:
        raise NotImplementedError

    def find_status_mismatches(self) -> Sequence[Visitor]:
        """Rows whose status disagrees with check_out_time/deleted_at."""

        raise NotImplementedError
