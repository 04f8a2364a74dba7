from __future__ import annotations

import logging
from typing import Iterator

from ..core.enums import VisitorStatus
from ..database.storage import Storage
from .model import (
    CHECKED_IN_WITH_CHECK_OUT_TIME,
    CHECKED_OUT_WITHOUT_TIME,
    DELETED_BUT_CHECKED_IN,
    Anomaly,
    DuplicatePendingRequest,
    OrphanedAuditEntry,
    OrphanedRequest,
    ScanReport,
    StatusMismatch,
)

logger = logging.getLogger(__name__)


class ConsistencyChecker:
    """Read-only scan of the three relations for broken references and invariants.

    Reports; never repairs. Not used on any request-handling path.
    """

    def __init__(self, storage: Storage):
        self._storage = storage

    def scan(self) -> Iterator[Anomaly]:
        """Lazily yield anomalies, one check at a time.

        Each check runs in its own short read transaction, so a caller that stops
        iterating early never holds a transaction open.
        """
        with self._storage.transaction() as tx:
            orphaned_requests = tx.requests.find_orphaned()
        for req in orphaned_requests:
            yield OrphanedRequest(request_id=req.request_id, visitor_id=req.visitor_id)

        with self._storage.transaction() as tx:
            orphaned_entries = tx.audit.find_orphaned()
        for entry in orphaned_entries:
            yield OrphanedAuditEntry(entry_id=entry.entry_id, visitor_id=entry.visitor_id, request_id=entry.request_id)

        with self._storage.transaction() as tx:
            duplicates = tx.requests.find_duplicate_pending()
        for visitor_id, request_type, request_ids in duplicates:
            yield DuplicatePendingRequest(visitor_id=visitor_id, request_type=request_type, request_ids=tuple(request_ids))

        with self._storage.transaction() as tx:
            suspects = tx.visitors.find_status_mismatches()
        for v in suspects:
            if v.is_deleted and v.status == VisitorStatus.CHECKED_IN:
                yield StatusMismatch(visitor_id=v.visitor_id, problem=DELETED_BUT_CHECKED_IN)
            elif v.status == VisitorStatus.CHECKED_OUT and v.check_out_time is None:
                yield StatusMismatch(visitor_id=v.visitor_id, problem=CHECKED_OUT_WITHOUT_TIME)
            elif v.status == VisitorStatus.CHECKED_IN and v.check_out_time is not None:
                yield StatusMismatch(visitor_id=v.visitor_id, problem=CHECKED_IN_WITH_CHECK_OUT_TIME)

    def report(self) -> ScanReport:
        report = ScanReport(anomalies=tuple(self.scan()))
        if report.is_clean:
            logger.info("Consistency scan: no anomalies")
        else:
            logger.warning("Consistency scan found %d anomalies: %s", len(report.anomalies), report.counts)
        return report
