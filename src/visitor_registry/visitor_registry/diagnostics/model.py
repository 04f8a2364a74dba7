from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from ..core.enums import RequestType


@dataclass(frozen=True)
class OrphanedRequest:
    """A change request whose visitor row no longer exists."""

    request_id: int
    visitor_id: int
    kind: str = field(default="orphaned_request", init=False)


@dataclass(frozen=True)
class OrphanedAuditEntry:
    entry_id: int
    visitor_id: int
    request_id: Optional[int] = None
    kind: str = field(default="orphaned_audit_entry", init=False)


@dataclass(frozen=True)
class DuplicatePendingRequest:
    """More than one pending request of the same type for one visitor."""

    visitor_id: int
    request_type: RequestType
    request_ids: Tuple[int, ...]
    kind: str = field(default="duplicate_pending_request", init=False)


@dataclass(frozen=True)
class StatusMismatch:
    visitor_id: int
    problem: str
    kind: str = field(default="status_mismatch", init=False)


Anomaly = Union[OrphanedRequest, OrphanedAuditEntry, DuplicatePendingRequest, StatusMismatch]

# StatusMismatch.problem values
DELETED_BUT_CHECKED_IN = "deleted_but_checked_in"
CHECKED_OUT_WITHOUT_TIME = "checked_out_without_check_out_time"
CHECKED_IN_WITH_CHECK_OUT_TIME = "checked_in_with_check_out_time"


def anomaly_to_dict(anomaly: Anomaly) -> Dict[str, Any]:
    out = asdict(anomaly)
    if isinstance(anomaly, DuplicatePendingRequest):
        out["request_type"] = anomaly.request_type.value
        out["request_ids"] = list(anomaly.request_ids)
    return out


@dataclass(frozen=True)
class ScanReport:
    anomalies: Tuple[Anomaly, ...]

    @property
    def is_clean(self) -> bool:
        return not self.anomalies

    @property
    def counts(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for a in self.anomalies:
            out[a.kind] = out.get(a.kind, 0) + 1
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clean": self.is_clean,
            "counts": self.counts,
            "anomalies": [anomaly_to_dict(a) for a in self.anomalies],
        }
