from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class NewAuditEntry:
    """Entry as written by the caller; id and created_at are assigned on append."""

    action: str
    performed_by: str
    visitor_id: Optional[int] = None
    request_id: Optional[int] = None
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuditLogEntry:
    entry_id: int
    action: str
    performed_by: str
    created_at: datetime
    visitor_id: Optional[int] = None
    request_id: Optional[int] = None
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
