from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from ..core.enums import VisitorStatus

# Columns a check-in may populate.
VISITOR_DATA_FIELDS: Tuple[str, ...] = (
    "full_name",
    "phone_number",
    "email",
    "address",
    "institution",
    "purpose",
    "person_to_meet",
    "location",
    "id_number",
    "id_type",
    "document_type",
    "photo_url",
    "signature_url",
)

# Short names accepted at the HTTP edge for the columns above.
FIELD_ALIASES: Dict[str, str] = {
    "name": "full_name",
    "phone": "phone_number",
    "photo": "photo_url",
    "signature": "signature_url",
}


def resolve_aliases(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename alias keys to column names. An explicit column name wins over its alias."""
    out = dict(data)
    for alias, name in FIELD_ALIASES.items():
        if alias in out:
            value = out.pop(alias)
            out.setdefault(name, value)
    return out


@dataclass(frozen=True)
class CheckInPolicy:
    """Required-field rules for one check-in call."""

    require_photo: bool = False
    require_signature: bool = False
    required_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Visitor:
    """Thực thể miền (domain): one visit instance."""

    visitor_id: int
    full_name: str
    status: VisitorStatus
    check_in_time: datetime
    phone_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    institution: Optional[str] = None
    purpose: Optional[str] = None
    person_to_meet: Optional[str] = None
    location: Optional[str] = None
    id_number: Optional[str] = None
    id_type: Optional[str] = None
    document_type: Optional[str] = None
    photo_url: Optional[str] = None
    signature_url: Optional[str] = None
    input_by: Optional[str] = None
    check_out_time: Optional[datetime] = None
    checkout_by: Optional[str] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def data(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in VISITOR_DATA_FIELDS}

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe copy of the whole row, used as a request's original_data."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, VisitorStatus):
                value = value.value
            out[f.name] = value
        return out


@dataclass(frozen=True)
class VisitorStats:
    total: int
    active: int
    deleted: int
    checked_in: int
