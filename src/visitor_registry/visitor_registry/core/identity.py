from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from ..common.validators import is_blank
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class Actor:
    """Identity supplied by the caller's auth layer. Recorded as given, never checked here."""

    name: str
    role: Optional[str] = None
    user_id: Optional[int] = None

    @classmethod
    def coerce(cls, value: Union["Actor", str], field_name: str = "actor") -> "Actor":
        if isinstance(value, Actor):
            actor = value
        else:
            actor = Actor(name=str(value or ""))
        if is_blank(actor.name):
            raise ValidationError(f"{field_name} is required", field=field_name)
        return actor
