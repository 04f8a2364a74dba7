from __future__ import annotations

from datetime import datetime


def now_local() -> datetime:
    """Default clock for the services; tests inject a fixed one instead."""
    return datetime.now()
