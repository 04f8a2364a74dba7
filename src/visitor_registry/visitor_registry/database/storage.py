from __future__ import annotations

from typing import ContextManager, Protocol

from ..audit.repository import AuditRepository
from ..requests.repository import RequestRepository
from ..visitors.repository import VisitorRepository


class StorageSession(Protocol):
    """The three relations, all bound to one open transaction."""

    visitors: VisitorRepository
    requests: RequestRepository
    audit: AuditRepository


class Storage(Protocol):
    def transaction(self) -> ContextManager[StorageSession]:
        """Open a transaction.

        Leaving the block normally commits; an exception rolls everything back.
        Connectivity and driver failures surface as StorageError.
        """

        raise NotImplementedError
