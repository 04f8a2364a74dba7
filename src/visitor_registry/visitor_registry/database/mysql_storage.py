from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import mysql.connector

from ..audit.mysql_audit_repository import MySQLAuditRepository
from ..core.exceptions import StorageError
from ..requests.mysql_request_repository import MySQLRequestRepository
from ..visitors.mysql_visitor_repository import MySQLVisitorRepository
from .connection import DatabaseConnection
from .mysql_base import db_cursor
from .storage import Storage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MySQLSession:
    visitors: MySQLVisitorRepository
    requests: MySQLRequestRepository
    audit: MySQLAuditRepository


class MySQLStorage(Storage):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @contextmanager
    def transaction(self) -> Iterator[MySQLSession]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                yield MySQLSession(
                    visitors=MySQLVisitorRepository(cur),
                    requests=MySQLRequestRepository(cur),
                    audit=MySQLAuditRepository(cur),
                )
        except mysql.connector.Error as exc:
            logger.error("Storage transaction failed: %s", exc)
            raise StorageError(f"Storage transaction failed: {exc}") from exc
