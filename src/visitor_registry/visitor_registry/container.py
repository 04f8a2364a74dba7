from __future__ import annotations

from dataclasses import dataclass

from .audit.service import AuditLog
from .database.connection import DBConfig, DatabaseConnection
from .database.mysql_storage import MySQLStorage
from .database.storage import Storage
from .diagnostics.checker import ConsistencyChecker
from .requests.approval import ApprovalEngine
from .requests.service import ChangeRequestManager
from .visitors.service import VisitorStore


@dataclass(frozen=True)
class Container:
    storage: Storage

    audit_log: AuditLog
    visitor_store: VisitorStore
    change_requests: ChangeRequestManager
    approval_engine: ApprovalEngine
    consistency_checker: ConsistencyChecker


def build_services(storage: Storage) -> Container:
    audit_log = AuditLog(storage)
    visitor_store = VisitorStore(storage, audit_log)
    change_requests = ChangeRequestManager(storage)
    approval_engine = ApprovalEngine(storage, visitor_store, audit_log)
    consistency_checker = ConsistencyChecker(storage)

    return Container(
        storage=storage,
        audit_log=audit_log,
        visitor_store=visitor_store,
        change_requests=change_requests,
        approval_engine=approval_engine,
        consistency_checker=consistency_checker,
    )


def build_container(*, db_config: dict) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        connect_timeout=int(db_config.get("connect_timeout", 10)),
    )
    conn = DatabaseConnection.get_instance(config)
    return build_services(MySQLStorage(conn))
