from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.visitor_registry.visitor_registry.database.bootstrap import apply_schema, list_tables

EXPECTED_TABLES = ("visitors", "change_requests", "audit_log")


def main(argv: list[str]) -> int:
    """Apply schema.sql (or the file given as first argument) and verify the tables."""
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    schema_path = Path(argv[0]) if argv else REPO_ROOT / "database" / "schema.sql"
    apply_schema(db_config, schema_path=schema_path)

    tables = set(list_tables(db_config))
    missing = [t for t in EXPECTED_TABLES if t not in tables]
    target = f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}"
    if missing:
        print(f"FAIL: {schema_path.name} -> {target}: missing tables {', '.join(missing)}")
        return 1
    print(f"OK: {schema_path.name} -> {target} (tables={len(tables)})")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
