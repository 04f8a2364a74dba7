from __future__ import annotations

import json
import sys
from pathlib import Path

import importlib

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.visitor_registry.visitor_registry.container import build_container


def main() -> int:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=dict(settings.DB_CONFIG))

    report = container.consistency_checker.report()
    print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    return 0 if report.is_clean else 1


if __name__ == "__main__":
    sys.exit(main())
