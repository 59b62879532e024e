"""
core/db.py -- Shared SQLAlchemy engine factory and persistence helpers.

Every store (auth, commerce, content, webhooks) is handed the same Engine by
create_app(). SQLAlchemy Core keeps the dataclasses in each package's
models.py as the domain representation; swapping SQLite for PostgreSQL is a
connection string change.
"""

import json
import math
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_db_engine(db_url: str) -> Engine:
    """Build an Engine for db_url.

    SQLite connections are shared across FastAPI's worker threads, so
    check_same_thread is disabled and WAL mode is switched on.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def dump_json(value: Any) -> Optional[str]:
    return None if value is None else json.dumps(value)


def load_json(raw: Optional[str], default: Any = None) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        return default


def page_offset(page: int, limit: int) -> int:
    """Offset for a 1-based page number."""
    return (max(page, 1) - 1) * limit


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0
