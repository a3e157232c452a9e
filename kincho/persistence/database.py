"""SQLite database layer for decision record persistence.

Manages the SQLite connection and schema creation. Uses aiosqlite for
async access with WAL mode for concurrent read performance.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS decision_records (
    id                    TEXT PRIMARY KEY,
    agent_id              TEXT NOT NULL,
    user_id               TEXT NOT NULL,
    allocation_request_id TEXT NOT NULL,
    content               TEXT NOT NULL,
    memory_type           TEXT NOT NULL DEFAULT 'allocation_decision',
    importance            REAL NOT NULL DEFAULT 0.5,
    decision              TEXT NOT NULL DEFAULT '',
    metadata_json         TEXT NOT NULL DEFAULT '{}',
    created_at            TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_decisions_user ON decision_records(user_id);
CREATE INDEX IF NOT EXISTS idx_decisions_request ON decision_records(allocation_request_id);
CREATE INDEX IF NOT EXISTS idx_decisions_created ON decision_records(created_at);
"""


async def init_db(db_path: str) -> aiosqlite.Connection:
    """Open the database and create tables if needed.

    Args:
        db_path: Path to the SQLite file (``~`` is expanded), or
            ``:memory:``.

    Returns:
        An open aiosqlite connection.
    """
    if db_path == ":memory:":
        target = db_path
    else:
        resolved = Path(db_path).expanduser()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        target = str(resolved)

    db = await aiosqlite.connect(target)
    await db.execute("PRAGMA journal_mode=WAL")
    await db.executescript(_SCHEMA)
    await db.commit()

    logger.info("Decision database initialized at %s", target)
    return db


async def close_db(db: aiosqlite.Connection) -> None:
    """Close the database connection."""
    await db.close()
