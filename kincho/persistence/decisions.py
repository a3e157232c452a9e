"""Decision store for saving, retrieving, and listing decision records."""

from __future__ import annotations

import json
import logging
from datetime import datetime

import aiosqlite

from kincho.schemas.records import DecisionQuery, DecisionRecord

logger = logging.getLogger(__name__)


class DecisionStore:
    """Persistent decision record store backed by SQLite.

    All methods are async and operate on a connection opened by
    ``database.init_db()``.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def save_record(self, record: DecisionRecord) -> None:
        """Insert or replace a decision record."""
        await self._db.execute(
            """
            INSERT OR REPLACE INTO decision_records
                (id, agent_id, user_id, allocation_request_id, content,
                 memory_type, importance, decision, metadata_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.agent_id,
                record.user_id,
                record.allocation_request_id,
                record.content,
                record.memory_type,
                record.importance,
                record.decision,
                json.dumps(record.metadata),
                record.created_at.isoformat(),
            ),
        )
        await self._db.commit()
        logger.info(
            "Saved decision record %s (%s)", record.id, record.decision or "unknown",
        )

    async def get_record(self, record_id: str) -> DecisionRecord | None:
        """Retrieve a record by ID or unique ID prefix.

        Tries an exact match first. Inputs of at least 4 characters fall
        back to a prefix match, which must be unambiguous.
        """
        self._db.row_factory = aiosqlite.Row
        async with self._db.execute(
            "SELECT * FROM decision_records WHERE id = ?", (record_id,),
        ) as cursor:
            row = await cursor.fetchone()

        if not row and len(record_id) >= 4:
            async with self._db.execute(
                "SELECT * FROM decision_records WHERE id LIKE ?"
                " ORDER BY created_at DESC LIMIT 2",
                (record_id + "%",),
            ) as cursor:
                rows = await cursor.fetchall()
            if len(rows) == 1:
                row = rows[0]

        if not row:
            return None
        return _row_to_record(row)

    async def list_records(self, query: DecisionQuery) -> list[DecisionRecord]:
        """List records matching the query, newest first."""
        conditions: list[str] = []
        params: list[object] = []

        if query.decision:
            conditions.append("decision = ?")
            params.append(query.decision)
        if query.user_id:
            conditions.append("user_id = ?")
            params.append(query.user_id)

        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        params.append(query.limit)

        self._db.row_factory = aiosqlite.Row
        async with self._db.execute(
            f"SELECT * FROM decision_records{where}"  # noqa: S608
            " ORDER BY created_at DESC LIMIT ?",
            params,
        ) as cursor:
            rows = await cursor.fetchall()

        return [_row_to_record(row) for row in rows]


def _row_to_record(row: aiosqlite.Row) -> DecisionRecord:
    return DecisionRecord(
        id=row["id"],
        agent_id=row["agent_id"],
        user_id=row["user_id"],
        allocation_request_id=row["allocation_request_id"],
        content=row["content"],
        memory_type=row["memory_type"],
        importance=row["importance"],
        metadata=json.loads(row["metadata_json"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )
