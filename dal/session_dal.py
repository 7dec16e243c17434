"""Async Data Access Layer for the `sessions` table.

Provides `SQLiteSessionBackend`, the persistent implementation of
`services.session.session_store.SessionBackend`, on top of
`utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Sequence

from models.session_models import (
    SessionRecord,
    coerce_components,
    coerce_history,
    normalize_difficulty,
)
from services.session.session_store import SessionBackend
from utils.database_init import AsyncDatabaseInitializer


class SQLiteSessionBackend(SessionBackend):
    """Data access layer for session rows.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`). Every method runs one statement on its own
    connection, which keeps each operation atomic per key.
    """

    name = "persistent"

    _COLUMNS = (
        "session_id",
        "image_data",
        "image_type",
        "image_description",
        "components",
        "conversation_history",
        "difficulty",
        "expires_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)
    _PLACEHOLDERS = ", ".join("?" for _ in _COLUMNS)
    _UPSERT_ASSIGNMENTS = ", ".join(f"{col} = excluded.{col}" for col in _COLUMNS[1:])
    _UPDATABLE = frozenset(_COLUMNS[3:])

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def upsert(self, record: SessionRecord) -> None:
        """Insert the full record, replacing any row with the same session id."""
        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO sessions ({self._COLUMN_LIST}) VALUES ({self._PLACEHOLDERS}) "
                f"ON CONFLICT(session_id) DO UPDATE SET {self._UPSERT_ASSIGNMENTS}",
                self._record_to_row(record),
            )
            await conn.commit()

    async def get(self, session_id: str, now: float) -> Optional[SessionRecord]:
        """Return the record for `session_id` if it has not expired at `now`."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM sessions WHERE session_id = ? AND expires_at > ?",
                (session_id, now),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def update(self, session_id: str, fields: Mapping[str, Any]) -> bool:
        """Update the given columns of one row. Returns True if a row was changed.

        Rows are matched by id only; an unswept expired row given a new
        `expires_at` becomes live again.
        """
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update session columns: {', '.join(sorted(unknown))}")
        if not fields:
            return False

        values = self._serialize_fields(fields)
        assignments = ", ".join(f"{col} = ?" for col in values)
        params = list(values.values())
        params.append(session_id)

        async with self._db.connection() as conn:
            await conn.execute(f"UPDATE sessions SET {assignments} WHERE session_id = ?", tuple(params))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    async def delete(self, session_id: str) -> bool:
        """Delete the row for `session_id`. Returns True if a row was deleted."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    async def count_live(self, now: float) -> int:
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT COUNT(*) FROM sessions WHERE expires_at > ?", (now,))
            row = await cur.fetchone()
            return int(row[0]) if row else 0

    async def delete_expired(self, now: float) -> int:
        """Delete rows whose expiry is at or before `now` and return how many went."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (now,))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            deleted = await cur.fetchone()
            return int(deleted[0]) if deleted and deleted[0] is not None else 0

    async def clear(self) -> None:
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM sessions")
            await conn.commit()

    @staticmethod
    def _serialize_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Convert record attribute values into column values."""
        values: Dict[str, Any] = {}
        for key, value in fields.items():
            if key == "components":
                value = json.dumps([c.to_dict() for c in coerce_components(value)])
            elif key == "conversation_history":
                value = json.dumps([t.to_dict() for t in coerce_history(value)])
            elif key == "difficulty":
                value = normalize_difficulty(value)
            values[key] = value
        return values

    @staticmethod
    def _record_to_row(record: SessionRecord) -> tuple:
        return (
            record.session_id,
            record.image_data,
            record.image_type,
            record.image_description,
            json.dumps(record.components_as_dicts()),
            json.dumps(record.history_as_dicts()),
            record.difficulty,
            record.expires_at,
        )

    @staticmethod
    def _row_to_record(row: Sequence[Any]) -> SessionRecord:
        """Convert a DB row tuple into a SessionRecord."""
        return SessionRecord(
            session_id=row[0],
            image_data=row[1],
            image_type=row[2],
            image_description=row[3],
            components=coerce_components(json.loads(row[4] or "[]")),
            conversation_history=coerce_history(json.loads(row[5] or "[]")),
            difficulty=row[6],
            expires_at=float(row[7]),
        )
