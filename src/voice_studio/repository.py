"""SQLite-backed repository for saved voices."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import aiosqlite

VoiceRow = dict[str, Any]

_UPDATABLE_COLUMNS = ("name", "description", "preview_url", "settings")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_db_timestamp(value: str | None) -> str | None:
    """Convert SQLite timestamp strings to ISO8601 in UTC."""

    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    else:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.isoformat()


def _decode_settings(value: str | None) -> dict[str, Any]:
    if not value:
        return {}
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError:
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _row_to_voice(row: aiosqlite.Row) -> VoiceRow:
    record = dict(row)
    record["settings"] = _decode_settings(record.get("settings"))
    record["created_at"] = _normalize_db_timestamp(record.get("created_at"))
    record["updated_at"] = _normalize_db_timestamp(record.get("updated_at"))
    return record


class VoiceRepository:
    """Persist saved voices.

    Every query is scoped by ``user_id`` so a caller can only see and modify
    its own rows.
    """

    def __init__(self, database_path: Path):
        self._path = database_path
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the SQLite connection and ensure tables exist."""

        if self._connection is not None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._create_schema()

    async def _create_schema(self) -> None:
        assert self._connection is not None
        await self._connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS voices (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                voice_id TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                preview_url TEXT,
                settings TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_voices_user_created
                ON voices(user_id, created_at);
            """
        )
        await self._connection.commit()

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def create_voice(
        self,
        *,
        user_id: str,
        voice_id: str,
        name: str,
        description: Optional[str] = None,
        preview_url: Optional[str] = None,
        settings: Optional[dict[str, Any]] = None,
    ) -> VoiceRow:
        assert self._connection is not None
        record_id = str(uuid.uuid4())
        now = _utc_now()
        await self._connection.execute(
            """
            INSERT INTO voices (
                id, user_id, voice_id, name, description, preview_url,
                settings, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record_id,
                user_id,
                voice_id,
                name,
                description,
                preview_url,
                json.dumps(settings or {}),
                now,
                now,
            ),
        )
        await self._connection.commit()
        created = await self.get_voice(user_id, record_id)
        if created is None:  # pragma: no cover - insert just succeeded
            raise RuntimeError("Voice creation returned no data")
        return created

    async def get_voice(self, user_id: str, record_id: str) -> VoiceRow | None:
        assert self._connection is not None
        cursor = await self._connection.execute(
            "SELECT * FROM voices WHERE id = ? AND user_id = ?",
            (record_id, user_id),
        )
        row = await cursor.fetchone()
        await cursor.close()
        return _row_to_voice(row) if row is not None else None

    async def list_voices(self, user_id: str) -> list[VoiceRow]:
        """Return the voices of ``user_id``, newest first."""

        assert self._connection is not None
        cursor = await self._connection.execute(
            """
            SELECT * FROM voices
            WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC
            """,
            (user_id,),
        )
        rows = await cursor.fetchall()
        await cursor.close()
        return [_row_to_voice(row) for row in rows]

    async def update_voice(
        self, user_id: str, record_id: str, updates: dict[str, Any]
    ) -> VoiceRow | None:
        """Apply ``updates`` and return the refreshed row, or ``None`` if absent."""

        assert self._connection is not None
        fields = {key: value for key, value in updates.items() if key in _UPDATABLE_COLUMNS}
        if "settings" in fields:
            fields["settings"] = json.dumps(fields["settings"] or {})
        fields["updated_at"] = _utc_now()

        assignments = ", ".join(f"{column} = ?" for column in fields)
        cursor = await self._connection.execute(
            f"UPDATE voices SET {assignments} WHERE id = ? AND user_id = ?",
            (*fields.values(), record_id, user_id),
        )
        await self._connection.commit()
        changed = cursor.rowcount
        await cursor.close()
        if not changed:
            return None
        return await self.get_voice(user_id, record_id)

    async def delete_voice(self, user_id: str, record_id: str) -> bool:
        assert self._connection is not None
        cursor = await self._connection.execute(
            "DELETE FROM voices WHERE id = ? AND user_id = ?",
            (record_id, user_id),
        )
        await self._connection.commit()
        deleted = cursor.rowcount > 0
        await cursor.close()
        return deleted


__all__ = ["VoiceRepository", "VoiceRow"]
