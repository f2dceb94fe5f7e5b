"""SQLite implementation of the state store."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..errors import ConflictError, SessionNotFoundError
from ..state import SessionStatus, WorkflowState
from .models import Checkpoint, CheckpointRecord
from .store import StateStore

logger = logging.getLogger(__name__)


class SQLiteStateStore(StateStore):
    """Persist checkpoints using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoints (
                thread_id TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                step TEXT NOT NULL,
                status TEXT NOT NULL,
                state TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoint_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                thread_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                step TEXT NOT NULL,
                status TEXT NOT NULL,
                state TEXT NOT NULL,
                saved_at TEXT NOT NULL,
                UNIQUE (thread_id, version)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    def _save(self, thread_id: str, version: int, state: WorkflowState) -> int:
        new_version = version + 1
        now = datetime.now(timezone.utc).isoformat()
        payload = state.model_dump_json()
        step = state.current_step.value
        status = state.status.value

        with self._lock:
            cur = self._conn.cursor()
            try:
                if version == 0:
                    cur.execute(
                        "INSERT INTO checkpoints (thread_id, version, step, status, state, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
                        (thread_id, new_version, step, status, payload, now),
                    )
                else:
                    cur.execute(
                        """
                        UPDATE checkpoints
                        SET version = ?, step = ?, status = ?, state = ?, updated_at = ?
                        WHERE thread_id = ? AND version = ?
                        """,
                        (new_version, step, status, payload, now, thread_id, version),
                    )
                    if cur.rowcount == 0:
                        row = cur.execute(
                            "SELECT version FROM checkpoints WHERE thread_id = ?",
                            (thread_id,),
                        ).fetchone()
                        raise ConflictError(
                            thread_id,
                            expected=version,
                            actual=row["version"] if row else 0,
                        )
                cur.execute(
                    "INSERT INTO checkpoint_history (thread_id, version, step, status, state, saved_at) VALUES (?, ?, ?, ?, ?, ?)",
                    (thread_id, new_version, step, status, payload, now),
                )
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                raise ConflictError(thread_id, expected=version) from exc
            except Exception:
                self._conn.rollback()
                raise
            self._conn.commit()
        return new_version

    @staticmethod
    def _checkpoint(row: sqlite3.Row) -> Checkpoint:
        return Checkpoint(
            thread_id=row["thread_id"],
            version=row["version"],
            state=WorkflowState.model_validate_json(row["state"]),
            status=SessionStatus(row["status"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Store API
    async def save(self, thread_id: str, version: int, state: WorkflowState) -> int:
        try:
            new_version = await asyncio.to_thread(self._save, thread_id, version, state)
        except ConflictError as exc:
            logger.warning(str(exc))
            raise
        logger.debug(f"Saved thread_id={thread_id} version={new_version}")
        return new_version

    async def load(self, thread_id: str) -> Checkpoint:
        checkpoint = await self.get(thread_id)
        if checkpoint is None:
            raise SessionNotFoundError(thread_id)
        return checkpoint

    async def get(self, thread_id: str) -> Checkpoint | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT thread_id, version, status, state, updated_at FROM checkpoints WHERE thread_id = ?",
            thread_id,
        )
        if not row:
            return None
        return self._checkpoint(row)

    async def history(self, thread_id: str) -> list[CheckpointRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT id, thread_id, version, step, status, state, saved_at FROM checkpoint_history WHERE thread_id = ? ORDER BY version",
            thread_id,
        )
        return [
            CheckpointRecord(
                id=r["id"],
                thread_id=r["thread_id"],
                version=r["version"],
                step=r["step"],
                status=SessionStatus(r["status"]),
                state=WorkflowState.model_validate_json(r["state"]),
                saved_at=datetime.fromisoformat(r["saved_at"]),
            )
            for r in rows
        ]

    async def list_sessions(
        self, status: SessionStatus | None = None
    ) -> list[Checkpoint]:
        query = "SELECT thread_id, version, status, state, updated_at FROM checkpoints"
        params: list[Any] = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(SessionStatus(status).value)
        rows = await asyncio.to_thread(self._fetchall, query + " ORDER BY updated_at", *params)
        return [self._checkpoint(row) for row in rows]

    def close(self) -> None:
        self._conn.close()
