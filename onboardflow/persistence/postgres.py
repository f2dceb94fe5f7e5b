"""PostgreSQL implementation of the state store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import asyncpg

from ..errors import ConflictError, SessionNotFoundError
from ..state import SessionStatus, WorkflowState
from .models import Checkpoint, CheckpointRecord
from .store import StateStore

logger = logging.getLogger(__name__)


def _state_from(value: Any) -> WorkflowState:
    # JSONB comes back as text unless a codec is registered
    if isinstance(value, str):
        return WorkflowState.model_validate_json(value)
    return WorkflowState.model_validate(value)


class PostgresStateStore(StateStore):
    """Persist checkpoints using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoints (
                thread_id TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                step TEXT NOT NULL,
                status TEXT NOT NULL,
                state JSONB NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoint_history (
                id SERIAL PRIMARY KEY,
                thread_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                step TEXT NOT NULL,
                status TEXT NOT NULL,
                state JSONB NOT NULL,
                saved_at TIMESTAMPTZ NOT NULL,
                UNIQUE (thread_id, version)
            )
            """
        )

    @staticmethod
    def _checkpoint(row: asyncpg.Record) -> Checkpoint:
        return Checkpoint(
            thread_id=row["thread_id"],
            version=row["version"],
            state=_state_from(row["state"]),
            status=SessionStatus(row["status"]),
            updated_at=row["updated_at"],
        )

    # ------------------------------------------------------------------
    async def save(self, thread_id: str, version: int, state: WorkflowState) -> int:
        new_version = version + 1
        now = datetime.now(timezone.utc)
        payload = state.model_dump_json()
        step = state.current_step.value
        status = state.status.value

        conn = await self._connect()
        try:
            async with conn.transaction():
                if version == 0:
                    result = await conn.execute(
                        """
                        INSERT INTO checkpoints (thread_id, version, step, status, state, updated_at)
                        VALUES ($1, $2, $3, $4, $5::jsonb, $6)
                        ON CONFLICT (thread_id) DO NOTHING
                        """,
                        thread_id,
                        new_version,
                        step,
                        status,
                        payload,
                        now,
                    )
                else:
                    result = await conn.execute(
                        """
                        UPDATE checkpoints
                        SET version = $1, step = $2, status = $3, state = $4::jsonb, updated_at = $5
                        WHERE thread_id = $6 AND version = $7
                        """,
                        new_version,
                        step,
                        status,
                        payload,
                        now,
                        thread_id,
                        version,
                    )
                # asyncpg returns the command tag, e.g. "UPDATE 1"
                if result.split()[-1] == "0":
                    actual = await conn.fetchval(
                        "SELECT version FROM checkpoints WHERE thread_id = $1",
                        thread_id,
                    )
                    raise ConflictError(thread_id, expected=version, actual=actual or 0)
                await conn.execute(
                    """
                    INSERT INTO checkpoint_history (thread_id, version, step, status, state, saved_at)
                    VALUES ($1, $2, $3, $4, $5::jsonb, $6)
                    """,
                    thread_id,
                    new_version,
                    step,
                    status,
                    payload,
                    now,
                )
        except ConflictError as exc:
            logger.warning(str(exc))
            raise
        except asyncpg.UniqueViolationError as exc:
            raise ConflictError(thread_id, expected=version) from exc
        finally:
            await conn.close()
        logger.debug(f"Saved thread_id={thread_id} version={new_version}")
        return new_version

    async def load(self, thread_id: str) -> Checkpoint:
        checkpoint = await self.get(thread_id)
        if checkpoint is None:
            raise SessionNotFoundError(thread_id)
        return checkpoint

    async def get(self, thread_id: str) -> Checkpoint | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT thread_id, version, status, state, updated_at FROM checkpoints WHERE thread_id = $1",
                thread_id,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return self._checkpoint(row)

    async def history(self, thread_id: str) -> list[CheckpointRecord]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT id, thread_id, version, step, status, state, saved_at FROM checkpoint_history WHERE thread_id = $1 ORDER BY version",
                thread_id,
            )
        finally:
            await conn.close()
        return [
            CheckpointRecord(
                id=r["id"],
                thread_id=r["thread_id"],
                version=r["version"],
                step=r["step"],
                status=SessionStatus(r["status"]),
                state=_state_from(r["state"]),
                saved_at=r["saved_at"],
            )
            for r in rows
        ]

    async def list_sessions(
        self, status: SessionStatus | None = None
    ) -> list[Checkpoint]:
        conn = await self._connect()
        try:
            if status is None:
                rows = await conn.fetch(
                    "SELECT thread_id, version, status, state, updated_at FROM checkpoints ORDER BY updated_at"
                )
            else:
                rows = await conn.fetch(
                    "SELECT thread_id, version, status, state, updated_at FROM checkpoints WHERE status = $1 ORDER BY updated_at",
                    SessionStatus(status).value,
                )
        finally:
            await conn.close()
        return [self._checkpoint(r) for r in rows]
