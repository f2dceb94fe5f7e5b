"""In-memory implementation of the state store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List

from ..errors import ConflictError, SessionNotFoundError
from ..state import SessionStatus, WorkflowState
from .models import Checkpoint, CheckpointRecord
from .store import StateStore

logger = logging.getLogger(__name__)


def _copy(state: WorkflowState) -> WorkflowState:
    return WorkflowState.model_validate_json(state.model_dump_json())


class InMemoryStateStore(StateStore):
    """Store checkpoints in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. ``save`` does not await, so the
    version check and the write happen without yielding to the event loop.
    """

    def __init__(self) -> None:
        self._checkpoints: Dict[str, Checkpoint] = {}
        self._history: Dict[str, List[CheckpointRecord]] = {}
        self._record_id = 0

    # ------------------------------------------------------------------
    async def save(self, thread_id: str, version: int, state: WorkflowState) -> int:
        current = self._checkpoints.get(thread_id)
        actual = current.version if current else 0
        if actual != version:
            logger.warning(
                f"Checkpoint conflict for thread_id={thread_id}: "
                f"expected version {version}, found {actual}"
            )
            raise ConflictError(thread_id, expected=version, actual=actual)

        new_version = version + 1
        now = datetime.now(timezone.utc)
        snapshot = _copy(state)
        self._checkpoints[thread_id] = Checkpoint(
            thread_id=thread_id,
            version=new_version,
            state=snapshot,
            status=snapshot.status,
            updated_at=now,
        )
        self._record_id += 1
        self._history.setdefault(thread_id, []).append(
            CheckpointRecord(
                id=self._record_id,
                thread_id=thread_id,
                version=new_version,
                step=snapshot.current_step.value,
                status=snapshot.status,
                state=_copy(snapshot),
                saved_at=now,
            )
        )
        logger.debug(f"Saved thread_id={thread_id} version={new_version}")
        return new_version

    async def load(self, thread_id: str) -> Checkpoint:
        checkpoint = await self.get(thread_id)
        if checkpoint is None:
            raise SessionNotFoundError(thread_id)
        return checkpoint

    async def get(self, thread_id: str) -> Checkpoint | None:
        checkpoint = self._checkpoints.get(thread_id)
        if checkpoint is None:
            return None
        return checkpoint.model_copy(update={"state": _copy(checkpoint.state)})

    async def history(self, thread_id: str) -> list[CheckpointRecord]:
        return [
            record.model_copy(update={"state": _copy(record.state)})
            for record in self._history.get(thread_id, [])
        ]

    async def list_sessions(
        self, status: SessionStatus | None = None
    ) -> list[Checkpoint]:
        return [
            checkpoint.model_copy(update={"state": _copy(checkpoint.state)})
            for checkpoint in self._checkpoints.values()
            if status is None or checkpoint.status == status
        ]
