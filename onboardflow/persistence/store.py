"""State store abstraction for onboarding checkpoints."""

from __future__ import annotations

from typing import Protocol

from ..state import SessionStatus, WorkflowState
from .models import Checkpoint, CheckpointRecord


class StateStore(Protocol):
    """Protocol for versioned checkpoint backends.

    A session that has never been saved has version 0. ``save`` succeeds
    only when ``version`` matches the stored version and returns the new
    one; otherwise it raises :class:`~onboardflow.errors.ConflictError`.
    """

    async def save(self, thread_id: str, version: int, state: WorkflowState) -> int:
        """Persist ``state`` if the stored version is ``version``."""

    async def load(self, thread_id: str) -> Checkpoint:
        """Return the latest checkpoint or raise ``SessionNotFoundError``."""

    async def get(self, thread_id: str) -> Checkpoint | None:
        """Return the latest checkpoint or ``None``."""

    async def history(self, thread_id: str) -> list[CheckpointRecord]:
        """Return every saved version, oldest first."""

    async def list_sessions(
        self, status: SessionStatus | None = None
    ) -> list[Checkpoint]:
        """Return the latest checkpoint of every session."""
