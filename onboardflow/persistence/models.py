"""Data models for persisted onboarding sessions."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..state import SessionStatus, WorkflowState


class Checkpoint(BaseModel):
    """Latest saved state of a session."""

    thread_id: str
    version: int
    state: WorkflowState
    status: SessionStatus
    updated_at: datetime


class CheckpointRecord(BaseModel):
    """One historical version of a session, kept for audit."""

    id: Optional[int] = None
    thread_id: str
    version: int
    step: str
    status: SessionStatus
    state: WorkflowState
    saved_at: datetime
