"""Workflow state model for onboarding sessions."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Step(str, Enum):
    """Named steps of the onboarding state machine."""

    GREET = "greet"
    COLLECT_INFO = "collect_info"
    SCAN_BRAND = "scan_brand"
    SELECT_STAFF = "select_staff"
    SET_GOALS = "set_goals"
    GENERATE_PLAN = "generate_plan"
    AWAIT_APPROVAL = "await_approval"
    DEPLOY = "deploy"
    VERIFY = "verify"
    ERROR_HANDLER = "error_handler"


class ApprovalStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ErrorKind(str, Enum):
    COLLABORATOR = "collaborator"
    CONFIGURATION = "configuration"


class VerificationChoice(str, Enum):
    RETRY = "retry"
    CONTINUE = "continue"
    SUPPORT = "support"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    AWAITING_INPUT = "awaiting_input"
    AWAITING_APPROVAL = "awaiting_approval"
    COMPLETED = "completed"
    FAILED = "failed"


ARCHIVED_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED})

# Opaque collaborator payloads.
BrandProfile = Dict[str, Any]
BuildPlan = Dict[str, Any]


class Turn(BaseModel):
    """One transcript entry."""

    role: Literal["user", "assistant"]
    content: str
    created_at: datetime = Field(default_factory=_utcnow)


class DeploymentResult(BaseModel):
    """Outcome reported by the deployer.

    Partial success is ``success=False`` with populated ``errors``.
    """

    success: bool
    deployed: Dict[str, Any] = Field(default_factory=dict)
    errors: List[Dict[str, Any]] = Field(default_factory=list)


class WorkflowState(BaseModel):
    """Checkpointed state of one onboarding session."""

    thread_id: str
    tenant_id: str
    user_id: str
    location_id: str

    transcript: List[Turn] = Field(default_factory=list)

    website_url: Optional[str] = None
    brand_profile: Optional[BrandProfile] = None
    selected_staff_roles: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    build_plan: Optional[BuildPlan] = None

    approval_status: ApprovalStatus = ApprovalStatus.NONE
    approval_notes: Optional[str] = None

    deployment_result: Optional[DeploymentResult] = None
    verification_choice: Optional[VerificationChoice] = None

    current_step: Step = Step.GREET
    awaiting_user_input: bool = False
    status: SessionStatus = SessionStatus.ACTIVE

    error_count: int = 0
    last_error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    failed_step: Optional[Step] = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_archived(self) -> bool:
        return self.status in ARCHIVED_STATUSES

    def latest_user_message(self) -> str:
        """Return the newest user turn if nothing has answered it yet."""
        if self.transcript and self.transcript[-1].role == "user":
            return self.transcript[-1].content
        return ""


def create_initial_state(
    thread_id: str, tenant_id: str, user_id: str, location_id: str
) -> WorkflowState:
    """Build the default state for a brand-new session."""
    return WorkflowState(
        thread_id=thread_id,
        tenant_id=tenant_id,
        user_id=user_id,
        location_id=location_id,
    )


def assistant(content: str) -> Turn:
    return Turn(role="assistant", content=content)


def user(content: str) -> Turn:
    return Turn(role="user", content=content)
