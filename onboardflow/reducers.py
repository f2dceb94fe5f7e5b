"""Per-field merge strategies for workflow state updates.

Handlers return partial updates (plain dicts keyed by ``WorkflowState``
field name). ``merge_state`` folds an update into the current state using
the strategy registered for each field in ``FIELD_REDUCERS``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping

from .errors import InvalidTransitionError
from .state import ApprovalStatus, Step, WorkflowState

Reducer = Callable[[str, Any, Any], Any]

_APPROVAL_TRANSITIONS = {
    ApprovalStatus.NONE: {ApprovalStatus.PENDING},
    ApprovalStatus.PENDING: {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED},
    ApprovalStatus.REJECTED: {ApprovalStatus.PENDING},
    # approval is final for its plan; the plan is discarded on rejection
    ApprovalStatus.APPROVED: {ApprovalStatus.REJECTED},
}


def replace(field: str, current: Any, new: Any) -> Any:
    return new


def append(field: str, current: List[Any], new: Iterable[Any]) -> List[Any]:
    if isinstance(new, (str, bytes)) or not isinstance(new, Iterable):
        raise InvalidTransitionError(f"'{field}' expects a list of items to append")
    return list(current) + list(new)


def replace_set(field: str, current: List[str], new: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for item in new:
        seen.setdefault(item, None)
    return list(seen)


def immutable(field: str, current: Any, new: Any) -> Any:
    if new != current:
        raise InvalidTransitionError(f"'{field}' cannot change after creation")
    return current


def non_decreasing(field: str, current: int, new: int) -> int:
    if new < current:
        raise InvalidTransitionError(
            f"'{field}' cannot decrease within a session ({current} -> {new})"
        )
    return new


def approval_transition(
    field: str, current: ApprovalStatus, new: ApprovalStatus | str
) -> ApprovalStatus:
    new = ApprovalStatus(new)
    if new == current or new == ApprovalStatus.NONE:
        return new
    if new not in _APPROVAL_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"approval_status cannot move from {current.value} to {new.value}"
        )
    return new


FIELD_REDUCERS: Dict[str, Reducer] = {
    "thread_id": immutable,
    "tenant_id": immutable,
    "user_id": immutable,
    "location_id": immutable,
    "transcript": append,
    "website_url": replace,
    "brand_profile": replace,
    "selected_staff_roles": replace_set,
    "goals": replace,
    "build_plan": replace,
    "approval_status": approval_transition,
    "approval_notes": replace,
    "deployment_result": replace,
    "verification_choice": replace,
    "current_step": replace,
    "awaiting_user_input": replace,
    "status": replace,
    "error_count": non_decreasing,
    "last_error": replace,
    "error_kind": replace,
    "failed_step": replace,
    "created_at": immutable,
    "updated_at": replace,
}


def merge_state(state: WorkflowState, update: Mapping[str, Any]) -> WorkflowState:
    """Return a new state with ``update`` folded in. ``state`` is untouched."""
    unknown = set(update) - set(FIELD_REDUCERS)
    if unknown:
        raise InvalidTransitionError(f"Unknown state field(s): {sorted(unknown)}")

    values: Dict[str, Any] = {}
    for field, new in update.items():
        values[field] = FIELD_REDUCERS[field](field, getattr(state, field), new)
    values.setdefault("updated_at", datetime.now(timezone.utc))

    merged = dict(state)
    merged.update(values)
    return WorkflowState.model_validate(merged)


# Fields each step produces, in workflow order.
_OWNED_FIELDS = (
    (Step.COLLECT_INFO, {"website_url": None, "brand_profile": None}),
    (Step.SELECT_STAFF, {"selected_staff_roles": []}),
    (Step.SET_GOALS, {"goals": []}),
    (Step.GENERATE_PLAN, {"build_plan": None}),
    (Step.DEPLOY, {"deployment_result": None, "verification_choice": None}),
)


def clear_downstream(step: Step) -> Dict[str, Any]:
    """Update that clears ``step``'s own output and every later step's."""
    update: Dict[str, Any] = {}
    clearing = False
    for owner, fields in _OWNED_FIELDS:
        clearing = clearing or owner == step
        if clearing:
            update.update(fields)
    return update


def restart_update() -> Dict[str, Any]:
    """Update that puts a session back to the website prompt.

    The transcript and ``error_count`` are preserved. Not used at the
    approval gate, where a restart is a rejection routed to collect_info.
    """
    update = clear_downstream(Step.COLLECT_INFO)
    update.update(
        approval_status=ApprovalStatus.NONE,
        approval_notes=None,
        last_error=None,
        error_kind=None,
        failed_step=None,
    )
    return update
