"""Step router: decides the next step from the current state.

Each step has an ordered list of ``(predicate, target)`` rows; the first
row whose predicate holds wins. A step with no matching row stays where it
is, so ``route`` always returns a ``Step`` or ``TERMINAL``.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Tuple, Union

from .state import (
    ApprovalStatus,
    ErrorKind,
    Step,
    VerificationChoice,
    WorkflowState,
)
from .supervisor import DEFAULT_POLICY, ErrorPolicy, ErrorSupervisor, recovery_step

logger = logging.getLogger(__name__)

TERMINAL = "__end__"

NextStep = Union[Step, str]
Predicate = Callable[[WorkflowState, ErrorSupervisor], bool]
Target = Union[NextStep, Callable[[WorkflowState], NextStep]]

# Keyword scan over rejection notes, first match wins.
REJECTION_ROUTES: Tuple[Tuple[Tuple[str, ...], Step], ...] = (
    (("staff", "team"), Step.SELECT_STAFF),
    (("goal", "objective"), Step.SET_GOALS),
    (("website", "brand", "start over", "start again", "restart"), Step.COLLECT_INFO),
)
DEFAULT_REJECTION_TARGET = Step.SELECT_STAFF


def rejection_target(notes: str | None) -> Step:
    lowered = (notes or "").lower()
    for keywords, step in REJECTION_ROUTES:
        if any(keyword in lowered for keyword in keywords):
            return step
    return DEFAULT_REJECTION_TARGET


def _always(state: WorkflowState, sup: ErrorSupervisor) -> bool:
    return True


def _escalate(state: WorkflowState, sup: ErrorSupervisor) -> bool:
    return sup.should_escalate(state)


def _collaborator_failed(state: WorkflowState, sup: ErrorSupervisor) -> bool:
    return state.error_kind == ErrorKind.COLLABORATOR


def _fatal(state: WorkflowState, sup: ErrorSupervisor) -> bool:
    return sup.is_fatal(state)


_ROUTES: Dict[Step, List[Tuple[Predicate, Target]]] = {
    Step.GREET: [(_always, Step.COLLECT_INFO)],
    Step.COLLECT_INFO: [
        (lambda s, _: bool(s.website_url), Step.SCAN_BRAND),
    ],
    Step.SCAN_BRAND: [
        (_escalate, Step.ERROR_HANDLER),
        (lambda s, _: s.brand_profile is not None and s.error_kind is None, Step.SELECT_STAFF),
        (_always, Step.COLLECT_INFO),
    ],
    Step.SELECT_STAFF: [
        (lambda s, _: bool(s.selected_staff_roles), Step.SET_GOALS),
    ],
    Step.SET_GOALS: [
        (lambda s, _: bool(s.goals), Step.GENERATE_PLAN),
    ],
    Step.GENERATE_PLAN: [
        (_escalate, Step.ERROR_HANDLER),
        (lambda s, _: s.build_plan is not None and s.error_kind is None, Step.AWAIT_APPROVAL),
        (_always, Step.SET_GOALS),
    ],
    Step.AWAIT_APPROVAL: [
        (
            lambda s, _: s.approval_status == ApprovalStatus.APPROVED
            and not s.awaiting_user_input,
            Step.DEPLOY,
        ),
        (
            lambda s, _: s.approval_status == ApprovalStatus.REJECTED,
            lambda s: rejection_target(s.approval_notes),
        ),
    ],
    Step.DEPLOY: [
        (_escalate, Step.ERROR_HANDLER),
        (_collaborator_failed, Step.AWAIT_APPROVAL),
        (lambda s, _: s.deployment_result is not None, Step.VERIFY),
    ],
    Step.VERIFY: [
        (
            lambda s, _: s.deployment_result is not None
            and s.deployment_result.success
            and not s.awaiting_user_input,
            TERMINAL,
        ),
        (
            lambda s, _: s.verification_choice
            in (VerificationChoice.CONTINUE, VerificationChoice.SUPPORT),
            TERMINAL,
        ),
        (lambda s, _: s.verification_choice == VerificationChoice.RETRY, Step.DEPLOY),
    ],
    Step.ERROR_HANDLER: [
        (_fatal, TERMINAL),
        (_always, lambda s: recovery_step(s.failed_step)),
    ],
}


def route(state: WorkflowState, policy: ErrorPolicy = DEFAULT_POLICY) -> NextStep:
    """Return the step to run after ``state.current_step``, or ``TERMINAL``."""
    supervisor = ErrorSupervisor(policy)
    for predicate, target in _ROUTES.get(state.current_step, []):
        if predicate(state, supervisor):
            nxt = target(state) if callable(target) else target
            logger.debug(
                "Routing thread_id=%s: %s -> %s",
                state.thread_id,
                state.current_step.value,
                getattr(nxt, "value", nxt),
            )
            return nxt
    return state.current_step
