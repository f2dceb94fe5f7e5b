"""Session-scoped failure counting and escalation policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from . import prompts
from .constants import HARD_ERROR_THRESHOLD, SOFT_ERROR_THRESHOLD
from .state import ErrorKind, Step, WorkflowState, assistant

logger = logging.getLogger(__name__)

# Where a session goes back to after a failure at the given step.
RECOVERY_STEPS: Dict[Step, Step] = {
    Step.COLLECT_INFO: Step.COLLECT_INFO,
    Step.SCAN_BRAND: Step.COLLECT_INFO,
    Step.SELECT_STAFF: Step.SELECT_STAFF,
    Step.SET_GOALS: Step.SET_GOALS,
    Step.GENERATE_PLAN: Step.SET_GOALS,
    Step.AWAIT_APPROVAL: Step.AWAIT_APPROVAL,
    Step.DEPLOY: Step.AWAIT_APPROVAL,
    Step.VERIFY: Step.VERIFY,
}


@dataclass(frozen=True)
class ErrorPolicy:
    """``soft_threshold`` failures reroute through the error handler;
    ``hard_threshold`` failures end the session."""

    soft_threshold: int = SOFT_ERROR_THRESHOLD
    hard_threshold: int = HARD_ERROR_THRESHOLD

    def __post_init__(self) -> None:
        if not 0 < self.soft_threshold <= self.hard_threshold:
            raise ValueError(
                "soft_threshold must be positive and not above hard_threshold"
            )


DEFAULT_POLICY = ErrorPolicy()


def recovery_step(step: Step | None) -> Step:
    if step is None:
        return Step.GREET
    return RECOVERY_STEPS.get(step, Step.GREET)


class ErrorSupervisor:
    """Applies an :class:`ErrorPolicy` to workflow state."""

    def __init__(self, policy: ErrorPolicy = DEFAULT_POLICY) -> None:
        self.policy = policy

    def record_failure(
        self, state: WorkflowState, step: Step, exc: BaseException, **fields: Any
    ) -> Dict[str, Any]:
        """Build the update for a counted collaborator failure during ``step``.

        ``fields`` are merged into the update, typically to clear the input
        that has to be collected again.
        """
        count = state.error_count + 1
        escalating = count >= self.policy.soft_threshold
        logger.warning(
            f"Collaborator failure #{count} at step {step.value} "
            f"for thread_id={state.thread_id}: {exc}"
        )
        update: Dict[str, Any] = {
            "error_count": count,
            "last_error": str(exc) or type(exc).__name__,
            "error_kind": ErrorKind.COLLABORATOR,
            "failed_step": step,
            "transcript": [
                assistant(prompts.collaborator_failure(step, recovery_step(step)))
            ],
            # escalation runs the error handler without waiting for the user
            "awaiting_user_input": not escalating,
        }
        update.update(fields)
        return update

    def should_escalate(self, state: WorkflowState) -> bool:
        return (
            state.error_kind == ErrorKind.COLLABORATOR
            and state.error_count >= self.policy.soft_threshold
        )

    def is_fatal(self, state: WorkflowState) -> bool:
        return state.error_count >= self.policy.hard_threshold

    def recovery_step(self, state: WorkflowState) -> Step:
        return recovery_step(state.failed_step)
