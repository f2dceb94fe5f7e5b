"""Build plan generation and the approval gate."""

from __future__ import annotations

import logging

from .. import prompts
from ..errors import CollaboratorError, UserInputError
from ..intent import extract_approval
from ..reducers import clear_downstream
from ..router import rejection_target
from ..state import ApprovalStatus, Step, WorkflowState, assistant
from .base import StepContext, StepHandler, Update

logger = logging.getLogger(__name__)


class GeneratePlanHandler(StepHandler):
    step = Step.GENERATE_PLAN

    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        plan = await ctx.collaborators.plan_generator.generate(
            state.brand_profile,
            list(state.selected_staff_roles),
            list(state.goals),
            state.tenant_id,
        )
        if not isinstance(plan, dict):
            raise CollaboratorError(
                f"Plan generator returned {type(plan).__name__}, expected a mapping",
                "plan_generator",
            )
        return {
            "build_plan": plan,
            "approval_status": ApprovalStatus.PENDING,
            "approval_notes": None,
            "transcript": [assistant(prompts.format_build_plan(plan))],
            "awaiting_user_input": True,
            "last_error": None,
        }

    def on_failure(self, state, ctx, exc):
        return ctx.supervisor.record_failure(state, self.step, exc, goals=[])


class AwaitApprovalHandler(StepHandler):
    step = Step.AWAIT_APPROVAL

    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        message = state.latest_user_message()
        decision = extract_approval(message)

        if decision.status == ApprovalStatus.APPROVED:
            logger.info(f"Build plan approved for thread_id={state.thread_id}")
            return {
                "approval_status": ApprovalStatus.APPROVED,
                "transcript": [assistant(prompts.DEPLOYMENT_STARTED_MESSAGE)],
                "awaiting_user_input": False,
            }

        if decision.status == ApprovalStatus.REJECTED:
            target = rejection_target(decision.notes)
            logger.info(
                f"Build plan rejected for thread_id={state.thread_id}, "
                f"returning to {target.value}"
            )
            update: Update = {
                "approval_status": ApprovalStatus.REJECTED,
                "approval_notes": decision.notes,
            }
            update.update(clear_downstream(target))
            update.update(
                build_plan=None,
                transcript=[assistant(prompts.rejection_prompt(target))],
                awaiting_user_input=True,
            )
            return update

        raise UserInputError(prompts.WAITING_FOR_APPROVAL_MESSAGE)
