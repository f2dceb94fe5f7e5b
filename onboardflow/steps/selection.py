"""AI staff selection and goal capture."""

from __future__ import annotations

from .. import prompts
from ..errors import UserInputError
from ..intent import extract_goals, extract_staff_roles, is_confirmation
from ..state import Step, WorkflowState, assistant
from .base import StepContext, StepHandler, Update


class SelectStaffHandler(StepHandler):
    step = Step.SELECT_STAFF

    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        message = state.latest_user_message()
        roles = extract_staff_roles(message)
        if roles:
            return {
                "selected_staff_roles": roles,
                "transcript": [assistant(prompts.goals_prompt(roles))],
                "awaiting_user_input": True,
            }
        if is_confirmation(message):
            # "looks good" after the brand summary: show the catalog again
            return {
                "transcript": [assistant(prompts.staff_selection_prompt())],
                "awaiting_user_input": True,
            }
        raise UserInputError(prompts.staff_not_understood_prompt())


class SetGoalsHandler(StepHandler):
    step = Step.SET_GOALS

    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        goals = extract_goals(state.latest_user_message())
        if not goals:
            raise UserInputError(prompts.GOALS_REPROMPT)
        return {
            "goals": goals,
            "transcript": [assistant(prompts.goals_noted(goals))],
            "awaiting_user_input": False,
        }
