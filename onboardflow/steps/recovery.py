"""Error handler step: reached once failures pass the soft threshold."""

from __future__ import annotations

import logging

from .. import prompts
from ..state import Step, WorkflowState, assistant
from .base import StepContext, StepHandler, Update

logger = logging.getLogger(__name__)


class ErrorHandlerStep(StepHandler):
    step = Step.ERROR_HANDLER

    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        if ctx.supervisor.is_fatal(state):
            logger.error(
                f"Session {state.thread_id} hit the error ceiling "
                f"({state.error_count} failures); last error: {state.last_error}"
            )
            return {
                "transcript": [assistant(prompts.FATAL_MESSAGE)],
                "awaiting_user_input": False,
            }
        target = ctx.supervisor.recovery_step(state)
        return {
            "transcript": [assistant(prompts.escalation_message(target))],
            "awaiting_user_input": True,
        }
