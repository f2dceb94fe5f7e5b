"""Deployment and post-deployment verification."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from .. import prompts
from ..errors import CollaboratorError, ConfigurationError, UserInputError
from ..intent import extract_verification_choice
from ..state import DeploymentResult, Step, VerificationChoice, WorkflowState, assistant
from .base import StepContext, StepHandler, Update

logger = logging.getLogger(__name__)

_CHOICE_MESSAGES = {
    VerificationChoice.RETRY: prompts.RETRYING_DEPLOYMENT_MESSAGE,
    VerificationChoice.CONTINUE: prompts.CONTINUE_PARTIAL_MESSAGE,
    VerificationChoice.SUPPORT: prompts.SUPPORT_HANDOFF_MESSAGE,
}


class DeployHandler(StepHandler):
    step = Step.DEPLOY

    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        credential = await ctx.collaborators.credentials.get(state.tenant_id)
        if credential is None:
            raise ConfigurationError(
                f"No deployment credential for tenant_id={state.tenant_id}"
            )
        if state.build_plan is None:
            raise CollaboratorError("No approved build plan to deploy", "deployer")

        raw = await ctx.collaborators.deployer.deploy(
            state.build_plan, state.tenant_id, credential
        )
        try:
            result = DeploymentResult.model_validate(
                raw.model_dump() if isinstance(raw, DeploymentResult) else raw
            )
        except ValidationError as exc:
            raise CollaboratorError(
                f"Malformed deployment result: {exc}", "deployer"
            ) from exc

        logger.info(
            f"Deployment for thread_id={state.thread_id} finished "
            f"success={result.success} errors={len(result.errors)}"
        )
        # the deploy already ran, so summary failures are not deploy failures
        try:
            summary = prompts.format_deployment_result(result)
        except Exception:
            logger.exception(
                f"Could not summarise deployment for thread_id={state.thread_id}"
            )
            summary = (
                prompts.DEPLOYMENT_FINISHED_MESSAGE
                if result.success
                else prompts.PARTIAL_DEPLOYMENT_OPTIONS
            )
        return {
            "deployment_result": result,
            "verification_choice": None,
            "transcript": [assistant(summary)],
            "awaiting_user_input": False,
            "last_error": None,
        }

    def configuration_message(self, exc: ConfigurationError) -> str:
        return prompts.NOT_CONNECTED_MESSAGE


class VerifyHandler(StepHandler):
    step = Step.VERIFY

    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        result = state.deployment_result
        if result is None:
            raise CollaboratorError("Nothing to verify: no deployment result", "deployer")

        message = state.latest_user_message()
        if message and not result.success:
            choice = extract_verification_choice(message)
            if choice is None:
                raise UserInputError(prompts.PARTIAL_DEPLOYMENT_OPTIONS)
            update: Update = {
                "verification_choice": choice,
                "transcript": [assistant(_CHOICE_MESSAGES[choice])],
                "awaiting_user_input": False,
            }
            if choice == VerificationChoice.RETRY:
                update["deployment_result"] = None
            return update

        if result.success:
            return {
                "transcript": [assistant(prompts.COMPLETION_MESSAGE)],
                "awaiting_user_input": False,
            }
        return {
            "transcript": [assistant(prompts.PARTIAL_DEPLOYMENT_OPTIONS)],
            "awaiting_user_input": True,
        }
