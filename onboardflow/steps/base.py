"""Base class shared by all step handlers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict

from .. import prompts
from ..collaborators.base import Collaborators
from ..errors import CollaboratorError, ConfigurationError, UserInputError
from ..state import ErrorKind, Step, WorkflowState, assistant
from ..supervisor import ErrorSupervisor

logger = logging.getLogger(__name__)

Update = Dict[str, Any]


@dataclass
class StepContext:
    """Collaborators and policy available to a handler run."""

    collaborators: Collaborators
    supervisor: ErrorSupervisor = field(default_factory=ErrorSupervisor)


class StepHandler(ABC):
    """A single workflow step.

    Subclasses implement :meth:`run` and may raise ``UserInputError``,
    ``ConfigurationError`` or ``CollaboratorError``; ``__call__`` turns each
    into a state update so nothing escapes to the orchestrator.
    """

    step: Step

    async def __call__(self, state: WorkflowState, ctx: StepContext) -> Update:
        logger.debug(f"Running step {self.step.value} for thread_id={state.thread_id}")
        try:
            update = await self.run(state, ctx)
        except UserInputError as exc:
            return {
                "transcript": [assistant(exc.prompt)],
                "awaiting_user_input": True,
                "error_kind": None,
            }
        except ConfigurationError as exc:
            logger.warning(
                f"Configuration problem at step {self.step.value} "
                f"for thread_id={state.thread_id}: {exc}"
            )
            return {
                "transcript": [assistant(self.configuration_message(exc))],
                "awaiting_user_input": True,
                "last_error": str(exc),
                "error_kind": ErrorKind.CONFIGURATION,
            }
        except CollaboratorError as exc:
            return self.on_failure(state, ctx, exc)
        except Exception as exc:
            logger.exception(
                f"Unexpected error at step {self.step.value} for thread_id={state.thread_id}"
            )
            return self.on_failure(state, ctx, exc)

        update.setdefault("error_kind", None)
        return update

    @abstractmethod
    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        """Do the step's work and return a partial state update."""

    def on_failure(
        self, state: WorkflowState, ctx: StepContext, exc: BaseException
    ) -> Update:
        return ctx.supervisor.record_failure(state, self.step, exc)

    def configuration_message(self, exc: ConfigurationError) -> str:
        return prompts.SETUP_INCOMPLETE_MESSAGE
