"""Drives onboarding sessions between user messages.

Each call loads the session's checkpoint, runs handlers until the workflow
needs the user again (or ends), and saves a new checkpoint after every
step. The versioned save is the only concurrency control: two calls racing
on one session cannot both commit.
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Optional, Tuple

from . import prompts
from .collaborators import Collaborators, build_collaborators
from .config import OnboardflowConfig
from .constants import MAX_STEPS_PER_RESUME, THREAD_ID_PREFIX
from .errors import ConcurrentResumeError, FatalWorkflowError
from .intent import wants_restart
from .persistence import StateStore, get_store
from .reducers import merge_state, restart_update
from .router import TERMINAL, NextStep, route
from .state import (
    SessionStatus,
    Step,
    WorkflowState,
    assistant,
    create_initial_state,
    user,
)
from .steps import StepContext, StepHandler, default_handlers
from .supervisor import DEFAULT_POLICY, ErrorPolicy, ErrorSupervisor

logger = logging.getLogger(__name__)


def new_thread_id(location_id: str) -> str:
    return f"{THREAD_ID_PREFIX}-{location_id}-{uuid.uuid4().hex[:8]}"


def derive_status(state: WorkflowState) -> SessionStatus:
    """Session status implied by a non-terminal state."""
    if not state.awaiting_user_input:
        return SessionStatus.ACTIVE
    if state.current_step == Step.AWAIT_APPROVAL:
        return SessionStatus.AWAITING_APPROVAL
    return SessionStatus.AWAITING_INPUT


class OnboardingOrchestrator:
    """Entry point for starting and continuing onboarding sessions."""

    def __init__(
        self,
        store: StateStore,
        collaborators: Collaborators,
        policy: ErrorPolicy = DEFAULT_POLICY,
        handlers: Optional[Dict[Step, StepHandler]] = None,
        max_steps_per_resume: int = MAX_STEPS_PER_RESUME,
    ) -> None:
        self.store = store
        self.policy = policy
        self.handlers = handlers or default_handlers()
        self.max_steps_per_resume = max_steps_per_resume
        self._context = StepContext(
            collaborators=collaborators, supervisor=ErrorSupervisor(policy)
        )

    @classmethod
    def from_config(
        cls,
        config: OnboardflowConfig,
        store: Optional[StateStore] = None,
        collaborators: Optional[Collaborators] = None,
    ) -> "OnboardingOrchestrator":
        return cls(
            store=store or get_store(config=config),
            collaborators=collaborators or build_collaborators(config),
            policy=config.workflow.error_policy(),
            max_steps_per_resume=config.workflow.max_steps_per_resume,
        )

    # ------------------------------------------------------------------
    # Public API
    async def start(
        self,
        thread_id: Optional[str] = None,
        *,
        tenant_id: str,
        user_id: str,
        location_id: str,
    ) -> WorkflowState:
        """Create a session, greet the user and wait for their website."""
        thread_id = thread_id or new_thread_id(location_id)
        state = create_initial_state(thread_id, tenant_id, user_id, location_id)
        version = await self.store.save(thread_id, 0, state)
        logger.info(f"Started onboarding session {thread_id} for tenant {tenant_id}")
        return await self._drive(state, version)

    async def resume(self, thread_id: str, message: Optional[str]) -> WorkflowState:
        """Feed one user message into a session and run until it suspends."""
        checkpoint = await self.store.load(thread_id)
        state, version = checkpoint.state, checkpoint.version
        text = (message or "").strip()

        if state.is_archived:
            if text and state.status == SessionStatus.FAILED:
                raise FatalWorkflowError(
                    f"Session {thread_id} stopped after {state.error_count} failures"
                )
            return state
        if not state.awaiting_user_input:
            raise ConcurrentResumeError(thread_id)
        if not text:
            return state

        # claim the session before doing any work
        state = merge_state(
            state,
            {
                "transcript": [user(text)],
                "awaiting_user_input": False,
                "status": SessionStatus.ACTIVE,
            },
        )
        version = await self.store.save(thread_id, version, state)

        # at the approval gate a restart is a rejection routed back to collect_info
        if wants_restart(text) and state.current_step != Step.AWAIT_APPROVAL:
            logger.info(f"Restarting onboarding session {thread_id}")
            update = restart_update()
            update.update(
                current_step=Step.COLLECT_INFO,
                transcript=[assistant(prompts.RESTART_MESSAGE)],
                awaiting_user_input=True,
            )
            state = merge_state(state, update)
            state = merge_state(state, {"status": derive_status(state)})
            await self.store.save(thread_id, version, state)
            return state

        return await self._drive(state, version)

    async def get_state(self, thread_id: str) -> Optional[WorkflowState]:
        checkpoint = await self.store.get(thread_id)
        return checkpoint.state if checkpoint else None

    async def submit_approval(
        self, thread_id: str, approved: bool, notes: Optional[str] = None
    ) -> WorkflowState:
        """Structured approve/reject for UIs with buttons."""
        message = "approve" if approved else f"reject: {notes or 'Changes requested'}"
        return await self.resume(thread_id, message)

    async def recover(self, thread_id: str) -> WorkflowState:
        """Finish a run that stopped between checkpoints.

        Sessions that are awaiting input or archived are returned as is.
        """
        checkpoint = await self.store.load(thread_id)
        state = checkpoint.state
        if state.is_archived or state.awaiting_user_input:
            return state
        logger.warning(
            f"Recovering session {thread_id} at step {state.current_step.value} "
            f"(version {checkpoint.version})"
        )
        return await self._drive(state, checkpoint.version)

    async def advance(self, state: WorkflowState) -> Tuple[WorkflowState, NextStep]:
        """Run the current step once and apply the routing decision.

        Nothing is persisted. The returned state has ``current_step`` set to
        the next step, or a terminal ``status`` when the workflow ended.
        """
        handler = self.handlers[state.current_step]
        state = merge_state(state, await handler(state, self._context))
        nxt = route(state, self.policy)

        if nxt == TERMINAL:
            final = (
                SessionStatus.FAILED
                if state.current_step == Step.ERROR_HANDLER
                else SessionStatus.COMPLETED
            )
            state = merge_state(state, {"awaiting_user_input": False, "status": final})
            return state, nxt

        if nxt == state.current_step:
            # nothing more can happen without the user
            state = merge_state(state, {"awaiting_user_input": True})
        else:
            state = merge_state(state, {"current_step": nxt})
        state = merge_state(state, {"status": derive_status(state)})
        return state, nxt

    # ------------------------------------------------------------------
    # Internal helpers
    async def _drive(self, state: WorkflowState, version: int) -> WorkflowState:
        thread_id = state.thread_id
        for _ in range(self.max_steps_per_resume):
            previous = state.current_step
            state, nxt = await self.advance(state)
            version = await self.store.save(thread_id, version, state)
            logger.debug(
                f"Session {thread_id}: {previous.value} -> "
                f"{getattr(nxt, 'value', nxt)} (version {version})"
            )
            if nxt == TERMINAL:
                logger.info(f"Session {thread_id} finished with status {state.status.value}")
                return state
            if state.awaiting_user_input:
                return state

        logger.error(
            f"Session {thread_id} ran {self.max_steps_per_resume} steps without "
            f"needing input; suspending at {state.current_step.value}"
        )
        state = merge_state(state, {"awaiting_user_input": True})
        state = merge_state(state, {"status": derive_status(state)})
        await self.store.save(thread_id, version, state)
        return state
