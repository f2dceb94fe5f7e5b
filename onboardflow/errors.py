"""Exception taxonomy for the onboarding workflow."""

from __future__ import annotations

from typing import Optional


class OnboardingError(Exception):
    """Base class for all onboardflow errors."""


class UserInputError(OnboardingError):
    """The latest message could not be understood for the current step.

    ``prompt`` is the assistant message that asks the user again. These
    errors never count toward ``error_count``.
    """

    def __init__(self, prompt: str, detail: Optional[str] = None) -> None:
        super().__init__(detail or prompt)
        self.prompt = prompt


class CollaboratorError(OnboardingError):
    """An external collaborator call failed (network, parse, remote error)."""

    def __init__(self, message: str, collaborator: Optional[str] = None) -> None:
        super().__init__(message)
        self.collaborator = collaborator


class ConfigurationError(OnboardingError):
    """Required tenant or service configuration is missing."""


class FatalWorkflowError(OnboardingError):
    """The session exceeded the hard error ceiling and needs a human."""


class InvalidTransitionError(OnboardingError, ValueError):
    """A state update violates a field invariant."""


class StoreError(OnboardingError):
    """Base class for state store failures."""


class SessionNotFoundError(StoreError):
    def __init__(self, thread_id: str) -> None:
        super().__init__(f"No onboarding session for thread_id={thread_id}")
        self.thread_id = thread_id


class ConflictError(StoreError):
    """Optimistic concurrency check failed on save."""

    def __init__(
        self,
        thread_id: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message
            or f"Version conflict for thread_id={thread_id}: expected {expected}, found {actual}"
        )
        self.thread_id = thread_id
        self.expected = expected
        self.actual = actual


class ConcurrentResumeError(ConflictError):
    """The session is already being processed by another resume call."""

    def __init__(self, thread_id: str) -> None:
        super().__init__(
            thread_id,
            message=f"Session {thread_id} is already being processed",
        )
