"""onboardflow: resumable, checkpointed onboarding workflows."""

from .collaborators import Collaborators, build_collaborators
from .config import OnboardflowConfig, load_config
from .orchestrator import OnboardingOrchestrator
from .persistence import get_store
from .router import TERMINAL, route
from .state import ApprovalStatus, SessionStatus, Step, WorkflowState

__version__ = "0.1.0"
__all__ = [
    "ApprovalStatus",
    "Collaborators",
    "OnboardflowConfig",
    "OnboardingOrchestrator",
    "SessionStatus",
    "Step",
    "TERMINAL",
    "WorkflowState",
    "build_collaborators",
    "get_store",
    "load_config",
    "route",
]
