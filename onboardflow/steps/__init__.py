"""Step handlers, one per workflow step."""

from __future__ import annotations

from typing import Dict

from ..state import Step
from .base import StepContext, StepHandler, Update
from .deployment import DeployHandler, VerifyHandler
from .intake import CollectInfoHandler, GreetHandler, ScanBrandHandler
from .planning import AwaitApprovalHandler, GeneratePlanHandler
from .recovery import ErrorHandlerStep
from .selection import SelectStaffHandler, SetGoalsHandler


def default_handlers() -> Dict[Step, StepHandler]:
    """Return a fresh handler for every step."""
    handlers = [
        GreetHandler(),
        CollectInfoHandler(),
        ScanBrandHandler(),
        SelectStaffHandler(),
        SetGoalsHandler(),
        GeneratePlanHandler(),
        AwaitApprovalHandler(),
        DeployHandler(),
        VerifyHandler(),
        ErrorHandlerStep(),
    ]
    return {handler.step: handler for handler in handlers}


__all__ = [
    "AwaitApprovalHandler",
    "CollectInfoHandler",
    "DeployHandler",
    "ErrorHandlerStep",
    "GeneratePlanHandler",
    "GreetHandler",
    "ScanBrandHandler",
    "SelectStaffHandler",
    "SetGoalsHandler",
    "StepContext",
    "StepHandler",
    "Update",
    "VerifyHandler",
    "default_handlers",
]
