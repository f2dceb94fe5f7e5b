"""Interfaces of the external services the workflow calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Union

from ..state import BrandProfile, BuildPlan, DeploymentResult


class BrandScanner(Protocol):
    async def analyze(self, url: str) -> BrandProfile:
        """Return a brand profile for the website at ``url``."""


class PlanGenerator(Protocol):
    async def generate(
        self,
        brand_profile: Optional[BrandProfile],
        staff_roles: List[str],
        goals: List[str],
        tenant_id: str,
    ) -> BuildPlan:
        """Return a build plan for the tenant."""


class Deployer(Protocol):
    async def deploy(
        self, build_plan: BuildPlan, tenant_id: str, credential: Any
    ) -> Union[DeploymentResult, dict]:
        """Provision ``build_plan`` into the tenant's account."""


class CredentialStore(Protocol):
    async def get(self, tenant_id: str) -> Optional[Any]:
        """Return the deployment credential for ``tenant_id`` or ``None``."""


@dataclass
class Collaborators:
    """Bundle of collaborator implementations handed to step handlers."""

    brand_scanner: BrandScanner
    plan_generator: PlanGenerator
    deployer: Deployer
    credentials: CredentialStore
