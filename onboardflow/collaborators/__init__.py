"""External collaborators used by the step handlers."""

from __future__ import annotations

from typing import Optional

import httpx

from ..config import OnboardflowConfig
from ..errors import ConfigurationError
from .base import BrandScanner, Collaborators, CredentialStore, Deployer, PlanGenerator
from .http import HttpBrandScanner, HttpDeployer, HttpPlanGenerator
from .inmemory import InMemoryCredentialStore


def build_collaborators(
    config: OnboardflowConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Collaborators:
    """Wire HTTP adapters and the credential store from ``config``."""
    endpoints = config.collaborators
    missing = [
        name
        for name in ("brand_scanner_url", "plan_generator_url", "deployer_url")
        if not getattr(endpoints, name)
    ]
    if missing:
        raise ConfigurationError(
            f"Missing collaborator setting(s): {', '.join(missing)}"
        )

    common = dict(api_key=endpoints.api_key, timeout=endpoints.timeout, transport=transport)
    return Collaborators(
        brand_scanner=HttpBrandScanner(endpoints.brand_scanner_url, **common),
        plan_generator=HttpPlanGenerator(endpoints.plan_generator_url, **common),
        deployer=HttpDeployer(endpoints.deployer_url, **common),
        credentials=InMemoryCredentialStore(config.credentials),
    )


__all__ = [
    "BrandScanner",
    "Collaborators",
    "CredentialStore",
    "Deployer",
    "HttpBrandScanner",
    "HttpDeployer",
    "HttpPlanGenerator",
    "InMemoryCredentialStore",
    "PlanGenerator",
    "build_collaborators",
]
