"""Shared fakes and fixtures for onboardflow tests."""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Dict, List, Optional

import pytest

import onboardflow.persistence as persistence
from onboardflow.collaborators import Collaborators, InMemoryCredentialStore
from onboardflow.errors import CollaboratorError
from onboardflow.orchestrator import OnboardingOrchestrator
from onboardflow.persistence import InMemoryStateStore
from onboardflow.state import DeploymentResult

BRAND_PROFILE: Dict[str, Any] = {
    "brand_name": "Acme Roofing",
    "industry_niche": "Roofing",
    "geographic_location": "Austin, TX",
    "key_services": ["Roof repair", "Roof replacement", "Inspections"],
    "tone_profile": {"professional": 0.7, "friendly": 0.3},
    "aeo_score": 62,
}

BUILD_PLAN: Dict[str, Any] = {
    "summary": "Roofing growth kit",
    "business_profile": {"niche": "Roofing", "geo": "Austin, TX", "brand_voice": "Professional"},
    "ai_staff": [{"role": "AI_RECEPTIONIST"}, {"role": "REVIEW_COLLECTOR"}],
    "assets": {
        "pipelines": [{"name": "Leads"}],
        "workflows": [{"name": "Missed call text back", "description": "SMS on missed call"}],
        "email_sequences": [],
        "sms_sequences": [{"name": "Review ask"}],
        "pages": [],
    },
    "deployment": {"estimated_time": "5-10 minutes"},
}


class FakeBrandScanner:
    def __init__(self, profile: Optional[Dict[str, Any]] = None) -> None:
        self.profile = profile or BRAND_PROFILE
        self.fail = False
        self.calls: List[str] = []

    async def analyze(self, url: str) -> Dict[str, Any]:
        self.calls.append(url)
        await asyncio.sleep(0)
        if self.fail:
            raise CollaboratorError("scanner unavailable", "brand_scanner")
        return dict(self.profile)


class FakePlanGenerator:
    def __init__(self, plan: Optional[Dict[str, Any]] = None) -> None:
        self.plan = plan or BUILD_PLAN
        self.fail = False
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, brand_profile, staff_roles, goals, tenant_id):
        self.calls.append(
            {
                "brand_profile": brand_profile,
                "staff_roles": staff_roles,
                "goals": goals,
                "tenant_id": tenant_id,
            }
        )
        await asyncio.sleep(0)
        if self.fail:
            raise CollaboratorError("plan service timed out", "plan_generator")
        return dict(self.plan)


class FakeDeployer:
    """Returns queued results in order, then full success."""

    def __init__(self) -> None:
        self.results: List[Any] = []
        self.fail = False
        self.calls: List[Dict[str, Any]] = []

    async def deploy(self, build_plan, tenant_id, credential):
        self.calls.append(
            {"build_plan": build_plan, "tenant_id": tenant_id, "credential": credential}
        )
        if self.fail:
            raise CollaboratorError("provisioning API returned 502", "deployer")
        if self.results:
            return self.results.pop(0)
        return DeploymentResult(
            success=True, deployed={"pipelines": [{"id": "p1"}], "workflows": [{"id": "w1"}]}
        )


PARTIAL_RESULT = {
    "success": False,
    "deployed": {"pipelines": [{"id": "p1"}]},
    "errors": [{"step": "sms_sequence", "error": "quota exceeded"}],
}


@pytest.fixture(autouse=True)
def _reset_store_singleton(monkeypatch):
    monkeypatch.delenv("ONBOARDFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    persistence.reset_store()
    yield
    persistence.reset_store()


@pytest.fixture
def collaborators() -> Collaborators:
    return Collaborators(
        brand_scanner=FakeBrandScanner(),
        plan_generator=FakePlanGenerator(),
        deployer=FakeDeployer(),
        credentials=InMemoryCredentialStore({"tenant-1": "secret-token"}),
    )


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def orchestrator(store, collaborators) -> OnboardingOrchestrator:
    return OnboardingOrchestrator(store, collaborators)


@pytest.fixture
def partial_result() -> Dict[str, Any]:
    return copy.deepcopy(PARTIAL_RESULT)


@pytest.fixture
def start_session(orchestrator):
    async def _start(thread_id: str = "t-1"):
        return await orchestrator.start(
            thread_id, tenant_id="tenant-1", user_id="user-1", location_id="loc-1"
        )

    return _start
