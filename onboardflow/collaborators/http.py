"""httpx-based adapters for the brand, plan and deployment services.

Every adapter raises :class:`~onboardflow.errors.CollaboratorError` for
transport failures, non-2xx responses and bodies that are not JSON objects.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import CollaboratorError
from ..state import BrandProfile, BuildPlan, DeploymentResult

logger = logging.getLogger(__name__)


class _ServiceClient:
    """Posts JSON to one collaborator service."""

    name = "service"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @property
    def _headers(self) -> Dict[str, str]:
        h: Dict[str, str] = {}
        if self._api_key:
            h["X-Api-Key"] = self._api_key
        return h

    async def _post(
        self,
        path: str,
        json_data: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    url, json=json_data, headers={**self._headers, **(headers or {})}
                )
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            raise CollaboratorError(
                f"{self.name} returned {exc.response.status_code} for {url}", self.name
            ) from exc
        except httpx.HTTPError as exc:
            raise CollaboratorError(
                f"{self.name} request to {url} failed: {exc}", self.name
            ) from exc
        except ValueError as exc:
            raise CollaboratorError(f"{self.name} returned invalid JSON", self.name) from exc

        if not isinstance(body, dict):
            raise CollaboratorError(f"{self.name} returned a non-object body", self.name)
        logger.debug(f"{self.name} POST {path} -> {resp.status_code}")
        return body


class HttpBrandScanner(_ServiceClient):
    name = "brand_scanner"

    async def analyze(self, url: str) -> BrandProfile:
        return await self._post("/analyze", {"url": url})


class HttpPlanGenerator(_ServiceClient):
    name = "plan_generator"

    async def generate(
        self,
        brand_profile: Optional[BrandProfile],
        staff_roles: List[str],
        goals: List[str],
        tenant_id: str,
    ) -> BuildPlan:
        return await self._post(
            "/generate",
            {
                "brand_profile": brand_profile,
                "staff_roles": staff_roles,
                "goals": goals,
                "tenant_id": tenant_id,
            },
        )


class HttpDeployer(_ServiceClient):
    name = "deployer"

    async def deploy(
        self, build_plan: BuildPlan, tenant_id: str, credential: Any
    ) -> DeploymentResult:
        body = await self._post(
            "/deploy",
            {"build_plan": build_plan, "tenant_id": tenant_id},
            headers={"Authorization": f"Bearer {credential}"},
        )
        try:
            return DeploymentResult.model_validate(body)
        except ValueError as exc:
            raise CollaboratorError("deployer returned a malformed result", self.name) from exc
