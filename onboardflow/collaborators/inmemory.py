"""Credential store backed by a plain mapping."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from .base import CredentialStore


class InMemoryCredentialStore(CredentialStore):
    """Serve deployment credentials from configuration or tests."""

    def __init__(self, credentials: Optional[Mapping[str, Any]] = None) -> None:
        self._credentials: Dict[str, Any] = dict(credentials or {})

    async def get(self, tenant_id: str) -> Optional[Any]:
        return self._credentials.get(tenant_id)

    def set(self, tenant_id: str, credential: Any) -> None:
        self._credentials[tenant_id] = credential

    def remove(self, tenant_id: str) -> None:
        self._credentials.pop(tenant_id, None)
