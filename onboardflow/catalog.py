"""Fixed catalog of AI staff roles a tenant can activate."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class StaffTemplate(BaseModel):
    key: str
    name: str
    description: str
    recommended: bool = False
    synonyms: Tuple[str, ...] = Field(default_factory=tuple)

    @property
    def key_phrase(self) -> str:
        """``MISSED_CALL_RECOVERY`` -> ``missed call recovery``."""
        return self.key.lower().replace("_", " ")


STAFF_CATALOG: Tuple[StaffTemplate, ...] = (
    StaffTemplate(
        key="AI_RECEPTIONIST",
        name="AI Receptionist",
        description="Answers calls 24/7, handles FAQs, filters spam",
        recommended=True,
        synonyms=("receptionist",),
    ),
    StaffTemplate(
        key="MISSED_CALL_RECOVERY",
        name="Missed Call Recovery",
        description="Instant SMS to missed calls with callback link",
        recommended=True,
        synonyms=("missed call",),
    ),
    StaffTemplate(
        key="REVIEW_COLLECTOR",
        name="Review Collector",
        description="Automatically requests reviews after service completion",
        recommended=True,
        synonyms=("review",),
    ),
    StaffTemplate(
        key="LEAD_QUALIFIER",
        name="Lead Qualifier",
        description="SMS/IG qualification questions to score leads",
        synonyms=("qualifier", "qualify"),
    ),
    StaffTemplate(
        key="BOOKING_ASSISTANT",
        name="Booking Assistant",
        description="Calendar negotiation and appointment booking",
        synonyms=("booking", "appointment"),
    ),
    StaffTemplate(
        key="REENGAGEMENT_AGENT",
        name="Re-engagement Agent",
        description="Reactivates cold leads (90+ days inactive)",
        synonyms=("reengage", "re-engage", "cold"),
    ),
)

_BY_KEY: Dict[str, StaffTemplate] = {t.key: t for t in STAFF_CATALOG}


def recommended_roles() -> List[str]:
    return [t.key for t in STAFF_CATALOG if t.recommended]


def get_template(key: str) -> Optional[StaffTemplate]:
    return _BY_KEY.get(key)


def role_names(keys: List[str]) -> List[str]:
    """Display names for role keys; unknown keys are shown as-is."""
    return [_BY_KEY[k].name if k in _BY_KEY else k for k in keys]
