"""Heuristic extraction of structured values from free-text messages.

All functions here are pure: they look only at the message they are given.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .catalog import STAFF_CATALOG, recommended_roles
from .state import ApprovalStatus, VerificationChoice

_URL_RE = re.compile(
    r"https?://[^\s]+"
    r"|www\.[^\s]+"
    r"|[a-z0-9][-a-z0-9]*(?:\.[a-z0-9][-a-z0-9]*)*\.[a-z]{2,}(?:/[^\s]*)?",
    re.IGNORECASE,
)
_URL_TRAILING = ".,;:!?)]}>\"'"
_NO_WEBSITE_PHRASES = ("no website", "don't have", "dont have", "don’t have")

_RECOMMENDED_PHRASES = ("recommended", "top picks", "default")

GOAL_PATTERNS: Tuple[Tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), label)
    for pattern, label in (
        (r"lead.*response|respond.*faster|speed.*lead", "Improve lead response time"),
        (r"more.*appointment|book.*more|appointment.*booking", "Book more appointments"),
        (r"review|testimonial", "Collect more reviews"),
        (r"reengage|re-engage|old.*lead|cold.*lead|inactive", "Re-engage cold leads"),
        (r"communication|customer.*service|support", "Improve customer communication"),
        (r"automat|efficiency|save.*time", "Increase automation and efficiency"),
        (r"revenue|sales|convert|conversion", "Increase sales and conversions"),
        (r"follow.*up|followup", "Improve follow-up consistency"),
    )
)
_GOAL_SPLIT_RE = re.compile(r"(?:^|\s)\d+[.)]\s*|(?:^|\s)[-*•]\s+|[,;\n]+")
MAX_CUSTOM_GOALS = 3

_APPROVE_RE = re.compile(
    r"\b(?:approv\w*|yes|proceed\w*|deploy\w*|go ahead|let'?s do it)\b", re.IGNORECASE
)
_REJECT_RE = re.compile(
    r"\b(?:chang\w*|modif\w*|different|no(?:pe|t)?|reject\w*|edit\w*"
    r"|start over|start again|restart)\b",
    re.IGNORECASE,
)
_EXPLICIT_REJECT_RE = re.compile(r"^\s*reject\s*:", re.IGNORECASE)
_CONFIRM_RE = re.compile(
    r"\b(?:yes|yep|yeah|correct|accurate|looks good|next|continue|staff)\b", re.IGNORECASE
)
_RESTART_RE = re.compile(
    r"^\W*(?:[\w']+\W+){0,3}?(?:start over|start again|restart)\W*$",
    re.IGNORECASE,
)

_VERIFY_CHOICES: Tuple[Tuple[re.Pattern[str], VerificationChoice], ...] = (
    (re.compile(r"\b(?:retry|try again|redeploy)\b", re.I), VerificationChoice.RETRY),
    (re.compile(r"\b(?:support|help|contact)\b", re.I), VerificationChoice.SUPPORT),
    (re.compile(r"\b(?:continue|keep|finish|done)\b", re.I), VerificationChoice.CONTINUE),
)
_VERIFY_NUMBERED = {
    "1": VerificationChoice.RETRY,
    "2": VerificationChoice.CONTINUE,
    "3": VerificationChoice.SUPPORT,
}


class WebsiteIntentKind(str, Enum):
    URL = "url"
    NO_WEBSITE = "no_website"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class WebsiteIntent:
    kind: WebsiteIntentKind
    url: Optional[str] = None


@dataclass(frozen=True)
class ApprovalDecision:
    status: ApprovalStatus
    notes: Optional[str] = None


def extract_website(message: str) -> WebsiteIntent:
    """Find a website in ``message``; scheme-less matches get ``https://``."""
    match = _URL_RE.search(message or "")
    if match:
        url = match.group(0).rstrip(_URL_TRAILING)
        if not url.lower().startswith(("http://", "https://")):
            url = f"https://{url}"
        return WebsiteIntent(WebsiteIntentKind.URL, url)

    lowered = (message or "").lower()
    if any(phrase in lowered for phrase in _NO_WEBSITE_PHRASES):
        return WebsiteIntent(WebsiteIntentKind.NO_WEBSITE)
    return WebsiteIntent(WebsiteIntentKind.UNKNOWN)


def extract_staff_roles(message: str) -> List[str]:
    """Return catalog keys mentioned in ``message``, in catalog order."""
    lowered = (message or "").lower()
    if any(phrase in lowered for phrase in _RECOMMENDED_PHRASES):
        return recommended_roles()

    selected: List[str] = []
    for template in STAFF_CATALOG:
        needles = (template.name.lower(), template.key_phrase) + template.synonyms
        if any(needle in lowered for needle in needles) and template.key not in selected:
            selected.append(template.key)
    return selected


def extract_goals(message: str) -> List[str]:
    """Map ``message`` to canonical goals, falling back to its own fragments."""
    content = message or ""
    goals = [label for pattern, label in GOAL_PATTERNS if pattern.search(content)]
    if goals or len(content) <= 10:
        return goals

    fragments = (part.strip() for part in _GOAL_SPLIT_RE.split(content) if part)
    custom = [f for f in fragments if 5 < len(f) < 100]
    return custom[:MAX_CUSTOM_GOALS]


def extract_approval(message: str) -> ApprovalDecision:
    """Approval keywords win over rejection keywords; anything else is pending.

    A leading ``reject:`` is always a rejection, whatever the notes say.
    Keywords match whole words, so "no" covers "nope" and "not" but not
    "know" or "now".
    """
    content = message or ""
    if _EXPLICIT_REJECT_RE.match(content):
        return ApprovalDecision(ApprovalStatus.REJECTED, notes=content)
    if _APPROVE_RE.search(content):
        return ApprovalDecision(ApprovalStatus.APPROVED)
    if _REJECT_RE.search(content):
        return ApprovalDecision(ApprovalStatus.REJECTED, notes=content)
    return ApprovalDecision(ApprovalStatus.PENDING)


def is_confirmation(message: str) -> bool:
    return bool(_CONFIRM_RE.search(message or ""))


def wants_restart(message: str) -> bool:
    """True when the whole message asks to start over, e.g. "ok, let's restart".

    Restart words followed by more text ("restart conversations with old
    leads") are ordinary answers.
    """
    return bool(_RESTART_RE.search(message or ""))


def extract_verification_choice(message: str) -> Optional[VerificationChoice]:
    content = (message or "").strip()
    if content in _VERIFY_NUMBERED:
        return _VERIFY_NUMBERED[content]
    for pattern, choice in _VERIFY_CHOICES:
        if pattern.search(content):
            return choice
    return None
