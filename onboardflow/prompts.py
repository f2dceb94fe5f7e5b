"""Assistant messages shown to the tenant during onboarding."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .catalog import STAFF_CATALOG, role_names
from .state import BrandProfile, BuildPlan, DeploymentResult, Step

GREETING_MESSAGE = """Welcome! I'm your setup assistant, and I'll help you configure your CRM account with intelligent automation.

Here's what we'll do together:
1. Analyze your business and brand
2. Select your AI Staff (virtual team members)
3. Generate a custom build plan
4. Deploy everything to your account

Ready to get started? Please share your business website URL so I can learn about your brand."""

URL_NOT_FOUND_MESSAGE = """I didn't catch a website URL in your message. Could you please share your business website?

For example: www.yourbusiness.com or https://yourbusiness.com

If you don't have a website yet, just say "no website" and I'll work with the information you can provide."""

NO_WEBSITE_PROMPT = """No problem! Let's gather some information manually.

Please tell me:
1. **Business Name:** What's your company called?
2. **Industry:** What type of business is it? (e.g., Roofing, HVAC, Real Estate, Dental)
3. **Location:** Where do you operate? (City/State or "Nationwide")
4. **Main Services:** What are your top 3 services?

Once I have these details, we can continue with the setup."""

GOALS_REPROMPT = """I'd like to understand your goals better. Could you share 2-3 things you want to achieve? For example:
- Get more appointments
- Respond to leads faster
- Collect more reviews

What matters most to your business?"""

DEPLOYMENT_STARTED_MESSAGE = """Your build plan has been approved! Starting deployment now...

I'll create everything in your account. This usually takes about 5-10 minutes."""

WAITING_FOR_APPROVAL_MESSAGE = """I'm waiting for your approval on the build plan above.

- Type **"approve"** to start deployment
- Or tell me what changes you'd like to make

Take your time to review everything!"""

NOT_CONNECTED_MESSAGE = """I can't deploy yet: your account isn't connected.

Please connect your account first, then send me a message here and I'll pick up the deployment where we left off."""

PARTIAL_DEPLOYMENT_OPTIONS = """Your setup is partially complete. Some items couldn't be deployed.

Would you like to:
1. **Retry** - Attempt to deploy the failed items again
2. **Continue** - Keep what was deployed and finish setup
3. **Support** - Get help from our support team

What would you prefer?"""

DEPLOYMENT_FINISHED_MESSAGE = """Deployment complete! Your account is now configured with AI-powered automation."""

RETRYING_DEPLOYMENT_MESSAGE = "Got it, retrying the deployment now..."

CONTINUE_PARTIAL_MESSAGE = """Understood. We'll keep what was deployed and wrap up here.

You can finish the remaining items from your dashboard at any time, or reach out to support and we'll help."""

SUPPORT_HANDOFF_MESSAGE = """I've flagged your setup for our support team. Your progress is saved and they'll pick up from exactly where we stopped."""

COMPLETION_MESSAGE = """Congratulations! Your setup is complete.

Your AI Staff is now active and ready to:
- Answer calls and messages 24/7
- Follow up with leads automatically
- Book appointments
- Collect reviews

If you have any questions or need adjustments, just start a new conversation anytime."""

RESTART_MESSAGE = """Let's start over. Your earlier answers have been cleared.

Please share your business website URL so I can analyze your brand again."""

FATAL_MESSAGE = """I've encountered too many issues to continue automatically.

Don't worry, your progress has been saved. Please contact support for assistance, or try again later."""

_RECOVERY_FOLLOW_UPS: Dict[Step, str] = {
    Step.COLLECT_INFO: "Could you share your website URL again?",
    Step.SELECT_STAFF: "Which AI staff would you like to activate?",
    Step.SET_GOALS: "Could you tell me your main business goals again?",
    Step.AWAIT_APPROVAL: 'Reply **"deploy"** to try again, or tell me what you\'d like to change.',
    Step.VERIFY: "Would you like to retry, continue, or contact support?",
}

_REJECTION_FOLLOW_UPS: Dict[Step, str] = {
    Step.SELECT_STAFF: "Which AI staff would you like on your team this time?",
    Step.SET_GOALS: "What goals should the new plan focus on?",
    Step.COLLECT_INFO: "Please share the website you'd like me to analyze.",
}


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _bullets(items: Iterable[Any]) -> str:
    return "\n".join(f"- {item}" for item in items)


def _count(value: Any) -> Optional[int]:
    """Item count for a collaborator field holding either a collection or a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (list, tuple, dict)):
        return len(value)
    return None


def staff_selection_prompt() -> str:
    staff_list = "\n".join(
        f"- **{t.name}**{' (Recommended)' if t.recommended else ''}: {t.description}"
        for t in STAFF_CATALOG
    )
    return f"""Now let's build your AI team! These virtual staff members will work 24/7 to grow your business.

**Available AI Staff:**
{staff_list}

Which roles would you like to activate? You can select multiple (e.g., "AI Receptionist, Missed Call Recovery, Review Collector") or just say "recommended" for my top picks."""


def staff_not_understood_prompt() -> str:
    return f"I didn't catch which AI staff you'd like. {staff_selection_prompt()}"


def goals_prompt(selected_roles: List[str]) -> str:
    names = role_names(selected_roles)
    return f"""Excellent choices! You've selected {_plural(len(names), 'AI staff member')}:
{_bullets(names)}

Now, what are your main business goals? For example:
- Increase lead response time
- Book more appointments
- Get more reviews
- Re-engage old leads
- Improve customer communication

Share 2-3 goals and I'll optimize your setup accordingly."""


def goals_noted(goals: List[str]) -> str:
    return f"""Perfect! I've noted your goals:
{_bullets(goals)}

Now I'll generate your custom build plan..."""


def analyzing_website(url: str) -> str:
    return f"Great! I'll analyze **{url}** to understand your brand. This will take a moment..."


def format_brand_summary(profile: BrandProfile) -> str:
    """Summarise a brand profile and invite the staff selection."""
    name = profile.get("brand_name") or "your business"
    lines = [f"I've analyzed your website and here's what I learned about **{name}**:", ""]
    if profile.get("industry_niche"):
        lines.append(f"**Industry:** {profile['industry_niche']}")
    if profile.get("geographic_location"):
        lines.append(f"**Location:** {profile['geographic_location']}")
    services = profile.get("key_services") or []
    if services:
        lines += ["", "**Key Services:**", _bullets(services[:5])]
    tone = profile.get("tone_profile") or {}
    if "professional" in tone and "friendly" in tone:
        lines += [
            "",
            f"**Brand Voice:** {round(tone['professional'] * 100)}% Professional, "
            f"{round(tone['friendly'] * 100)}% Friendly",
        ]
    score = profile.get("aeo_score")
    if isinstance(score, (int, float)):
        verdict = (
            "(Excellent foundation for AI optimization!)"
            if score >= 75
            else "(We can improve this with the right setup)"
        )
        lines += ["", f"**AEO Score:** {score}/100", verdict]
    lines += ["", "Does this look accurate? If so, let's choose your AI Staff next!", ""]
    return "\n".join(lines) + staff_selection_prompt()


def format_build_plan(plan: BuildPlan) -> str:
    """Render a build plan for the approval gate."""
    assets = plan.get("assets") or {}
    profile = plan.get("business_profile") or {}
    staff = [s.get("role", s) if isinstance(s, dict) else s for s in plan.get("ai_staff") or []]
    workflows = assets.get("workflows") or []
    if not isinstance(workflows, list):
        workflows = []
    key_workflows = (
        _bullets(
            (
                f"**{w.get('name', 'Workflow')}**: {w.get('description', '')}".rstrip(": ")
                if isinstance(w, dict)
                else str(w)
            )
            for w in workflows[:5]
        )
        if workflows
        else "None"
    )

    lines = ["Here's your customized Build Plan:", ""]
    if plan.get("summary"):
        lines += [f"**{plan['summary']}**", ""]
    if profile:
        lines += [
            "**Business Profile:**",
            f"- Niche: {profile.get('niche', 'n/a')}",
            f"- Location: {profile.get('geo', 'n/a')}",
            f"- Voice: {profile.get('brand_voice', 'n/a')}",
            "",
        ]
    lines += [f"**AI Staff ({len(staff)}):**", _bullets(staff) if staff else "None", ""]
    lines += [
        "**Assets to Deploy:**",
        f"- {_plural(_count(assets.get('pipelines')) or 0, 'Pipeline')}",
        f"- {_plural(_count(assets.get('workflows')) or 0, 'Workflow')}",
        f"- {_plural(_count(assets.get('email_sequences')) or 0, 'Email Sequence')}",
        f"- {_plural(_count(assets.get('sms_sequences')) or 0, 'SMS Sequence')}",
        f"- {_plural(_count(assets.get('pages')) or 0, 'Landing Page')}",
        "",
        "**Key Workflows:**",
        key_workflows,
        "",
    ]
    estimated = (plan.get("deployment") or {}).get("estimated_time")
    if estimated:
        lines += [f"**Estimated Setup Time:** {estimated}", ""]
    lines.append('Type **"approve"** to deploy, or tell me what you\'d like to change.')
    return "\n".join(lines)


def format_deployment_result(result: DeploymentResult) -> str:
    """Summarise a deployment; ``deployed`` values may be lists or counts."""
    if result.success:
        created = []
        for key, word in (("pipelines", "Pipeline"), ("workflows", "Workflow")):
            count = _count(result.deployed.get(key))
            if count is not None:
                created.append(_plural(count, word))
        if not created:
            return DEPLOYMENT_FINISHED_MESSAGE
        return f"""Deployment complete!

**Successfully Created:**
{_bullets(created)}

Your account is now configured with AI-powered automation. Your AI Staff is ready to work!"""

    failed = [
        str(e.get("step", "unknown item")) if isinstance(e, dict) else str(e)
        for e in result.errors[:3]
    ]
    return f"""Deployment completed with {_plural(len(result.errors), 'issue')}. These items could not be created:
{_bullets(failed) if failed else '- Unknown items'}"""


def collaborator_failure(step: Step, target: Step) -> str:
    """Non-technical message for a failed collaborator call during ``step``.

    ``target`` is the step the session falls back to.
    """
    what = {
        Step.SCAN_BRAND: "I wasn't able to analyze that website just now.",
        Step.GENERATE_PLAN: "I ran into a problem while generating your build plan.",
        Step.DEPLOY: "The deployment didn't go through this time.",
    }.get(step, "Something went wrong on our side.")
    follow_up = _RECOVERY_FOLLOW_UPS.get(target, "")
    return f"{what} No worries, let's try again. {follow_up}".strip()


def escalation_message(target: Step) -> str:
    follow_up = _RECOVERY_FOLLOW_UPS.get(target)
    message = """I've hit several issues in a row. It looks like we're having some technical difficulties.

You can try again now, contact support for assistance, or come back later; your progress is saved."""
    return f"{message}\n\n{follow_up}" if follow_up else message


def rejection_prompt(target: Step) -> str:
    follow_up: Optional[str] = _REJECTION_FOLLOW_UPS.get(target)
    return f"""I understand you'd like to make changes. I've set the current plan aside.

{follow_up or "Just let me know what you'd like to change."}"""

SETUP_INCOMPLETE_MESSAGE = """Something in your account setup is missing, so I can't continue this step yet.

Please check your account settings, then send me a message here to try again."""
