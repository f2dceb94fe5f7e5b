"""Steps that collect the tenant's website and brand."""

from __future__ import annotations

from .. import prompts
from ..errors import CollaboratorError, UserInputError
from ..intent import WebsiteIntentKind, extract_website
from ..state import Step, WorkflowState, assistant
from .base import StepContext, StepHandler, Update


class GreetHandler(StepHandler):
    step = Step.GREET

    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        return {
            "transcript": [assistant(prompts.GREETING_MESSAGE)],
            "awaiting_user_input": True,
        }


class CollectInfoHandler(StepHandler):
    step = Step.COLLECT_INFO

    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        intent = extract_website(state.latest_user_message())
        if intent.kind == WebsiteIntentKind.URL:
            return {
                "website_url": intent.url,
                "transcript": [assistant(prompts.analyzing_website(intent.url))],
                "awaiting_user_input": False,
            }
        if intent.kind == WebsiteIntentKind.NO_WEBSITE:
            return {
                "transcript": [assistant(prompts.NO_WEBSITE_PROMPT)],
                "awaiting_user_input": True,
            }
        raise UserInputError(prompts.URL_NOT_FOUND_MESSAGE)


class ScanBrandHandler(StepHandler):
    step = Step.SCAN_BRAND

    async def run(self, state: WorkflowState, ctx: StepContext) -> Update:
        if not state.website_url:
            raise CollaboratorError("No website URL to analyze", "brand_scanner")
        profile = await ctx.collaborators.brand_scanner.analyze(state.website_url)
        if not isinstance(profile, dict):
            raise CollaboratorError(
                f"Brand scanner returned {type(profile).__name__}, expected a mapping",
                "brand_scanner",
            )
        return {
            "brand_profile": profile,
            "transcript": [assistant(prompts.format_brand_summary(profile))],
            "awaiting_user_input": True,
            "last_error": None,
        }

    def on_failure(self, state, ctx, exc):
        # the URL is asked for again at collect_info
        return ctx.supervisor.record_failure(state, self.step, exc, website_url=None)
