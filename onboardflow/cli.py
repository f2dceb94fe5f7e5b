"""Command line interface for onboarding sessions."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer

from onboardflow.catalog import STAFF_CATALOG
from onboardflow.collaborators import build_collaborators
from onboardflow.config import OnboardflowConfig, load_config
from onboardflow.errors import ConfigurationError, OnboardingError, SessionNotFoundError
from onboardflow.orchestrator import OnboardingOrchestrator
from onboardflow.persistence import get_store
from onboardflow.state import SessionStatus, WorkflowState

app = typer.Typer(help="CLI for onboardflow sessions")

# Command groups
session_app = typer.Typer(help="Commands for managing onboarding sessions")
staff_app = typer.Typer(help="Commands for the AI staff catalog")

app.add_typer(session_app, name="session")
app.add_typer(staff_app, name="staff")

_settings: dict = {"config_path": None}


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to a YAML config file"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"
    ),
) -> None:
    """onboardflow CLI entry point."""
    _settings["config_path"] = config
    level = log_level or _load_config().log_level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config() -> OnboardflowConfig:
    return load_config(_settings["config_path"])


def _store():
    if _settings["config_path"] is None:
        return get_store()
    return get_store(config=_load_config())


def _orchestrator() -> OnboardingOrchestrator:
    config = _load_config()
    try:
        collaborators = build_collaborators(config)
    except ConfigurationError as exc:
        typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return OnboardingOrchestrator.from_config(
        config, store=_store(), collaborators=collaborators
    )


def _echo_reply(state: WorkflowState) -> None:
    """Print the assistant turns produced since the last user turn."""
    replies = []
    for turn in reversed(state.transcript):
        if turn.role == "user":
            break
        replies.append(turn.content)
    for content in reversed(replies):
        typer.echo(content)
        typer.echo("")
    typer.echo(
        f"[{state.thread_id}] step={state.current_step.value} status={state.status.value}"
    )


def _run_session_call(coro) -> WorkflowState:
    try:
        return asyncio.run(coro)
    except SessionNotFoundError:
        typer.echo("Session not found")
        raise typer.Exit(code=1)
    except OnboardingError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


@session_app.command("start")
def session_start(
    tenant: str = typer.Option(..., "--tenant", help="Tenant id"),
    user: str = typer.Option(..., "--user", help="User id"),
    location: str = typer.Option(..., "--location", help="Location id"),
    thread_id: Optional[str] = typer.Option(None, "--thread-id"),
) -> None:
    """
    Start a new onboarding session and print the greeting.

    Example:
        onboardflow session start --tenant t1 --user u1 --location loc1
    """
    orchestrator = _orchestrator()
    state = _run_session_call(
        orchestrator.start(
            thread_id, tenant_id=tenant, user_id=user, location_id=location
        )
    )
    _echo_reply(state)


@session_app.command("send")
def session_send(thread_id: str, message: str) -> None:
    """
    Send a user message to a session.

    Example:
        onboardflow session send onboarding-loc1-1a2b3c4d "www.example.com"
    """
    orchestrator = _orchestrator()
    state = _run_session_call(orchestrator.resume(thread_id, message))
    _echo_reply(state)


@session_app.command("approve")
def session_approve(
    thread_id: str,
    reject: bool = typer.Option(False, "--reject", help="Reject the build plan"),
    notes: Optional[str] = typer.Option(None, "--notes", help="What should change"),
) -> None:
    """Approve (or reject with --reject) the pending build plan."""
    orchestrator = _orchestrator()
    state = _run_session_call(
        orchestrator.submit_approval(thread_id, approved=not reject, notes=notes)
    )
    _echo_reply(state)


@session_app.command("recover")
def session_recover(thread_id: str) -> None:
    """Finish a session whose last run was interrupted."""
    orchestrator = _orchestrator()
    state = _run_session_call(orchestrator.recover(thread_id))
    _echo_reply(state)


@session_app.command("show")
def session_show(
    thread_id: str,
    transcript: bool = typer.Option(False, "--transcript", help="Print every turn"),
) -> None:
    """
    Show the current state of a session.

    Example:
        onboardflow session show onboarding-loc1-1a2b3c4d --transcript
    """
    store = _store()
    checkpoint = asyncio.run(store.get(thread_id))
    if checkpoint is None:
        typer.echo("Session not found")
        raise typer.Exit(code=1)
    state = checkpoint.state
    typer.echo(f"Session {state.thread_id}: {state.status.value} (version {checkpoint.version})")
    typer.echo(f"Tenant: {state.tenant_id}  User: {state.user_id}  Location: {state.location_id}")
    typer.echo(f"Step: {state.current_step.value}  Awaiting input: {state.awaiting_user_input}")
    if state.website_url:
        typer.echo(f"Website: {state.website_url}")
    if state.selected_staff_roles:
        typer.echo(f"AI staff: {', '.join(state.selected_staff_roles)}")
    if state.goals:
        typer.echo(f"Goals: {'; '.join(state.goals)}")
    typer.echo(f"Approval: {state.approval_status.value}")
    if state.error_count:
        typer.echo(f"Errors: {state.error_count} (last: {state.last_error})")
    if transcript:
        for turn in state.transcript:
            typer.echo(f"- {turn.role}: {turn.content}")


@session_app.command("list")
def session_list(
    status: Optional[SessionStatus] = typer.Option(None, "--status"),
) -> None:
    """List sessions, optionally filtered by status."""
    store = _store()
    checkpoints = asyncio.run(store.list_sessions(status))
    if not checkpoints:
        typer.echo("No sessions found")
        return
    for cp in checkpoints:
        typer.echo(
            f"{cp.thread_id}\t{cp.status.value}\t{cp.state.current_step.value}\tv{cp.version}"
        )


@session_app.command("history")
def session_history(thread_id: str) -> None:
    """Show every saved checkpoint version of a session."""
    store = _store()
    records = asyncio.run(store.history(thread_id))
    if not records:
        typer.echo("Session not found")
        raise typer.Exit(code=1)
    for record in records:
        typer.echo(
            f"v{record.version}\t{record.saved_at.isoformat()}\t{record.step}\t{record.status.value}"
        )


@staff_app.command("list")
def staff_list() -> None:
    """List the AI staff roles that can be selected."""
    for template in STAFF_CATALOG:
        marker = " (recommended)" if template.recommended else ""
        typer.echo(f"{template.key}\t{template.name}{marker}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
