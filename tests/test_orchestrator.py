import asyncio

import pytest

from onboardflow import prompts
from onboardflow.catalog import recommended_roles
from onboardflow.errors import (
    ConcurrentResumeError,
    ConflictError,
    FatalWorkflowError,
    SessionNotFoundError,
)
from onboardflow.orchestrator import OnboardingOrchestrator, new_thread_id
from onboardflow.persistence import SQLiteStateStore
from onboardflow.reducers import merge_state
from onboardflow.router import TERMINAL
from onboardflow.state import (
    ApprovalStatus,
    SessionStatus,
    Step,
    VerificationChoice,
    create_initial_state,
    user,
)


async def _to_approval(orchestrator, start_session, thread_id="t-1"):
    await start_session(thread_id)
    await orchestrator.resume(thread_id, "www.acmeroofing.com")
    await orchestrator.resume(thread_id, "recommended")
    return await orchestrator.resume(thread_id, "book more appointments, increase reviews")


def _state_at(step, message=None, **fields):
    state = create_initial_state("t-x", "tenant-1", "user-1", "loc-1")
    state = state.model_copy(update={"current_step": step, **fields})
    if message is not None:
        state = merge_state(state, {"transcript": [user(message)]})
    return state


@pytest.mark.asyncio
async def test_start_greets_and_waits_for_website(orchestrator, start_session, store):
    state = await start_session()

    assert state.current_step == Step.COLLECT_INFO
    assert state.awaiting_user_input is True
    assert state.status == SessionStatus.AWAITING_INPUT
    assert state.transcript[0].content == prompts.GREETING_MESSAGE

    checkpoint = await store.load("t-1")
    assert checkpoint.version == 2
    assert checkpoint.state == state


@pytest.mark.asyncio
async def test_start_generates_thread_id(orchestrator):
    state = await orchestrator.start(tenant_id="tenant-1", user_id="u", location_id="loc-9")
    assert state.thread_id.startswith("onboarding-loc-9-")
    assert len(state.thread_id.rsplit("-", 1)[1]) == 8
    assert new_thread_id("loc-9") != new_thread_id("loc-9")


@pytest.mark.asyncio
async def test_start_rejects_existing_thread(orchestrator, start_session):
    await start_session()
    with pytest.raises(ConflictError):
        await start_session()


@pytest.mark.asyncio
async def test_happy_path_runs_to_completion(orchestrator, start_session, collaborators):
    await start_session()

    state = await orchestrator.resume("t-1", "www.acmeroofing.com")
    assert state.website_url == "https://www.acmeroofing.com"
    assert state.brand_profile["brand_name"] == "Acme Roofing"
    assert state.current_step == Step.SELECT_STAFF
    assert collaborators.brand_scanner.calls == ["https://www.acmeroofing.com"]

    state = await orchestrator.resume("t-1", "just go with recommended")
    assert state.selected_staff_roles == recommended_roles()
    assert state.current_step == Step.SET_GOALS

    state = await orchestrator.resume("t-1", "book more appointments, increase reviews")
    assert state.goals == ["Book more appointments", "Collect more reviews"]
    assert state.current_step == Step.AWAIT_APPROVAL
    assert state.approval_status == ApprovalStatus.PENDING
    assert state.status == SessionStatus.AWAITING_APPROVAL
    assert collaborators.plan_generator.calls[0]["staff_roles"] == recommended_roles()

    state = await orchestrator.resume("t-1", "approve")
    assert state.status == SessionStatus.COMPLETED
    assert state.approval_status == ApprovalStatus.APPROVED
    assert state.deployment_result.success is True
    assert state.transcript[-1].content == prompts.COMPLETION_MESSAGE
    assert state.awaiting_user_input is False
    assert collaborators.deployer.calls[0]["credential"] == "secret-token"
    assert state.error_count == 0


@pytest.mark.asyncio
async def test_empty_resume_on_waiting_session_is_a_no_op(orchestrator, start_session, store):
    before = await start_session()
    version = (await store.load("t-1")).version

    after = await orchestrator.resume("t-1", "")
    assert after == before
    after = await orchestrator.resume("t-1", "   ")
    assert after == before
    assert (await store.load("t-1")).version == version


@pytest.mark.asyncio
async def test_resume_unknown_session(orchestrator):
    with pytest.raises(SessionNotFoundError):
        await orchestrator.resume("missing", "hello")
    assert await orchestrator.get_state("missing") is None


@pytest.mark.asyncio
async def test_resume_rejects_session_being_processed(orchestrator, start_session, store):
    await start_session()
    checkpoint = await store.load("t-1")
    busy = merge_state(checkpoint.state, {"awaiting_user_input": False})
    await store.save("t-1", checkpoint.version, busy)

    with pytest.raises(ConcurrentResumeError):
        await orchestrator.resume("t-1", "www.example.com")


@pytest.mark.asyncio
async def test_concurrent_resumes_only_one_commits(orchestrator, start_session, store):
    await start_session()

    results = await asyncio.gather(
        orchestrator.resume("t-1", "www.first.com"),
        orchestrator.resume("t-1", "www.second.com"),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], ConflictError)
    state = await orchestrator.get_state("t-1")
    user_turns = [t.content for t in state.transcript if t.role == "user"]
    assert len(user_turns) == 1


@pytest.mark.asyncio
async def test_unparseable_website_reprompts_without_counting(orchestrator, start_session):
    await start_session()
    state = await orchestrator.resume("t-1", "hello there")

    assert state.current_step == Step.COLLECT_INFO
    assert state.awaiting_user_input is True
    assert state.transcript[-1].content == prompts.URL_NOT_FOUND_MESSAGE
    assert state.error_count == 0


@pytest.mark.asyncio
async def test_no_website_branch(orchestrator, start_session):
    await start_session()
    state = await orchestrator.resume("t-1", "I don't have a website yet")
    assert state.current_step == Step.COLLECT_INFO
    assert state.transcript[-1].content == prompts.NO_WEBSITE_PROMPT


@pytest.mark.asyncio
async def test_scan_failure_returns_to_collect_info(orchestrator, start_session, collaborators):
    collaborators.brand_scanner.fail = True
    await start_session()

    state = await orchestrator.resume("t-1", "acme.com")
    assert state.error_count == 1
    assert state.current_step == Step.COLLECT_INFO
    assert state.website_url is None
    assert state.last_error == "scanner unavailable"
    assert all("scanner unavailable" not in t.content for t in state.transcript)

    collaborators.brand_scanner.fail = False
    state = await orchestrator.resume("t-1", "acme.com")
    assert state.current_step == Step.SELECT_STAFF
    assert state.error_count == 1


@pytest.mark.asyncio
async def test_hard_ceiling_ends_session(orchestrator, start_session, collaborators):
    collaborators.brand_scanner.fail = True
    await start_session()

    counts = []
    for _ in range(5):
        state = await orchestrator.resume("t-1", "https://acme.com")
        counts.append(state.error_count)

    assert counts == [1, 2, 3, 4, 5]
    assert state.status == SessionStatus.FAILED
    assert state.current_step == Step.ERROR_HANDLER
    assert state.transcript[-1].content == prompts.FATAL_MESSAGE

    with pytest.raises(FatalWorkflowError):
        await orchestrator.resume("t-1", "please try again")
    assert await orchestrator.resume("t-1", "") == state


@pytest.mark.asyncio
async def test_soft_threshold_goes_through_error_handler(orchestrator, start_session, collaborators):
    collaborators.brand_scanner.fail = True
    await start_session()
    for _ in range(3):
        state = await orchestrator.resume("t-1", "acme.com")

    assert state.error_count == 3
    assert state.current_step == Step.COLLECT_INFO
    assert state.awaiting_user_input is True
    assert state.transcript[-1].content == prompts.escalation_message(Step.COLLECT_INFO)


@pytest.mark.asyncio
async def test_mixed_failures_reach_hard_ceiling(orchestrator, start_session, collaborators):
    await start_session()
    await orchestrator.resume("t-1", "acme.com")
    await orchestrator.resume("t-1", "recommended")

    collaborators.plan_generator.fail = True
    for _ in range(2):
        state = await orchestrator.resume("t-1", "more reviews please")
    assert state.error_count == 2
    assert state.current_step == Step.SET_GOALS
    assert state.goals == []

    collaborators.plan_generator.fail = False
    state = await orchestrator.resume("t-1", "more reviews please")
    assert state.current_step == Step.AWAIT_APPROVAL

    collaborators.deployer.fail = True
    state = await orchestrator.resume("t-1", "approve")
    assert state.error_count == 3
    assert state.current_step == Step.AWAIT_APPROVAL
    state = await orchestrator.resume("t-1", "deploy")
    assert state.error_count == 4
    state = await orchestrator.resume("t-1", "deploy")
    assert state.error_count == 5
    assert state.status == SessionStatus.FAILED


@pytest.mark.asyncio
async def test_advance_approval_unlocks_deploy(orchestrator):
    state = _state_at(
        Step.AWAIT_APPROVAL,
        "approve",
        approval_status=ApprovalStatus.PENDING,
        build_plan={"summary": "plan"},
    )
    state, nxt = await orchestrator.advance(state)
    assert nxt == Step.DEPLOY
    assert state.approval_status == ApprovalStatus.APPROVED
    assert state.current_step == Step.DEPLOY


@pytest.mark.asyncio
async def test_advance_rejection_routes_to_staff(orchestrator):
    state = _state_at(
        Step.AWAIT_APPROVAL,
        "no, change the staff selection",
        approval_status=ApprovalStatus.PENDING,
        build_plan={"summary": "plan"},
        selected_staff_roles=["AI_RECEPTIONIST"],
        goals=["Collect more reviews"],
    )
    state, nxt = await orchestrator.advance(state)
    assert nxt == Step.SELECT_STAFF
    assert state.approval_status == ApprovalStatus.REJECTED
    assert state.current_step == Step.SELECT_STAFF
    assert state.selected_staff_roles == []
    assert state.goals == []
    assert state.build_plan is None


@pytest.mark.asyncio
async def test_advance_goal_scenario(orchestrator):
    state = _state_at(Step.SET_GOALS, "book more appointments, increase reviews")
    state, nxt = await orchestrator.advance(state)
    assert state.goals == ["Book more appointments", "Collect more reviews"]
    assert state.current_step == Step.GENERATE_PLAN
    assert nxt == Step.GENERATE_PLAN


@pytest.mark.asyncio
async def test_rejection_then_new_plan(orchestrator, start_session, collaborators):
    await _to_approval(orchestrator, start_session)

    state = await orchestrator.resume("t-1", "Let's change the goals")
    assert state.current_step == Step.SET_GOALS
    assert state.approval_status == ApprovalStatus.REJECTED
    assert state.selected_staff_roles == recommended_roles()

    state = await orchestrator.resume("t-1", "re-engage old leads")
    assert state.current_step == Step.AWAIT_APPROVAL
    assert state.approval_status == ApprovalStatus.PENDING
    assert state.approval_notes is None
    assert len(collaborators.plan_generator.calls) == 2


@pytest.mark.asyncio
async def test_submit_approval(orchestrator, start_session):
    await _to_approval(orchestrator, start_session)
    state = await orchestrator.submit_approval("t-1", approved=False, notes="different team")
    assert state.current_step == Step.SELECT_STAFF
    assert state.approval_notes == "reject: different team"

    await orchestrator.resume("t-1", "ai receptionist")
    await orchestrator.resume("t-1", "more reviews")
    state = await orchestrator.submit_approval("t-1", approved=True)
    assert state.status == SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_undecided_approval_waits(orchestrator, start_session):
    await _to_approval(orchestrator, start_session)
    state = await orchestrator.resume("t-1", "hmm let me think")
    assert state.current_step == Step.AWAIT_APPROVAL
    assert state.approval_status == ApprovalStatus.PENDING
    assert state.transcript[-1].content == prompts.WAITING_FOR_APPROVAL_MESSAGE


@pytest.mark.asyncio
async def test_missing_credential_stays_on_deploy(orchestrator, start_session, collaborators):
    collaborators.credentials.remove("tenant-1")
    await _to_approval(orchestrator, start_session)

    state = await orchestrator.resume("t-1", "approve")
    assert state.current_step == Step.DEPLOY
    assert state.awaiting_user_input is True
    assert state.error_count == 0
    assert state.transcript[-1].content == prompts.NOT_CONNECTED_MESSAGE
    assert collaborators.deployer.calls == []

    collaborators.credentials.set("tenant-1", "new-token")
    state = await orchestrator.resume("t-1", "connected now")
    assert state.status == SessionStatus.COMPLETED
    assert collaborators.deployer.calls[0]["credential"] == "new-token"


@pytest.mark.asyncio
async def test_partial_deployment_retry(orchestrator, start_session, collaborators, partial_result):
    collaborators.deployer.results.append(partial_result)
    await _to_approval(orchestrator, start_session)

    state = await orchestrator.resume("t-1", "approve")
    assert state.current_step == Step.VERIFY
    assert state.awaiting_user_input is True
    assert state.transcript[-1].content == prompts.PARTIAL_DEPLOYMENT_OPTIONS

    state = await orchestrator.resume("t-1", "retry")
    assert state.status == SessionStatus.COMPLETED
    assert len(collaborators.deployer.calls) == 2
    assert state.deployment_result.success is True


@pytest.mark.asyncio
async def test_partial_deployment_continue(orchestrator, start_session, collaborators, partial_result):
    collaborators.deployer.results.append(partial_result)
    await _to_approval(orchestrator, start_session)
    await orchestrator.resume("t-1", "approve")

    state = await orchestrator.resume("t-1", "keep what you have")
    assert state.status == SessionStatus.COMPLETED
    assert state.verification_choice == VerificationChoice.CONTINUE
    assert state.transcript[-1].content == prompts.CONTINUE_PARTIAL_MESSAGE


@pytest.mark.asyncio
async def test_restart_resets_session_in_place(orchestrator, start_session):
    await start_session()
    await orchestrator.resume("t-1", "www.acmeroofing.com")
    await orchestrator.resume("t-1", "recommended")
    before = await orchestrator.get_state("t-1")
    assert before.current_step == Step.SET_GOALS

    state = await orchestrator.resume("t-1", "actually, start over")
    assert state.current_step == Step.COLLECT_INFO
    assert state.awaiting_user_input is True
    assert state.website_url is None
    assert state.brand_profile is None
    assert state.selected_staff_roles == []
    assert state.goals == []
    assert state.approval_status == ApprovalStatus.NONE
    assert len(state.transcript) == len(before.transcript) + 2
    assert state.transcript[-1].content == prompts.RESTART_MESSAGE


@pytest.mark.asyncio
async def test_restart_word_in_goal_text_is_a_goal(orchestrator, start_session):
    await start_session()
    await orchestrator.resume("t-1", "www.acmeroofing.com")
    await orchestrator.resume("t-1", "recommended")

    state = await orchestrator.resume(
        "t-1", "restart conversations with old leads and collect reviews"
    )
    assert state.current_step == Step.AWAIT_APPROVAL
    assert state.goals == ["Collect more reviews", "Re-engage cold leads"]
    assert state.website_url == "https://www.acmeroofing.com"
    assert state.selected_staff_roles == recommended_roles()


@pytest.mark.asyncio
async def test_start_over_at_approval_is_a_rejection(orchestrator, start_session):
    await _to_approval(orchestrator, start_session)

    state = await orchestrator.resume("t-1", "let's start over")
    assert state.approval_status == ApprovalStatus.REJECTED
    assert state.approval_notes == "let's start over"
    assert state.current_step == Step.COLLECT_INFO
    assert state.website_url is None
    assert state.build_plan is None
    assert state.status == SessionStatus.AWAITING_INPUT
    assert state.transcript[-1].content == prompts.rejection_prompt(Step.COLLECT_INFO)


@pytest.mark.asyncio
async def test_count_shaped_deployment_completes_once(
    orchestrator, start_session, collaborators
):
    await _to_approval(orchestrator, start_session)
    collaborators.deployer.results.append(
        {"success": True, "deployed": {"pipelines": 2, "workflows": 3}, "errors": []}
    )

    state = await orchestrator.resume("t-1", "approve")
    assert state.status == SessionStatus.COMPLETED
    assert state.error_count == 0
    assert state.deployment_result.deployed == {"pipelines": 2, "workflows": 3}
    assert len(collaborators.deployer.calls) == 1


@pytest.mark.asyncio
async def test_recover_finishes_interrupted_run(orchestrator, start_session, store):
    await start_session()
    checkpoint = await store.load("t-1")
    # simulate a crash right after the resume claimed the session
    claimed = merge_state(
        checkpoint.state,
        {
            "transcript": [user("www.acme.com")],
            "awaiting_user_input": False,
            "status": SessionStatus.ACTIVE,
        },
    )
    await store.save("t-1", checkpoint.version, claimed)

    state = await orchestrator.recover("t-1")
    assert state.current_step == Step.SELECT_STAFF
    assert state.website_url == "https://www.acme.com"

    again = await orchestrator.recover("t-1")
    assert again == state


@pytest.mark.asyncio
async def test_loop_guard_suspends(store, collaborators, start_session):
    guarded = OnboardingOrchestrator(store, collaborators, max_steps_per_resume=2)
    await _to_approval(guarded, start_session)

    state = await guarded.resume("t-1", "approve")
    assert state.current_step == Step.VERIFY
    assert state.awaiting_user_input is True
    assert state.status == SessionStatus.AWAITING_INPUT


@pytest.mark.asyncio
async def test_error_count_never_decreases_in_history(orchestrator, start_session, store, collaborators):
    collaborators.brand_scanner.fail = True
    await start_session()
    await orchestrator.resume("t-1", "acme.com")
    collaborators.brand_scanner.fail = False
    await orchestrator.resume("t-1", "acme.com")
    await orchestrator.resume("t-1", "recommended")

    counts = [record.state.error_count for record in await store.history("t-1")]
    assert counts == sorted(counts)
    assert counts[-1] == 1


@pytest.mark.asyncio
async def test_sessions_survive_new_orchestrator(tmp_path, collaborators):
    db_path = tmp_path / "sessions.db"
    first = OnboardingOrchestrator(SQLiteStateStore(db_path), collaborators)
    await first.start("t-1", tenant_id="tenant-1", user_id="u", location_id="loc-1")
    await first.resume("t-1", "acme.com")

    second = OnboardingOrchestrator(SQLiteStateStore(db_path), collaborators)
    state = await second.resume("t-1", "recommended")
    assert state.current_step == Step.SET_GOALS
    assert state.brand_profile["brand_name"] == "Acme Roofing"
