import pytest

from onboardflow.errors import CollaboratorError
from onboardflow.state import ErrorKind, Step, create_initial_state
from onboardflow.supervisor import ErrorPolicy, ErrorSupervisor, recovery_step


def _state(**fields):
    state = create_initial_state("t-1", "tenant-1", "user-1", "loc-1")
    return state.model_copy(update=fields)


def test_record_failure_builds_counted_update():
    supervisor = ErrorSupervisor()
    update = supervisor.record_failure(
        _state(), Step.SCAN_BRAND, CollaboratorError("timeout after 30s"), website_url=None
    )
    assert update["error_count"] == 1
    assert update["last_error"] == "timeout after 30s"
    assert update["error_kind"] == ErrorKind.COLLABORATOR
    assert update["failed_step"] == Step.SCAN_BRAND
    assert update["awaiting_user_input"] is True
    assert update["website_url"] is None
    message = update["transcript"][0]
    assert message.role == "assistant"
    assert "timeout" not in message.content


def test_record_failure_at_soft_threshold_does_not_wait():
    update = ErrorSupervisor().record_failure(
        _state(error_count=2), Step.DEPLOY, RuntimeError("boom")
    )
    assert update["error_count"] == 3
    assert update["awaiting_user_input"] is False


def test_escalation_requires_collaborator_failure():
    supervisor = ErrorSupervisor(ErrorPolicy(soft_threshold=3, hard_threshold=5))
    assert supervisor.should_escalate(_state(error_count=3, error_kind=ErrorKind.COLLABORATOR))
    assert not supervisor.should_escalate(_state(error_count=3))
    assert not supervisor.should_escalate(_state(error_count=2, error_kind=ErrorKind.COLLABORATOR))
    assert supervisor.is_fatal(_state(error_count=5))
    assert not supervisor.is_fatal(_state(error_count=4))


def test_policy_validation():
    with pytest.raises(ValueError):
        ErrorPolicy(soft_threshold=0)
    with pytest.raises(ValueError):
        ErrorPolicy(soft_threshold=6, hard_threshold=5)


@pytest.mark.parametrize(
    "step, target",
    [
        (Step.COLLECT_INFO, Step.COLLECT_INFO),
        (Step.SCAN_BRAND, Step.COLLECT_INFO),
        (Step.SELECT_STAFF, Step.SELECT_STAFF),
        (Step.SET_GOALS, Step.SET_GOALS),
        (Step.GENERATE_PLAN, Step.SET_GOALS),
        (Step.AWAIT_APPROVAL, Step.AWAIT_APPROVAL),
        (Step.DEPLOY, Step.AWAIT_APPROVAL),
        (Step.VERIFY, Step.VERIFY),
        (Step.GREET, Step.GREET),
        (Step.ERROR_HANDLER, Step.GREET),
        (None, Step.GREET),
    ],
)
def test_recovery_mapping(step, target):
    assert recovery_step(step) == target
