import pytest

from app.services.state_machine import (
    InboundState,
    InvalidTransitionError,
    can_transition,
    transition,
)


class TestValidTransitions:
    def test_received_to_logged(self):
        result = transition(InboundState.RECEIVED, InboundState.LOGGED)
        assert result == InboundState.LOGGED

    def test_logged_to_skipped_not_allowed(self):
        result = transition(InboundState.LOGGED, InboundState.SKIPPED_NOT_ALLOWED)
        assert result == InboundState.SKIPPED_NOT_ALLOWED

    def test_logged_to_skipped_human_control(self):
        result = transition(InboundState.LOGGED, InboundState.SKIPPED_HUMAN_CONTROL)
        assert result == InboundState.SKIPPED_HUMAN_CONTROL

    def test_logged_to_ai_responded(self):
        result = transition(InboundState.LOGGED, InboundState.AI_RESPONDED)
        assert result == InboundState.AI_RESPONDED


class TestInvalidTransitions:
    def test_received_cannot_skip_logging(self):
        with pytest.raises(InvalidTransitionError):
            transition(InboundState.RECEIVED, InboundState.AI_RESPONDED)

    def test_terminal_state_is_final(self):
        with pytest.raises(InvalidTransitionError):
            transition(InboundState.SKIPPED_HUMAN_CONTROL, InboundState.AI_RESPONDED)

    def test_same_state(self):
        with pytest.raises(InvalidTransitionError):
            transition(InboundState.LOGGED, InboundState.LOGGED)

    def test_error_message_names_both_states(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition(InboundState.AI_RESPONDED, InboundState.LOGGED)
        assert "ai_responded -> logged" in str(exc_info.value)


class TestCanTransition:
    def test_valid_returns_true(self):
        assert can_transition(InboundState.RECEIVED, InboundState.LOGGED) is True

    def test_invalid_returns_false(self):
        assert can_transition(InboundState.RECEIVED, InboundState.SKIPPED_NOT_ALLOWED) is False


class TestOutcomeStates:
    @pytest.mark.parametrize(
        "state",
        [
            InboundState.SKIPPED_NOT_ALLOWED,
            InboundState.SKIPPED_HUMAN_CONTROL,
            InboundState.AI_RESPONDED,
            InboundState.AI_FAILED,
        ],
    )
    def test_outcomes_have_no_further_transitions(self, state):
        assert not any(can_transition(state, target) for target in InboundState)
