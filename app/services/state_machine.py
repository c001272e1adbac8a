from enum import Enum


class InboundState(str, Enum):
    """Lifecycle of one inbound WhatsApp message."""

    RECEIVED = "received"
    LOGGED = "logged"
    SKIPPED_NOT_ALLOWED = "skipped_not_allowed"
    SKIPPED_HUMAN_CONTROL = "skipped_human_control"
    AI_RESPONDED = "ai_responded"
    AI_FAILED = "ai_failed"


VALID_TRANSITIONS = {
    InboundState.RECEIVED: [InboundState.LOGGED],
    InboundState.LOGGED: [
        InboundState.SKIPPED_NOT_ALLOWED,
        InboundState.SKIPPED_HUMAN_CONTROL,
        InboundState.AI_RESPONDED,
        InboundState.AI_FAILED,
    ],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: InboundState, to_state: InboundState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: InboundState, to_state: InboundState) -> bool:
    """Check if transition is valid."""
    return to_state in VALID_TRANSITIONS.get(from_state, [])


def transition(from_state: InboundState, to_state: InboundState) -> InboundState:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state
