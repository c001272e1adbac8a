from app.services.human_control_service import is_human_in_control, set_human_control
from app.services.message_service import (
    build_session_id,
    get_full_conversation,
    get_recent_messages,
    list_conversations,
    save_message,
)
from app.services.state_machine import (
    InboundState,
    InvalidTransitionError,
    can_transition,
    transition,
)
