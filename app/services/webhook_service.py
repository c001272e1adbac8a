"""Inbound WhatsApp message flow.

received -> logged -> one of: skipped (number not allowed), skipped (human in
control), AI responded, AI failed. The allowlist gate is always evaluated
before the control gate. Every failure below the router is logged and
swallowed; the provider always gets an acknowledgment.
"""

from typing import Optional

from sqlalchemy.orm import Session

from app.logging_config import get_logger, session_logger
from app.schemas.conversation import CustomerInfo
from app.schemas.webhook import IncomingMessage
from app.services.ai_mode_service import is_number_allowed_for_ai
from app.services.ai_service import generate_ai_response
from app.services.human_control_service import is_human_in_control
from app.services.message_service import SENDER_AI, SENDER_HUMAN, build_session_id, normalize_digits, save_message
from app.services.payload_parser import extract_incoming_message
from app.services.state_machine import InboundState, transition
from app.services.whatsapp_service import send_whatsapp_message

logger = get_logger("webhook_service")


def handle_incoming_message(db: Session, incoming: IncomingMessage) -> InboundState:
    """Run one parsed inbound message through log, gates and reply. Returns the terminal state."""
    phone = normalize_digits(incoming.wa_id)
    session_id = build_session_id(phone)
    log = session_logger(logger, session_id)
    customer = CustomerInfo(number=phone, name=incoming.customer_name)
    state = InboundState.RECEIVED

    saved = save_message(db, session_id, SENDER_HUMAN, incoming.text, customer)
    if not saved.ok:
        log.info("Inbound message not logged, continuing")
    state = transition(state, InboundState.LOGGED)

    if not is_number_allowed_for_ai(db, phone):
        log.info("AI reply skipped: number not in allowlist")
        return transition(state, InboundState.SKIPPED_NOT_ALLOWED)

    if is_human_in_control(db, session_id):
        log.info("AI reply skipped: human in control")
        return transition(state, InboundState.SKIPPED_HUMAN_CONTROL)

    reply = generate_ai_response(
        db,
        session_id=session_id,
        user_message=incoming.text,
        customer_phone=phone,
        customer_name=incoming.customer_name,
    )
    if not reply.ok:
        log.info("AI reply not generated")
        return transition(state, InboundState.AI_FAILED)

    sent = send_whatsapp_message(phone, reply.value.content)
    if not sent.ok:
        log.error("AI reply not delivered", context={"error": sent.error})

    metadata = {"model": reply.value.model} if reply.value.model else None
    logged = save_message(db, session_id, SENDER_AI, reply.value.content, customer, response_metadata=metadata)
    if not logged.ok:
        log.info("AI reply not logged")

    log.info("AI reply sent" if sent.ok else "AI reply recorded without delivery")
    return transition(state, InboundState.AI_RESPONDED)


def process_webhook(db: Session, body: object) -> Optional[InboundState]:
    """Parse a delivery and handle it. None when the payload holds no text message."""
    incoming = extract_incoming_message(body)
    if incoming is None:
        logger.debug("Webhook payload ignored: no text message")
        return None
    return handle_incoming_message(db, incoming)
