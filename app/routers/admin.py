"""Dashboard read/write endpoints for WhatsApp conversations."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.logging_config import get_logger
from app.schemas.conversation import (
    ConversationListResponse,
    CustomerInfo,
    HumanControlRequest,
    HumanControlResponse,
    MessageListResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from app.schemas.settings import AIModeSettings, AIModeSettingsUpdate
from app.services.ai_mode_service import get_ai_mode_settings, set_ai_mode_settings
from app.services.human_control_service import is_human_in_control, set_human_control
from app.services.message_service import (
    MAX_RECENT_LIMIT,
    SENDER_AI,
    build_session_id,
    get_full_conversation,
    get_recent_messages,
    list_conversations,
    normalize_digits,
    save_message,
)
from app.services.whatsapp_service import send_whatsapp_message

logger = get_logger("admin")


def require_admin(
    response: Response,
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
) -> None:
    """Shared-secret check for dashboard calls; also keeps admin responses out of search indexes."""
    response.headers["X-Robots-Tag"] = "noindex, nofollow"
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not x_admin_token or x_admin_token != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


router = APIRouter(prefix="/admin/whatsapp", tags=["admin"], dependencies=[Depends(require_admin)])


# === CONVERSATIONS ===


@router.get("/conversations", response_model=ConversationListResponse)
def get_conversations(db: Session = Depends(get_db)):
    result = list_conversations(db)
    if not result.ok:
        raise HTTPException(status_code=500, detail=result.error)
    return ConversationListResponse(conversations=result.value)


@router.get("/conversations/{session_id}", response_model=MessageListResponse)
def get_conversation_messages(
    session_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=MAX_RECENT_LIMIT),
    db: Session = Depends(get_db),
):
    """Full history, or only the newest ``limit`` messages when a limit is given."""
    if limit is None:
        result = get_full_conversation(db, session_id)
    else:
        result = get_recent_messages(db, session_id, limit=limit)
    if not result.ok:
        raise HTTPException(status_code=500, detail=result.error)
    return MessageListResponse(messages=result.value)


# === HUMAN CONTROL ===


@router.get("/human-control", response_model=HumanControlResponse)
def get_human_control(session_id: str = Query(alias="sessionId", min_length=1), db: Session = Depends(get_db)):
    return HumanControlResponse(session_id=session_id, is_human_in_control=is_human_in_control(db, session_id))


@router.post("/human-control", response_model=HumanControlResponse)
def update_human_control(data: HumanControlRequest, db: Session = Depends(get_db)):
    result = set_human_control(db, data.session_id, data.is_human_in_control)
    if not result.ok:
        raise HTTPException(status_code=500, detail=result.error)
    return HumanControlResponse(session_id=data.session_id, is_human_in_control=result.value)


# === OPERATOR SEND ===


@router.post("/send-message", response_model=SendMessageResponse)
def send_message(data: SendMessageRequest, db: Session = Depends(get_db)):
    """Send as the business and log it as an ``ai`` message, like an automated reply."""
    text = (data.message or "").strip()
    number = normalize_digits(data.customer_number or "")
    if not text or not number:
        raise HTTPException(status_code=400, detail="message and customerNumber are required")

    sent = send_whatsapp_message(number, text)
    if not sent.ok:
        logger.warning("Operator message not sent", extra={"context": {"customer_number": number, "error": sent.error}})
        raise HTTPException(status_code=502, detail=sent.error or "Failed to send WhatsApp message")

    session_id = build_session_id(number)
    customer = CustomerInfo(number=number, name=(data.customer_name or "").strip() or None)
    saved = save_message(db, session_id, SENDER_AI, text, customer)
    if not saved.ok:
        raise HTTPException(status_code=500, detail=saved.error)

    logger.info("Operator message sent", extra={"context": {"session_id": session_id, "message_id": saved.value.id}})
    return SendMessageResponse(success=True, id=saved.value.id, date_time=saved.value.date_time)


# === MODE SETTINGS ===


@router.get("/settings", response_model=AIModeSettings)
def get_settings(db: Session = Depends(get_db)):
    return get_ai_mode_settings(db)


@router.post("/settings", response_model=AIModeSettings)
def update_settings(data: AIModeSettingsUpdate, db: Session = Depends(get_db)):
    result = set_ai_mode_settings(db, data)
    if not result.ok:
        raise HTTPException(status_code=500, detail=result.error)
    return result.value
