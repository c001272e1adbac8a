from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from starlette.requests import ClientDisconnect

from app.config import settings
from app.database import get_db
from app.logging_config import get_logger
from app.schemas.webhook import WebhookAck
from app.services.webhook_service import process_webhook

logger = get_logger("webhook")

router = APIRouter(prefix="/whatsapp", tags=["webhook"])


@router.get("/webhook", response_class=PlainTextResponse)
def verify_webhook(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
):
    """Meta subscription handshake: echo the challenge when the verify token matches."""
    expected = settings.whatsapp_webhook_verify_token
    if mode == "subscribe" and expected and token == expected:
        logger.info("Webhook verified")
        return PlainTextResponse(challenge or "")
    logger.warning("Webhook verification rejected", extra={"context": {"mode": mode}})
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


@router.post("/webhook", response_model=WebhookAck)
async def receive_webhook(request: Request, db: Session = Depends(get_db)) -> WebhookAck:
    """Inbound delivery. Always acknowledged so the provider never retries."""
    try:
        body = await request.json()
    except ClientDisconnect:
        logger.info("Webhook client disconnected during read")
        return WebhookAck()
    except ValueError as exc:
        logger.warning("Webhook payload is not valid JSON", extra={"context": {"error": str(exc)}})
        return WebhookAck()

    try:
        state = process_webhook(db, body)
    except Exception as exc:
        logger.exception("Webhook processing failed", extra={"context": {"error": str(exc)}})
        return WebhookAck()

    if state is not None:
        logger.info("Webhook processed", extra={"context": {"state": state.value}})
    return WebhookAck()
