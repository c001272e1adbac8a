"""Conversation Log: append-only WhatsApp message history and its read views.

Rows live in ``chatbot_history``. The ``message`` and ``customer`` columns are
JSON, but rows written by older clients may hold them as serialized strings, so
every read goes through :func:`parse_json_field` before anything else looks at
them.
"""

import json
import re
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import get_logger
from app.models import ChatHistory
from app.schemas.conversation import ChatMessage, ConversationSummary, CustomerInfo, SavedMessage
from app.services.result import DB_ERROR, STORAGE_UNAVAILABLE, Result

logger = get_logger("message_service")

PAGE_SIZE = 500
MAX_RECENT_LIMIT = 500

SENDER_HUMAN = "human"
SENDER_AI = "ai"


def normalize_digits(value: str) -> str:
    """Strip everything but digits (``+27 69-000`` -> ``2769000``)."""
    return re.sub(r"\D", "", value or "")


def build_session_id(customer_number: str) -> str:
    """Session id shared by the log, control state and allowlist: prefix + phone digits."""
    return f"{settings.whatsapp_session_id_prefix}{normalize_digits(customer_number)}"


def parse_json_field(value: object) -> Optional[dict]:
    """Return a dict for a JSON column that may arrive as an object or a string."""
    if value is None:
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def _message_content(payload: Optional[dict]) -> Optional[str]:
    if not payload:
        return None
    content = payload.get("content")
    if content is None:
        content = payload.get("body")
    return content if isinstance(content, str) else None


def row_to_chat_message(row: ChatHistory) -> ChatMessage:
    """Canonical in-memory shape of a stored row."""
    payload = parse_json_field(row.message)
    customer = parse_json_field(row.customer) or {}
    return ChatMessage(
        id=row.id,
        session_id=str(row.session_id or ""),
        sender_type=SENDER_HUMAN if payload and payload.get("type") == SENDER_HUMAN else SENDER_AI,
        content=_message_content(payload) or "",
        customer_name=customer.get("name") or None,
        customer_number=str(customer.get("number") or ""),
        created_at=row.date_time,
    )


def save_message(
    db: Session,
    session_id: str,
    sender_type: str,
    content: str,
    customer: CustomerInfo,
    response_metadata: Optional[dict] = None,
) -> Result[SavedMessage]:
    """Append one message. The database assigns id and timestamp.

    A failed write comes back as ``storage_unavailable``; the caller decides
    whether to carry on.
    """
    payload: dict = {"type": sender_type, "content": content}
    if response_metadata:
        payload["response_metadata"] = response_metadata

    customer_payload = {"number": customer.number}
    if customer.name:
        customer_payload["name"] = customer.name

    row = ChatHistory(session_id=session_id, message=payload, customer=customer_payload)
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Message log write failed",
            extra={"context": {"session_id": session_id, "sender_type": sender_type, "error": str(e)}},
        )
        return Result.failure(str(e), STORAGE_UNAVAILABLE)

    return Result.success(SavedMessage(id=row.id, date_time=row.date_time))


def _iter_pages(query, page_size: int = PAGE_SIZE) -> Iterator[ChatHistory]:
    """Walk an ordered query page by page until a short page comes back.

    Rows inserted during the walk push already-read rows onto later pages;
    those are skipped by id.
    """
    seen: set[int] = set()
    offset = 0
    while True:
        page = query.offset(offset).limit(page_size).all()
        for row in page:
            if row.id not in seen:
                seen.add(row.id)
                yield row
        if len(page) < page_size:
            return
        offset += page_size


def get_full_conversation(db: Session, session_id: str, page_size: int = PAGE_SIZE) -> Result[list[ChatMessage]]:
    """Every message of a session, oldest first (ties by id)."""
    try:
        query = (
            db.query(ChatHistory)
            .filter(ChatHistory.session_id == session_id)
            .order_by(ChatHistory.date_time.asc(), ChatHistory.id.asc())
        )
        messages = [row_to_chat_message(row) for row in _iter_pages(query, page_size)]
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Full history read failed for {session_id}: {e}")
        return Result.failure(str(e), DB_ERROR, value=[])

    logger.debug(f"Loaded {len(messages)} messages for {session_id}")
    return Result.success(messages)


def get_recent_messages(db: Session, session_id: str, limit: int = 50) -> Result[list[ChatMessage]]:
    """The newest ``limit`` messages (capped at 500), returned oldest first."""
    limit = max(1, min(int(limit), MAX_RECENT_LIMIT))
    try:
        rows = (
            db.query(ChatHistory)
            .filter(ChatHistory.session_id == session_id)
            .order_by(ChatHistory.date_time.desc(), ChatHistory.id.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Recent history read failed for {session_id}: {e}")
        return Result.failure(str(e), DB_ERROR, value=[])

    return Result.success([row_to_chat_message(row) for row in reversed(rows)])


def _sort_key(summary: ConversationSummary) -> float:
    return summary.last_message_at.timestamp() if summary.last_message_at else 0.0


def list_conversations(db: Session, page_size: int = PAGE_SIZE) -> Result[list[ConversationSummary]]:
    """One summary per session, most recently active first.

    Rows are scanned newest first, so the first row seen for a session is its
    latest message and the first customer row seen is its latest inbound one.
    """
    by_session: dict[str, ConversationSummary] = {}

    try:
        query = db.query(ChatHistory).order_by(ChatHistory.date_time.desc(), ChatHistory.id.desc())
        for row in _iter_pages(query, page_size):
            payload = parse_json_field(row.message)
            is_customer = bool(payload) and payload.get("type") == SENDER_HUMAN
            summary = by_session.get(row.session_id)
            if summary is None:
                customer = parse_json_field(row.customer) or {}
                by_session[row.session_id] = ConversationSummary(
                    session_id=row.session_id,
                    customer_name=customer.get("name") or None,
                    customer_number=str(customer.get("number") or ""),
                    last_message_content=_message_content(payload),
                    last_message_at=row.date_time,
                    message_count=1,
                    last_customer_message_id=row.id if is_customer else None,
                )
                continue
            summary.message_count += 1
            if is_customer and summary.last_customer_message_id is None:
                summary.last_customer_message_id = row.id
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Conversation list read failed: {e}")
        return Result.failure(str(e), DB_ERROR, value=[])

    dated = [s for s in by_session.values() if s.last_message_at is not None]
    undated = [s for s in by_session.values() if s.last_message_at is None]
    dated.sort(key=_sort_key, reverse=True)
    return Result.success(dated + undated)
