from dataclasses import dataclass
from typing import List, Optional

import httpx
from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.services.ai_mode_service import DEFAULT_MODEL, DEFAULT_SYSTEM_PROMPT, get_ai_mode_settings
from app.services.alert_service import alert_error
from app.services.knowledge_service import format_knowledge_context, search_knowledge
from app.services.llm import OpenAIError, get_llm_provider
from app.services.message_service import SENDER_HUMAN, get_recent_messages
from app.services.result import AI_ERROR, Result

logger = get_logger("ai_service")

MAX_HISTORY_MESSAGES = 20
KNOWLEDGE_TOP_K = 5

NOT_CONFIGURED_RESPONSE = "Sorry, the assistant is not configured. Please try again later."
EMPTY_RESPONSE = "I didn't get a response. Please try again."


@dataclass
class AIReply:
    content: str
    model: Optional[str] = None
    knowledge_matches: int = 0


def get_conversation_history(db: Session, session_id: str, limit: int = MAX_HISTORY_MESSAGES) -> List[dict]:
    """Last ``limit`` logged messages as chat turns, oldest first."""
    recent = get_recent_messages(db, session_id, limit=limit)
    if not recent.ok:
        logger.warning(f"History unavailable for {session_id}: {recent.error}")

    history = []
    for msg in recent.value or []:
        if not msg.content:
            continue
        role = "user" if msg.sender_type == SENDER_HUMAN else "assistant"
        history.append({"role": role, "content": msg.content})
    return history


def build_system_prompt(base_prompt: str, knowledge_context: Optional[str]) -> str:
    if not knowledge_context:
        return base_prompt
    return f"{base_prompt}\n\n{knowledge_context}"


def generate_ai_response(
    db: Session,
    session_id: str,
    user_message: str,
    customer_phone: Optional[str] = None,
    customer_name: Optional[str] = None,
) -> Result[AIReply]:
    """Compose a grounded reply for ``user_message``.

    Nothing is persisted here; the caller logs both sides of the exchange.
    """
    provider = get_llm_provider()
    if provider is None:
        logger.warning(f"OPENAI_API_KEY not set, sending not-configured reply to {session_id}")
        return Result.success(AIReply(content=NOT_CONFIGURED_RESPONSE))

    ai_settings = get_ai_mode_settings(db)
    system_prompt = ai_settings.system_prompt or DEFAULT_SYSTEM_PROMPT
    model = ai_settings.model or DEFAULT_MODEL

    matches = search_knowledge(user_message, top_k=KNOWLEDGE_TOP_K)
    messages = [{"role": "system", "content": build_system_prompt(system_prompt, format_knowledge_context(matches))}]

    history = get_conversation_history(db, session_id)
    messages.extend(history)

    # The inbound message is usually logged before we run, so it may already close the history.
    if not history or history[-1] != {"role": "user", "content": user_message}:
        messages.append({"role": "user", "content": user_message})

    logger.info(
        "Generating AI reply",
        extra={
            "context": {
                "session_id": session_id,
                "model": model,
                "history": len(history),
                "knowledge_matches": len(matches),
                "customer_phone": customer_phone,
                "customer_name": customer_name,
            }
        },
    )

    try:
        response = provider.generate(messages, model=model)
    except (OpenAIError, httpx.HTTPError) as e:
        logger.error(f"AI generation error for {session_id}: {e}")
        alert_error("AI generation failed", {"session_id": session_id, "error": str(e)})
        return Result.failure(str(e), AI_ERROR)

    content = (response.content or "").strip() or EMPTY_RESPONSE
    return Result.success(AIReply(content=content, model=response.model or model, knowledge_matches=len(matches)))
