"""Operator alerts for failures the customer never sees.

The webhook always acknowledges and the AI degrades quietly, so a failed
completion or an unreachable knowledge store would otherwise only show up in
logs. Alerts go to a Telegram chat through the Bot API.
"""

from typing import Optional

import httpx

from app.config import settings
from app.logging_config import get_logger

logger = get_logger("alert_service")

TELEGRAM_SEND_URL = "https://api.telegram.org/bot{token}/sendMessage"
LEVEL_ICONS = {"INFO": "ℹ️", "WARNING": "⚠️", "ERROR": "❌", "CRITICAL": "🔥"}
MAX_CONTEXT_VALUE_CHARS = 300


def format_alert(level: str, message: str, context: Optional[dict] = None) -> str:
    """Markdown body: icon and level header, the message, then context as a code block."""
    lines = [f"{LEVEL_ICONS.get(level, '📢')} *{level}* (WhatsApp helpdesk)", "", message]
    if context:
        lines += ["", "```"]
        lines += [f"{key}: {str(value)[:MAX_CONTEXT_VALUE_CHARS]}" for key, value in context.items()]
        lines.append("```")
    return "\n".join(lines)


def send_alert(level: str, message: str, context: Optional[dict] = None) -> bool:
    """Post an alert. Returns False when alerts are not configured or delivery failed."""
    token = settings.alert_bot_token
    chat_id = settings.alert_chat_id
    if not token or not chat_id:
        logger.warning(f"Alert not configured: {level} - {message}", extra={"context": context or {}})
        return False

    try:
        with httpx.Client(timeout=10) as client:
            response = client.post(
                TELEGRAM_SEND_URL.format(token=token),
                json={"chat_id": chat_id, "text": format_alert(level, message, context), "parse_mode": "Markdown"},
            )
    except httpx.HTTPError as e:
        logger.error(f"Failed to send alert: {e}")
        return False

    if response.status_code != 200:
        logger.error(f"Telegram rejected alert: {response.status_code}")
        return False
    return True


def alert_error(message: str, context: Optional[dict] = None) -> bool:
    """Shortcut for ERROR level alert."""
    return send_alert("ERROR", message, context)


def alert_warning(message: str, context: Optional[dict] = None) -> bool:
    """Shortcut for WARNING level alert."""
    return send_alert("WARNING", message, context)
